"""
Authenticated principal

Resolved once per request from the verified token; downstream code
dispatches on the variant type and never re-reads role strings.
"""
from dataclasses import dataclass
from typing import Union

from exam_tester.orm.user import User, UserRole


@dataclass(frozen=True)
class Student:
    id: int


@dataclass(frozen=True)
class Teacher:
    id: int


@dataclass(frozen=True)
class Admin:
    id: int


Principal = Union[Student, Teacher, Admin]

_ROLE_TO_PRINCIPAL = {
    UserRole.student: Student,
    UserRole.teacher: Teacher,
    UserRole.admin: Admin,
}


def principal_from_user(user: User) -> Principal:
    return _ROLE_TO_PRINCIPAL[UserRole(user.role)](user.id)
