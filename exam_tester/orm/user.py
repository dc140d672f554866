"""
exam_tester/orm/user.py
User model with role
"""
from enum import Enum

from sqlalchemy import Column, String, Boolean, Enum as SQLEnum

from exam_tester.orm.base import BaseModel


class UserRole(str, Enum):
    """User roles"""
    student = "student"
    teacher = "teacher"
    admin = "admin"


class User(BaseModel):
    """
    Account of a student, teacher or admin.

    Credentials are managed outside this service; the row only carries
    what request authorization needs.
    """
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.student, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.full_name,
            "email": self.email,
        }
