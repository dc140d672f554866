"""
Access Policy

Role-scoped visibility of exams and submissions. Pure functions over the
request Principal; nothing here touches the database.

| Principal | Exams               | Submissions                 |
|-----------|---------------------|-----------------------------|
| Student   | active only         | own (by id), no list-all    |
| Teacher   | own, any is_active  | those for own exams         |
| Admin     | all                 | all                         |
"""
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy import true

from exam_tester.errors import ErrorCode, ForbiddenError
from exam_tester.orm.exam import Exam
from exam_tester.orm.submission import Submission
from exam_tester.security.principal import Admin, Principal, Student, Teacher

logger = logging.getLogger(__name__)


# =============================================================================
# Exams
# =============================================================================

def can_view_exam(principal: Principal, exam: Exam) -> bool:
    if isinstance(principal, Student):
        return bool(exam.is_active)
    if isinstance(principal, Teacher):
        return exam.creator_id == principal.id
    return True


def filter_exams(principal: Principal, exams: Iterable[Exam]) -> List[Exam]:
    return [exam for exam in exams if can_view_exam(principal, exam)]


def exam_visibility_clause(principal: Principal):
    """The filter_exams rule as a WHERE clause on Exam."""
    if isinstance(principal, Student):
        return Exam.is_active.is_(True)
    if isinstance(principal, Teacher):
        return Exam.creator_id == principal.id
    return true()


def ensure_exam_owner(principal: Principal, exam: Exam) -> None:
    """
    Only the teacher who created an exam may toggle it or list its
    submissions.

    Raises:
        ForbiddenError: principal is not the creating teacher
    """
    if isinstance(principal, Teacher) and exam.creator_id == principal.id:
        return
    logger.warning(f"{type(principal).__name__} {principal.id} is not the owner of exam {exam.id}")
    raise ForbiddenError(
        "Not authorized to manage this exam",
        code=ErrorCode.OWNERSHIP_VIOLATION,
        details={"exam_id": exam.id}
    )


# =============================================================================
# Submissions
# =============================================================================

def filter_submissions(
    principal: Principal,
    submissions: Iterable[Submission],
    exam_lookup: Callable[[int], Optional[Exam]],
) -> List[Submission]:
    """
    Submissions visible to a staff principal.

    exam_lookup maps an exam id to its Exam (None when unknown).

    Raises:
        ForbiddenError: students have no list-all view
    """
    if isinstance(principal, Student):
        raise ForbiddenError(
            "Students cannot list submissions",
            code=ErrorCode.ROLE_REQUIRED
        )
    if isinstance(principal, Admin):
        return list(submissions)

    visible = []
    for submission in submissions:
        exam = exam_lookup(submission.exam_id)
        if exam is not None and exam.creator_id == principal.id:
            visible.append(submission)
    return visible


def submission_visibility_clause(principal: Principal):
    """
    The filter_submissions rule as a WHERE clause on Submission.

    Raises:
        ForbiddenError: students have no list-all view
    """
    if isinstance(principal, Student):
        return filter_submissions(principal, [], lambda exam_id: None)
    if isinstance(principal, Teacher):
        return Submission.exam.has(Exam.creator_id == principal.id)
    return true()


def can_view_submission(principal: Principal, submission: Submission, exam: Optional[Exam]) -> bool:
    if isinstance(principal, Admin):
        return True
    if isinstance(principal, Student):
        return submission.student_id == principal.id
    return exam is not None and exam.creator_id == principal.id
