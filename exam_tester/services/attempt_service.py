"""
Exam Attempt Service

One timed attempt per (student, exam), with resume.

Time model:
- started_at is fixed at first start
- time_remaining_seconds is a checkpoint written by the client
- live remaining = max(0, checkpoint - floor(now - started_at))
- nothing runs in the background; expiry is detected when status is read

Every operation takes an optional `now` so callers (and tests) control the
clock.
"""
import logging
import math
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.core.clock import utcnow
from exam_tester.errors import (
    AlreadyCompletedError, AlreadySubmittedError, DuplicateConflictError, ErrorCode, NotFoundError
)
from exam_tester.orm.exam import Exam, MAX_DURATION_MINUTES
from exam_tester.orm.exam_attempt import AttemptStatus, ExamAttempt
from exam_tester.orm.submission import Submission
from exam_tester.state_machines.attempt_state import AttemptStateMachine

logger = logging.getLogger(__name__)


class AttemptView(NamedTuple):
    """An attempt together with its live remaining time."""
    attempt: ExamAttempt
    time_remaining: int


# =============================================================================
# Lookups
# =============================================================================

async def find_attempt(db: AsyncSession, student_id: int, exam_id: int) -> Optional[ExamAttempt]:
    result = await db.execute(
        select(ExamAttempt).where(
            ExamAttempt.student_id == student_id,
            ExamAttempt.exam_id == exam_id
        )
    )
    return result.scalar_one_or_none()


async def _owned_attempt(db: AsyncSession, attempt_id: int, student_id: int) -> ExamAttempt:
    """Attempt by id, visible only to the student who owns it."""
    result = await db.execute(
        select(ExamAttempt).where(
            ExamAttempt.id == attempt_id,
            ExamAttempt.student_id == student_id
        )
        .execution_options(populate_existing=True)
    )
    attempt = result.scalar_one_or_none()
    if attempt is None:
        raise NotFoundError("Exam attempt", attempt_id, code=ErrorCode.ATTEMPT_NOT_FOUND)
    return attempt


async def _has_submitted(db: AsyncSession, student_id: int, exam_id: int) -> bool:
    result = await db.execute(
        select(Submission.id).where(
            Submission.student_id == student_id,
            Submission.exam_id == exam_id
        )
    )
    return result.first() is not None


def _checkpoint(attempt: ExamAttempt, seconds: float) -> int:
    """
    Client-reported seconds as a stored checkpoint.

    Partial seconds round up, so only a report at or below zero expires.
    The value never exceeds the exam's full duration.
    """
    ceiling = attempt.exam.duration_seconds if attempt.exam is not None else MAX_DURATION_MINUTES * 60
    return min(math.ceil(max(0, seconds)), ceiling)


# =============================================================================
# A) start_attempt()
# =============================================================================

async def start_attempt(
    db: AsyncSession,
    student_id: int,
    exam_id: int,
    now: Optional[datetime] = None
) -> ExamAttempt:
    """
    Start a new attempt or resume the existing one.

    Flow:
    1. Exam must exist
    2. Reject if the student already submitted an answer
    3. Reject if the attempt was completed
    4. Resume: status=started, last_accessed_at=now, remaining time kept
    5. Otherwise create with the exam's full duration

    Raises:
        NotFoundError: exam does not exist
        AlreadySubmittedError: answer already submitted
        AlreadyCompletedError: attempt already completed
        DuplicateConflictError: a concurrent start created the attempt first
    """
    now = now or utcnow()

    exam = await db.get(Exam, exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id, code=ErrorCode.EXAM_NOT_FOUND)

    if await _has_submitted(db, student_id, exam_id):
        raise AlreadySubmittedError()

    attempt = await find_attempt(db, student_id, exam_id)

    if attempt is not None:
        if attempt.is_completed or attempt.status == AttemptStatus.COMPLETED:
            raise AlreadyCompletedError()

        AttemptStateMachine.transition(attempt, AttemptStatus.STARTED)
        attempt.last_accessed_at = now
        await db.commit()
        logger.info(f"Student {student_id} resumed attempt {attempt.id} for exam {exam_id}")
        return attempt

    attempt = ExamAttempt(
        student_id=student_id,
        exam_id=exam_id,
        started_at=now,
        last_accessed_at=now,
        time_remaining_seconds=exam.duration_seconds,
        status=AttemptStatus.STARTED,
        is_completed=False,
    )
    db.add(attempt)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Concurrent start for student {student_id} exam {exam_id}")
        raise DuplicateConflictError(
            "An attempt for this exam already exists",
            details={"exam_id": exam_id}
        )

    logger.info(f"Student {student_id} started attempt {attempt.id} for exam {exam_id}")
    return attempt


# =============================================================================
# B) get_attempt_status()
# =============================================================================

async def get_attempt_status(
    db: AsyncSession,
    student_id: int,
    exam_id: int,
    now: Optional[datetime] = None
) -> Optional[AttemptView]:
    """
    Current attempt with live remaining time, or None if never started.

    When the time has run out on an unfinished attempt, the expiry is
    persisted (status=expired, checkpoint=0). Repeated reads do not write
    again.
    """
    now = now or utcnow()

    attempt = await find_attempt(db, student_id, exam_id)
    if attempt is None:
        return None

    remaining = AttemptStateMachine.live_remaining(attempt, now)

    if remaining == 0 and attempt.status != AttemptStatus.COMPLETED:
        if attempt.status != AttemptStatus.EXPIRED or attempt.time_remaining_seconds != 0:
            AttemptStateMachine.transition(attempt, AttemptStatus.EXPIRED)
            attempt.time_remaining_seconds = 0
            await db.commit()

    return AttemptView(attempt, remaining)


# =============================================================================
# C) update_attempt_time()
# =============================================================================

async def update_attempt_time(
    db: AsyncSession,
    attempt_id: int,
    student_id: int,
    seconds: float,
    now: Optional[datetime] = None
) -> ExamAttempt:
    """
    Record the client's remaining-time checkpoint.

    Values are clamped to 0..duration; 0 expires the attempt. A
    completed attempt is left untouched.
    """
    now = now or utcnow()

    attempt = await _owned_attempt(db, attempt_id, student_id)
    if attempt.status == AttemptStatus.COMPLETED:
        logger.info(f"Ignoring time update on completed attempt {attempt.id}")
        return attempt

    attempt.time_remaining_seconds = _checkpoint(attempt, seconds)
    attempt.last_accessed_at = now

    if attempt.time_remaining_seconds == 0:
        AttemptStateMachine.transition(attempt, AttemptStatus.EXPIRED)

    await db.commit()
    return attempt


# =============================================================================
# D) pause_attempt()
# =============================================================================

async def pause_attempt(
    db: AsyncSession,
    attempt_id: int,
    student_id: int,
    seconds: Optional[float] = None,
    now: Optional[datetime] = None
) -> ExamAttempt:
    """
    Mark a running attempt as paused, optionally with a final checkpoint.

    The absolute clock keeps running while paused.

    Raises:
        NotFoundError: not the student's attempt
        InvalidStateError: attempt is not running
    """
    now = now or utcnow()

    attempt = await _owned_attempt(db, attempt_id, student_id)
    AttemptStateMachine.transition(attempt, AttemptStatus.PAUSED)

    if seconds is not None:
        attempt.time_remaining_seconds = _checkpoint(attempt, seconds)
    attempt.last_accessed_at = now

    await db.commit()
    return attempt


# =============================================================================
# E) complete_attempt()
# =============================================================================

async def complete_attempt(
    db: AsyncSession,
    attempt_id: int,
    student_id: int
) -> ExamAttempt:
    """Finish an attempt from any state. Completing twice is a no-op."""
    attempt = await _owned_attempt(db, attempt_id, student_id)
    AttemptStateMachine.transition(attempt, AttemptStatus.COMPLETED)
    await db.commit()
    logger.info(f"Student {student_id} completed attempt {attempt.id}")
    return attempt
