"""
exam_tester/orm/exam_attempt.py
Timed exam attempt

Key Design:
- At most one attempt per (student, exam), enforced by a unique constraint
- time_remaining_seconds is a checkpoint, reconciled against the wall clock
  on read; there is no background countdown
- Attempts are never deleted
"""
from enum import Enum

from sqlalchemy import (
    Column, Integer, DateTime, Boolean, ForeignKey, Index, UniqueConstraint,
    CheckConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from exam_tester.core.clock import utcnow
from exam_tester.orm.base import BaseModel, isoformat


class AttemptStatus(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ExamAttempt(BaseModel):
    """
    A student's single timed engagement with one exam.

    Lifecycle:
    1. Student starts exam -> attempt created (status=started)
    2. Client reports remaining time periodically
    3. Time runs out -> status=expired (computed on read)
    4. Student completes -> status=completed, is_completed=True (terminal)

    A started attempt can be re-entered (resume) until it is completed.
    """

    __tablename__ = "exam_attempts"

    student_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Student taking the exam"
    )

    exam_id = Column(
        Integer,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Exam being attempted"
    )

    started_at = Column(
        DateTime,
        nullable=False,
        default=utcnow,
        comment="First start; the timer is absolute from here"
    )

    last_accessed_at = Column(
        DateTime,
        nullable=False,
        default=utcnow,
        comment="Last start, resume or time update"
    )

    time_remaining_seconds = Column(
        Integer,
        nullable=False,
        comment="Checkpointed remaining time in seconds"
    )

    status = Column(
        SQLEnum(AttemptStatus, values_callable=lambda enum: [member.value for member in enum]),
        nullable=False,
        default=AttemptStatus.STARTED,
        comment="Current attempt status"
    )

    is_completed = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Set once by completion, never cleared"
    )

    exam = relationship("Exam", lazy="joined")

    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_exam_attempt_student_exam"),
        CheckConstraint("time_remaining_seconds >= 0", name="ck_exam_attempt_time_non_negative"),
        Index("ix_exam_attempt_student_status", "student_id", "status"),
    )

    def __repr__(self):
        return f"<ExamAttempt(id={self.id}, student_id={self.student_id}, exam_id={self.exam_id}, status={self.status})>"

    def to_dict(self, time_remaining: int = None) -> dict:
        """
        Convert to dictionary for API responses.

        time_remaining overrides the stored checkpoint with a live value.
        """
        return {
            "id": self.id,
            "examId": self.exam_id,
            "timeRemaining": self.time_remaining_seconds if time_remaining is None else time_remaining,
            "status": self.status.value,
            "startedAt": isoformat(self.started_at),
            "lastAccessedAt": isoformat(self.last_accessed_at),
            "isCompleted": self.is_completed,
        }
