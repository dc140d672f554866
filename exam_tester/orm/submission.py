"""
exam_tester/orm/submission.py
Answer submission: one per student per exam, ever
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from exam_tester.core.clock import utcnow
from exam_tester.orm.base import BaseModel, isoformat
from exam_tester.storage.file_refs import FileRef, parse_file_ref


class SubmissionStatus(str, PyEnum):
    """Submission lifecycle status"""
    SUBMITTED = "submitted"      # Answer received
    GRADED = "graded"            # Marked by a teacher
    LATE = "late"                # Received after the deadline


class Submission(BaseModel):
    """
    Answer file submitted by a student for an exam.
    There is no resubmit path; the unique constraint is authoritative.
    """
    __tablename__ = "submissions"

    student_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    exam_id = Column(
        Integer,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False
    )

    answer_ref = Column(String(2048), nullable=False)  # Blob key or URL
    submitted_at = Column(DateTime, nullable=False, default=utcnow)
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=lambda enum: [member.value for member in enum]),
        nullable=False,
        default=SubmissionStatus.SUBMITTED
    )

    student = relationship("User", lazy="joined")
    exam = relationship("Exam", lazy="joined")

    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_submission_student_exam"),
        Index("ix_submission_exam_submitted", "exam_id", "submitted_at"),
    )

    def __repr__(self):
        return f"<Submission(id={self.id}, student_id={self.student_id}, exam_id={self.exam_id}, status={self.status})>"

    @property
    def answer(self) -> FileRef:
        return parse_file_ref(self.answer_ref)

    def to_dict(self, include_exam: bool = True) -> dict:
        data = {
            "id": self.id,
            "student": self.student.to_summary() if self.student else {"id": self.student_id},
            "answerUrl": self.answer_ref,
            "submittedAt": isoformat(self.submitted_at),
            "status": self.status.value if self.status else None,
        }
        if include_exam:
            exam = self.exam
            data["exam"] = {
                "id": self.exam_id,
                "title": exam.title if exam else None,
                "duration": exam.duration_minutes if exam else None,
                "createdBy": exam.creator.to_summary() if exam and exam.creator else None,
            }
        return data
