"""
exam_tester/orm/exam.py
Exam uploaded by a teacher

Key Design:
- file_ref holds either a blob store key or, for exams created before blob
  storage existed, an external URL
- legacy_file_url is the old URL column kept during the migration; when
  populated it wins over file_ref
- Exams are never deleted; cancelling flips is_active
"""
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from exam_tester.orm.base import BaseModel, isoformat
from exam_tester.storage.file_refs import ExternalUrl, parse_file_ref

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 300
MAX_TITLE_LENGTH = 100


class Exam(BaseModel):
    """
    Exam paper with a time limit.

    Only the creating teacher may toggle is_active.
    """

    __tablename__ = "exams"

    title = Column(
        String(MAX_TITLE_LENGTH),
        nullable=False,
        comment="Exam title, 1-100 characters"
    )

    file_ref = Column(
        String(2048),
        nullable=False,
        index=True,
        comment="Blob store key or legacy external URL"
    )

    legacy_file_url = Column(
        String(2048),
        nullable=True,
        index=True,
        comment="Pre-migration external URL; takes priority when set"
    )

    duration_minutes = Column(
        Integer,
        nullable=False,
        comment="Allowed duration in minutes"
    )

    creator_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Teacher who created the exam"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="False once cancelled; hidden from students"
    )

    creator = relationship("User", lazy="joined")

    __table_args__ = (
        CheckConstraint(
            f"duration_minutes >= {MIN_DURATION_MINUTES} AND duration_minutes <= {MAX_DURATION_MINUTES}",
            name="ck_exam_duration_range"
        ),
        Index("ix_exam_creator_created", "creator_id", "created_at"),
        Index("ix_exam_is_active", "is_active"),
    )

    def __repr__(self):
        return f"<Exam(id={self.id}, title='{self.title}', active={self.is_active})>"

    @property
    def legacy_file(self) -> Optional[ExternalUrl]:
        """The legacy URL when it is a usable external link."""
        if not self.legacy_file_url:
            return None
        ref = parse_file_ref(self.legacy_file_url)
        return ref if isinstance(ref, ExternalUrl) else None

    @property
    def duration_seconds(self) -> int:
        return self.duration_minutes * 60

    def to_dict(self, include_creator: bool = True) -> dict:
        """Convert to dictionary for API responses."""
        data = {
            "id": self.id,
            "title": self.title,
            "examFileId": self.legacy_file_url or self.file_ref,
            "duration": self.duration_minutes,
            "createdAt": isoformat(self.created_at),
            "isActive": self.is_active,
        }
        if include_creator and self.creator is not None:
            data["createdBy"] = self.creator.to_summary()
        else:
            data["createdBy"] = {"id": self.creator_id}
        return data
