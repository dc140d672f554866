"""
exam_tester/orm/stored_file.py
Metadata for objects held by the blob store

Bytes live on disk; this row records what is needed to serve them back
(content type, original filename, length, checksum).
"""
from sqlalchemy import Column, Integer, String, JSON, Index

from exam_tester.orm.base import BaseModel


class StoredFile(BaseModel):
    __tablename__ = "stored_files"

    key = Column(String(32), nullable=False, unique=True, index=True)
    bucket = Column(String(50), nullable=False, default="exams")
    content_type = Column(String(100), nullable=True)
    original_name = Column(String(255), nullable=True)
    stored_name = Column(String(300), nullable=False)
    length = Column(Integer, nullable=False, default=0)
    sha256 = Column(String(64), nullable=False)
    file_metadata = Column("metadata", JSON, nullable=True)
    uploaded_by = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_stored_file_bucket_created", "bucket", "created_at"),
    )

    def __repr__(self):
        return f"<StoredFile(key={self.key}, bucket={self.bucket}, length={self.length})>"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "bucket": self.bucket,
            "contentType": self.content_type,
            "originalName": self.original_name,
            "storedName": self.stored_name,
            "length": self.length,
            "sha256": self.sha256,
            "metadata": self.file_metadata or {},
            "uploadedBy": self.uploaded_by,
            "uploadedAt": self.created_at.isoformat() if self.created_at else None,
        }
