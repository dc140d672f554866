"""
exam_tester/orm/base.py
Base model for all ORM models
"""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base

from exam_tester.core.clock import utcnow

Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields.
    All ORM models inherit from this.
    """
    __abstract__ = True

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        index=True
    )

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated"
    )


def isoformat(value):
    """ISO-8601 string for a datetime column value, None passes through."""
    return value.isoformat() if value else None
