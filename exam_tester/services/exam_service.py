"""
Exam lifecycle: creation with file upload, role-filtered listing, and the
cancel/activate soft toggle.
"""
import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.config.settings import settings
from exam_tester.core.clock import utcnow
from exam_tester.errors import ErrorCode, InvalidStateError, NotFoundError, ValidationError
from exam_tester.orm.exam import Exam, MAX_DURATION_MINUTES, MAX_TITLE_LENGTH, MIN_DURATION_MINUTES
from exam_tester.security.principal import Principal, Teacher
from exam_tester.services.access_policy import ensure_exam_owner, exam_visibility_clause
from exam_tester.services.uploads import validate_upload
from exam_tester.storage.blob_store import EXAMS_BUCKET, BlobStore, iter_upload

logger = logging.getLogger(__name__)


def validate_exam_fields(title, duration) -> tuple:
    """
    Normalize and check the form fields of a new exam.

    Returns (title, duration_minutes).
    """
    errors = []

    title = (title or "").strip()
    if not 1 <= len(title) <= MAX_TITLE_LENGTH:
        errors.append({"field": "title", "message": f"Title must be 1-{MAX_TITLE_LENGTH} characters"})

    try:
        duration = int(str(duration).strip())
    except (TypeError, ValueError):
        duration = None
    if duration is None or not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
        errors.append({
            "field": "duration",
            "message": f"Duration must be {MIN_DURATION_MINUTES}-{MAX_DURATION_MINUTES} minutes"
        })

    if errors:
        raise ValidationError("Validation failed", details={"errors": errors})
    return title, duration


async def _load_exam(db: AsyncSession, exam_id: int) -> Exam:
    result = await db.execute(
        select(Exam)
        .where(Exam.id == exam_id)
        .execution_options(populate_existing=True)
    )
    exam = result.scalar_one_or_none()
    if exam is None:
        raise NotFoundError("Exam", exam_id, code=ErrorCode.EXAM_NOT_FOUND)
    return exam


async def create_exam(
    db: AsyncSession,
    store: BlobStore,
    teacher: Teacher,
    title: str,
    duration,
    upload,
) -> Exam:
    """
    Store the exam file and create the exam row.

    The file goes to the exams bucket first; if the exam row cannot be
    written the stored blob is removed again.
    """
    title, duration = validate_exam_fields(title, duration)
    validate_upload(upload, "exam")

    key = await store.put_stream(
        db,
        iter_upload(upload, store.chunk_size),
        content_type=upload.content_type,
        original_name=upload.filename,
        metadata={
            "originalName": upload.filename,
            "uploadedBy": teacher.id,
            "uploadedAt": utcnow().isoformat(),
        },
        bucket=EXAMS_BUCKET,
        uploaded_by=teacher.id,
        max_size=settings.MAX_UPLOAD_BYTES,
    )

    exam = Exam(
        title=title,
        file_ref=key,
        duration_minutes=duration,
        creator_id=teacher.id,
        is_active=True,
    )
    db.add(exam)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        store.remove_bytes(key)
        logger.error(f"Exam creation failed for teacher {teacher.id}; removed blob {key}")
        raise

    logger.info(f"Exam {exam.id} '{title}' created by teacher {teacher.id} with file {key}")
    return await _load_exam(db, exam.id)


async def list_exams(db: AsyncSession, principal: Principal) -> List[Exam]:
    """Exams visible to the principal, newest first."""
    result = await db.execute(
        select(Exam)
        .where(exam_visibility_clause(principal))
        .order_by(Exam.created_at.desc(), Exam.id.desc())
    )
    return list(result.scalars().unique().all())


async def get_exam(db: AsyncSession, exam_id: int) -> Exam:
    return await _load_exam(db, exam_id)


async def _set_active(db: AsyncSession, principal: Principal, exam_id: int, active: bool) -> Exam:
    exam = await _load_exam(db, exam_id)
    ensure_exam_owner(principal, exam)

    if exam.is_active == active:
        raise InvalidStateError(
            "Exam is already active" if active else "Exam is already cancelled",
            details={"exam_id": exam.id, "is_active": exam.is_active}
        )

    exam.is_active = active
    await db.commit()
    logger.info(f"Exam {exam.id} {'activated' if active else 'cancelled'} by teacher {principal.id}")
    return exam


async def cancel_exam(db: AsyncSession, principal: Principal, exam_id: int) -> Exam:
    """Hide an exam from students. The exam is never deleted."""
    return await _set_active(db, principal, exam_id, False)


async def activate_exam(db: AsyncSession, principal: Principal, exam_id: int) -> Exam:
    return await _set_active(db, principal, exam_id, True)
