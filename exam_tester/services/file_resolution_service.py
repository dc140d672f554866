"""
Exam File Resolution

Exam files are referenced either by an external URL (exams created before
blob storage existed) or by a blob key. GET /api/exams/file/{ref} accepts
both and decides, in order:

1. External URL          -> redirect, the blob store is not consulted
2. Malformed key         -> 400 Invalid file ID format
3. No exam owns the key  -> 404
4. Exam has a legacy URL -> redirect to it
5. Exam inactive         -> 403
6. Otherwise             -> stream the blob inline
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.config.settings import settings
from exam_tester.errors import ErrorCode, ForbiddenError, InvalidReferenceError, NotFoundError
from exam_tester.orm.exam import Exam
from exam_tester.storage.blob_store import BlobHandle, BlobStore
from exam_tester.storage.file_refs import ExternalUrl, parse_file_ref

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class Redirect:
    url: str


@dataclass
class InlineFile:
    handle: BlobHandle
    content_type: str
    filename: str
    max_age: int


FileResolution = Union[Redirect, InlineFile]


async def find_exam_by_file(db: AsyncSession, key: str) -> Optional[Exam]:
    result = await db.execute(
        select(Exam)
        .where(or_(Exam.file_ref == key, Exam.legacy_file_url == key))
        .order_by(Exam.id)
        .limit(1)
    )
    return result.scalars().first()


async def resolve_exam_file(db: AsyncSession, store: BlobStore, raw_ref: str) -> FileResolution:
    ref = parse_file_ref(raw_ref)

    if isinstance(ref, ExternalUrl):
        logger.info(f"Redirecting legacy exam file reference to {ref.url}")
        return Redirect(ref.url)

    if not ref.is_well_formed:
        raise InvalidReferenceError(ref.key)

    exam = await find_exam_by_file(db, ref.key)
    if exam is None:
        raise NotFoundError("Exam file", code=ErrorCode.FILE_NOT_FOUND)

    legacy = exam.legacy_file
    if legacy is not None:
        logger.info(f"Exam {exam.id} has a legacy file URL, redirecting")
        return Redirect(legacy.url)

    if not exam.is_active:
        raise ForbiddenError(
            "Access denied: This exam is not currently active",
            code=ErrorCode.EXAM_INACTIVE,
            details={"exam_id": exam.id}
        )

    handle = await store.get(db, ref.key)
    return InlineFile(
        handle=handle,
        content_type=handle.content_type or DEFAULT_CONTENT_TYPE,
        filename=handle.original_name or f"{exam.title}.pdf",
        max_age=settings.FILE_CACHE_MAX_AGE,
    )
