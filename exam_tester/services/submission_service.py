"""
Submission Gate

At most one answer per (student, exam). The existence check gives a
friendly error; the unique constraint on submissions is what actually
guarantees it under concurrency.

Submitting is independent of the attempt state machine.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.config.settings import settings
from exam_tester.core.clock import utcnow
from exam_tester.errors import DuplicateConflictError, ErrorCode, ForbiddenError, NotFoundError
from exam_tester.orm.exam import Exam
from exam_tester.orm.submission import Submission, SubmissionStatus
from exam_tester.security.principal import Principal
from exam_tester.services.access_policy import can_view_submission, ensure_exam_owner, submission_visibility_clause
from exam_tester.services.uploads import validate_upload
from exam_tester.storage.blob_store import ANSWERS_BUCKET, BlobHandle, BlobStore, iter_upload
from exam_tester.storage.file_refs import BlobKey

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "You have already submitted answers for this exam"


async def _load_submission(db: AsyncSession, submission_id: int) -> Submission:
    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .execution_options(populate_existing=True)
    )
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Submission", submission_id, code=ErrorCode.SUBMISSION_NOT_FOUND)
    return submission


async def _find_submission(db: AsyncSession, student_id: int, exam_id: int) -> Optional[Submission]:
    result = await db.execute(
        select(Submission).where(
            Submission.student_id == student_id,
            Submission.exam_id == exam_id
        )
    )
    return result.scalar_one_or_none()


# =============================================================================
# submit_answer()
# =============================================================================

async def submit_answer(
    db: AsyncSession,
    store: BlobStore,
    student_id: int,
    exam_id: int,
    upload,
) -> Submission:
    """
    Accept a student's answer file.

    Flow:
    1. Exam must exist
    2. Reject a second submission
    3. Whitelist content type, enforce size limit
    4. Stream the file into the answers bucket
    5. Create the submission row; on failure remove the stored blob

    Raises:
        NotFoundError: exam does not exist
        DuplicateConflictError: already submitted (checked or by constraint)
        ValidationError / PayloadTooLargeError: upload rejected
    """
    exam = await db.get(Exam, exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id, code=ErrorCode.EXAM_NOT_FOUND)

    if await _find_submission(db, student_id, exam_id) is not None:
        raise DuplicateConflictError(DUPLICATE_MESSAGE, code=ErrorCode.DUPLICATE_SUBMISSION)

    validate_upload(upload, "answer")

    key = await store.put_stream(
        db,
        iter_upload(upload, store.chunk_size),
        content_type=upload.content_type,
        original_name=upload.filename,
        metadata={
            "originalName": upload.filename,
            "studentId": student_id,
            "examId": exam_id,
        },
        bucket=ANSWERS_BUCKET,
        uploaded_by=student_id,
        max_size=settings.MAX_UPLOAD_BYTES,
    )

    submission = Submission(
        student_id=student_id,
        exam_id=exam_id,
        answer_ref=key,
        submitted_at=utcnow(),
        status=SubmissionStatus.SUBMITTED,
    )
    db.add(submission)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        store.remove_bytes(key)
        logger.warning(f"Duplicate submission by student {student_id} for exam {exam_id}; removed blob {key}")
        raise DuplicateConflictError(DUPLICATE_MESSAGE, code=ErrorCode.DUPLICATE_SUBMISSION)
    except Exception:
        await db.rollback()
        store.remove_bytes(key)
        logger.error(f"Submission failed for student {student_id} exam {exam_id}; removed blob {key}")
        raise

    logger.info(f"Student {student_id} submitted answer {key} for exam {exam_id}")
    return await _load_submission(db, submission.id)


# =============================================================================
# Listings
# =============================================================================

async def list_exam_submissions(db: AsyncSession, principal: Principal, exam_id: int) -> tuple:
    """
    Submissions for one exam, newest first. Only the exam's teacher.

    Returns (exam, submissions).
    """
    exam = await db.get(Exam, exam_id)
    if exam is None:
        raise NotFoundError("Exam", exam_id, code=ErrorCode.EXAM_NOT_FOUND)
    ensure_exam_owner(principal, exam)

    result = await db.execute(
        select(Submission)
        .where(Submission.exam_id == exam_id)
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    return exam, list(result.scalars().all())


async def list_submissions(db: AsyncSession, principal: Principal) -> List[Submission]:
    """All submissions the principal may see, newest first."""
    result = await db.execute(
        select(Submission)
        .where(submission_visibility_clause(principal))
        .order_by(Submission.submitted_at.desc(), Submission.id.desc())
    )
    return list(result.scalars().all())


# =============================================================================
# get_submission_file()
# =============================================================================

async def get_submission_file(
    db: AsyncSession,
    store: BlobStore,
    principal: Principal,
    submission_id: int,
) -> tuple:
    """
    Open a submitted answer for streaming.

    Returns (submission, handle). handle is None when the answer is an
    external URL; the caller redirects to submission.answer_ref.
    """
    submission = await _load_submission(db, submission_id)
    if not can_view_submission(principal, submission, submission.exam):
        raise ForbiddenError(
            "Not authorized to view this submission",
            code=ErrorCode.OWNERSHIP_VIOLATION,
            details={"submission_id": submission_id}
        )

    answer = submission.answer
    if not isinstance(answer, BlobKey):
        return submission, None

    handle: BlobHandle = await store.get(db, answer.key)
    return submission, handle
