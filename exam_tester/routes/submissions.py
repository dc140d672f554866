"""
exam_tester/routes/submissions.py
Answer submission and review
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import RedirectResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.config.settings import settings
from exam_tester.database import get_db
from exam_tester.dependencies import get_blob_store
from exam_tester.limiter import limiter
from exam_tester.routes.file_responses import content_disposition
from exam_tester.security.auth import get_current_principal, require_staff, require_student, require_teacher
from exam_tester.security.principal import Principal, Student, Teacher
from exam_tester.services import submission_service
from exam_tester.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/submissions", tags=["submissions"])


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def submit_answer(
    request: Request,  # Required by slowapi
    exam_id: int = Form(..., alias="examId"),
    answer_file: Optional[UploadFile] = File(None, alias="answerFile"),
    student: Student = Depends(require_student),
    store: BlobStore = Depends(get_blob_store),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Submit an answer file. One submission per exam."""
    submission = await submission_service.submit_answer(db, store, student.id, exam_id, answer_file)
    return {
        "success": True,
        "message": "Answer submitted successfully",
        "data": {"submission": submission.to_dict()}
    }


@router.get("")
async def list_submissions(
    principal: Principal = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """All submissions (admin) or submissions for the teacher's own exams."""
    submissions = await submission_service.list_submissions(db, principal)
    return {
        "success": True,
        "data": {"submissions": [s.to_dict() for s in submissions]}
    }


@router.get("/{exam_id}")
async def list_exam_submissions(
    exam_id: int,
    teacher: Teacher = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    exam, submissions = await submission_service.list_exam_submissions(db, teacher, exam_id)
    return {
        "success": True,
        "data": {
            "exam": {
                "id": exam.id,
                "title": exam.title,
                "duration": exam.duration_minutes,
                "createdAt": exam.created_at.isoformat() if exam.created_at else None,
            },
            "submissions": [s.to_dict(include_exam=False) for s in submissions]
        }
    }


@router.get("/{submission_id}/file")
async def get_submission_file(
    submission_id: int,
    principal: Principal = Depends(get_current_principal),
    store: BlobStore = Depends(get_blob_store),
    db: AsyncSession = Depends(get_db),
):
    """Stream a submitted answer to its student, the exam's teacher or an admin."""
    submission, handle = await submission_service.get_submission_file(db, store, principal, submission_id)
    if handle is None:
        return RedirectResponse(submission.answer_ref, status_code=307)

    return StreamingResponse(
        handle.stream,
        media_type=handle.content_type or "application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(
                handle.original_name or f"answer_{submission.id}", disposition="attachment"
            ),
            "Content-Length": str(handle.length),
            "Cache-Control": "private, no-store",
        },
    )
