"""
exam_tester/routes/exams.py
Exam API Routes

Teachers upload exams; everyone reads the list filtered by role.
The file route is public so the frontend can embed it in an iframe.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.config.settings import settings
from exam_tester.database import get_db
from exam_tester.dependencies import get_blob_store
from exam_tester.limiter import limiter
from exam_tester.routes.file_responses import inline_file_response, redirect_response
from exam_tester.security.auth import get_current_principal, require_teacher
from exam_tester.security.principal import Principal, Teacher
from exam_tester.services import exam_service
from exam_tester.services.file_resolution_service import Redirect, resolve_exam_file
from exam_tester.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exams", tags=["exams"])


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def create_exam(
    request: Request,  # Required by slowapi
    title: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    exam_pdf: Optional[UploadFile] = File(None, alias="examPdf"),
    teacher: Teacher = Depends(require_teacher),
    store: BlobStore = Depends(get_blob_store),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Create an exam from a multipart form.

    Fields: title (1-100 chars), duration (1-300 minutes),
    examPdf (PDF, JPG or PNG, max 10MB).
    """
    exam = await exam_service.create_exam(db, store, teacher, title, duration, exam_pdf)
    return {
        "success": True,
        "message": "Exam created successfully",
        "data": {"exam": exam.to_dict()}
    }


@router.get("/file/{file_ref:path}")
async def get_exam_file(
    file_ref: str,
    store: BlobStore = Depends(get_blob_store),
    db: AsyncSession = Depends(get_db),
):
    """Serve an exam file inline, or redirect for externally hosted files."""
    resolution = await resolve_exam_file(db, store, file_ref)
    if isinstance(resolution, Redirect):
        return redirect_response(resolution)
    return inline_file_response(resolution)


@router.get("")
async def list_exams(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    exams = await exam_service.list_exams(db, principal)
    return {
        "success": True,
        "data": {"exams": [exam.to_dict() for exam in exams]}
    }


@router.get("/{exam_id}")
async def get_exam(
    exam_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    exam = await exam_service.get_exam(db, exam_id)
    return {
        "success": True,
        "data": {"exam": exam.to_dict()}
    }


@router.put("/{exam_id}/cancel")
async def cancel_exam(
    exam_id: int,
    teacher: Teacher = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    exam = await exam_service.cancel_exam(db, teacher, exam_id)
    return {
        "success": True,
        "message": "Exam cancelled successfully. It is now hidden from students.",
        "data": {
            "cancelledExam": {"id": exam.id, "title": exam.title, "status": "inactive"}
        }
    }


@router.put("/{exam_id}/activate")
async def activate_exam(
    exam_id: int,
    teacher: Teacher = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    exam = await exam_service.activate_exam(db, teacher, exam_id)
    return {
        "success": True,
        "message": "Exam reactivated successfully. It is now visible to students.",
        "data": {
            "activatedExam": {"id": exam.id, "title": exam.title, "status": "active"}
        }
    }
