"""
exam_tester/routes/exam_attempts.py
Timed exam attempts (students only)
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.database import get_db
from exam_tester.schemas.exam_attempt import PauseAttemptRequest, StartAttemptRequest, UpdateTimeRequest
from exam_tester.security.auth import require_student
from exam_tester.security.principal import Student
from exam_tester.services import attempt_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/exam-attempts", tags=["exam-attempts"])


@router.post("/start")
async def start_attempt(
    body: StartAttemptRequest,
    student: Student = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Start the exam, or resume the attempt already in progress."""
    attempt = await attempt_service.start_attempt(db, student.id, body.exam_id)
    return {
        "success": True,
        "data": {"attempt": attempt.to_dict()}
    }


@router.get("/{exam_id}")
async def get_attempt(
    exam_id: int,
    student: Student = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Attempt with live remaining time; attempt is null if never started."""
    view = await attempt_service.get_attempt_status(db, student.id, exam_id)
    if view is None:
        return {"success": True, "data": {"attempt": None}}
    return {
        "success": True,
        "data": {"attempt": view.attempt.to_dict(time_remaining=view.time_remaining)}
    }


@router.put("/{attempt_id}/time")
async def update_attempt_time(
    attempt_id: int,
    body: UpdateTimeRequest,
    student: Student = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    attempt = await attempt_service.update_attempt_time(db, attempt_id, student.id, body.time_remaining)
    return {
        "success": True,
        "data": {
            "attempt": {
                "id": attempt.id,
                "timeRemaining": attempt.time_remaining_seconds,
                "status": attempt.status.value,
            }
        }
    }


@router.put("/{attempt_id}/pause")
async def pause_attempt(
    attempt_id: int,
    body: Optional[PauseAttemptRequest] = None,
    student: Student = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    attempt = await attempt_service.pause_attempt(
        db, attempt_id, student.id, body.time_remaining if body else None
    )
    return {
        "success": True,
        "message": "Exam attempt paused",
        "data": {"attempt": attempt.to_dict()}
    }


@router.put("/{attempt_id}/complete")
async def complete_attempt(
    attempt_id: int,
    student: Student = Depends(require_student),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    attempt = await attempt_service.complete_attempt(db, attempt_id, student.id)
    return {
        "success": True,
        "message": "Exam attempt marked as completed",
        "data": {"attempt": attempt.to_dict()}
    }
