"""
exam_tester/routes/__init__.py
Route registration
"""
from fastapi import APIRouter

from exam_tester.routes import exams, exam_attempts, submissions

router = APIRouter()

router.include_router(exams.router)
router.include_router(exam_attempts.router)
router.include_router(submissions.router)
