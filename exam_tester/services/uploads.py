"""
Ingestion checks shared by exam creation and answer submission.

The blob store accepts any bytes; the content-type whitelist and size
limit are applied here, before anything is stored.
"""
import logging
from typing import Optional

from exam_tester.config.settings import settings
from exam_tester.errors import ErrorCode, PayloadTooLargeError, ValidationError

logger = logging.getLogger(__name__)


def validate_upload(upload, purpose: str, max_bytes: Optional[int] = None) -> None:
    """
    Reject a missing, non-whitelisted or oversized upload.

    The declared size is checked when the client sent one; the blob store
    enforces the same limit again while streaming.

    Raises:
        ValidationError: missing file or disallowed content type
        PayloadTooLargeError: declared size over the limit
    """
    limit = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES

    if upload is None or not getattr(upload, "filename", None):
        raise ValidationError(
            f"{purpose.capitalize()} file is required (PDF, JPG, or PNG)",
            code=ErrorCode.INVALID_INPUT
        )

    if upload.content_type not in settings.ALLOWED_UPLOAD_TYPES:
        logger.warning(f"Rejected {purpose} upload '{upload.filename}' with type {upload.content_type}")
        raise ValidationError(
            f"Only PDF, JPG, and PNG files are allowed for {purpose} uploads",
            code=ErrorCode.UNSUPPORTED_FILE_TYPE,
            details={
                "content_type": upload.content_type,
                "allowed": list(settings.ALLOWED_UPLOAD_TYPES),
            }
        )

    size = getattr(upload, "size", None)
    if size is not None and size > limit:
        raise PayloadTooLargeError(limit)
