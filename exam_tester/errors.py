"""
exam_tester/errors.py
Centralized error handling

Every domain failure is raised as an APIError subclass and rendered by a
single exception handler registered in exam_tester.main.

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input, duplicate record, invalid state transition
- 401: Authentication missing or expired
- 403: Access forbidden (ownership / role)
- 404: Resource does not exist
- 413: Uploaded file too large
- 429: Rate limit exceeded
- 500: Internal only, never caused by user input
- 503: Blob store not ready
"""

import logging
import uuid
from typing import Optional, Dict, Any
from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_REFERENCE = "INVALID_REFERENCE"
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_INVALID = "AUTH_INVALID"

    FORBIDDEN = "FORBIDDEN"
    ROLE_REQUIRED = "ROLE_REQUIRED"
    OWNERSHIP_VIOLATION = "OWNERSHIP_VIOLATION"
    EXAM_INACTIVE = "EXAM_INACTIVE"

    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EXAM_NOT_FOUND = "EXAM_NOT_FOUND"
    ATTEMPT_NOT_FOUND = "ATTEMPT_NOT_FOUND"
    SUBMISSION_NOT_FOUND = "SUBMISSION_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"

    INVALID_STATE = "INVALID_STATE"
    STATE_TRANSITION_INVALID = "STATE_TRANSITION_INVALID"

    DUPLICATE_CONFLICT = "DUPLICATE_CONFLICT"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"

    RATE_LIMITED = "RATE_LIMITED"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class ValidationError(APIError):
    """400 Bad Request - Malformed input, recoverable by the client"""
    def __init__(self, message: str, code: str = ErrorCode.VALIDATION_ERROR, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Validation Error",
            message=message,
            code=code,
            details=details
        )


class InvalidReferenceError(ValidationError):
    """400 Bad Request - File reference is neither a URL nor a well-formed key"""
    def __init__(self, reference: str):
        super().__init__(
            "Invalid file ID format",
            code=ErrorCode.INVALID_REFERENCE,
            details={"reference": reference}
        )


class PayloadTooLargeError(APIError):
    """413 Payload Too Large - Upload exceeds the configured limit"""
    def __init__(self, max_bytes: int):
        super().__init__(
            status_code=413,  # Content Too Large
            error="Payload Too Large",
            message=f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
            code=ErrorCode.FILE_TOO_LARGE,
            details={"max_bytes": max_bytes}
        )


class UnauthorizedError(APIError):
    """401 Unauthorized - Authentication required"""
    def __init__(self, message: str = "Authentication required", code: str = ErrorCode.AUTH_REQUIRED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="Unauthorized",
            message=message,
            code=code
        )


class ForbiddenError(APIError):
    """403 Forbidden - Access denied"""
    def __init__(self, message: str, code: str = ErrorCode.FORBIDDEN, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class NotFoundError(APIError):
    """404 Not Found - Resource does not exist"""
    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=code
        )


class InvalidStateError(APIError):
    """400 Bad Request - Invalid state transition"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_STATE, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Invalid State",
            message=message,
            code=code,
            details=details
        )


class DuplicateConflictError(APIError):
    """400 Bad Request - A uniqueness rule was violated"""
    def __init__(self, message: str, code: str = ErrorCode.DUPLICATE_CONFLICT, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Duplicate",
            message=message,
            code=code,
            details=details
        )


class AlreadySubmittedError(DuplicateConflictError):
    """Starting an attempt after an answer was already submitted"""
    def __init__(self):
        super().__init__(
            "You have already attempted this exam. You cannot attempt it twice.",
            code=ErrorCode.ALREADY_SUBMITTED
        )


class AlreadyCompletedError(DuplicateConflictError):
    """Starting an attempt that was already completed"""
    def __init__(self):
        super().__init__(
            "You have already completed this exam.",
            code=ErrorCode.ALREADY_COMPLETED
        )


class StorageUnavailableError(APIError):
    """503 Service Unavailable - Blob store not initialized"""
    def __init__(self, message: str = "File storage is not initialized"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="Service Unavailable",
            message=message,
            code=ErrorCode.STORAGE_UNAVAILABLE
        )


class InternalError(APIError):
    """500 Internal Server Error - Use sparingly, only for true internal failures"""
    def __init__(self, message: str = "An internal error occurred", log_id: Optional[str] = None):
        details = {"log_id": log_id} if log_id else None
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            details=details
        )


def new_log_id() -> str:
    """Short correlation id printed in logs and returned to the client"""
    return str(uuid.uuid4())[:8]


def log_internal(error: Exception, context: str = "") -> InternalError:
    """Log an unexpected failure and build the safe 500 error for it"""
    log_id = new_log_id()
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}: {str(error)}")
    return InternalError(
        message="An internal error occurred. Please try again later.",
        log_id=log_id
    )


ERROR_MAPPING = {
    400: ("Bad Request", ErrorCode.INVALID_INPUT),
    401: ("Unauthorized", ErrorCode.AUTH_REQUIRED),
    403: ("Forbidden", ErrorCode.FORBIDDEN),
    404: ("Not Found", ErrorCode.NOT_FOUND),
    405: ("Method Not Allowed", ErrorCode.INVALID_INPUT),
    413: ("Payload Too Large", ErrorCode.FILE_TOO_LARGE),
    429: ("Too Many Requests", ErrorCode.RATE_LIMITED),
    500: ("Internal Error", ErrorCode.INTERNAL_ERROR),
    503: ("Service Unavailable", ErrorCode.STORAGE_UNAVAILABLE),
}
