"""
exam_tester/main.py
FastAPI application: exams, timed attempts and answer submissions
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from exam_tester import __version__
from exam_tester.config.settings import settings
from exam_tester.database import close_db, init_db
from exam_tester.errors import APIError, ERROR_MAPPING, ErrorCode, log_internal
from exam_tester.limiter import limiter
from exam_tester.routes import router
from exam_tester.storage.blob_store import BlobStore

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    store = BlobStore(
        settings.BLOB_STORAGE_DIR,
        chunk_size=settings.BLOB_CHUNK_SIZE,
        max_size=settings.MAX_UPLOAD_BYTES,
    )
    app.state.blob_store = store
    try:
        await init_db()
        logger.info("Database connected successfully")
        await store.init()
    except Exception as e:
        logger.error(f"Startup failed: {str(e)}")
        raise

    yield

    logger.info("Shutting down application...")
    await store.close()
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


app = FastAPI(
    title="Exam Tester API",
    description="Exam upload, timed attempts and answer submission",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

app.state.limiter = limiter
logger.info("✓ Rate limiter configured")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length"],
)


# ============================================
# Exception handlers
# ============================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg"),
            "type": error.get("type")
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "Validation Error",
            "message": "Validation failed",
            "code": ErrorCode.VALIDATION_ERROR,
            "errors": error_details
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")

    label, code = ERROR_MAPPING.get(
        exc.status_code,
        ("Error", ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.INVALID_INPUT)
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": label,
            "message": str(exc.detail),
            "code": code
        },
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
    return exc.to_response()


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded on {request.url.path} from {request.client.host if request.client else '?'}")
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "error": "Too Many Requests",
            "message": f"Rate limit exceeded: {exc.detail}",
            "code": ErrorCode.RATE_LIMITED
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error = log_internal(exc, f"{request.method} {request.url.path}")
    return error.to_response()


# ============================================
# Health
# ============================================

def _health_payload(request: Request) -> dict:
    store = getattr(request.app.state, "blob_store", None)
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "storage": "ready" if store is not None and store.ready else "unavailable",
        "version": __version__
    }


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    return _health_payload(request)


@app.get("/api/health", tags=["Health"])
async def api_health_check(request: Request):
    return _health_payload(request)


app.include_router(router)
