"""
Shared fixtures.

Every test gets its own SQLite file and blob directory under tmp_path.
Environment is set before exam_tester is imported so module-level settings
(and the CLI's engine) point at a throwaway location.
"""
import io
import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="exam_tester_tests_")
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_ROOT, 'cli.db')}"
os.environ["BLOB_STORAGE_DIR"] = os.path.join(_TEST_ROOT, "blobs")
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from starlette.datastructures import Headers, UploadFile

from exam_tester.orm import Base, Exam, User, UserRole
from exam_tester.security.auth import create_access_token
from exam_tester.storage.blob_store import BlobStore

PDF_BYTES = b"%PDF-1.4\n" + b"exam paper " * 500 + b"\n%%EOF"


def make_upload(data: bytes = PDF_BYTES, filename: str = "paper.pdf", content_type: str = "application/pdf") -> UploadFile:
    """An UploadFile as FastAPI would hand it to a route."""
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


# =============================================================================
# Database and storage
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def store(tmp_path) -> BlobStore:
    store = BlobStore(str(tmp_path / "blobs"), chunk_size=1024, max_size=10 * 1024 * 1024)
    await store.init()
    yield store
    await store.close()


# =============================================================================
# Users
# =============================================================================

async def _create_user(session_factory, email: str, name: str, role: UserRole) -> User:
    async with session_factory() as session:
        user = User(email=email, full_name=name, role=role, is_active=True)
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def teacher(session_factory) -> User:
    return await _create_user(session_factory, "teacher@example.com", "Tina Teacher", UserRole.teacher)


@pytest.fixture
async def other_teacher(session_factory) -> User:
    return await _create_user(session_factory, "teacher2@example.com", "Omar Other", UserRole.teacher)


@pytest.fixture
async def student(session_factory) -> User:
    return await _create_user(session_factory, "student@example.com", "Sam Student", UserRole.student)


@pytest.fixture
async def other_student(session_factory) -> User:
    return await _create_user(session_factory, "student2@example.com", "Sara Second", UserRole.student)


@pytest.fixture
async def admin(session_factory) -> User:
    return await _create_user(session_factory, "admin@example.com", "Ada Admin", UserRole.admin)


# =============================================================================
# Exams
# =============================================================================

@pytest.fixture
def make_exam(session_factory, store):
    """
    Factory for exams backed by a real blob.

    Keyword overrides: title, duration, is_active, legacy_file_url, file_ref.
    """
    async def _make(creator: User, **overrides) -> Exam:
        async with session_factory() as session:
            file_ref = overrides.pop("file_ref", None)
            if file_ref is None:
                file_ref = await store.put(
                    session, PDF_BYTES, "application/pdf", "paper.pdf", uploaded_by=creator.id
                )
            exam = Exam(
                title=overrides.pop("title", "Midterm"),
                file_ref=file_ref,
                duration_minutes=overrides.pop("duration", 60),
                creator_id=creator.id,
                is_active=overrides.pop("is_active", True),
                legacy_file_url=overrides.pop("legacy_file_url", None),
            )
            session.add(exam)
            await session.commit()
            return exam

    return _make


# =============================================================================
# HTTP client
# =============================================================================

@pytest.fixture
async def client(session_factory, store):
    from exam_tester.database import get_db
    from exam_tester.dependencies import get_blob_store
    from exam_tester.limiter import limiter
    from exam_tester.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: store
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
