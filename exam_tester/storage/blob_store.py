"""
Blob Store

Binary objects (exam papers, answer files) keyed by a store-generated
opaque identifier.

- Streaming writes: no full file in memory, SHA256 computed per chunk,
  size limit enforced while streaming
- Streaming reads: chunk iterator suitable for StreamingResponse
- Metadata (content type, original filename, length, checksum, free-form
  metadata) in the stored_files table, bytes on the local filesystem
- Keys are uuid4 hex strings; a key is never handed out twice

The store is an explicit value. The process entry point constructs it and
owns init()/close(); request handlers receive it through a dependency.
"""
import hashlib
import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.errors import ErrorCode, NotFoundError, PayloadTooLargeError, StorageUnavailableError
from exam_tester.orm.stored_file import StoredFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

EXAMS_BUCKET = "exams"
ANSWERS_BUCKET = "answers"


@dataclass
class BlobHandle:
    """An opened blob: metadata plus a lazy chunk stream."""
    key: str
    content_type: Optional[str]
    original_name: Optional[str]
    length: int
    sha256: str
    stream: Iterator[bytes]
    metadata: Dict[str, Any] = field(default_factory=dict)


async def iter_bytes(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Async chunk iterator over an in-memory payload."""
    for offset in range(0, len(data), chunk_size):
        yield data[offset:offset + chunk_size]


async def iter_upload(upload, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Async chunk iterator over a FastAPI UploadFile."""
    while chunk := await upload.read(chunk_size):
        yield chunk


class BlobStore:
    """
    Filesystem-backed blob store with database metadata.

    Layout: <root>/<key[:2]>/<key>
    """

    def __init__(
        self,
        root: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_size: Optional[int] = None
    ):
        self.root = Path(root)
        self.chunk_size = chunk_size
        self.max_size = max_size
        self._ready = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self._ready = True
        logger.info(f"Blob store initialized at {self.root}")

    async def close(self) -> None:
        self._ready = False
        logger.info("Blob store closed")

    @property
    def ready(self) -> bool:
        return self._ready

    def _ensure_ready(self) -> None:
        if not self._ready:
            raise StorageUnavailableError()

    # ------------------------------------------------------------------
    # Paths and keys
    # ------------------------------------------------------------------

    def path_for(self, key: str) -> Path:
        return self.root / key[:2] / key

    def _new_key(self) -> str:
        while True:
            key = uuid.uuid4().hex
            if not self.path_for(key).exists():
                return key

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(
        self,
        db: AsyncSession,
        data: bytes,
        content_type: str,
        original_name: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
        bucket: str = EXAMS_BUCKET,
        uploaded_by: Optional[int] = None,
    ) -> str:
        """Store an in-memory payload. Returns the new key."""
        return await self.put_stream(
            db,
            iter_bytes(data, self.chunk_size),
            content_type=content_type,
            original_name=original_name,
            metadata=metadata,
            bucket=bucket,
            uploaded_by=uploaded_by,
        )

    async def put_stream(
        self,
        db: AsyncSession,
        chunks: AsyncIterator[bytes],
        content_type: str,
        original_name: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
        bucket: str = EXAMS_BUCKET,
        uploaded_by: Optional[int] = None,
        max_size: Optional[int] = None,
    ) -> str:
        """
        Stream chunks to disk and record metadata.

        The metadata row is flushed, not committed: it belongs to the
        caller's transaction. If anything fails the partial file is removed.

        Raises:
            StorageUnavailableError: store not initialized
            PayloadTooLargeError: more than max_size bytes received
        """
        self._ensure_ready()

        limit = max_size if max_size is not None else self.max_size
        key = self._new_key()
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        hasher = hashlib.sha256()
        total_size = 0

        try:
            with open(path, "wb") as f:
                async for chunk in chunks:
                    total_size += len(chunk)
                    if limit is not None and total_size > limit:
                        raise PayloadTooLargeError(limit)
                    hasher.update(chunk)
                    f.write(chunk)

            record = StoredFile(
                key=key,
                bucket=bucket,
                content_type=content_type or None,
                original_name=original_name,
                stored_name=f"{bucket}_{key}_{original_name or 'file'}"[:300],
                length=total_size,
                sha256=hasher.hexdigest(),
                file_metadata=dict(metadata or {}),
                uploaded_by=uploaded_by,
            )
            db.add(record)
            await db.flush()
        except Exception:
            self.remove_bytes(key)
            raise

        logger.info(f"Stored blob {key} in bucket '{bucket}' ({total_size} bytes, {content_type})")
        return key

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def stat(self, db: AsyncSession, key: str) -> StoredFile:
        """Metadata for a key, or NotFoundError."""
        self._ensure_ready()

        result = await db.execute(select(StoredFile).where(StoredFile.key == key))
        record = result.scalar_one_or_none()
        if record is None:
            raise NotFoundError("File", key, code=ErrorCode.FILE_NOT_FOUND)
        return record

    async def exists(self, db: AsyncSession, key: str) -> bool:
        try:
            await self.stat(db, key)
        except NotFoundError:
            return False
        return True

    async def get(self, db: AsyncSession, key: str) -> BlobHandle:
        """
        Open a blob for streaming.

        The returned stream reads the file lazily, chunk by chunk.
        """
        record = await self.stat(db, key)
        path = self.path_for(key)
        if not path.is_file():
            logger.error(f"Blob {key} has metadata but no bytes at {path}")
            raise NotFoundError("File", key, code=ErrorCode.FILE_NOT_FOUND)

        return BlobHandle(
            key=record.key,
            content_type=record.content_type,
            original_name=record.original_name,
            length=record.length,
            sha256=record.sha256,
            stream=self._iter_file(path),
            metadata=record.file_metadata or {},
        )

    def _iter_file(self, path: Path) -> Iterator[bytes]:
        with open(path, "rb") as f:
            while chunk := f.read(self.chunk_size):
                yield chunk

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def delete(self, db: AsyncSession, key: str) -> None:
        """Remove metadata and bytes. Missing keys are ignored."""
        self._ensure_ready()

        result = await db.execute(select(StoredFile).where(StoredFile.key == key))
        record = result.scalar_one_or_none()
        if record is not None:
            await db.delete(record)
            await db.flush()
        self.remove_bytes(key)

    def remove_bytes(self, key: str) -> None:
        """Remove the file for a key, used when its metadata row never committed."""
        path = self.path_for(key)
        try:
            os.remove(path)
            logger.info(f"Removed blob bytes for {key}")
        except FileNotFoundError:
            pass
