"""
Request-scoped access to process-wide resources.
"""
from fastapi import Request

from exam_tester.errors import StorageUnavailableError
from exam_tester.storage.blob_store import BlobStore


def get_blob_store(request: Request) -> BlobStore:
    """The blob store created by the application lifespan."""
    store = getattr(request.app.state, "blob_store", None)
    if store is None:
        raise StorageUnavailableError()
    return store
