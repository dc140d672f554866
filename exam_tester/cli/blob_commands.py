"""
Blob store CLI commands
"""
import asyncio
import json

from exam_tester.config.settings import settings
from exam_tester.database import AsyncSessionLocal, close_db
from exam_tester.errors import NotFoundError
from exam_tester.storage.blob_store import BlobStore


class BlobCommand:
    """Blob store CLI command handler."""

    def execute(self, args) -> int:
        if args.blob_action == "stat":
            return asyncio.run(self._stat(args.key))
        print("Error: Unknown blob action (expected: stat)")
        return 1

    async def _stat(self, key: str) -> int:
        store = BlobStore(settings.BLOB_STORAGE_DIR, chunk_size=settings.BLOB_CHUNK_SIZE)
        await store.init()
        try:
            async with AsyncSessionLocal() as db:
                record = await store.stat(db, key)
                info = record.to_dict()
                info["path"] = str(store.path_for(key))
                info["onDisk"] = store.path_for(key).is_file()
                print(json.dumps(info, indent=2))
                return 0
        except NotFoundError as e:
            print(f"Error: {e.message}")
            return 1
        finally:
            await store.close()
            await close_db()
