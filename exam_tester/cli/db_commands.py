"""
Database CLI commands
"""
import asyncio

from exam_tester.database import close_db, init_db


class DbCommand:
    """Database CLI command handler."""

    def execute(self, args) -> int:
        if args.db_action == "init":
            return self._init()
        print("Error: Unknown database action (expected: init)")
        return 1

    def _init(self) -> int:
        async def run():
            try:
                await init_db()
            finally:
                await close_db()

        asyncio.run(run())
        print("✓ Database tables created")
        return 0
