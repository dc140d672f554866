"""
CLI tests

The CLI uses the module-level engine, which conftest points at a throwaway
SQLite file. Emails are unique per test because that file is shared.
"""
import asyncio
import json
import uuid

import pytest

from exam_tester.cli import create_parser, main
from exam_tester.config.settings import settings
from exam_tester.database import AsyncSessionLocal, close_db
from exam_tester.security.auth import decode_token
from exam_tester.storage.blob_store import BlobStore


def _email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


@pytest.fixture(autouse=True)
def tables():
    assert main(["db", "init"]) == 0


class TestParser:

    def test_user_create_arguments(self):
        args = create_parser().parse_args(
            ["user", "create", "--email", "a@example.com", "--name", "A", "--role", "teacher"]
        )
        assert args.command == "user"
        assert args.user_action == "create"
        assert args.role == "teacher"

    def test_role_defaults_to_student(self):
        args = create_parser().parse_args(["user", "create", "--email", "a@example.com", "--name", "A"])
        assert args.role == "student"

    def test_unknown_role_is_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["user", "create", "--email", "a@b.c", "--name", "A", "--role", "dean"])

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage: exam-tester" in capsys.readouterr().out


class TestUserCommands:

    def test_db_init_is_idempotent(self, capsys):
        assert main(["db", "init"]) == 0
        assert "Database tables created" in capsys.readouterr().out

    def test_create_and_token(self, capsys):
        email = _email("Teacher")
        assert main(["user", "create", "--email", email, "--name", "Tess", "--role", "teacher"]) == 0
        assert f"teacher {email.lower()}" in capsys.readouterr().out

        assert main(["user", "token", "--email", email]) == 0
        token = capsys.readouterr().out.strip()

        payload = decode_token(token)
        assert payload["role"] == "teacher"
        assert payload["type"] == "access"

    def test_duplicate_email(self, capsys):
        email = _email("dup")
        assert main(["user", "create", "--email", email, "--name", "One"]) == 0
        capsys.readouterr()

        assert main(["user", "create", "--email", email.upper(), "--name", "Two"]) == 1
        assert "already exists" in capsys.readouterr().out

    def test_token_for_unknown_user(self, capsys):
        assert main(["user", "token", "--email", _email("ghost")]) == 1
        assert "No user" in capsys.readouterr().out


class TestBlobCommands:

    def test_stat_unknown_key(self, capsys):
        assert main(["blob", "stat", "--key", "f" * 32]) == 1
        assert "not found" in capsys.readouterr().out

    def test_stat_prints_metadata(self, capsys):
        async def store_one():
            store = BlobStore(settings.BLOB_STORAGE_DIR)
            await store.init()
            try:
                async with AsyncSessionLocal() as db:
                    key = await store.put(db, b"%PDF cli", "application/pdf", "cli.pdf")
                    await db.commit()
                    return key
            finally:
                await close_db()

        key = asyncio.run(store_one())

        assert main(["blob", "stat", "-k", key]) == 0
        info = json.loads(capsys.readouterr().out)
        assert info["onDisk"] is True
        assert info["length"] == len(b"%PDF cli")
