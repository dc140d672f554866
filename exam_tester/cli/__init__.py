#!/usr/bin/env python3
"""
Exam Tester developer CLI

Usage:
    python -m exam_tester.cli <command> [options]

Commands:
    db      Database operations (init)
    user    Account operations (create, token)
    blob    Blob store inspection (stat)

Environment:
    DATABASE_URL        SQLAlchemy async URL
    BLOB_STORAGE_DIR    Blob store root directory
    LOG_LEVEL           DEBUG|INFO|WARNING|ERROR
"""
import sys
import argparse
import logging
from typing import Optional

from exam_tester import __version__
from exam_tester.cli.blob_commands import BlobCommand
from exam_tester.cli.db_commands import DbCommand
from exam_tester.cli.user_commands import UserCommand


def setup_logging(level: str = "INFO") -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="exam-tester",
        description="Exam Tester developer CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s user create --email t@example.com --name "T. Teacher" --role teacher
  %(prog)s user token --email t@example.com
  %(prog)s blob stat --key 0123456789abcdef0123456789abcdef
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")
    db_subparsers.add_parser("init", help="Create all tables")

    # User commands
    user_parser = subparsers.add_parser("user", help="Account operations")
    user_subparsers = user_parser.add_subparsers(dest="user_action")

    user_create_parser = user_subparsers.add_parser("create", help="Create a user")
    user_create_parser.add_argument("--email", required=True, help="Email address (unique)")
    user_create_parser.add_argument("--name", required=True, help="Full name")
    user_create_parser.add_argument("--role", choices=["student", "teacher", "admin"], default="student")

    token_parser = user_subparsers.add_parser("token", help="Print a bearer token for a user")
    token_parser.add_argument("--email", required=True, help="Email address")
    token_parser.add_argument("--minutes", type=int, help="Token lifetime in minutes")

    # Blob commands
    blob_parser = subparsers.add_parser("blob", help="Blob store inspection")
    blob_subparsers = blob_parser.add_subparsers(dest="blob_action")
    stat_parser = blob_subparsers.add_parser("stat", help="Show metadata for a key")
    stat_parser.add_argument("--key", "-k", required=True, help="Blob key")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    command_map = {
        "db": DbCommand,
        "user": UserCommand,
        "blob": BlobCommand,
    }

    handler = command_map[parsed.command]()
    return handler.execute(parsed)


if __name__ == "__main__":
    sys.exit(main())
