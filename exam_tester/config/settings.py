"""
Application Settings

Centralized configuration for the backend.
All settings are loaded from environment variables (a .env file at the
project root is honoured).
"""
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

load_dotenv(dotenv_path=ENV_FILE)


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return int(value)


def get_list_env(key: str, default: List[str]) -> List[str]:
    """Get a comma-separated list from environment variable."""
    value = os.getenv(key, "")
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or list(default)


DEFAULT_ALLOWED_UPLOAD_TYPES = [
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
]


class Settings:
    """
    Settings for the application.

    Values are read when the object is constructed, so tests can set
    environment variables and build a fresh instance.
    """

    def __init__(self):
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./exam_tester.db")
        self.SQL_ECHO: bool = get_bool_env("SQL_ECHO", False)

        # Bearer tokens
        self.JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = get_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60)

        # Blob store
        self.BLOB_STORAGE_DIR: str = os.getenv("BLOB_STORAGE_DIR", str(PROJECT_ROOT / "storage"))
        self.BLOB_CHUNK_SIZE: int = get_int_env("BLOB_CHUNK_SIZE", 64 * 1024)
        self.MAX_UPLOAD_BYTES: int = get_int_env("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
        self.ALLOWED_UPLOAD_TYPES: List[str] = get_list_env("ALLOWED_UPLOAD_TYPES", DEFAULT_ALLOWED_UPLOAD_TYPES)
        self.FILE_CACHE_MAX_AGE: int = get_int_env("FILE_CACHE_MAX_AGE", 3600)

        # HTTP
        self.ALLOWED_ORIGINS: List[str] = get_list_env("ALLOWED_ORIGINS", ["http://localhost:3000"])
        self.UPLOAD_RATE_LIMIT: str = os.getenv("UPLOAD_RATE_LIMIT", "30/minute")
        self.RATE_LIMIT_ENABLED: bool = get_bool_env("RATE_LIMIT_ENABLED", True)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


# Singleton instance for easy importing
settings = Settings()
