"""
Application configuration — environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    # Database: SQLite (default) or PostgreSQL (set DATABASE_URL=postgresql://...)
    DATABASE = os.environ.get("DATABASE_URL") or str(BASE_DIR / "classroom.db")
    DB_BUSY_TIMEOUT = float(os.environ.get("DB_BUSY_TIMEOUT", "5.0"))  # seconds

    # Upload limits (JSON bodies only; files live in media storage)
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # 2 MB

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "300 per hour")
    SUBMIT_RATE_LIMIT = os.environ.get("SUBMIT_RATE_LIMIT", "30 per minute")

    # Quiz defaults when an item's metadata omits them
    DEFAULT_MAX_ATTEMPTS = int(os.environ.get("DEFAULT_MAX_ATTEMPTS", "1"))
    DEFAULT_PASSING_GRADE = float(os.environ.get("DEFAULT_PASSING_GRADE", "0"))

    # Progress upsert retries after a recorded attempt/submission
    PROGRESS_RETRY_ATTEMPTS = int(os.environ.get("PROGRESS_RETRY_ATTEMPTS", "3"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.DEFAULT_MAX_ATTEMPTS < 1:
            errors.append("DEFAULT_MAX_ATTEMPTS must be at least 1.")

        if not 0 <= cls.DEFAULT_PASSING_GRADE <= 100:
            errors.append("DEFAULT_PASSING_GRADE must be between 0 and 100.")

        if cls.RATELIMIT_STORAGE_URI == "memory://":
            warnings.warn("REDIS_URL is not set; rate limits are per-process only.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    RATELIMIT_ENABLED = False


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
