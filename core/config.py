"""
Shared configuration for Firefly Grove core.
"""

from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("fireflygrove")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "postgres").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "/data/fireflygrove.db")
DATABASE_URL = os.environ.get("DATABASE_URL")

# Database initialization controls
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)

# Session capability forwarded by the upstream auth layer
AUTH_USER_HEADER = os.environ.get("AUTH_USER_HEADER", "X-User-Id").strip()

# Request/input limits
MAX_ID_LENGTH = _get_int("FIREFLY_MAX_ID_LENGTH", 64)
MAX_TEXT_LENGTH = _get_int("FIREFLY_MAX_TEXT_LENGTH", 20000)
MAX_TITLE_LENGTH = _get_int("FIREFLY_MAX_TITLE_LENGTH", 200)
MAX_URL_LENGTH = _get_int("FIREFLY_MAX_URL_LENGTH", 1000)
MAX_SHARE_TARGETS = _get_int("FIREFLY_MAX_SHARE_TARGETS", 50)
MAX_BATCH_LINKS = _get_int("FIREFLY_MAX_BATCH_LINKS", 200)
MAX_AUDIT_LIMIT = _get_int("FIREFLY_MAX_AUDIT_LIMIT", 500)

SERVICE_NAME = "Firefly Grove"
SERVICE_VERSION = "0.1.0"


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if not AUTH_USER_HEADER:
        errors.append("AUTH_USER_HEADER must not be empty")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        url_lower = DATABASE_URL.lower()
        is_sqlite_url = url_lower.startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    for name, value in (
        ("FIREFLY_MAX_SHARE_TARGETS", MAX_SHARE_TARGETS),
        ("FIREFLY_MAX_BATCH_LINKS", MAX_BATCH_LINKS),
    ):
        if value <= 0:
            errors.append(f"{name} must be positive")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))
