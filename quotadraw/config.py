"""Environment-based configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_SQLITE_BUSY_TIMEOUT = 30.0


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment.

    Attributes
    ----------
    db_url : str
        SQLAlchemy database URL (``DB_URL``).
    log_level : str
        Logging level name used by :func:`quotadraw.logging_config.configure_logging`.
    draw_max_attempts : int
        How many times a draw or reset is attempted when it loses a race
        against a concurrent transaction (``DRAW_MAX_ATTEMPTS``).
    sqlite_busy_timeout : float
        Seconds a SQLite connection waits for the write lock.
    """

    db_url: str
    log_level: str
    draw_max_attempts: int
    sqlite_busy_timeout: float


def get_settings() -> Settings:
    """Read the current environment (and ``.env`` file) into :class:`Settings`."""

    load_dotenv()
    return Settings(
        db_url=os.getenv("DB_URL", DEFAULT_DB_URL),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper().strip(),
        draw_max_attempts=max(1, _int_env("DRAW_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
        sqlite_busy_timeout=_float_env(
            "SQLITE_BUSY_TIMEOUT", DEFAULT_SQLITE_BUSY_TIMEOUT
        ),
    )
