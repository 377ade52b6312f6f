"""Logging configuration."""

from __future__ import annotations

import logging
from typing import Optional

from .config import get_settings


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging for scripts and embedding services.

    When ``level`` is omitted the ``LOG_LEVEL`` setting is used.
    """

    level_name = (level or get_settings().log_level).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # SQL echo is controlled by make_engine(echo=...) instead.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
