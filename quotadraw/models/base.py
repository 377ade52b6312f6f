"""Declarative base and column helpers shared by every model."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase

from quotadraw.db.metadata import metadata_obj

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    """Timezone-aware current time, used as the default for timestamp columns."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    metadata = metadata_obj


__all__ = ["Base", "ID_TYPE", "utcnow"]
