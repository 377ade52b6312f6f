from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..config import ROOT_DIR, get_settings
from .utils import is_sqlite_url, resolve_sqlite_url


def default_database_url() -> str:
    """Return the configured ``DB_URL`` with relative SQLite paths resolved."""
    return resolve_sqlite_url(get_settings().db_url, ROOT_DIR)


def make_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    url = database_url or default_database_url()
    if not is_sqlite_url(url):
        return create_engine(url, echo=echo, pool_pre_ping=True, future=True)

    engine = create_engine(
        url,
        echo=echo,
        future=True,
        connect_args={
            "check_same_thread": False,
            "timeout": get_settings().sqlite_busy_timeout,
        },
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        # Hand transaction control to SQLAlchemy so BEGIN can be issued below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        # Take the write lock up front: two deferred transactions that both
        # read before writing would otherwise deadlock on lock upgrade.
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,  # Keep aggregates readable after the draw commits
        future=True,
    )
