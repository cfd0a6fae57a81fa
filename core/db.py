"""
core/db.py -- Engine construction and driver-error helpers shared by the stores.

auth/store.py and wordbank/store.py each own their tables and repository
class. What they share lives here: SQLite connection setup, UTC timestamp
formatting, recognising a unique-constraint violation regardless of which
database produced it, and guarded_write(), which turns driver errors on a
write into a StoreResult instead of an exception.

Timestamps are stored as ISO 8601 strings with a fixed microsecond precision
so that string comparison in SQL (expires_at > :now) orders them correctly.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import StoreResult

logger = logging.getLogger("wordlists.store")

# PostgreSQL SQLSTATE for unique_violation.
_PG_UNIQUE_VIOLATION = "23505"


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine, applying the SQLite-specific settings when needed."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        # FastAPI runs sync handlers in a thread pool, so a pooled connection
        # may be used from a thread other than the one that opened it.
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def iso(dt: datetime) -> str:
    """Format an aware datetime as a UTC ISO 8601 string with microseconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def now_iso() -> str:
    return iso(datetime.now(timezone.utc))


def is_unique_violation(exc: IntegrityError) -> bool:
    """Return True if the IntegrityError came from a UNIQUE constraint or index.

    PostgreSQL drivers expose the SQLSTATE as pgcode (psycopg2) or sqlstate
    (psycopg 3). SQLite only offers the message text.
    """
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == _PG_UNIQUE_VIOLATION:
        return True
    message = str(orig if orig is not None else exc).lower()
    return "unique" in message or "duplicate" in message


def guarded_write(engine: Engine, what: str, work: Callable[[Connection], Any]) -> StoreResult:
    """Run work(conn) in a transaction and fold driver errors into a StoreResult.

    A UNIQUE violation becomes a conflict result. Every other SQLAlchemy
    error is logged and becomes an upstream result. work() returns the
    success value (an inserted id, True, ...) or a ready-made StoreResult.
    """
    try:
        with engine.begin() as conn:
            value = work(conn)
    except IntegrityError as exc:
        if is_unique_violation(exc):
            return StoreResult.conflict(str(exc.orig))
        logger.error("%s failed: %s", what, exc)
        return StoreResult.upstream(str(exc))
    except SQLAlchemyError as exc:
        logger.error("%s failed: %s", what, exc)
        return StoreResult.upstream(str(exc))
    if isinstance(value, StoreResult):
        return value
    return StoreResult.success(value)
