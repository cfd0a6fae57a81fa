"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as wordbank/store.py).
UserStore is the repository; _row_to_user is the mapper. Blacklist rows are
only written, queried for existence and purged, so they have no mapper.
Route and dependency code never touches SQL directly.

Tables:
  users            -- registered identities; name_lower is UNIQUE and is the
                      case-insensitive identity key.
  token_blacklist  -- HMAC fingerprints of revoked session tokens.

Write methods that can hit a UNIQUE constraint return a StoreResult rather
than raising IntegrityError. Callers check result.ok / result.is_conflict.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or wordbank/.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, delete, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import RevokedToken, User
from core.config import get_settings
from core.db import guarded_write, make_engine, now_iso
from core.errors import StoreResult

logger = logging.getLogger("wordlists.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False),
    Column("name_lower", String(50), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_token_blacklist = Table(
    "token_blacklist",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    Column("expires_at", String(32), nullable=False, index=True),
    Column("revoked_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and RevokedToken entities.

    Usage:
        store = UserStore()
        result = store.create_user(User(name="Alice", name_lower="alice", password_hash=h))
        user = store.get_by_name("ALICE")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("User store ping failed")
            return False

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> StoreResult:
        """Insert a new user. On success result.value is the new user id.

        A concurrent registration of the same name loses on the UNIQUE
        name_lower index and comes back as a conflict result.
        """

        def insert(conn):
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    name_lower=user.name_lower,
                    password_hash=user.password_hash,
                    created_at=now_iso(),
                )
            )
            return result.inserted_primary_key[0]

        return guarded_write(self.engine, "User insert", insert)

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_name(self, name: str) -> User | None:
        """Look up a user by name, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.name_lower == name.strip().lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_names(self, user_ids: list[int]) -> dict[int, str]:
        """Return {user_id: display name} for the given ids. Unknown ids are omitted."""
        if not user_ids:
            return {}
        with self.engine.connect() as conn:
            rows = conn.execute(select(_users.c.id, _users.c.name).where(_users.c.id.in_(user_ids))).fetchall()
        return {r.id: r.name for r in rows}

    # ------------------------------------------------------------------
    # Token blacklist
    # ------------------------------------------------------------------

    def add_revoked_token(self, token: RevokedToken) -> StoreResult:
        """Insert a blacklist row. A fingerprint already present is a conflict."""

        def insert(conn):
            result = conn.execute(
                _token_blacklist.insert().values(
                    token_hash=token.token_hash,
                    expires_at=token.expires_at,
                    revoked_at=token.revoked_at or now_iso(),
                )
            )
            return result.inserted_primary_key[0]

        return guarded_write(self.engine, "Blacklist insert", insert)

    def is_token_revoked(self, token_hash: str, now: str) -> bool:
        """Return True if an unexpired blacklist row exists for token_hash.

        `now` is an ISO 8601 UTC string produced by core.db.iso(); the
        comparison is lexical, which is correct for that fixed format.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_token_blacklist.c.id).where(
                    (_token_blacklist.c.token_hash == token_hash) & (_token_blacklist.c.expires_at > now)
                )
            ).fetchone()
        return row is not None

    def purge_revoked_tokens(self, now: str) -> int:
        """Delete blacklist rows whose expiry is at or before `now`. Returns rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(delete(_token_blacklist).where(_token_blacklist.c.expires_at <= now))
        return result.rowcount

    def count_revoked_tokens(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_token_blacklist)).scalar() or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        name_lower=row.name_lower,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
