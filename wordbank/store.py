"""
wordbank/store.py -- SQLAlchemy-backed persistence for lists, members, join requests and words.

Uses SQLAlchemy Core (not ORM) so the dataclasses in wordbank/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. ListStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Uniqueness lives in the schema, not only in application pre-checks:
  list_members        UNIQUE(list_id, user_id)
  list_join_requests  partial UNIQUE(list_id, user_id) WHERE status = 'pending'
  words               partial UNIQUE(list_id, word_lower) for canonical list rows
                      partial UNIQUE(word_lower) for canonical global rows
Routes pre-check to return a friendly error; when two requests race past the
pre-check, the loser's insert comes back as a conflict StoreResult.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ListStore()                               # SQLite default
    store = ListStore("postgresql://user:pw@host/db") # PostgreSQL
    result = store.create_list(WordList(name="Fruit", owner_id=1))
    store.close()
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    delete,
    func,
    or_,
    select,
    text,
    true,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import get_settings
from core.db import guarded_write, make_engine, now_iso
from core.errors import StoreResult
from wordbank.models import (
    ROLE_MEMBER,
    ROLE_OWNER,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    JoinRequest,
    ListMember,
    Word,
    WordList,
)

logger = logging.getLogger("wordlists.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_lists = Table(
    "lists",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("description", String(500)),
    Column("is_public", Boolean, nullable=False, server_default=true()),
    Column("password_hash", Text),  # NULL = no join password
    Column("owner_id", Integer, nullable=False, index=True),
    Column("custom_title", String(200)),
    Column("custom_subtitle", String(1000)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    sqlite_autoincrement=True,
)

_members = Table(
    "list_members",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("list_id", Integer, nullable=False),
    Column("user_id", Integer, nullable=False, index=True),
    Column("role", String(10), nullable=False, server_default=ROLE_MEMBER),
    Column("joined_at", String(32), nullable=False),
    UniqueConstraint("list_id", "user_id", name="uq_list_member"),
    sqlite_autoincrement=True,
)

_join_requests = Table(
    "list_join_requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("list_id", Integer, nullable=False, index=True),
    Column("user_id", Integer, nullable=False),
    Column("message", String(500)),
    Column("status", String(10), nullable=False, server_default=STATUS_PENDING),
    Column("requested_at", String(32), nullable=False),
    Column("responded_at", String(32)),
    sqlite_autoincrement=True,
)

_PENDING_ONLY = text("status = 'pending'")

Index(
    "uq_join_request_pending",
    _join_requests.c.list_id,
    _join_requests.c.user_id,
    unique=True,
    sqlite_where=_PENDING_ONLY,
    postgresql_where=_PENDING_ONLY,
)

_words = Table(
    "words",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("word", String(20), nullable=False),
    Column("word_lower", String(20), nullable=False),
    Column("name", String(50), nullable=False),
    Column("name_lower", String(50), nullable=False),
    Column("owner_id", Integer, index=True),  # NULL on legacy rows
    Column("list_id", Integer, index=True),  # NULL = global scope
    Column("duplicate_of", Integer),  # NULL = canonical row
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    sqlite_autoincrement=True,
)

_CANONICAL_IN_LIST = text("duplicate_of IS NULL AND list_id IS NOT NULL")
_CANONICAL_GLOBAL = text("duplicate_of IS NULL AND list_id IS NULL")

Index(
    "uq_words_list_word",
    _words.c.list_id,
    _words.c.word_lower,
    unique=True,
    sqlite_where=_CANONICAL_IN_LIST,
    postgresql_where=_CANONICAL_IN_LIST,
)
Index(
    "uq_words_global_word",
    _words.c.word_lower,
    unique=True,
    sqlite_where=_CANONICAL_GLOBAL,
    postgresql_where=_CANONICAL_GLOBAL,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _scope(list_id: Optional[int]):
    """WHERE clause selecting the words of one scope (a list, or global when None)."""
    if list_id is None:
        return _words.c.list_id.is_(None)
    return _words.c.list_id == list_id


def _like_pattern(fragment: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally."""
    escaped = fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


_canonical = _words.c.duplicate_of.is_(None)


def _owned_by(owner_id: int, name_lower: str):
    """Rows owned by a user: owner_id matches, or a legacy row without owner_id whose name matches."""
    return or_(
        _words.c.owner_id == owner_id,
        _words.c.owner_id.is_(None) & (_words.c.name_lower == name_lower),
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ListStore:
    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("List store ping failed")
            return False

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def create_list(self, wl: WordList) -> StoreResult:
        """Insert a list and its owner membership in one transaction.

        result.value is the new list id. Either both rows exist afterwards or
        neither does, so a list is never left without its owner row.
        """
        now = now_iso()

        def insert(conn):
            result = conn.execute(
                _lists.insert().values(
                    name=wl.name,
                    description=wl.description,
                    is_public=wl.is_public,
                    password_hash=wl.password_hash,
                    owner_id=wl.owner_id,
                    custom_title=wl.custom_title,
                    custom_subtitle=wl.custom_subtitle,
                    created_at=now,
                    updated_at=now,
                )
            )
            list_id = result.inserted_primary_key[0]
            conn.execute(_members.insert().values(list_id=list_id, user_id=wl.owner_id, role=ROLE_OWNER, joined_at=now))
            return list_id

        return guarded_write(self.engine, "List insert", insert)

    def get_list(self, list_id: int) -> Optional[WordList]:
        with self.engine.connect() as conn:
            row = conn.execute(_lists.select().where(_lists.c.id == list_id)).fetchone()
        return _row_to_list(row) if row is not None else None

    def update_list(self, list_id: int, **fields) -> StoreResult:
        """Update mutable list fields. updated_at is stamped automatically.

        Accepted fields: name, description, is_public, password_hash,
        custom_title, custom_subtitle. result.value is False if the list
        does not exist.
        """
        fields["updated_at"] = now_iso()

        def update(conn):
            result = conn.execute(_lists.update().where(_lists.c.id == list_id).values(**fields))
            return result.rowcount > 0

        return guarded_write(self.engine, "List update", update)

    def delete_list(self, list_id: int) -> StoreResult:
        """Delete a list with its memberships, join requests and words.

        All four deletes share one transaction, so no word row is ever left
        pointing at a list id that no longer exists.
        """

        def remove(conn):
            conn.execute(delete(_words).where(_words.c.list_id == list_id))
            conn.execute(delete(_join_requests).where(_join_requests.c.list_id == list_id))
            conn.execute(delete(_members).where(_members.c.list_id == list_id))
            result = conn.execute(delete(_lists).where(_lists.c.id == list_id))
            return result.rowcount > 0

        return guarded_write(self.engine, "List delete", remove)

    def lists_for_user(self, user_id: int) -> list[WordList]:
        """Lists the user owns or is a member of, newest first."""
        member_of = select(_members.c.list_id).where(_members.c.user_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(
                _lists.select()
                .where(or_(_lists.c.owner_id == user_id, _lists.c.id.in_(member_of)))
                .order_by(_lists.c.created_at.desc(), _lists.c.id.desc())
            ).fetchall()
        return [_row_to_list(r) for r in rows]

    def public_lists(self, search: Optional[str] = None) -> list[WordList]:
        stmt = _lists.select().where(_lists.c.is_public.is_(True))
        if search:
            stmt = stmt.where(_lists.c.name.ilike(_like_pattern(search), escape="\\"))
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_lists.c.created_at.desc(), _lists.c.id.desc())).fetchall()
        return [_row_to_list(r) for r in rows]

    def discoverable_lists(self, user_id: int, search: Optional[str] = None) -> list[WordList]:
        """Lists the user neither owns nor belongs to -- candidates to join.

        Private lists are included so their owners can receive join requests;
        routes expose only summary fields for them.
        """
        member_of = select(_members.c.list_id).where(_members.c.user_id == user_id)
        stmt = _lists.select().where((_lists.c.owner_id != user_id) & _lists.c.id.not_in(member_of))
        if search:
            stmt = stmt.where(_lists.c.name.ilike(_like_pattern(search), escape="\\"))
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_lists.c.created_at.desc(), _lists.c.id.desc())).fetchall()
        return [_row_to_list(r) for r in rows]

    def count_members(self, list_id: int) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_members).where(_members.c.list_id == list_id)
            ).scalar()
        return count or 0

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def get_membership(self, list_id: int, user_id: int) -> Optional[ListMember]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _members.select().where((_members.c.list_id == list_id) & (_members.c.user_id == user_id))
            ).fetchone()
        return _row_to_member(row) if row is not None else None

    def add_member(self, member: ListMember) -> StoreResult:
        """Insert a membership. An existing (list, user) row is a conflict."""

        def insert(conn):
            result = conn.execute(
                _members.insert().values(
                    list_id=member.list_id,
                    user_id=member.user_id,
                    role=member.role,
                    joined_at=now_iso(),
                )
            )
            return result.inserted_primary_key[0]

        return guarded_write(self.engine, "Member insert", insert)

    def remove_member(self, list_id: int, user_id: int) -> bool:
        """Delete a non-owner membership. Owner rows are never removed here."""
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(_members).where(
                    (_members.c.list_id == list_id) & (_members.c.user_id == user_id) & (_members.c.role != ROLE_OWNER)
                )
            )
        return result.rowcount > 0

    def list_members(self, list_id: int) -> list[ListMember]:
        """Members of a list in join order (the owner first)."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _members.select()
                .where(_members.c.list_id == list_id)
                .order_by(_members.c.joined_at.asc(), _members.c.id.asc())
            ).fetchall()
        return [_row_to_member(r) for r in rows]

    def member_list_ids(self, user_id: int) -> list[int]:
        with self.engine.connect() as conn:
            rows = conn.execute(select(_members.c.list_id).where(_members.c.user_id == user_id)).fetchall()
        return [r.list_id for r in rows]

    # ------------------------------------------------------------------
    # Join requests
    # ------------------------------------------------------------------

    def create_join_request(self, req: JoinRequest) -> StoreResult:
        """Insert a pending join request. A second pending request is a conflict."""

        def insert(conn):
            result = conn.execute(
                _join_requests.insert().values(
                    list_id=req.list_id,
                    user_id=req.user_id,
                    message=req.message,
                    status=STATUS_PENDING,
                    requested_at=now_iso(),
                )
            )
            return result.inserted_primary_key[0]

        return guarded_write(self.engine, "Join request insert", insert)

    def get_pending_request(self, list_id: int, user_id: int) -> Optional[JoinRequest]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _join_requests.select().where(
                    (_join_requests.c.list_id == list_id)
                    & (_join_requests.c.user_id == user_id)
                    & (_join_requests.c.status == STATUS_PENDING)
                )
            ).fetchone()
        return _row_to_join_request(row) if row is not None else None

    def get_join_request(self, request_id: int, list_id: int) -> Optional[JoinRequest]:
        """Fetch a join request, scoped to its list so ids cannot cross lists."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _join_requests.select().where(
                    (_join_requests.c.id == request_id) & (_join_requests.c.list_id == list_id)
                )
            ).fetchone()
        return _row_to_join_request(row) if row is not None else None

    def list_join_requests(self, list_id: int) -> list[JoinRequest]:
        """All join requests for a list, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _join_requests.select()
                .where(_join_requests.c.list_id == list_id)
                .order_by(_join_requests.c.requested_at.desc(), _join_requests.c.id.desc())
            ).fetchall()
        return [_row_to_join_request(r) for r in rows]

    def approve_join_request(self, request_id: int) -> StoreResult:
        """Mark a pending request approved and create the membership, atomically.

        The status change is conditional on status = 'pending', so of two
        concurrent approvals only one succeeds; the other gets a conflict.
        A requester who became a member by other means keeps that membership.
        """

        def approve(conn):
            req_row = conn.execute(_join_requests.select().where(_join_requests.c.id == request_id)).fetchone()
            if req_row is None:
                return StoreResult.conflict("join request not found")
            updated = conn.execute(
                _join_requests.update()
                .where((_join_requests.c.id == request_id) & (_join_requests.c.status == STATUS_PENDING))
                .values(status=STATUS_APPROVED, responded_at=now_iso())
            )
            if updated.rowcount == 0:
                return StoreResult.conflict("join request is not pending")
            existing = conn.execute(
                select(_members.c.id).where(
                    (_members.c.list_id == req_row.list_id) & (_members.c.user_id == req_row.user_id)
                )
            ).fetchone()
            if existing is None:
                conn.execute(
                    _members.insert().values(
                        list_id=req_row.list_id,
                        user_id=req_row.user_id,
                        role=ROLE_MEMBER,
                        joined_at=now_iso(),
                    )
                )
            return True

        return guarded_write(self.engine, "Join request approval", approve)

    def reject_join_request(self, request_id: int) -> bool:
        """Mark a pending request rejected. False if it was no longer pending."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _join_requests.update()
                .where((_join_requests.c.id == request_id) & (_join_requests.c.status == STATUS_PENDING))
                .values(status=STATUS_REJECTED, responded_at=now_iso())
            )
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Words
    # ------------------------------------------------------------------

    def get_word(self, word_id: int) -> Optional[Word]:
        with self.engine.connect() as conn:
            row = conn.execute(_words.select().where(_words.c.id == word_id)).fetchone()
        return _row_to_word(row) if row is not None else None

    def find_canonical_word(
        self, word_lower: str, list_id: Optional[int], exclude_id: Optional[int] = None
    ) -> Optional[Word]:
        """Return the canonical row with this normalized text in the scope, if any."""
        stmt = _words.select().where((_words.c.word_lower == word_lower) & _scope(list_id) & _canonical)
        if exclude_id is not None:
            stmt = stmt.where(_words.c.id != exclude_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt.limit(1)).fetchone()
        return _row_to_word(row) if row is not None else None

    def count_owned_words(self, owner_id: int, name_lower: str, list_id: Optional[int]) -> int:
        """Count canonical words in the scope owned by this user.

        Ownership mirrors guards.is_owned_by(): rows with owner_id, plus legacy
        rows without one whose submitter name matches.
        """
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count())
                .select_from(_words)
                .where(_owned_by(owner_id, name_lower) & _scope(list_id) & _canonical)
            ).scalar()
        return count or 0

    def count_list_words(self, list_id: int) -> int:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_words).where(_scope(list_id) & _canonical)
            ).scalar()
        return count or 0

    def create_word(self, word: Word) -> StoreResult:
        """Insert a word. A canonical duplicate in the same scope is a conflict."""
        now = now_iso()

        def insert(conn):
            result = conn.execute(
                _words.insert().values(
                    word=word.word,
                    word_lower=word.word_lower,
                    name=word.name,
                    name_lower=word.name_lower,
                    owner_id=word.owner_id,
                    list_id=word.list_id,
                    duplicate_of=word.duplicate_of,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

        return guarded_write(self.engine, "Word insert", insert)

    def update_word_text(self, word_id: int, word: str, word_lower: str) -> StoreResult:
        """Change a word's text. Colliding with another canonical row is a conflict."""

        def update(conn):
            result = conn.execute(
                _words.update()
                .where(_words.c.id == word_id)
                .values(word=word, word_lower=word_lower, updated_at=now_iso())
            )
            return result.rowcount > 0

        return guarded_write(self.engine, "Word update", update)

    def delete_word(self, word_id: int) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(delete(_words).where(_words.c.id == word_id))
        return result.rowcount > 0

    def list_words(
        self,
        *,
        list_ids: Optional[list[int]] = None,
        global_scope: bool = False,
        name: Optional[str] = None,
        q: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Word]:
        """Canonical words, newest first, from the given lists or the global scope.

        Exactly one of list_ids / global_scope selects the scope. An empty
        list_ids returns nothing. name and q are case-insensitive substring
        filters on submitter name and word text.
        """
        if global_scope:
            stmt = _words.select().where(_scope(None) & _canonical)
        else:
            if not list_ids:
                return []
            stmt = _words.select().where(_words.c.list_id.in_(list_ids) & _canonical)
        if name:
            stmt = stmt.where(_words.c.name.ilike(_like_pattern(name), escape="\\"))
        if q:
            stmt = stmt.where(_words.c.word.ilike(_like_pattern(q), escape="\\"))
        stmt = stmt.order_by(_words.c.created_at.desc(), _words.c.id.desc()).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_word(r) for r in rows]

    def words_by_owner(self, owner_id: int, name_lower: str) -> list[Word]:
        """Every canonical word owned by a user, across all scopes, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _words.select()
                .where(_owned_by(owner_id, name_lower) & _canonical)
                .order_by(_words.c.created_at.desc(), _words.c.id.desc())
            ).fetchall()
        return [_row_to_word(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_list(row) -> WordList:
    return WordList(
        id=row.id,
        name=row.name,
        description=row.description,
        is_public=bool(row.is_public),
        password_hash=row.password_hash,
        owner_id=row.owner_id,
        custom_title=row.custom_title,
        custom_subtitle=row.custom_subtitle,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_member(row) -> ListMember:
    return ListMember(
        id=row.id,
        list_id=row.list_id,
        user_id=row.user_id,
        role=row.role,
        joined_at=row.joined_at,
    )


def _row_to_join_request(row) -> JoinRequest:
    return JoinRequest(
        id=row.id,
        list_id=row.list_id,
        user_id=row.user_id,
        message=row.message,
        status=row.status,
        requested_at=row.requested_at,
        responded_at=row.responded_at,
    )


def _row_to_word(row) -> Word:
    return Word(
        id=row.id,
        word=row.word,
        word_lower=row.word_lower,
        name=row.name,
        name_lower=row.name_lower,
        owner_id=row.owner_id,
        list_id=row.list_id,
        duplicate_of=row.duplicate_of,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
