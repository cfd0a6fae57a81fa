"""
wordbank/models.py -- Domain dataclasses for lists, memberships, join requests and words.

These are pure data containers with zero logic. Business rules (visibility,
ownership, quota, duplicate checks) live in wordbank/guards.py; persistence
lives in wordbank/store.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

ROLE_OWNER = "owner"
ROLE_MEMBER = "member"

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


@dataclass
class WordList:
    """A named collection that users join and submit words into.

    password_hash is None when the list has no join password. A private list
    without a password can only be joined through an approved join request.

    id is None before the record is written to the database.
    """

    name: str
    owner_id: int
    id: Optional[int] = None
    description: Optional[str] = None
    is_public: bool = True
    password_hash: Optional[str] = None
    custom_title: Optional[str] = None
    custom_subtitle: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class ListMember:
    list_id: int
    user_id: int
    role: str = ROLE_MEMBER  # "owner" | "member"
    id: Optional[int] = None
    joined_at: str = ""


@dataclass
class JoinRequest:
    """A request to join a private list, decided once by the list owner."""

    list_id: int
    user_id: int
    message: Optional[str] = None
    status: str = STATUS_PENDING  # "pending" | "approved" | "rejected"
    id: Optional[int] = None
    requested_at: str = ""
    responded_at: Optional[str] = None


@dataclass
class Word:
    """A submitted word.

    list_id None means the word lives in the global scope. duplicate_of is
    set on non-canonical rows; only canonical rows (duplicate_of None) count
    toward uniqueness and the submission quota.

    owner_id is None on legacy rows written before owner references existed;
    ownership of those rows falls back to name_lower.
    """

    word: str
    word_lower: str
    name: str
    name_lower: str
    id: Optional[int] = None
    owner_id: Optional[int] = None
    list_id: Optional[int] = None
    duplicate_of: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


# ---------------------------------------------------------------------------
# Word ownership
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OwnerById:
    user_id: int


@dataclass(frozen=True)
class OwnerByLegacyName:
    """Ownership recorded only as a submitter name (pre owner_id rows).

    Compatibility path: remove once legacy rows are backfilled with owner_id.
    """

    name_lower: str


Owner = Union[OwnerById, OwnerByLegacyName]
