"""
wordbank/guards.py -- Access-control checks run before any read or mutation.

Every guard either returns quietly or raises an AppError subclass; the API
layer's exception handler turns that into the error envelope. Guards take the
resolved identity (auth.models.User or None) and never resolve it themselves.

Status mapping used throughout:
  no identity where one is needed      -> 401 AuthenticationError
  identity without the right access    -> 403 AuthorizationError
  request already decided              -> 400 ValidationError
  duplicate canonical word in a scope  -> 409 ConflictError

Layer rule: may import core/, auth/models.py and wordbank/. Not api/.
"""

from __future__ import annotations

from typing import Optional

from auth.models import User
from core.errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from wordbank.models import ROLE_OWNER, STATUS_PENDING, JoinRequest, Owner, OwnerById, OwnerByLegacyName, Word, WordList
from wordbank.store import ListStore

# ---------------------------------------------------------------------------
# List access
# ---------------------------------------------------------------------------


def membership_role(store: ListStore, wl: WordList, user: Optional[User]) -> Optional[str]:
    """Return "owner", "member" or None for this user on this list."""
    if user is None:
        return None
    if wl.owner_id == user.id:
        return ROLE_OWNER
    member = store.get_membership(wl.id, user.id)
    return member.role if member is not None else None


def require_list_visible(store: ListStore, wl: WordList, user: Optional[User]) -> Optional[str]:
    """Public lists are visible to everyone; private ones to owner and members.

    Returns the caller's role so handlers do not look it up twice.
    """
    role = membership_role(store, wl, user)
    if wl.is_public:
        return role
    if user is None:
        raise AuthenticationError("Authentication required")
    if role is None:
        raise AuthorizationError("Access denied to this list")
    return role


def require_list_owner(wl: WordList, user: User, message: str) -> None:
    if wl.owner_id != user.id:
        raise AuthorizationError(message)


def require_list_member(store: ListStore, wl: WordList, user: User) -> str:
    """Only the owner or a member may submit words into a list."""
    role = membership_role(store, wl, user)
    if role is None:
        raise AuthorizationError("Access denied to this list")
    return role


def require_pending(join_request: JoinRequest) -> None:
    if join_request.status != STATUS_PENDING:
        raise ValidationError("Request has already been processed")


# ---------------------------------------------------------------------------
# Word ownership
# ---------------------------------------------------------------------------


def word_owner(word: Word) -> Owner:
    """Classify how ownership is recorded on a word row."""
    if word.owner_id is not None:
        return OwnerById(word.owner_id)
    return OwnerByLegacyName(word.name_lower)


def is_owned_by(owner: Owner, user: User) -> bool:
    if isinstance(owner, OwnerById):
        return owner.user_id == user.id
    return owner.name_lower == user.name_lower


def require_word_owner(word: Word, user: User, message: str = "You can only modify your own words") -> None:
    if not is_owned_by(word_owner(word), user):
        raise AuthorizationError(message)


# ---------------------------------------------------------------------------
# Submission rules
# ---------------------------------------------------------------------------


def require_quota(store: ListStore, user: User, list_id: Optional[int], limit: int) -> None:
    """Reject a submission once the user already holds `limit` canonical words in the scope."""
    held = store.count_owned_words(user.id, user.name_lower, list_id)
    if held >= limit:
        scope = "this list" if list_id is not None else "the global list"
        raise AuthorizationError(f"Submission limit reached ({limit}) for this user in {scope}")


def require_unique_word(
    store: ListStore, word_lower: str, list_id: Optional[int], exclude_id: Optional[int] = None
) -> None:
    """Pre-check for a canonical duplicate. The store's unique index has the final say."""
    if store.find_canonical_word(word_lower, list_id, exclude_id) is not None:
        raise ConflictError(duplicate_word_message(list_id))


def duplicate_word_message(list_id: Optional[int]) -> str:
    return "Word already exists in this list" if list_id is not None else "Word already exists"
