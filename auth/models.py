"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in wordbank/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/ or wordbank/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered identity.

    name is the display name exactly as registered. name_lower is the
    case-insensitive identity key (UNIQUE in the store): "Alice" and "alice"
    are the same user.

    password_hash is only populated when the row is loaded for credential
    checks; it is never serialized into a response.
    """

    name: str
    name_lower: str
    id: int | None = None
    password_hash: str | None = None
    created_at: str | None = None


@dataclass
class RevokedToken:
    """One row of the token blacklist.

    token_hash is HMAC-SHA256(TOKEN_BLACKLIST_SECRET, raw_token). The raw
    token is never persisted, so a leaked blacklist cannot be replayed.
    expires_at is the revoked token's own expiry; once it passes the row is
    irrelevant and the reaper may delete it.
    """

    token_hash: str
    expires_at: str  # ISO 8601 UTC
    revoked_at: str | None = None
    id: int | None = None
