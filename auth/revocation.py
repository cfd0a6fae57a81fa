"""
auth/revocation.py -- Token revocation ledger (the blacklist).

Session tokens are stateless: a valid signature and an unexpired exp are
enough to trust them without a store lookup. Logout is the one operation that
needs a token to die before its exp, so logout writes the token's fingerprint
here and the resolver checks the ledger after signature verification.

Fingerprint:
  HMAC-SHA256(TOKEN_BLACKLIST_SECRET, raw_token), hex encoded. The raw token
  is never stored. Keying the hash means someone holding only a copy of the
  blacklist table can neither confirm a guessed token offline nor plant a
  fingerprint for a token they do not have.

Expiry of a record:
  The token's own exp when it can be read. A token that is malformed, badly
  signed or already expired gets "now" -- it is rejected by signature/expiry
  checks anyway, and the row becomes immediately purgeable.

Layer rule: no imports from api/ or wordbank/.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from auth.models import RevokedToken
from auth.tokens import token_expiry
from core.config import get_settings
from core.db import iso
from core.errors import StoreResult

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("wordlists.auth")

_settings = get_settings()


def token_fingerprint(raw_token: str) -> str:
    """Return HMAC-SHA256(TOKEN_BLACKLIST_SECRET, raw_token) as a hex string."""
    return hmac.new(
        _settings.token_blacklist_secret.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


def revoke_token(store: UserStore, raw_token: str, now: datetime | None = None) -> StoreResult:
    """Record raw_token in the blacklist.

    Never raises. A fingerprint that is already blacklisted counts as success
    (logout is idempotent). Any other store failure is logged and returned so
    the caller can surface a warning without failing the logout.
    """
    now = now or datetime.now(timezone.utc)
    expires = token_expiry(raw_token) or now
    record = RevokedToken(
        token_hash=token_fingerprint(raw_token),
        expires_at=iso(expires),
        revoked_at=iso(now),
    )
    result = store.add_revoked_token(record)
    if result.is_conflict:
        logger.info("Token already revoked; ignoring duplicate blacklist insert")
        return StoreResult.success(None)
    if not result.ok:
        logger.error("Blacklist insert failed: %s", result.detail)
    return result


def is_token_revoked(store: UserStore, raw_token: str, now: datetime | None = None) -> bool:
    """Return True if raw_token has an unexpired blacklist record."""
    moment = now or datetime.now(timezone.utc)
    return store.is_token_revoked(token_fingerprint(raw_token), iso(moment))


def purge_expired(store: UserStore, now: datetime | None = None) -> int:
    """Delete blacklist rows whose expiry has passed. Returns the number removed."""
    moment = now or datetime.now(timezone.utc)
    removed = store.purge_revoked_tokens(iso(moment))
    if removed:
        logger.info("Purged %d expired blacklist entries", removed)
    return removed
