"""
auth/dependencies.py -- The auth resolver and its FastAPI Depends() wrappers.

Resolution policy, in order:
  1. Session token -- "Authorization: Bearer <token>" header, falling back to
     the "auth_token" cookie.
  2. If a token is present: verify signature and expiry, check the
     revocation ledger, load the user. All three pass -> that user.
  3. A token that is present but rejected ends resolution unless
     Settings.credential_fallback_on_invalid_token is True. Strict is the
     default: a client whose token was revoked at logout must not be let back
     in by stale credentials riding along in the same request.
  4. Credential fallback -- name + password supplied in the request body.
     Both present: verify (bad pair -> 401 "Invalid credentials").
  5. Nothing usable: 401 "Authentication required" when auth is required,
     anonymous (None) when it is optional.

resolve_identity() is the full policy and is called directly by handlers that
accept body credentials. try_get_current_user() / get_current_user() are the
token-only dependency forms used everywhere else.

Layer rule: no imports from api/ or wordbank/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from auth.models import User
from auth.revocation import is_token_revoked
from auth.store import UserStore
from auth.tokens import authenticate_user, decode_access_token, get_token_from_request
from core.config import get_settings
from core.errors import AuthenticationError

logger = logging.getLogger("wordlists.auth")


@dataclass(frozen=True)
class Credentials:
    """A name/password pair lifted from a request body for the fallback path."""

    name: Optional[str] = None
    password: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool((self.name or "").strip()) and bool(self.password)


def _user_from_token(store: UserStore, token: str) -> User | None:
    payload = decode_access_token(token)
    if payload is None:
        return None
    if is_token_revoked(store, token):
        logger.info("Rejected revoked token for user_id=%s", payload["user_id"])
        return None
    return store.get_by_id(payload["user_id"])


def resolve_identity(
    request: Request,
    credentials: Credentials | None = None,
    *,
    require_auth: bool = False,
) -> User | None:
    """Determine the acting user for this request.

    Returns the User, or None for an anonymous caller when require_auth is
    False. Raises AuthenticationError (401) otherwise -- see module docstring
    for the full policy.
    """
    store: UserStore = request.app.state.user_store

    token = get_token_from_request(request)
    if token:
        user = _user_from_token(store, token)
        if user is not None:
            return user
        if not get_settings().credential_fallback_on_invalid_token:
            if require_auth:
                raise AuthenticationError("Invalid or expired token")
            return None

    if credentials is not None and credentials.usable:
        user = authenticate_user(store, credentials.name.strip(), credentials.password)
        if user is None:
            raise AuthenticationError("Invalid credentials")
        return user

    if require_auth:
        raise AuthenticationError("Authentication required")
    return None


def try_get_current_user(request: Request) -> User | None:
    """Optional auth: the token's user, or None for anonymous / rejected tokens.

    Use as a FastAPI dependency on read endpoints that personalise output
    for logged-in users but still serve anonymous readers.
    """
    return resolve_identity(request, require_auth=False)


def get_current_user(request: Request) -> User:
    """Required auth. Raises AuthenticationError (401) if there is no valid token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    return resolve_identity(request, require_auth=True)
