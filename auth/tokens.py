"""
auth/tokens.py -- JWT session tokens, password hashing, and cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (user id as a string), name, iat and exp. Lifetime defaults to
       7 days. Verification returns None on any failure -- the resolver turns
       that into a 401. A token that verifies may still be revoked; see
       auth/revocation.py.

  Passwords: bcrypt used directly. User passwords hash at cost 10 (checked on
       every login); list join passwords at cost 12 (checked rarely, so the
       extra work is affordable). The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a name is registered [C1].

  Cookie: "auth_token", httpOnly, samesite=lax, secure in production, path /,
       max_age equal to the token lifetime.

Layer rule: no imports from api/ or wordbank/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("wordlists.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

COOKIE_NAME = "auth_token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    rounds defaults to Settings.user_password_rounds. Pass
    Settings.list_password_rounds when hashing a list join password.

    Passwords longer than 72 bytes are silently truncated by bcrypt. The API
    layer caps password fields at 128 characters.
    """
    cost = rounds if rounds is not None else _settings.user_password_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (TypeError, ValueError):
        # Malformed stored hash -- treat as a mismatch, never as a match.
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("wordlists_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    name: str,
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT for the given user.

    Args:
        user_id:        Numeric user ID. Stored as the string "sub" claim.
        name:           Display name, carried for clients that want it.
        expire_seconds: Lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds (7 days).
        issued_at:      Issue time; defaults to now. Tests use this to mint
                        tokens that are already past their expiry.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    now = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "name": name,
        "iat": int(now.timestamp()),
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Malformed, bad signature, expired and missing/non-numeric subject all
    collapse to None so the caller cannot (and need not) tell them apart.
    On success the payload gains a "user_id" int derived from "sub".
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    try:
        payload["user_id"] = int(payload.get("sub", ""))
    except (TypeError, ValueError):
        return None
    return payload


def token_expiry(token: str) -> datetime | None:
    """Return the embedded expiry of a currently valid token, else None."""
    payload = decode_access_token(token)
    if payload is None or "exp" not in payload:
        return None
    return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)


# ---------------------------------------------------------------------------
# User authentication (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, name: str, password: str) -> User | None:
    """Verify a name/password pair with timing equalization.

    The name lookup is case-insensitive. bcrypt always runs, against the
    dummy hash when the name is unknown, so response time does not leak
    which names exist.

    Returns the User on success, None on any failure.
    """
    if not name or not password:
        return None
    user = store.get_by_name(name)
    if user is None or not user.password_hash:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Token transport
# ---------------------------------------------------------------------------


def get_token_from_request(request) -> str | None:
    """Return the raw session token: Bearer header first, then the auth cookie."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME) or None


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: HTTPS-only unless running in debug mode.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=bool(_settings.secure_cookies),
        max_age=duration,
        path="/",
    )


def clear_auth_cookie(response) -> None:
    """Overwrite the auth cookie with an empty value that expires immediately."""
    response.set_cookie(
        COOKIE_NAME,
        value="",
        httponly=True,
        samesite="lax",
        secure=bool(_settings.secure_cookies),
        max_age=0,
        path="/",
    )
