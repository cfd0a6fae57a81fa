"""
api/routes/v1/auth.py -- Registration, login, logout and identity endpoints.

Routes:
  POST /api/v1/auth/register   -- create a user; 409 if the name is taken
  POST /api/v1/auth/login      -- password login; token in body + auth cookie
  POST /api/v1/auth/logout     -- revoke the presented token, clear cookie; always 200
  GET  /api/v1/auth/me         -- current user info (requires auth)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Names are unique case-insensitively: "Alice" and "alice" are one identity.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, LogoutResponse, MeResponse, RegisterRequest, RegisterResponse, UserInfo
from auth.dependencies import get_current_user
from auth.models import User
from auth.revocation import revoke_token
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    clear_auth_cookie,
    create_access_token,
    get_token_from_request,
    hash_password,
    set_auth_cookie,
)
from core.config import get_settings
from core.errors import AuthenticationError, ConflictError

logger = logging.getLogger("wordlists.auth")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/register:  public
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:    optional -- revokes whatever token is presented
# - GET  /api/v1/auth/me:        requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create a user account.

    The pre-check gives the common case a clean 409; two registrations
    racing for the same name are settled by the UNIQUE index on name_lower,
    and the loser gets the same 409.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_name(body.name) is not None:
        raise ConflictError("Name already registered")

    user = User(
        name=body.name,
        name_lower=body.name.lower(),
        password_hash=hash_password(body.password),
    )
    result = user_store.create_user(user)
    if not result.ok:
        raise result.as_error("Name already registered", "Registration failed")

    logger.info("Registered user_id=%s", result.value)
    return RegisterResponse(user=UserInfo(id=result.value, name=user.name))


@limiter.limit(_settings.login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with name and password; return the token and set the auth cookie.

    Wrong name and wrong password produce the same "Invalid credentials" so
    the response does not reveal which names exist.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.name, body.password)
    if user is None:
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(user.id, user.name)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- token type, not a password
            expires_in=_settings.token_expire_seconds,
            user=UserInfo.from_user(user),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(request: Request) -> JSONResponse:
    """Revoke the presented token and clear the auth cookie.

    Always answers 200. A garbage or expired token is still blacklisted (with
    an immediate expiry). When the blacklist write fails the response carries
    a warning instead of an error; the cookie is cleared either way.
    """
    user_store: UserStore = request.app.state.user_store
    warning = None

    token = get_token_from_request(request)
    if token:
        result = revoke_token(user_store, token)
        if not result.ok:
            logger.warning("Logout: token could not be blacklisted")
            warning = "blacklist insert failed"

    resp = JSONResponse(content=LogoutResponse(warning=warning).model_dump(exclude_none=True))
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(user=UserInfo.from_user(current_user))
