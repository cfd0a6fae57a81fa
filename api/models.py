"""
API request and response models for the WordLists REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
wordbank/models.py, which own the internal domain representation. Route
handlers map between the two.

Request bodies are validated here, at the boundary; a failure becomes a 400
validation_error envelope (see api/main.py). Handlers receive typed values
and never re-check lengths or character sets.

Several bodies accept an optional name + password pair. On those endpoints it
is an alternative to the session token (see auth/dependencies.py) and is not
a field of the resource being written.

Separation of concerns: domain models = domain truth; api/ models = API contract.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.dependencies import Credentials
from auth.models import User
from wordbank.models import JoinRequest, ListMember, Word, WordList

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Letters (any script), digits, hyphen and underscore.
WORD_PATTERN = re.compile(r"^[-\w]+$")

MAX_PAGE_SIZE = 1000


def _strip_or_none(value):
    """Trim a string; empty strings become None. Non-strings pass through."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ---------------------------------------------------------------------------
# Shared mixins
# ---------------------------------------------------------------------------


class _CredentialFields(BaseModel):
    """Optional name + password supplied in place of a session token."""

    name: Optional[str] = Field(default=None, max_length=50)
    password: Optional[str] = Field(default=None, max_length=128)

    def credentials(self) -> Credentials:
        return Credentials(name=self.name, password=self.password)


class _WordText(BaseModel):
    word: str

    @field_validator("word", mode="before")
    @classmethod
    def validate_word(cls, value) -> str:
        """Trim, then require 1-20 letters, digits, hyphens or underscores."""
        word = str(value if value is not None else "").strip()
        if not word:
            raise ValueError("Empty word")
        if len(word) > 20:
            raise ValueError("Word must be 20 characters or fewer")
        if not WORD_PATTERN.match(word):
            raise ValueError("Only letters, numbers, hyphen and underscore allowed")
        return word


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    name: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=6, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    The password is not trimmed; whitespace is part of the secret.
    """

    name: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls(id=user.id, name=user.name)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    user: UserInfo


class LoginResponse(BaseModel):
    """Response body for POST /api/v1/auth/login.

    The token is returned in the body for clients that send it as a Bearer
    header, and set as an HttpOnly cookie for browsers.
    """

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class LogoutResponse(BaseModel):
    """Logout always reports ok. warning is set when revocation could not be recorded."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    warning: Optional[str] = None


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    user: UserInfo


# ---------------------------------------------------------------------------
# Lists -- requests
# ---------------------------------------------------------------------------


class ListCreate(BaseModel):
    """Request body for POST /api/v1/lists.

    camelCase aliases (isPublic, customTitle, customSubtitle) are accepted
    alongside the snake_case names. An empty password means no password.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    is_public: bool = Field(default=True, alias="isPublic")
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    custom_title: Optional[str] = Field(default=None, max_length=200, alias="customTitle")
    custom_subtitle: Optional[str] = Field(default=None, max_length=1000, alias="customSubtitle")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", "custom_title", "custom_subtitle", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip_or_none(value)

    @field_validator("password", mode="before")
    @classmethod
    def empty_password_is_none(cls, value):
        return value or None


class ListUpdate(BaseModel):
    """Request body for PATCH /api/v1/lists/{id}.

    Only fields present in the body are changed (handlers read it with
    exclude_unset=True). password: a value sets a new join password; null or
    "" removes it.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    is_public: Optional[bool] = Field(default=None, alias="isPublic")
    password: Optional[str] = Field(default=None, max_length=128)
    custom_title: Optional[str] = Field(default=None, max_length=200, alias="customTitle")
    custom_subtitle: Optional[str] = Field(default=None, max_length=1000, alias="customSubtitle")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", "custom_title", "custom_subtitle", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip_or_none(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: Optional[str]) -> Optional[str]:
        if value and len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value or None


class JoinBody(BaseModel):
    """Request body for POST /api/v1/lists/{id}/join. Both fields optional."""

    password: Optional[str] = Field(default=None, max_length=128)
    message: Optional[str] = Field(default=None, max_length=500)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, value):
        return _strip_or_none(value)


class MemberAdd(BaseModel):
    """Request body for POST /api/v1/lists/{id}/members.

    Only "member" may be granted; each list has exactly one owner.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    role: str = "member"

    @field_validator("role")
    @classmethod
    def member_only(cls, value: str) -> str:
        if value != "member":
            raise ValueError("Role must be member")
        return value


class JoinRequestDecision(_CredentialFields):
    """Request body for PATCH /api/v1/lists/{id}/requests/{request_id}."""

    action: str

    @field_validator("action")
    @classmethod
    def approve_or_reject(cls, value: str) -> str:
        if value not in ("approve", "reject"):
            raise ValueError("Action must be approve or reject")
        return value


# ---------------------------------------------------------------------------
# Lists -- responses
# ---------------------------------------------------------------------------


class ListSummary(BaseModel):
    """Public face of a list -- safe to show to non-members (discover mode)."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: Optional[str]
    is_public: bool
    has_password: bool
    owner_id: int
    created_at: str

    @classmethod
    def from_list(cls, wl: WordList) -> "ListSummary":
        return cls(
            id=wl.id,
            name=wl.name,
            description=wl.description,
            is_public=wl.is_public,
            has_password=wl.password_hash is not None,
            owner_id=wl.owner_id,
            created_at=wl.created_at,
        )


class ListOut(BaseModel):
    """Full list record for callers entitled to see it. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: Optional[str]
    is_public: bool
    has_password: bool
    owner_id: int
    custom_title: Optional[str]
    custom_subtitle: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_list(cls, wl: WordList) -> "ListOut":
        return cls(
            id=wl.id,
            name=wl.name,
            description=wl.description,
            is_public=wl.is_public,
            has_password=wl.password_hash is not None,
            owner_id=wl.owner_id,
            custom_title=wl.custom_title,
            custom_subtitle=wl.custom_subtitle,
            created_at=wl.created_at,
            updated_at=wl.updated_at,
        )


class ListDetail(ListOut):
    """GET /api/v1/lists/{id}: the list plus counts and the caller's relationship to it."""

    member_count: int
    word_count: int
    is_owner: bool
    is_member: bool
    membership_role: Optional[str]


class ListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    list: ListOut


class ListDetailResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    list: ListDetail


class ListsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    lists: list[ListOut]


class DiscoverResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    lists: list[ListSummary]


class MemberRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    name: Optional[str]
    role: str
    joined_at: str

    @classmethod
    def from_member(cls, member: ListMember, names: dict[int, str]) -> "MemberRow":
        return cls(
            id=member.id,
            user_id=member.user_id,
            name=names.get(member.user_id),
            role=member.role,
            joined_at=member.joined_at,
        )


class MembersResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    members: list[MemberRow]


class JoinRequestRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: int
    name: Optional[str]
    message: Optional[str]
    status: str
    requested_at: str
    responded_at: Optional[str]

    @classmethod
    def from_request(cls, req: JoinRequest, names: dict[int, str]) -> "JoinRequestRow":
        return cls(
            id=req.id,
            user_id=req.user_id,
            name=names.get(req.user_id),
            message=req.message,
            status=req.status,
            requested_at=req.requested_at,
            responded_at=req.responded_at,
        )


class JoinRequestsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    requests: list[JoinRequestRow]


class JoinResponse(BaseModel):
    """Outcome of POST /join. status is "joined" or "requested"."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True
    status: str
    message: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    message: str


# ---------------------------------------------------------------------------
# Words -- requests
# ---------------------------------------------------------------------------


class WordCreate(_WordText, _CredentialFields):
    """Request body for POST /api/v1/words.

    list_id omitted or null submits into the global scope.
    """

    list_id: Optional[int] = None


class WordUpdate(_WordText, _CredentialFields):
    """Request body for PATCH /api/v1/words/{id}."""


class WordSearch(_CredentialFields):
    """Request body for POST /api/v1/words/search -- identifies whose words to return."""


# ---------------------------------------------------------------------------
# Words -- responses
# ---------------------------------------------------------------------------


class WordRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    word: str
    name: str
    owner_id: Optional[int]
    list_id: Optional[int]
    created_at: str
    updated_at: str

    @classmethod
    def from_word(cls, word: Word) -> "WordRow":
        return cls(
            id=word.id,
            word=word.word,
            name=word.name,
            owner_id=word.owner_id,
            list_id=word.list_id,
            created_at=word.created_at,
            updated_at=word.updated_at,
        )


class WordResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    item: WordRow


class WordsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    items: list[WordRow]


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
