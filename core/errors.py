"""
core/errors.py -- Error taxonomy and store result values.

Every failure a handler can report is one of the AppError subclasses below.
Each class carries the HTTP status and a stable machine code; api/main.py
turns any AppError into the standard {"error": {...}} envelope, so route and
guard code simply raises.

Store writes that can trip a uniqueness constraint do NOT raise. They return
a StoreResult whose `error` field tags the failure (conflict or upstream).
Callers inspect the tag and decide what the user sees -- typically via
result.as_error("Word already exists in this list").

Layer rule: core/ is the kernel. No imports from api/, auth/, or wordbank/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(AppError):
    """Malformed or missing input (400)."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(AppError):
    """No identity, or an invalid one, where identity is required (401)."""

    status_code = 401
    code = "unauthorized"


class AuthorizationError(AppError):
    """Identity present but not allowed to do this (403)."""

    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """Uniqueness or state conflict (409)."""

    status_code = 409
    code = "conflict"


class UpstreamStoreError(AppError):
    """The record store failed in a way we cannot classify (500).

    The message is shown to the client, so keep it generic. Put driver output
    in the log, not here.
    """

    status_code = 500
    code = "store_error"


# ---------------------------------------------------------------------------
# Store results
# ---------------------------------------------------------------------------


class StoreErrorKind(str, Enum):
    conflict = "conflict"  # unique constraint rejected the write
    upstream = "upstream"  # anything else the driver raised


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a store write: either a value or a tagged failure.

    value  -- primary key of an inserted row, or True for updates.
    error  -- None on success, otherwise the StoreErrorKind.
    detail -- driver message for logs. Never sent to clients.
    """

    value: Any = None
    error: Optional[StoreErrorKind] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_conflict(self) -> bool:
        return self.error is StoreErrorKind.conflict

    @classmethod
    def success(cls, value: Any = True) -> "StoreResult":
        return cls(value=value)

    @classmethod
    def conflict(cls, detail: str) -> "StoreResult":
        return cls(error=StoreErrorKind.conflict, detail=detail)

    @classmethod
    def upstream(cls, detail: str) -> "StoreResult":
        return cls(error=StoreErrorKind.upstream, detail=detail)

    def as_error(self, conflict_message: str, upstream_message: str = "Store operation failed") -> AppError:
        """Translate a failed result into the exception a route should raise."""
        if self.is_conflict:
            return ConflictError(conflict_message)
        return UpstreamStoreError(upstream_message)
