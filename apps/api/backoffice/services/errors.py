"""Typed service errors and partial-failure summaries.

Services raise one of the errors below; the API layer maps them to HTTP
status codes. Bulk operations never raise for per-item failures, they return
a BulkResult instead.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError


class BackofficeError(Exception):
    """Base exception for service errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(BackofficeError):
    """Referenced teacher, profile, group or token does not exist."""

    code = "not_found"
    status_code = 404


class ConflictError(BackofficeError):
    """Action contradicts an invariant."""

    code = "conflict"
    status_code = 409


class AlreadyUsedError(ConflictError):
    """Invitation token was already accepted or cancelled."""

    code = "already_used"


class ValidationError(BackofficeError):
    """Required input missing or outside the allowed set."""

    code = "validation_error"
    status_code = 422


class InvalidTokenError(BackofficeError):
    """Invitation token is malformed or expired."""

    code = "invalid_token"
    status_code = 400


class StorageError(BackofficeError):
    """The database itself failed (connectivity, constraint violation)."""

    code = "storage_error"
    status_code = 503


def storage_reason(exc: SQLAlchemyError) -> str:
    """Driver message of a database error (or its class name) for per-item reports."""
    detail = getattr(exc, "orig", None)
    return str(detail) if detail is not None else type(exc).__name__


# =============================================================================
# Partial-failure summaries
# =============================================================================

@dataclass
class ItemResult:
    """Outcome for one item of a bulk operation."""
    id: UUID
    ok: bool
    error: str | None = None


@dataclass
class BulkResult:
    """Accumulator for best-effort batch mutations."""
    items: list[ItemResult] = field(default_factory=list)

    def succeeded(self, item_id: UUID) -> None:
        self.items.append(ItemResult(id=item_id, ok=True))

    def failed(self, item_id: UUID, error: str) -> None:
        self.items.append(ItemResult(id=item_id, ok=False, error=error))

    @property
    def success(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failure(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    @property
    def reasons(self) -> dict[str, str]:
        return {str(item.id): item.error or "" for item in self.items if not item.ok}
