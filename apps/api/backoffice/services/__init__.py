"""Service layer modules."""

from backoffice.services.errors import (
    AlreadyUsedError,
    BackofficeError,
    BulkResult,
    ConflictError,
    InvalidTokenError,
    ItemResult,
    NotFoundError,
    StorageError,
    ValidationError,
)
from backoffice.services.org_service import (
    create_org,
    get_org_by_slug,
)

# Import service modules (not individual functions) for cleaner access
from backoffice.services import profile_service
from backoffice.services import role_service
from backoffice.services import permission_service
from backoffice.services import teacher_service
from backoffice.services import invitation_service
from backoffice.services import reconciliation_service
from backoffice.services import family_service
from backoffice.services import textbook_service
from backoffice.services import auth_service

__all__ = [
    # Errors
    "BackofficeError",
    "NotFoundError",
    "ConflictError",
    "AlreadyUsedError",
    "ValidationError",
    "InvalidTokenError",
    "StorageError",
    "ItemResult",
    "BulkResult",
    # Org service
    "get_org_by_slug",
    "create_org",
    # Service modules
    "profile_service",
    "role_service",
    "permission_service",
    "teacher_service",
    "invitation_service",
    "reconciliation_service",
    "family_service",
    "textbook_service",
    "auth_service",
]
