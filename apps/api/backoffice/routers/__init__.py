"""API routers."""

from backoffice.routers.auth import router as auth_router
from backoffice.routers.family_groups import router as family_groups_router
from backoffice.routers.invitations import public_router as onboarding_router
from backoffice.routers.invitations import router as invitations_router
from backoffice.routers.permissions import router as permissions_router
from backoffice.routers.teachers import router as teachers_router
from backoffice.routers.textbooks import router as textbooks_router

__all__ = [
    "auth_router",
    "family_groups_router",
    "invitations_router",
    "onboarding_router",
    "permissions_router",
    "teachers_router",
    "textbooks_router",
]
