"""Password login and session resolution."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice.core.security import verify_password
from backoffice.db.models import Profile
from backoffice.services import org_service, profile_service


logger = logging.getLogger(__name__)


def authenticate(db: Session, org_slug: str, email: str, password: str) -> Profile | None:
    """
    Check email + password within an organization.

    Returns None for unknown org, unknown email, wrong password or
    deactivated profile; callers must not reveal which.
    """
    org = org_service.get_org_by_slug(db, org_slug)
    if not org:
        return None

    profile = profile_service.find_profile_by_email(db, org.id, email)
    if not profile or not profile.is_active:
        return None
    if not verify_password(password, profile.password_hash):
        return None

    logger.info("Profile %s logged in", profile.id)
    return profile


def resolve_session_profile(db: Session, org_id: UUID, profile_id: UUID) -> Profile | None:
    """Active profile for a session token, or None if revoked/deactivated."""
    profile = profile_service.get_profile(db, org_id, profile_id)
    if not profile or not profile.is_active:
        return None
    return profile
