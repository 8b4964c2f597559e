"""Profile lookups and soft deactivation."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from backoffice.db.models import Profile
from backoffice.services.errors import NotFoundError
from backoffice.utils.normalization import normalize_email


logger = logging.getLogger(__name__)


def get_profile(db: Session, org_id: UUID, profile_id: UUID) -> Profile | None:
    """Get profile scoped to an organization."""
    return db.query(Profile).filter(
        Profile.id == profile_id,
        Profile.organization_id == org_id,
    ).first()


def require_profile(db: Session, org_id: UUID, profile_id: UUID) -> Profile:
    profile = get_profile(db, org_id, profile_id)
    if not profile:
        raise NotFoundError("Profile not found", profile_id=str(profile_id))
    return profile


def find_profile_by_email(db: Session, org_id: UUID, email: str | None) -> Profile | None:
    """Case-insensitive exact email lookup within an organization."""
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(Profile).filter(
        Profile.organization_id == org_id,
        func.lower(Profile.email) == normalized,
    ).order_by(Profile.created_at).first()


def list_profiles(db: Session, org_id: UUID, include_inactive: bool = False) -> list[Profile]:
    """List profiles for an organization, oldest first."""
    query = db.query(Profile).filter(Profile.organization_id == org_id)
    if not include_inactive:
        query = query.filter(Profile.is_active.is_(True))
    return query.order_by(Profile.created_at, Profile.last_name, Profile.first_name).all()


def deactivate_profile(db: Session, org_id: UUID, profile_id: UUID) -> Profile:
    """Soft-deactivate a profile. Idempotent."""
    profile = require_profile(db, org_id, profile_id)
    if profile.is_active:
        profile.is_active = False
        db.flush()
        logger.info("Deactivated profile %s in org %s", profile_id, org_id)
    return profile
