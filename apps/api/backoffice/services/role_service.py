"""Role assignment service.

(profile_id, role) pairs are unique: assigning an existing role and revoking
a missing one are both no-ops, never errors.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice.db.enums import Role
from backoffice.db.models import Profile, UserRole
from backoffice.services import profile_service
from backoffice.services.errors import ValidationError


logger = logging.getLogger(__name__)


def coerce_role(role: Role | str | None) -> Role:
    """Validate a role label against the closed role set."""
    if isinstance(role, Role):
        return role
    if not role:
        raise ValidationError("Role is required")
    if not Role.has_value(role):
        raise ValidationError(f"Unknown role '{role}'", role=role)
    return Role(role)


def list_roles(db: Session, profile_id: UUID) -> list[str]:
    """Role labels held by a profile, sorted."""
    rows = db.query(UserRole.role).filter(UserRole.profile_id == profile_id).all()
    return sorted(r.role for r in rows)


def has_role(db: Session, profile_id: UUID, role: Role | str) -> bool:
    role = coerce_role(role)
    return db.query(UserRole.id).filter(
        UserRole.profile_id == profile_id,
        UserRole.role == role.value,
    ).first() is not None


def _check_actor(profile_id: UUID, actor_profile_id: UUID | None) -> None:
    if actor_profile_id is not None and actor_profile_id == profile_id:
        raise ValidationError("Cannot change your own roles")


def assign_role(
    db: Session,
    org_id: UUID,
    profile_id: UUID,
    role: Role | str,
    actor_profile_id: UUID | None = None,
) -> bool:
    """
    Assign a role to a profile (upsert).

    Returns True if a row was created, False if the role was already held.
    actor_profile_id is set for requests made by a user; system callers
    such as onboarding leave it empty.

    Raises:
        NotFoundError: profile not in this organization
        ValidationError: unknown role, or the actor targets their own profile
    """
    _check_actor(profile_id, actor_profile_id)
    role = coerce_role(role)
    profile_service.require_profile(db, org_id, profile_id)

    if has_role(db, profile_id, role):
        return False

    db.add(UserRole(profile_id=profile_id, role=role.value))
    db.flush()
    logger.info("Assigned role %s to profile %s", role.value, profile_id)
    return True


def revoke_role(
    db: Session,
    org_id: UUID,
    profile_id: UUID,
    role: Role | str,
    actor_profile_id: UUID | None = None,
) -> bool:
    """
    Revoke a role from a profile.

    Returns True if a row was deleted, False if the role was not held.
    """
    _check_actor(profile_id, actor_profile_id)
    role = coerce_role(role)
    profile_service.require_profile(db, org_id, profile_id)

    deleted = db.query(UserRole).filter(
        UserRole.profile_id == profile_id,
        UserRole.role == role.value,
    ).delete(synchronize_session="fetch")
    db.flush()

    if deleted:
        logger.info("Revoked role %s from profile %s", role.value, profile_id)
    return deleted > 0


def list_profiles_with_roles(
    db: Session,
    org_id: UUID,
    include_inactive: bool = False,
) -> list[tuple[Profile, list[str]]]:
    """Profiles of an organization paired with their role labels."""
    profiles = profile_service.list_profiles(db, org_id, include_inactive=include_inactive)
    if not profiles:
        return []

    roles_by_profile: dict[UUID, list[str]] = {p.id: [] for p in profiles}
    rows = db.query(UserRole).filter(UserRole.profile_id.in_(list(roles_by_profile))).all()
    for row in rows:
        roles_by_profile[row.profile_id].append(row.role)

    return [(p, sorted(roles_by_profile[p.id])) for p in profiles]
