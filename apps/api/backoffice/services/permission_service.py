"""Permission service: effective permissions, overrides and seeding.

Resolution: union of role templates, then user overrides replace single keys.
The admin role and manage:all always pass.
Missing permission: defaults to False (deny)
Nothing is cached; every check reads the current rows.
"""

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice.core.permissions import (
    ROLE_DEFAULTS,
    WILDCARD_PERMISSION,
    get_section_roles,
    is_valid_permission,
    permission_key,
)
from backoffice.db.enums import AdminSection, Role
from backoffice.db.models import RolePermission, UserPermission
from backoffice.services import profile_service, role_service
from backoffice.services.errors import ValidationError


logger = logging.getLogger(__name__)


def validate_permission_key(key: str) -> str:
    """Reject keys outside the closed registry."""
    if not key or not is_valid_permission(key):
        raise ValidationError(f"Invalid permission: {key}", permission=key)
    return key


# =============================================================================
# Permission Resolution
# =============================================================================

def get_effective_permissions(db: Session, profile_id: UUID) -> set[str]:
    """
    Get effective permissions for a profile.

    Resolution: role templates for every held role, then user overrides.
    A profile with no roles gets only its granted overrides.
    """
    roles = role_service.list_roles(db, profile_id)

    effective: set[str] = set()
    if roles:
        role_perms = db.query(RolePermission).filter(RolePermission.role.in_(roles)).all()
        effective = {rp.key for rp in role_perms}

    for override in get_user_overrides(db, profile_id):
        if override.is_granted:
            effective.add(override.permission_key)
        else:
            effective.discard(override.permission_key)

    return effective


def has_permission(db: Session, profile_id: UUID, verb: str, resource: str) -> bool:
    """Check if profile has a specific permission."""
    key = validate_permission_key(permission_key(verb, resource))

    if Role.ADMIN.value in role_service.list_roles(db, profile_id):
        return True

    effective = get_effective_permissions(db, profile_id)
    return WILDCARD_PERMISSION in effective or key in effective


def can_access_admin_section(roles: Iterable[Role | str], section_id: str) -> bool:
    """
    Check whether any of the given roles may open an admin section.

    Raises:
        ValidationError: unknown section or role label
    """
    if not AdminSection.has_value(section_id):
        raise ValidationError(f"Unknown admin section '{section_id}'", section=section_id)

    held = {role_service.coerce_role(r) for r in roles}
    if Role.ADMIN in held:
        return True
    return bool(held & get_section_roles(AdminSection(section_id)))


# =============================================================================
# User Overrides
# =============================================================================

def get_user_overrides(db: Session, profile_id: UUID) -> list[UserPermission]:
    """Get all permission overrides for a profile."""
    return db.query(UserPermission).filter(
        UserPermission.profile_id == profile_id,
    ).order_by(UserPermission.permission_key).all()


def set_user_override(
    db: Session,
    org_id: UUID,
    target_profile_id: UUID,
    actor_profile_id: UUID,
    key: str,
    is_granted: bool | None,
) -> UserPermission | None:
    """
    Set or remove a user permission override.

    Args:
        is_granted: True to grant, False to revoke, None to delete the override

    Returns the override row, or None when it was removed.
    """
    validate_permission_key(key)
    profile_service.require_profile(db, org_id, target_profile_id)

    if target_profile_id == actor_profile_id:
        raise ValidationError("Cannot modify your own permissions")

    existing = db.query(UserPermission).filter(
        UserPermission.profile_id == target_profile_id,
        UserPermission.permission_key == key,
    ).first()

    if is_granted is None:
        if existing:
            db.delete(existing)
            db.flush()
            logger.info("Removed override %s for profile %s", key, target_profile_id)
        return None

    if existing:
        existing.is_granted = is_granted
    else:
        existing = UserPermission(
            profile_id=target_profile_id,
            permission_key=key,
            is_granted=is_granted,
        )
        db.add(existing)
    db.flush()

    logger.info(
        "Set override %s=%s for profile %s by %s",
        key, is_granted, target_profile_id, actor_profile_id,
    )
    return existing


# =============================================================================
# Role Templates & Seeding
# =============================================================================

def role_capabilities(db: Session, role: Role | str) -> list[RolePermission]:
    """Template rows (with CRUD flags) granted to a role."""
    role = role_service.coerce_role(role)
    return db.query(RolePermission).filter(
        RolePermission.role == role.value,
    ).order_by(RolePermission.permission, RolePermission.resource).all()


def seed_role_defaults(db: Session) -> int:
    """
    Seed role_permissions with ROLE_DEFAULTS.

    Only missing rows are created; existing rows are left untouched.
    Returns count of rows created.
    """
    count = 0
    for role, capabilities in ROLE_DEFAULTS.items():
        for cap in capabilities:
            existing = db.query(RolePermission).filter(
                RolePermission.role == role.value,
                RolePermission.permission == cap.permission,
                RolePermission.resource == cap.resource,
            ).first()

            if not existing:
                db.add(RolePermission(
                    role=role.value,
                    permission=cap.permission,
                    resource=cap.resource,
                    can_create=cap.can_create,
                    can_read=cap.can_read,
                    can_update=cap.can_update,
                    can_delete=cap.can_delete,
                ))
                count += 1

    db.flush()
    if count:
        logger.info("Seeded %d role permission rows", count)
    return count
