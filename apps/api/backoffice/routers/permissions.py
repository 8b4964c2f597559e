"""Permissions router - API endpoints for RBAC management.

Endpoints for:
- Listing profiles with roles, assigning and revoking roles
- Viewing effective permissions and managing per-user overrides
- Viewing role capability templates
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backoffice.core.deps import get_db, require_csrf_header, require_permission
from backoffice.core.permissions import PERMISSION_REGISTRY, get_all_permissions
from backoffice.db.enums import AdminSection, Role
from backoffice.schemas.auth import UserSession
from backoffice.services import permission_service, profile_service, role_service


router = APIRouter(prefix="/settings", tags=["Permissions"])


# =============================================================================
# Schemas
# =============================================================================

class PermissionInfo(BaseModel):
    """Permission metadata for UI."""
    key: str
    label: str
    category: str


class ProfileRolesRead(BaseModel):
    """Profile with its roles."""
    id: UUID
    full_name: str
    email: str | None
    branch: str | None
    is_active: bool
    roles: list[str]


class RoleAssign(BaseModel):
    role: str


class RoleChangeResponse(BaseModel):
    profile_id: UUID
    role: str
    changed: bool
    roles: list[str]


class OverrideRead(BaseModel):
    """User permission override."""
    permission: str
    is_granted: bool
    label: str
    category: str


class OverrideUpdate(BaseModel):
    """is_granted=None removes the override."""
    permission: str
    is_granted: bool | None


class EffectivePermissions(BaseModel):
    profile_id: UUID
    roles: list[str]
    permissions: list[str]
    overrides: list[OverrideRead]


class CapabilityRead(BaseModel):
    key: str
    can_create: bool
    can_read: bool
    can_update: bool
    can_delete: bool


class RoleSummary(BaseModel):
    role: str
    capabilities: list[CapabilityRead]
    admin_sections: list[str]


def _override_to_read(override) -> OverrideRead:
    definition = PERMISSION_REGISTRY.get(override.permission_key)
    return OverrideRead(
        permission=override.permission_key,
        is_granted=override.is_granted,
        label=definition.label if definition else override.permission_key,
        category=definition.category.value if definition else "Unknown",
    )


def _effective(db: Session, profile_id: UUID) -> EffectivePermissions:
    return EffectivePermissions(
        profile_id=profile_id,
        roles=role_service.list_roles(db, profile_id),
        permissions=sorted(permission_service.get_effective_permissions(db, profile_id)),
        overrides=[_override_to_read(o) for o in permission_service.get_user_overrides(db, profile_id)],
    )


# =============================================================================
# Available Permissions & Roles
# =============================================================================

@router.get("/permissions/available", response_model=list[PermissionInfo])
def list_available_permissions(
    session: UserSession = Depends(require_permission("manage", "permissions")),
):
    """List all available permissions with metadata."""
    return [
        PermissionInfo(key=p.key, label=p.label, category=p.category.value)
        for p in get_all_permissions()
    ]


@router.get("/roles", response_model=list[RoleSummary])
def list_role_templates(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "roles")),
):
    """Every role with its capability rows and visible admin sections."""
    summaries = []
    for role in Role:
        capabilities = permission_service.role_capabilities(db, role)
        summaries.append(RoleSummary(
            role=role.value,
            capabilities=[
                CapabilityRead(
                    key=c.key,
                    can_create=c.can_create,
                    can_read=c.can_read,
                    can_update=c.can_update,
                    can_delete=c.can_delete,
                )
                for c in capabilities
            ],
            admin_sections=[
                s.value for s in AdminSection
                if permission_service.can_access_admin_section([role], s.value)
            ],
        ))
    return summaries


# =============================================================================
# Profiles & Roles
# =============================================================================

@router.get("/profiles", response_model=list[ProfileRolesRead])
def list_profiles(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "roles")),
):
    rows = role_service.list_profiles_with_roles(db, session.org_id, include_inactive=include_inactive)
    return [
        ProfileRolesRead(
            id=p.id,
            full_name=p.full_name,
            email=p.email,
            branch=p.branch,
            is_active=p.is_active,
            roles=roles,
        )
        for p, roles in rows
    ]


@router.post(
    "/profiles/{profile_id}/roles",
    response_model=RoleChangeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def assign_role(
    profile_id: UUID,
    body: RoleAssign,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "roles")),
):
    changed = role_service.assign_role(
        db, session.org_id, profile_id, body.role, actor_profile_id=session.profile_id,
    )
    db.commit()
    return RoleChangeResponse(
        profile_id=profile_id,
        role=body.role,
        changed=changed,
        roles=role_service.list_roles(db, profile_id),
    )


@router.delete(
    "/profiles/{profile_id}/roles/{role}",
    response_model=RoleChangeResponse,
    dependencies=[Depends(require_csrf_header)],
)
def revoke_role(
    profile_id: UUID,
    role: str,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "roles")),
):
    changed = role_service.revoke_role(
        db, session.org_id, profile_id, role, actor_profile_id=session.profile_id,
    )
    db.commit()
    return RoleChangeResponse(
        profile_id=profile_id,
        role=role,
        changed=changed,
        roles=role_service.list_roles(db, profile_id),
    )


@router.post(
    "/profiles/{profile_id}/deactivate",
    response_model=ProfileRolesRead,
    dependencies=[Depends(require_csrf_header)],
)
def deactivate_profile(
    profile_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "users")),
):
    profile = profile_service.deactivate_profile(db, session.org_id, profile_id)
    db.commit()
    return ProfileRolesRead(
        id=profile.id,
        full_name=profile.full_name,
        email=profile.email,
        branch=profile.branch,
        is_active=profile.is_active,
        roles=role_service.list_roles(db, profile.id),
    )


# =============================================================================
# Effective Permissions & Overrides
# =============================================================================

@router.get("/permissions/effective/{profile_id}", response_model=EffectivePermissions)
def get_effective_permissions(
    profile_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "permissions")),
):
    profile_service.require_profile(db, session.org_id, profile_id)
    return _effective(db, profile_id)


@router.put(
    "/permissions/profiles/{profile_id}/overrides",
    response_model=EffectivePermissions,
    dependencies=[Depends(require_csrf_header)],
)
def set_override(
    profile_id: UUID,
    body: OverrideUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "permissions")),
):
    """Grant, revoke or clear a single permission for one profile."""
    permission_service.set_user_override(
        db,
        org_id=session.org_id,
        target_profile_id=profile_id,
        actor_profile_id=session.profile_id,
        key=body.permission,
        is_granted=body.is_granted,
    )
    db.commit()
    return _effective(db, profile_id)
