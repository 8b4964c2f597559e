"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from backoffice.core.security import decode_session_token
from backoffice.db.enums import AdminSection, Role
from backoffice.db.session import SessionLocal
from backoffice.schemas.auth import UserSession
from backoffice.services import auth_service, permission_service, role_service


# Cookie and header names
COOKIE_NAME = "backoffice_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_session(
    request: Request,
    db: Session = Depends(get_db)
) -> UserSession:
    """
    Get full session context: profile_id, org_id, roles.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        HTTPException 401: Not authenticated, invalid token, or profile inactive
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        profile_id = UUID(payload["sub"])
        org_id = UUID(payload["org_id"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    profile = auth_service.resolve_session_profile(db, org_id, profile_id)
    if not profile:
        raise HTTPException(status_code=401, detail="Account disabled")

    return UserSession(
        profile_id=profile.id,
        org_id=profile.organization_id,
        # Unknown legacy labels grant nothing
        roles=[r for r in role_service.list_roles(db, profile.id) if Role.has_value(r)],
        email=profile.email,
        display_name=profile.full_name or (profile.email or ""),
    )


def require_permission(verb: str, resource: str):
    """
    Dependency factory for permission-based authorization.

    Usage:
        @router.post("/teachers", dependencies=[Depends(require_permission("manage", "teachers"))])
    """
    # Fail at import time on typos
    permission_service.validate_permission_key(f"{verb}:{resource}")

    def dependency(
        session: UserSession = Depends(get_current_session),
        db: Session = Depends(get_db),
    ) -> UserSession:
        if not permission_service.has_permission(db, session.profile_id, verb, resource):
            raise HTTPException(
                status_code=403,
                detail=f"Missing permission '{verb}:{resource}'"
            )
        return session
    return dependency


def require_admin_section(section_id: str):
    """Dependency factory gating an endpoint by admin-section access."""
    section = AdminSection(section_id)

    def dependency(session: UserSession = Depends(get_current_session)) -> UserSession:
        if not permission_service.can_access_admin_section(session.roles, section.value):
            raise HTTPException(
                status_code=403,
                detail=f"No access to admin section '{section_id}'"
            )
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, PUT, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
