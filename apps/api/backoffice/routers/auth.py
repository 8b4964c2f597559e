"""Authentication endpoints: password login, logout, current session."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.deps import COOKIE_NAME, get_current_session, get_db, require_csrf_header
from backoffice.core.security import create_session_token
from backoffice.db.enums import AdminSection
from backoffice.schemas.auth import LoginRequest, MeResponse, UserSession
from backoffice.services import auth_service, permission_service


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", dependencies=[Depends(require_csrf_header)])
def login(
    body: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Exchange email + password for a session cookie."""
    profile = auth_service.authenticate(db, body.org_slug, body.email, body.password)
    if not profile:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    response.set_cookie(
        key=COOKIE_NAME,
        value=create_session_token(profile.id, profile.organization_id),
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return {"status": "logged_in", "profile_id": str(profile.id)}


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/me", response_model=MeResponse)
def get_me(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Current profile with roles, effective permissions and visible admin sections."""
    permissions = permission_service.get_effective_permissions(db, session.profile_id)
    sections = [
        s.value for s in AdminSection
        if permission_service.can_access_admin_section(session.roles, s.value)
    ]
    return MeResponse(
        profile_id=session.profile_id,
        org_id=session.org_id,
        email=session.email,
        display_name=session.display_name,
        roles=session.roles,
        permissions=sorted(permissions),
        admin_sections=sections,
    )
