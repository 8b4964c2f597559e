"""Teacher invitation endpoints: admin list/cancel/resend and public onboarding."""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.deps import get_db, require_csrf_header, require_permission
from backoffice.db.enums import InvitationStatus
from backoffice.schemas.auth import UserSession
from backoffice.services import invitation_service
from backoffice.services.invitation_service import OnboardingDetails
from backoffice.utils.datetime_utils import as_utc


router = APIRouter(prefix="/teacher-invitations", tags=["invitations"])

# No auth: the token is the credential
public_router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# =============================================================================
# Schemas
# =============================================================================

class InvitationRead(BaseModel):
    id: UUID
    teacher_id: UUID
    first_name: str
    last_name: str | None
    email: str | None
    phone: str | None
    branch: str | None
    status: str
    token_expires_at: str
    invite_link: str | None
    profile_id: UUID | None
    accepted_at: str | None
    created_at: str


class InvitationListResponse(BaseModel):
    invitations: list[InvitationRead]
    counts: dict[str, int]


class OnboardingInfo(BaseModel):
    """What the public onboarding page shows before the form."""
    first_name: str
    last_name: str | None
    email: str | None
    branch: str | None
    token_expires_at: str


class OnboardingComplete(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    last_name: str = Field(min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    terms_accepted: bool = False


class OnboardingCompleteResponse(BaseModel):
    profile_id: UUID
    teacher_id: UUID
    existing_profile: bool


def _invitation_to_read(invitation) -> InvitationRead:
    status = invitation_service.get_invitation_status(invitation)
    return InvitationRead(
        id=invitation.id,
        teacher_id=invitation.teacher_id,
        first_name=invitation.first_name,
        last_name=invitation.last_name,
        email=invitation.email,
        phone=invitation.phone,
        branch=invitation.branch,
        status=status.value,
        token_expires_at=as_utc(invitation.token_expires_at).isoformat(),
        # Only live invitations expose a usable link
        invite_link=settings.invite_link(invitation.invite_token)
        if status == InvitationStatus.PENDING else None,
        profile_id=invitation.profile_id,
        accepted_at=as_utc(invitation.accepted_at).isoformat() if invitation.accepted_at else None,
        created_at=as_utc(invitation.created_at).isoformat(),
    )


# =============================================================================
# Admin Endpoints
# =============================================================================

@router.get("", response_model=InvitationListResponse)
def list_invitations(
    status: InvitationStatus | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """List invitations, optionally filtered by (derived) status."""
    invitations = invitation_service.list_invitations(db, session.org_id, status=status)
    return InvitationListResponse(
        invitations=[_invitation_to_read(inv) for inv in invitations],
        counts=invitation_service.count_by_status(db, session.org_id),
    )


@router.post("/{invitation_id}/cancel", response_model=InvitationRead, dependencies=[Depends(require_csrf_header)])
def cancel_invitation(
    invitation_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    invitation = invitation_service.cancel_invitation(db, session.org_id, invitation_id)
    db.commit()
    return _invitation_to_read(invitation)


@router.post("/{invitation_id}/resend", response_model=InvitationRead, dependencies=[Depends(require_csrf_header)])
def resend_invitation(
    invitation_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """Rotate the token and extend expiry. The previous link stops working."""
    invitation = invitation_service.resend_invitation(db, session.org_id, invitation_id)
    db.commit()
    return _invitation_to_read(invitation)


# =============================================================================
# Public Onboarding
# =============================================================================

@public_router.get("/{token}", response_model=OnboardingInfo)
def get_onboarding(token: str, db: Session = Depends(get_db)):
    invitation = invitation_service.get_invitation_by_token(db, token)
    return OnboardingInfo(
        first_name=invitation.first_name,
        last_name=invitation.last_name,
        email=invitation.email,
        branch=invitation.branch,
        token_expires_at=as_utc(invitation.token_expires_at).isoformat(),
    )


@public_router.post(
    "/{token}/complete",
    response_model=OnboardingCompleteResponse,
    dependencies=[Depends(require_csrf_header)],
)
def complete_onboarding(
    token: str,
    body: OnboardingComplete,
    db: Session = Depends(get_db),
):
    """Create or reuse the profile, grant the teacher role and link the teacher."""
    result = invitation_service.complete_invitation(
        db,
        token,
        OnboardingDetails(
            email=body.email,
            password=body.password,
            last_name=body.last_name,
            middle_name=body.middle_name,
            terms_accepted=body.terms_accepted,
        ),
    )
    db.commit()
    return OnboardingCompleteResponse(
        profile_id=result.profile_id,
        teacher_id=result.teacher_id,
        existing_profile=result.existing_profile,
    )
