"""Teacher invitation lifecycle and onboarding completion.

Stored status is pending, accepted or cancelled. "expired" is derived from
token_expires_at and never written.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.security import generate_invite_token, hash_password
from backoffice.db.enums import InvitationStatus, Role
from backoffice.db.models import Profile, Teacher, TeacherInvitation
from backoffice.services import profile_service, role_service, teacher_service
from backoffice.services.errors import (
    AlreadyUsedError,
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from backoffice.utils.datetime_utils import as_utc, utcnow
from backoffice.utils.normalization import normalize_email, normalize_name


logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,64}$")


@dataclass
class OnboardingDetails:
    """What the invited teacher submits on the onboarding page."""
    email: str
    password: str
    last_name: str
    terms_accepted: bool
    middle_name: str | None = None


@dataclass
class OnboardingResult:
    profile_id: UUID
    teacher_id: UUID
    existing_profile: bool


def get_invitation_status(
    invitation: TeacherInvitation,
    now: datetime | None = None,
) -> InvitationStatus:
    """Derive invitation status from fields."""
    if invitation.status != InvitationStatus.PENDING.value:
        return InvitationStatus(invitation.status)
    now = now or utcnow()
    if as_utc(invitation.token_expires_at) <= now:
        return InvitationStatus.EXPIRED
    return InvitationStatus.PENDING


def _expiry() -> datetime:
    return utcnow() + timedelta(days=settings.TEACHER_INVITE_EXPIRY_DAYS)


# =============================================================================
# Admin Operations
# =============================================================================

def create_invitation(
    db: Session,
    teacher: Teacher,
    created_by: UUID | None,
) -> TeacherInvitation:
    """Create a pending invitation carrying the teacher's contact data."""
    if teacher.is_linked:
        raise ConflictError("Teacher is already linked to a profile", teacher_id=str(teacher.id))

    invitation = TeacherInvitation(
        organization_id=teacher.organization_id,
        teacher_id=teacher.id,
        invite_token=generate_invite_token(),
        first_name=teacher.first_name,
        last_name=teacher.last_name,
        email=teacher.email,
        phone=teacher.phone,
        branch=teacher.branch,
        status=InvitationStatus.PENDING.value,
        token_expires_at=_expiry(),
        created_by=created_by,
    )
    db.add(invitation)
    db.flush()

    logger.info("Created invitation %s for teacher %s", invitation.id, teacher.id)
    return invitation


def get_invitation(db: Session, org_id: UUID, invitation_id: UUID) -> TeacherInvitation | None:
    return db.query(TeacherInvitation).filter(
        TeacherInvitation.id == invitation_id,
        TeacherInvitation.organization_id == org_id,
    ).first()


def require_invitation(db: Session, org_id: UUID, invitation_id: UUID) -> TeacherInvitation:
    invitation = get_invitation(db, org_id, invitation_id)
    if not invitation:
        raise NotFoundError("Invitation not found", invitation_id=str(invitation_id))
    return invitation


def list_invitations(
    db: Session,
    org_id: UUID,
    status: InvitationStatus | None = None,
) -> list[TeacherInvitation]:
    """List invitations newest first, optionally filtered by derived status."""
    invitations = db.query(TeacherInvitation).filter(
        TeacherInvitation.organization_id == org_id,
    ).order_by(TeacherInvitation.created_at.desc()).all()

    if status is None:
        return invitations

    now = utcnow()
    return [inv for inv in invitations if get_invitation_status(inv, now) == status]


def count_by_status(db: Session, org_id: UUID) -> dict[str, int]:
    """Counts per derived status (for the invitations list header)."""
    counts = {s.value: 0 for s in InvitationStatus}
    now = utcnow()
    for inv in list_invitations(db, org_id):
        counts[get_invitation_status(inv, now).value] += 1
    return counts


def cancel_invitation(db: Session, org_id: UUID, invitation_id: UUID) -> TeacherInvitation:
    """Cancel a pending (or expired) invitation."""
    invitation = require_invitation(db, org_id, invitation_id)

    if invitation.status != InvitationStatus.PENDING.value:
        raise ConflictError(
            f"Cannot cancel an invitation that is {invitation.status}",
            invitation_id=str(invitation_id),
        )

    invitation.status = InvitationStatus.CANCELLED.value
    db.flush()

    logger.info("Cancelled invitation %s", invitation_id)
    return invitation


def resend_invitation(db: Session, org_id: UUID, invitation_id: UUID) -> TeacherInvitation:
    """Issue a fresh token and expiry. The old token stops working."""
    invitation = require_invitation(db, org_id, invitation_id)

    if invitation.status != InvitationStatus.PENDING.value:
        raise ConflictError(
            f"Cannot resend an invitation that is {invitation.status}",
            invitation_id=str(invitation_id),
        )

    invitation.invite_token = generate_invite_token()
    invitation.token_expires_at = _expiry()
    db.flush()

    logger.info("Resent invitation %s", invitation_id)
    return invitation


# =============================================================================
# Public Onboarding
# =============================================================================

def get_invitation_by_token(db: Session, token: str) -> TeacherInvitation:
    """
    Resolve a token for the public onboarding page.

    Raises:
        InvalidTokenError: malformed or expired token
        NotFoundError: unknown token
        AlreadyUsedError: invitation accepted or cancelled
    """
    if not token or not TOKEN_PATTERN.match(token):
        raise InvalidTokenError("Malformed invitation token")

    invitation = db.query(TeacherInvitation).filter(
        TeacherInvitation.invite_token == token,
    ).first()
    if not invitation:
        raise NotFoundError("Invitation not found")

    status = get_invitation_status(invitation)
    if status in (InvitationStatus.ACCEPTED, InvitationStatus.CANCELLED):
        raise AlreadyUsedError(
            f"Invitation already {status.value}",
            invitation_id=str(invitation.id),
        )
    if status == InvitationStatus.EXPIRED:
        raise InvalidTokenError("Invitation has expired", invitation_id=str(invitation.id))

    return invitation


def _validate_details(details: OnboardingDetails) -> tuple[str, str]:
    email = normalize_email(details.email)
    last_name = normalize_name(details.last_name)
    if not email or not details.password or not last_name:
        raise ValidationError("email, password and last_name are required")
    if not details.terms_accepted:
        raise ValidationError("Terms must be accepted")
    return email, last_name


def complete_invitation(db: Session, token: str, details: OnboardingDetails) -> OnboardingResult:
    """
    Turn a pending invitation into a linked teacher account.

    Reuses an existing profile with the same email (refreshing its contact
    data), otherwise creates one. Then grants the teacher role, links the
    teacher and marks the invitation accepted. Everything is flushed in the
    caller's transaction; the caller commits once.
    """
    invitation = get_invitation_by_token(db, token)
    email, last_name = _validate_details(details)
    org_id = invitation.organization_id

    teacher = teacher_service.require_teacher(db, org_id, invitation.teacher_id)

    profile = profile_service.find_profile_by_email(db, org_id, email)
    existing_profile = profile is not None
    if existing_profile and not profile.is_active:
        raise ConflictError("Profile is deactivated", profile_id=str(profile.id))
    if profile is None:
        profile = Profile(
            organization_id=org_id,
            email=email,
            password_hash=hash_password(details.password),
        )
        db.add(profile)
    elif not profile.password_hash:
        profile.password_hash = hash_password(details.password)

    profile.first_name = invitation.first_name
    profile.last_name = last_name
    profile.middle_name = normalize_name(details.middle_name) or profile.middle_name
    profile.email = email
    profile.phone = invitation.phone or profile.phone
    profile.branch = invitation.branch or profile.branch
    db.flush()

    other = teacher_service.find_teacher_by_profile(db, profile.id)
    if other is not None and other.id != teacher.id:
        raise ConflictError(
            "Profile is already linked to another teacher",
            profile_id=str(profile.id),
            teacher_id=str(other.id),
        )

    role_service.assign_role(db, org_id, profile.id, Role.TEACHER)

    teacher.profile_id = profile.id
    teacher.last_name = last_name
    teacher.email = email

    now = utcnow()
    invitation.status = InvitationStatus.ACCEPTED.value
    invitation.profile_id = profile.id
    invitation.last_name = last_name
    invitation.email = email
    invitation.accepted_at = now
    invitation.terms_accepted_at = now
    db.flush()

    logger.info(
        "Invitation %s accepted: teacher %s linked to profile %s (existing=%s)",
        invitation.id, teacher.id, profile.id, existing_profile,
    )
    return OnboardingResult(
        profile_id=profile.id,
        teacher_id=teacher.id,
        existing_profile=existing_profile,
    )
