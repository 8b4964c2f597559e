"""Teacher ↔ profile reconciliation.

Matching is exact: case-insensitive email first, then normalized phone.
No fuzzy matching. The first candidate in input order wins.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.db.enums import MatchReason, Role
from backoffice.db.models import Profile, Teacher, TeacherInvitation
from backoffice.services import (
    invitation_service,
    profile_service,
    role_service,
    teacher_service,
)
from backoffice.services.errors import BackofficeError, BulkResult, ConflictError, storage_reason
from backoffice.services.teacher_service import TeacherInput
from backoffice.utils.normalization import normalize_email, normalize_phone


logger = logging.getLogger(__name__)


class HasContact(Protocol):
    email: str | None
    phone: str | None


@dataclass
class MatchResult:
    profile: Profile | None = None
    reason: MatchReason | None = None

    @property
    def matched(self) -> bool:
        return self.profile is not None


@dataclass
class LinkSuggestion:
    teacher: Teacher
    profile: Profile
    reason: MatchReason


@dataclass
class AutoLinkResult:
    teacher: Teacher
    linked: bool
    match: MatchResult
    invitation: TeacherInvitation | None = None


@dataclass
class ImportRowResult:
    """Outcome for one row of a teacher import (rows are numbered from 1)."""
    row: int
    ok: bool
    teacher_id: UUID | None = None
    linked: bool = False
    match_reason: MatchReason | None = None
    invite_token: str | None = None
    error: str | None = None


@dataclass
class TeacherImportResult:
    rows: list[ImportRowResult] = field(default_factory=list)

    @property
    def linked(self) -> int:
        return sum(1 for r in self.rows if r.ok and r.linked)

    @property
    def invited(self) -> int:
        return sum(1 for r in self.rows if r.ok and not r.linked)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.rows if not r.ok)


# =============================================================================
# Matching
# =============================================================================

def find_match(teacher: HasContact, candidates: Sequence[Profile]) -> MatchResult:
    """
    Match a teacher to a profile by contact data.

    1. Email, case-insensitive exact
    2. Normalized phone equality (only if email found nothing)

    Pure and deterministic for a given candidate order.
    """
    email = normalize_email(teacher.email)
    if email:
        for profile in candidates:
            if normalize_email(profile.email) == email:
                return MatchResult(profile=profile, reason=MatchReason.EMAIL)

    phone = normalize_phone(teacher.phone)
    if phone:
        for profile in candidates:
            if normalize_phone(profile.phone) == phone:
                return MatchResult(profile=profile, reason=MatchReason.PHONE)

    return MatchResult()


def load_candidate_profiles(db: Session, org_id: UUID) -> list[Profile]:
    """Active profiles not yet linked to any teacher, oldest first."""
    linked = {
        row.profile_id for row in db.query(Teacher.profile_id).filter(
            Teacher.organization_id == org_id,
            Teacher.profile_id.is_not(None),
        )
    }
    return [p for p in profile_service.list_profiles(db, org_id) if p.id not in linked]


# =============================================================================
# Linking
# =============================================================================

def apply_link(db: Session, org_id: UUID, teacher_id: UUID, profile_id: UUID) -> Teacher:
    """
    Link a teacher to a profile. Idempotent. Roles are not touched.

    Raises:
        NotFoundError: teacher or profile missing in the organization
        ConflictError: profile already linked to a different teacher
    """
    teacher = teacher_service.require_teacher(db, org_id, teacher_id)
    profile_service.require_profile(db, org_id, profile_id)

    if teacher.profile_id == profile_id:
        return teacher

    other = teacher_service.find_teacher_by_profile(db, profile_id)
    if other is not None and other.id != teacher.id:
        raise ConflictError(
            "Profile is already linked to another teacher",
            profile_id=str(profile_id),
            teacher_id=str(other.id),
        )

    teacher.profile_id = profile_id
    db.flush()

    logger.info("Linked teacher %s to profile %s", teacher_id, profile_id)
    return teacher


def create_teacher_with_auto_link(
    db: Session,
    org_id: UUID,
    data: TeacherInput,
    created_by: UUID | None,
) -> AutoLinkResult:
    """
    Create a teacher, linking it to a matching profile when one exists.

    Linked: the profile also receives the teacher role.
    Unlinked: a pending invitation is created instead.
    """
    teacher = teacher_service.build_teacher(org_id, data)
    match = find_match(teacher, load_candidate_profiles(db, org_id))

    if match.matched:
        teacher.profile_id = match.profile.id
    db.add(teacher)
    db.flush()

    if match.matched:
        role_service.assign_role(db, org_id, match.profile.id, Role.TEACHER)
        logger.info(
            "Created teacher %s auto-linked to profile %s by %s",
            teacher.id, match.profile.id, match.reason.value,
        )
        return AutoLinkResult(teacher=teacher, linked=True, match=match)

    invitation = invitation_service.create_invitation(db, teacher, created_by)
    logger.info("Created unlinked teacher %s with invitation %s", teacher.id, invitation.id)
    return AutoLinkResult(teacher=teacher, linked=False, match=match, invitation=invitation)


def suggest_links(db: Session, org_id: UUID) -> list[LinkSuggestion]:
    """Match every active unlinked teacher against the candidate profiles."""
    teachers = teacher_service.list_teachers(db, org_id, unlinked_only=True)
    candidates = load_candidate_profiles(db, org_id)

    suggestions: list[LinkSuggestion] = []
    for teacher in teachers:
        match = find_match(teacher, candidates)
        if match.matched:
            suggestions.append(LinkSuggestion(
                teacher=teacher,
                profile=match.profile,
                reason=match.reason,
            ))
    return suggestions


def bulk_link(
    db: Session,
    org_id: UUID,
    teacher_ids: Iterable[UUID] | None = None,
) -> BulkResult:
    """
    Link every suggested teacher (or the selected subset).

    Each link is committed on its own; one failure never aborts the rest.
    Selected teachers without a suggestion are reported as failures.
    """
    suggestions = {s.teacher.id: s.profile.id for s in suggest_links(db, org_id)}
    selected = list(teacher_ids) if teacher_ids is not None else list(suggestions)

    results = BulkResult()
    for teacher_id in selected:
        profile_id = suggestions.get(teacher_id)
        if profile_id is None:
            results.failed(teacher_id, "No matching profile")
            continue
        try:
            apply_link(db, org_id, teacher_id, profile_id)
            db.commit()
            results.succeeded(teacher_id)
        except BackofficeError as e:
            db.rollback()
            logger.warning("Bulk link failed for teacher %s: %s", teacher_id, e.message)
            results.failed(teacher_id, e.message)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Bulk link failed for teacher %s: %s", teacher_id, e)
            results.failed(teacher_id, storage_reason(e))

    logger.info(
        "Bulk link in org %s: %d linked, %d failed",
        org_id, results.success, results.failure,
    )
    return results


def bulk_create_teachers(
    db: Session,
    org_id: UUID,
    rows: Sequence[TeacherInput],
    created_by: UUID | None,
) -> TeacherImportResult:
    """
    Import teachers row by row through create_teacher_with_auto_link.

    Every row is committed on its own, so a later row sees profiles linked
    by an earlier one. A failing row is rolled back and reported; the
    import continues.
    """
    result = TeacherImportResult()
    for index, data in enumerate(rows, start=1):
        try:
            created = create_teacher_with_auto_link(db, org_id, data, created_by)
            db.commit()
        except BackofficeError as e:
            db.rollback()
            logger.warning("Teacher import row %d failed: %s", index, e.message)
            result.rows.append(ImportRowResult(row=index, ok=False, error=e.message))
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Teacher import row %d failed: %s", index, e)
            result.rows.append(ImportRowResult(row=index, ok=False, error=storage_reason(e)))
            continue

        result.rows.append(ImportRowResult(
            row=index,
            ok=True,
            teacher_id=created.teacher.id,
            linked=created.linked,
            match_reason=created.match.reason,
            invite_token=created.invitation.invite_token if created.invitation else None,
        ))

    logger.info(
        "Teacher import in org %s: %d linked, %d invited, %d failed",
        org_id, result.linked, result.invited, result.failed,
    )
    return result
