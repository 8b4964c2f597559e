"""Teacher record CRUD."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backoffice.db.models import Teacher
from backoffice.services.errors import NotFoundError, ValidationError
from backoffice.utils.normalization import normalize_email, normalize_name, normalize_phone


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "first_name", "last_name", "email", "phone", "branch",
    "subjects", "categories", "is_active",
})


@dataclass
class TeacherInput:
    """Contact and teaching data for a new teacher."""
    first_name: str
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    branch: str | None = None
    subjects: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)


def get_teacher(db: Session, org_id: UUID, teacher_id: UUID) -> Teacher | None:
    """Get teacher scoped to an organization."""
    return db.query(Teacher).filter(
        Teacher.id == teacher_id,
        Teacher.organization_id == org_id,
    ).first()


def require_teacher(db: Session, org_id: UUID, teacher_id: UUID) -> Teacher:
    teacher = get_teacher(db, org_id, teacher_id)
    if not teacher:
        raise NotFoundError("Teacher not found", teacher_id=str(teacher_id))
    return teacher


def find_teacher_by_profile(db: Session, profile_id: UUID) -> Teacher | None:
    return db.query(Teacher).filter(Teacher.profile_id == profile_id).first()


def list_teachers(
    db: Session,
    org_id: UUID,
    include_inactive: bool = False,
    unlinked_only: bool = False,
    branch: str | None = None,
    q: str | None = None,
) -> list[Teacher]:
    """List teachers with optional filters."""
    query = db.query(Teacher).filter(Teacher.organization_id == org_id)

    if not include_inactive:
        query = query.filter(Teacher.is_active.is_(True))
    if unlinked_only:
        query = query.filter(Teacher.profile_id.is_(None))
    if branch:
        query = query.filter(Teacher.branch == branch)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(
            Teacher.first_name.ilike(pattern),
            Teacher.last_name.ilike(pattern),
            Teacher.email.ilike(pattern),
        ))

    return query.order_by(Teacher.last_name, Teacher.first_name, Teacher.created_at).all()


def _clean_tags(values: Iterable[str] | None) -> list[str]:
    """Trimmed, non-empty, de-duplicated labels in input order."""
    tags: list[str] = []
    for value in values or ():
        tag = normalize_name(value)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def build_teacher(org_id: UUID, data: TeacherInput, profile_id: UUID | None = None) -> Teacher:
    """Validate input and build an unsaved Teacher."""
    first_name = normalize_name(data.first_name)
    if not first_name:
        raise ValidationError("first_name is required")

    return Teacher(
        organization_id=org_id,
        profile_id=profile_id,
        first_name=first_name,
        last_name=normalize_name(data.last_name),
        email=normalize_email(data.email),
        phone=normalize_phone(data.phone),
        branch=normalize_name(data.branch),
        subjects=_clean_tags(data.subjects),
        categories=_clean_tags(data.categories),
    )


def deactivate_teacher(db: Session, org_id: UUID, teacher_id: UUID) -> Teacher:
    """Soft-deactivate a teacher. Idempotent."""
    teacher = require_teacher(db, org_id, teacher_id)
    if teacher.is_active:
        teacher.is_active = False
        db.flush()
        logger.info("Deactivated teacher %s in org %s", teacher_id, org_id)
    return teacher


def update_teacher(db: Session, org_id: UUID, teacher_id: UUID, changes: dict[str, Any]) -> Teacher:
    """
    Apply a partial update to a teacher.

    Contact fields are normalized the same way as on creation. Setting
    is_active back to True reactivates a deactivated teacher. The profile
    link is not editable here; use reconciliation for that.

    Raises:
        NotFoundError: teacher missing in the organization
        ValidationError: unknown field or empty first_name
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    teacher = require_teacher(db, org_id, teacher_id)

    cleaned: dict[str, Any] = {}
    for name, value in changes.items():
        if name == "first_name":
            value = normalize_name(value)
            if not value:
                raise ValidationError("first_name cannot be empty")
        elif name in ("last_name", "branch"):
            value = normalize_name(value)
        elif name == "email":
            value = normalize_email(value)
        elif name == "phone":
            value = normalize_phone(value)
        elif name in ("subjects", "categories"):
            value = _clean_tags(value)
        elif name == "is_active":
            if value is None:
                raise ValidationError("is_active cannot be null")
            value = bool(value)
        cleaned[name] = value

    for name, value in cleaned.items():
        setattr(teacher, name, value)
    db.flush()

    logger.info("Updated teacher %s: %s", teacher_id, ", ".join(sorted(changes)))
    return teacher
