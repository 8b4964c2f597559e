"""Family-graph maintenance: detect and repair FamilyGroup defects.

These are operator repair tools, not transactional workflows. Every step
is committed in program order, so a failure part-way leaves the earlier
steps applied. Callers must not wrap them in an outer transaction.
"""

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.db.enums import RelationshipType
from backoffice.db.models import Client, FamilyGroup, FamilyMember, Student
from backoffice.services.errors import BulkResult, NotFoundError, ValidationError, storage_reason
from backoffice.utils.normalization import first_word, normalize_search_text
from backoffice.utils.pagination import PaginationParams, paginate_query


logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class FamilyGroupIssue:
    """A family group flagged for review."""
    group: FamilyGroup
    students: list[Student]
    members: list[FamilyMember]

    @property
    def client_ids(self) -> list[UUID]:
        return [m.client_id for m in self.members]

    @property
    def has_duplicates(self) -> bool:
        return len(set(self.client_ids)) < len(self.client_ids)

    @property
    def duplicate_count(self) -> int:
        return len(self.client_ids) - len(set(self.client_ids))


@dataclass
class SplitPreview:
    group: FamilyGroup
    students: list[Student]
    members_to_delete: int
    new_group_names: list[str]


@dataclass
class ReorganizePreview:
    total_groups: int
    total_members: int
    total_students: int


@dataclass
class ReorganizeResult:
    total_students: int
    results: BulkResult = field(default_factory=BulkResult)

    @property
    def created_groups(self) -> int:
        return self.results.success

    @property
    def errors(self) -> int:
        return self.results.failure


@dataclass
class RestoreResult:
    linked: int = 0
    not_found: int = 0
    skipped: int = 0
    errors: int = 0
    results: BulkResult = field(default_factory=BulkResult)


@dataclass
class FamilyMemberRow:
    member: FamilyMember
    group_name: str
    client_name: str
    students: list[str]


# =============================================================================
# Helpers
# =============================================================================

def _chunks(ids: Sequence[UUID], size: int) -> Iterator[Sequence[UUID]]:
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


def _require_group(db: Session, org_id: UUID, group_id: UUID) -> FamilyGroup:
    group = db.query(FamilyGroup).filter(
        FamilyGroup.id == group_id,
        FamilyGroup.organization_id == org_id,
    ).first()
    if not group:
        raise NotFoundError("Family group not found", group_id=str(group_id))
    return group


def _group_members(db: Session, group_id: UUID) -> list[FamilyMember]:
    """Edges of a group in insertion order."""
    return db.query(FamilyMember).filter(
        FamilyMember.family_group_id == group_id,
    ).order_by(FamilyMember.created_at, FamilyMember.id).all()


def _group_students(db: Session, group_id: UUID) -> list[Student]:
    return db.query(Student).filter(
        Student.family_group_id == group_id,
    ).order_by(Student.created_at, Student.id).all()


def _org_group_ids(org_id: UUID):
    return select(FamilyGroup.id).where(FamilyGroup.organization_id == org_id)


def group_name_for(student_name: str | None, prefix: str | None = None) -> str:
    """Name for a singleton group: prefix + the student's first word."""
    prefix = settings.FAMILY_GROUP_NAME_PREFIX if prefix is None else prefix
    return f"{prefix}{first_word(student_name)}".strip()


def guardian_name_from_group(group_name: str | None, prefix: str | None = None) -> str | None:
    """Strip the group-name prefix to get the guardian's name, if present."""
    prefix = settings.FAMILY_GROUP_NAME_PREFIX if prefix is None else prefix
    if not group_name or not prefix or prefix not in group_name:
        return None
    return group_name.replace(prefix, "", 1).strip() or None


# =============================================================================
# Detection & Deduplication
# =============================================================================

def detect_issues(
    db: Session,
    org_id: UUID,
    max_members: int | None = None,
) -> list[FamilyGroupIssue]:
    """Groups with duplicate client edges or more edges than max_members."""
    max_members = settings.FAMILY_MAX_MEMBERS if max_members is None else max_members

    groups = db.query(FamilyGroup).filter(
        FamilyGroup.organization_id == org_id,
    ).order_by(FamilyGroup.name, FamilyGroup.created_at).all()

    issues: list[FamilyGroupIssue] = []
    for group in groups:
        issue = FamilyGroupIssue(
            group=group,
            students=_group_students(db, group.id),
            members=_group_members(db, group.id),
        )
        if issue.has_duplicates or len(issue.members) > max_members:
            issues.append(issue)
    return issues


def deduplicate_group(db: Session, org_id: UUID, group_id: UUID) -> int:
    """Keep the first edge per client in one group. Returns edges removed."""
    _require_group(db, org_id, group_id)

    seen: set[UUID] = set()
    to_delete: list[UUID] = []
    for member in _group_members(db, group_id):
        if member.client_id in seen:
            to_delete.append(member.id)
        else:
            seen.add(member.client_id)

    if to_delete:
        db.query(FamilyMember).filter(
            FamilyMember.id.in_(to_delete),
        ).delete(synchronize_session=False)
        db.commit()

    logger.info("Deduplicated family group %s: removed %d edges", group_id, len(to_delete))
    return len(to_delete)


def deduplicate_all(db: Session, org_id: UUID, chunk_size: int | None = None) -> int:
    """Keep the first edge per (group, client) across the organization."""
    chunk_size = chunk_size or settings.BULK_DELETE_CHUNK_SIZE

    rows = db.query(
        FamilyMember.id, FamilyMember.family_group_id, FamilyMember.client_id,
    ).filter(
        FamilyMember.family_group_id.in_(_org_group_ids(org_id)),
    ).order_by(FamilyMember.created_at, FamilyMember.id).all()

    seen: set[tuple[UUID, UUID]] = set()
    to_delete: list[UUID] = []
    for row in rows:
        key = (row.family_group_id, row.client_id)
        if key in seen:
            to_delete.append(row.id)
        else:
            seen.add(key)

    for chunk in _chunks(to_delete, chunk_size):
        db.query(FamilyMember).filter(
            FamilyMember.id.in_(list(chunk)),
        ).delete(synchronize_session=False)
        db.commit()

    logger.info(
        "Deduplicated org %s: removed %d of %d edges",
        org_id, len(to_delete), len(rows),
    )
    return len(to_delete)


# =============================================================================
# Split
# =============================================================================

def preview_split(db: Session, org_id: UUID, group_id: UUID) -> SplitPreview:
    """What split_group would do, without writing."""
    group = _require_group(db, org_id, group_id)
    students = _group_students(db, group_id)
    return SplitPreview(
        group=group,
        students=students,
        members_to_delete=len(_group_members(db, group_id)),
        new_group_names=[group_name_for(s.full_name) for s in students],
    )


def split_group(db: Session, org_id: UUID, group_id: UUID) -> int:
    """
    Split a multi-student group into one new group per student.

    Order: create + reassign per student, delete the old edges, delete the
    old group. Returns the number of groups created.

    Raises:
        NotFoundError: group missing
        ValidationError: fewer than two students
    """
    group = _require_group(db, org_id, group_id)
    students = _group_students(db, group_id)
    if len(students) < 2:
        raise ValidationError(
            "A family group needs at least two students to split",
            group_id=str(group_id),
            students=len(students),
        )

    created = 0
    for student in students:
        new_group = FamilyGroup(organization_id=org_id, name=group_name_for(student.full_name))
        db.add(new_group)
        db.flush()
        student.family_group_id = new_group.id
        db.commit()
        created += 1

    db.query(FamilyMember).filter(
        FamilyMember.family_group_id == group_id,
    ).delete(synchronize_session=False)
    db.commit()

    db.delete(group)
    db.commit()

    logger.info("Split family group %s into %d groups", group_id, created)
    return created


# =============================================================================
# Reorganize
# =============================================================================

def preview_reorganize(db: Session, org_id: UUID) -> ReorganizePreview:
    """Scope of reorganize_all, without writing."""
    return ReorganizePreview(
        total_groups=db.query(func.count(FamilyGroup.id)).filter(
            FamilyGroup.organization_id == org_id,
        ).scalar() or 0,
        total_members=db.query(func.count(FamilyMember.id)).filter(
            FamilyMember.family_group_id.in_(_org_group_ids(org_id)),
        ).scalar() or 0,
        total_students=db.query(func.count(Student.id)).filter(
            Student.organization_id == org_id,
        ).scalar() or 0,
    )


def reorganize_all(db: Session, org_id: UUID) -> ReorganizeResult:
    """
    Rebuild the organization's family graph as one group per student.

    Deletes every edge and every group, then creates a singleton group per
    student. Per-student failures are recorded and the loop continues.
    Guardian links are not restored here; run restore_guardian_links next.
    """
    students = [
        (s.id, s.full_name)
        for s in db.query(Student).filter(
            Student.organization_id == org_id,
        ).order_by(Student.created_at, Student.id)
    ]

    removed_members = db.query(FamilyMember).filter(
        FamilyMember.family_group_id.in_(_org_group_ids(org_id)),
    ).delete(synchronize_session=False)
    db.commit()

    db.query(Student).filter(
        Student.organization_id == org_id,
    ).update({Student.family_group_id: None}, synchronize_session=False)
    db.commit()

    removed_groups = db.query(FamilyGroup).filter(
        FamilyGroup.organization_id == org_id,
    ).delete(synchronize_session=False)
    db.commit()

    logger.info(
        "Reorganize org %s: removed %d edges and %d groups",
        org_id, removed_members, removed_groups,
    )

    result = ReorganizeResult(total_students=len(students))
    for student_id, student_name in students:
        try:
            new_group = FamilyGroup(organization_id=org_id, name=group_name_for(student_name))
            db.add(new_group)
            db.flush()
            db.query(Student).filter(Student.id == student_id).update(
                {Student.family_group_id: new_group.id},
                synchronize_session=False,
            )
            db.commit()
            result.results.succeeded(student_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Reorganize failed for student %s: %s", student_id, e)
            result.results.failed(student_id, storage_reason(e))

    logger.info(
        "Reorganize org %s: %d groups created, %d errors, %d students",
        org_id, result.created_groups, result.errors, result.total_students,
    )
    return result


# =============================================================================
# Guardian Restore
# =============================================================================

def _find_client(clients: list[tuple[UUID, str]], guardian_name: str) -> UUID | None:
    """First client whose name contains guardian_name, case-insensitively."""
    needle = normalize_search_text(guardian_name)
    if not needle:
        return None
    for client_id, haystack in clients:
        if needle in haystack:
            return client_id
    return None


def restore_guardian_links(db: Session, org_id: UUID, prefix: str | None = None) -> RestoreResult:
    """
    Re-link guardians to groups that have no edges.

    The guardian name is derived from the group name by stripping the
    prefix; the first client whose name contains it wins. Students whose
    group already has an edge are skipped.
    """
    clients = [
        (c.id, normalize_search_text(c.name) or "")
        for c in db.query(Client).filter(
            Client.organization_id == org_id,
        ).order_by(Client.created_at, Client.name)
    ]

    students = db.query(Student.id, Student.family_group_id, FamilyGroup.name).join(
        FamilyGroup, FamilyGroup.id == Student.family_group_id,
    ).filter(
        Student.organization_id == org_id,
    ).order_by(Student.created_at, Student.id).all()

    result = RestoreResult()
    for student_id, group_id, group_name in students:
        has_edges = db.query(FamilyMember.id).filter(
            FamilyMember.family_group_id == group_id,
        ).first() is not None
        if has_edges:
            result.skipped += 1
            continue

        guardian_name = guardian_name_from_group(group_name, prefix)
        client_id = _find_client(clients, guardian_name) if guardian_name else None
        if client_id is None:
            result.not_found += 1
            result.results.failed(student_id, "No matching client")
            continue

        try:
            db.add(FamilyMember(
                family_group_id=group_id,
                client_id=client_id,
                relationship_type=RelationshipType.MAIN.value,
                is_primary_contact=True,
            ))
            db.commit()
            result.linked += 1
            result.results.succeeded(student_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Guardian restore failed for student %s: %s", student_id, e)
            result.errors += 1
            result.results.failed(student_id, storage_reason(e))

    logger.info(
        "Guardian restore in org %s: %d linked, %d not found, %d skipped, %d errors",
        org_id, result.linked, result.not_found, result.skipped, result.errors,
    )
    return result


# =============================================================================
# Member Listing
# =============================================================================

def list_family_members(
    db: Session,
    org_id: UUID,
    pagination: PaginationParams,
) -> tuple[list[FamilyMemberRow], int]:
    """Page through every edge with its group, client and students."""
    query = db.query(FamilyMember, FamilyGroup.name, Client.name).join(
        FamilyGroup, FamilyGroup.id == FamilyMember.family_group_id,
    ).join(
        Client, Client.id == FamilyMember.client_id,
    ).filter(
        FamilyGroup.organization_id == org_id,
    ).order_by(FamilyGroup.name, FamilyMember.created_at, FamilyMember.id)

    page, total = paginate_query(query, pagination)

    group_ids = {member.family_group_id for member, _, _ in page}
    students_by_group: dict[UUID, list[str]] = {gid: [] for gid in group_ids}
    if group_ids:
        for student in db.query(Student).filter(
            Student.family_group_id.in_(list(group_ids)),
        ).order_by(Student.first_name, Student.last_name):
            students_by_group[student.family_group_id].append(student.full_name)

    rows = [
        FamilyMemberRow(
            member=member,
            group_name=group_name,
            client_name=client_name,
            students=students_by_group.get(member.family_group_id, []),
        )
        for member, group_name, client_name in page
    ]
    return rows, total


def delete_family_member(db: Session, org_id: UUID, member_id: UUID) -> None:
    """Delete one guardian edge."""
    member = db.query(FamilyMember).join(
        FamilyGroup, FamilyGroup.id == FamilyMember.family_group_id,
    ).filter(
        FamilyMember.id == member_id,
        FamilyGroup.organization_id == org_id,
    ).first()
    if not member:
        raise NotFoundError("Family member not found", member_id=str(member_id))

    db.delete(member)
    db.commit()
    logger.info("Deleted family member %s", member_id)
