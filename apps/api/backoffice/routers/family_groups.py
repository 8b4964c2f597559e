"""Family-graph maintenance endpoints.

Destructive bulk operations (split, reorganize) refuse to run unless the
request body carries confirm=true. Fetch the matching preview first.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backoffice.core.deps import (
    get_current_session,
    get_db,
    require_admin_section,
    require_csrf_header,
    require_permission,
)
from backoffice.schemas.auth import UserSession
from backoffice.services import family_service
from backoffice.services.errors import ValidationError
from backoffice.utils.pagination import PaginatedResponse, PaginationParams, get_pagination


router = APIRouter(
    prefix="/family-groups",
    tags=["family-groups"],
    dependencies=[Depends(require_permission("manage", "family_groups"))],
)


# =============================================================================
# Schemas
# =============================================================================

class StudentRead(BaseModel):
    id: UUID
    full_name: str


class MemberRead(BaseModel):
    id: UUID
    client_id: UUID
    relationship_type: str
    is_primary_contact: bool


class IssueRead(BaseModel):
    group_id: UUID
    group_name: str
    students: list[StudentRead]
    members: list[MemberRead]
    members_count: int
    has_duplicates: bool
    duplicate_count: int


class RemovedResponse(BaseModel):
    removed: int


class Confirmation(BaseModel):
    confirm: bool = False


class ReorganizeRequest(Confirmation):
    restore_links: bool = True


class SplitPreviewRead(BaseModel):
    group_id: UUID
    group_name: str
    students: list[StudentRead]
    members_to_delete: int
    new_group_names: list[str]


class SplitResponse(BaseModel):
    created_groups: int


class ReorganizePreviewRead(BaseModel):
    total_groups: int
    total_members: int
    total_students: int


class RestoreRead(BaseModel):
    linked: int
    not_found: int
    skipped: int
    errors: int


class ReorganizeResponse(BaseModel):
    created_groups: int
    total_students: int
    errors: int
    failures: dict[str, str]
    restore: RestoreRead | None


class FamilyMemberRowRead(BaseModel):
    id: UUID
    family_group_id: UUID
    group_name: str
    client_id: UUID
    client_name: str
    relationship_type: str
    is_primary_contact: bool
    students: list[str]


class FamilyMemberPage(BaseModel):
    items: list[FamilyMemberRowRead]
    total: int
    page: int
    per_page: int
    pages: int


def _require_confirmation(body: Confirmation) -> None:
    if not body.confirm:
        raise ValidationError("Destructive operation requires confirm=true")


def _students(students) -> list[StudentRead]:
    return [StudentRead(id=s.id, full_name=s.full_name) for s in students]


def _restore_to_read(result: family_service.RestoreResult) -> RestoreRead:
    return RestoreRead(
        linked=result.linked,
        not_found=result.not_found,
        skipped=result.skipped,
        errors=result.errors,
    )


# =============================================================================
# Cleanup (detect + deduplicate)
# =============================================================================

@router.get(
    "/issues",
    response_model=list[IssueRead],
    dependencies=[Depends(require_admin_section("family-cleanup"))],
)
def list_issues(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Groups with duplicate guardians or too many guardian edges."""
    return [
        IssueRead(
            group_id=issue.group.id,
            group_name=issue.group.name,
            students=_students(issue.students),
            members=[
                MemberRead(
                    id=m.id,
                    client_id=m.client_id,
                    relationship_type=m.relationship_type,
                    is_primary_contact=m.is_primary_contact,
                )
                for m in issue.members
            ],
            members_count=len(issue.members),
            has_duplicates=issue.has_duplicates,
            duplicate_count=issue.duplicate_count,
        )
        for issue in family_service.detect_issues(db, session.org_id)
    ]


@router.post(
    "/deduplicate",
    response_model=RemovedResponse,
    dependencies=[Depends(require_csrf_header), Depends(require_admin_section("family-members"))],
)
def deduplicate_all(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return RemovedResponse(removed=family_service.deduplicate_all(db, session.org_id))


# =============================================================================
# Reorganize & Restore
# =============================================================================

@router.get(
    "/reorganize/preview",
    response_model=ReorganizePreviewRead,
    dependencies=[Depends(require_admin_section("family-reorganizer"))],
)
def preview_reorganize(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    preview = family_service.preview_reorganize(db, session.org_id)
    return ReorganizePreviewRead(
        total_groups=preview.total_groups,
        total_members=preview.total_members,
        total_students=preview.total_students,
    )


@router.post(
    "/reorganize",
    response_model=ReorganizeResponse,
    dependencies=[Depends(require_csrf_header), Depends(require_admin_section("family-reorganizer"))],
)
def reorganize(
    body: ReorganizeRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Delete every group and edge, then one group per student (then relink guardians)."""
    _require_confirmation(body)
    result = family_service.reorganize_all(db, session.org_id)

    restore = None
    if body.restore_links:
        restore = _restore_to_read(family_service.restore_guardian_links(db, session.org_id))

    return ReorganizeResponse(
        created_groups=result.created_groups,
        total_students=result.total_students,
        errors=result.errors,
        failures=result.results.reasons,
        restore=restore,
    )


@router.post(
    "/restore-links",
    response_model=RestoreRead,
    dependencies=[Depends(require_csrf_header), Depends(require_admin_section("family-restorer"))],
)
def restore_links(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return _restore_to_read(family_service.restore_guardian_links(db, session.org_id))


# =============================================================================
# Members
# =============================================================================

@router.get(
    "/members",
    response_model=FamilyMemberPage,
    dependencies=[Depends(require_admin_section("family-members"))],
)
def list_members(
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    rows, total = family_service.list_family_members(db, session.org_id, pagination)
    items = [
        FamilyMemberRowRead(
            id=row.member.id,
            family_group_id=row.member.family_group_id,
            group_name=row.group_name,
            client_id=row.member.client_id,
            client_name=row.client_name,
            relationship_type=row.member.relationship_type,
            is_primary_contact=row.member.is_primary_contact,
            students=row.students,
        )
        for row in rows
    ]
    page = PaginatedResponse.create(items, total, pagination)
    return FamilyMemberPage(
        items=page.items,
        total=page.total,
        page=page.page,
        per_page=page.per_page,
        pages=page.pages,
    )


@router.delete(
    "/members/{member_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header), Depends(require_admin_section("family-members"))],
)
def delete_member(
    member_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    family_service.delete_family_member(db, session.org_id, member_id)


# =============================================================================
# Single Group
# =============================================================================

@router.post(
    "/{group_id}/deduplicate",
    response_model=RemovedResponse,
    dependencies=[Depends(require_csrf_header), Depends(require_admin_section("family-cleanup"))],
)
def deduplicate_group(
    group_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return RemovedResponse(removed=family_service.deduplicate_group(db, session.org_id, group_id))


@router.get(
    "/{group_id}/split/preview",
    response_model=SplitPreviewRead,
    dependencies=[Depends(require_admin_section("family-splitter"))],
)
def preview_split(
    group_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    preview = family_service.preview_split(db, session.org_id, group_id)
    return SplitPreviewRead(
        group_id=preview.group.id,
        group_name=preview.group.name,
        students=_students(preview.students),
        members_to_delete=preview.members_to_delete,
        new_group_names=preview.new_group_names,
    )


@router.post(
    "/{group_id}/split",
    response_model=SplitResponse,
    dependencies=[Depends(require_csrf_header), Depends(require_admin_section("family-splitter"))],
)
def split_group(
    group_id: UUID,
    body: Confirmation,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    _require_confirmation(body)
    return SplitResponse(created_groups=family_service.split_group(db, session.org_id, group_id))
