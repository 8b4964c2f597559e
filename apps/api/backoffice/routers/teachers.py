"""Teacher endpoints: creation with auto-link, import, reconciliation, editing, deactivation."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backoffice.core.config import settings
from backoffice.core.deps import get_db, require_csrf_header, require_permission
from backoffice.schemas.auth import UserSession
from backoffice.services import reconciliation_service, teacher_service
from backoffice.services.teacher_service import TeacherInput
from backoffice.utils.normalization import format_phone


router = APIRouter(prefix="/teachers", tags=["teachers"])


# =============================================================================
# Schemas
# =============================================================================

class TeacherCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    branch: str | None = Field(default=None, max_length=100)
    subjects: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)


class TeacherUpdate(BaseModel):
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    branch: str | None = Field(default=None, max_length=100)
    subjects: list[str] | None = None
    categories: list[str] | None = None
    is_active: bool | None = None


class TeacherRead(BaseModel):
    id: UUID
    profile_id: UUID | None
    first_name: str
    last_name: str | None
    full_name: str
    email: str | None
    phone: str | None
    phone_display: str
    branch: str | None
    subjects: list[str]
    categories: list[str]
    is_active: bool
    is_linked: bool


class TeacherCreateResponse(BaseModel):
    teacher: TeacherRead
    linked: bool
    match_reason: str | None
    invitation_id: UUID | None
    invite_link: str | None


class LinkRequest(BaseModel):
    profile_id: UUID


class LinkSuggestionRead(BaseModel):
    teacher_id: UUID
    teacher_name: str
    profile_id: UUID
    profile_name: str
    reason: str


class BulkLinkRequest(BaseModel):
    teacher_ids: list[UUID] | None = None


class ItemResultRead(BaseModel):
    id: UUID
    ok: bool
    error: str | None


class BulkLinkResponse(BaseModel):
    success: int
    failed: int
    items: list[ItemResultRead]


class TeacherImportItem(TeacherCreate):
    # A blank name fails its own row only.
    first_name: str = Field(default="", max_length=100)


class TeacherImportRequest(BaseModel):
    rows: list[TeacherImportItem] = Field(min_length=1, max_length=1000)


class TeacherImportRowRead(BaseModel):
    row: int
    ok: bool
    teacher_id: UUID | None
    linked: bool
    match_reason: str | None
    invite_link: str | None
    error: str | None


class TeacherImportResponse(BaseModel):
    linked: int
    invited: int
    failed: int
    rows: list[TeacherImportRowRead]


def _teacher_to_read(teacher) -> TeacherRead:
    return TeacherRead(
        id=teacher.id,
        profile_id=teacher.profile_id,
        first_name=teacher.first_name,
        last_name=teacher.last_name,
        full_name=teacher.full_name,
        email=teacher.email,
        phone=teacher.phone,
        phone_display=format_phone(teacher.phone),
        branch=teacher.branch,
        subjects=teacher.subjects or [],
        categories=teacher.categories or [],
        is_active=teacher.is_active,
        is_linked=teacher.is_linked,
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=list[TeacherRead])
def list_teachers(
    include_inactive: bool = False,
    unlinked_only: bool = False,
    branch: str | None = None,
    q: str | None = Query(None, max_length=100),
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("view", "teachers")),
):
    teachers = teacher_service.list_teachers(
        db, session.org_id,
        include_inactive=include_inactive,
        unlinked_only=unlinked_only,
        branch=branch,
        q=q,
    )
    return [_teacher_to_read(t) for t in teachers]


@router.post(
    "",
    response_model=TeacherCreateResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_teacher(
    body: TeacherCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """Create a teacher; link to a matching profile or issue an invitation."""
    result = reconciliation_service.create_teacher_with_auto_link(
        db,
        org_id=session.org_id,
        data=TeacherInput(**body.model_dump()),
        created_by=session.profile_id,
    )
    db.commit()

    invitation = result.invitation
    return TeacherCreateResponse(
        teacher=_teacher_to_read(result.teacher),
        linked=result.linked,
        match_reason=result.match.reason.value if result.match.reason else None,
        invitation_id=invitation.id if invitation else None,
        invite_link=settings.invite_link(invitation.invite_token) if invitation else None,
    )


@router.get("/link-suggestions", response_model=list[LinkSuggestionRead])
def list_link_suggestions(
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """Unlinked teachers with a matching profile."""
    return [
        LinkSuggestionRead(
            teacher_id=s.teacher.id,
            teacher_name=s.teacher.full_name,
            profile_id=s.profile.id,
            profile_name=s.profile.full_name,
            reason=s.reason.value,
        )
        for s in reconciliation_service.suggest_links(db, session.org_id)
    ]


@router.post("/bulk-link", response_model=BulkLinkResponse, dependencies=[Depends(require_csrf_header)])
def bulk_link(
    body: BulkLinkRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """Link all (or the selected) suggested teachers. Partial failures are reported."""
    result = reconciliation_service.bulk_link(db, session.org_id, body.teacher_ids)
    return BulkLinkResponse(
        success=result.success,
        failed=result.failure,
        items=[ItemResultRead(id=i.id, ok=i.ok, error=i.error) for i in result.items],
    )


@router.post("/import", response_model=TeacherImportResponse, dependencies=[Depends(require_csrf_header)])
def import_teachers(
    body: TeacherImportRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """Create many teachers with auto-link. Each row is committed separately."""
    result = reconciliation_service.bulk_create_teachers(
        db,
        session.org_id,
        [TeacherInput(**item.model_dump()) for item in body.rows],
        created_by=session.profile_id,
    )
    return TeacherImportResponse(
        linked=result.linked,
        invited=result.invited,
        failed=result.failed,
        rows=[
            TeacherImportRowRead(
                row=r.row,
                ok=r.ok,
                teacher_id=r.teacher_id,
                linked=r.linked,
                match_reason=r.match_reason.value if r.match_reason else None,
                invite_link=settings.invite_link(r.invite_token) if r.invite_token else None,
                error=r.error,
            )
            for r in result.rows
        ],
    )


@router.get("/{teacher_id}", response_model=TeacherRead)
def get_teacher(
    teacher_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("view", "teachers")),
):
    return _teacher_to_read(teacher_service.require_teacher(db, session.org_id, teacher_id))


@router.post("/{teacher_id}/link", response_model=TeacherRead, dependencies=[Depends(require_csrf_header)])
def link_teacher(
    teacher_id: UUID,
    body: LinkRequest,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    """Manually link a teacher to a profile."""
    teacher = reconciliation_service.apply_link(db, session.org_id, teacher_id, body.profile_id)
    db.commit()
    return _teacher_to_read(teacher)


@router.post("/{teacher_id}/deactivate", response_model=TeacherRead, dependencies=[Depends(require_csrf_header)])
def deactivate_teacher(
    teacher_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    teacher = teacher_service.deactivate_teacher(db, session.org_id, teacher_id)
    db.commit()
    return _teacher_to_read(teacher)


@router.patch("/{teacher_id}", response_model=TeacherRead, dependencies=[Depends(require_csrf_header)])
def update_teacher(
    teacher_id: UUID,
    body: TeacherUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "teachers")),
):
    teacher = teacher_service.update_teacher(
        db, session.org_id, teacher_id, body.model_dump(exclude_unset=True),
    )
    db.commit()
    return _teacher_to_read(teacher)
