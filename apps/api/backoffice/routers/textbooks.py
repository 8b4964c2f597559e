"""Textbook library endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backoffice.core.deps import get_db, require_csrf_header, require_permission
from backoffice.schemas.auth import UserSession
from backoffice.services import textbook_service
from backoffice.utils.datetime_utils import as_utc


router = APIRouter(prefix="/textbooks", tags=["textbooks"])


# =============================================================================
# Schemas
# =============================================================================

class TextbookCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    file_name: str = Field(min_length=1, max_length=255)
    file_url: str = Field(min_length=1, max_length=1000)
    description: str | None = None
    program_type: str | None = Field(default=None, max_length=100)
    category: str | None = Field(default=None, max_length=50)
    subcategory: str | None = Field(default=None, max_length=100)


class TextbookUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    file_name: str | None = Field(default=None, max_length=255)
    file_url: str | None = Field(default=None, max_length=1000)
    description: str | None = None
    program_type: str | None = Field(default=None, max_length=100)
    category: str | None = Field(default=None, max_length=50)
    subcategory: str | None = Field(default=None, max_length=100)


class TextbookRead(BaseModel):
    id: UUID
    title: str
    description: str | None
    file_name: str
    file_url: str
    program_type: str | None
    category: str
    subcategory: str | None
    uploaded_by: UUID | None
    created_at: str


class FolderRead(BaseModel):
    level: str
    key: str | None
    count: int
    children: list["FolderRead"]
    files: list[TextbookRead]


def _textbook_to_read(textbook) -> TextbookRead:
    return TextbookRead(
        id=textbook.id,
        title=textbook.title,
        description=textbook.description,
        file_name=textbook.file_name,
        file_url=textbook.file_url,
        program_type=textbook.program_type,
        category=textbook.category,
        subcategory=textbook.subcategory,
        uploaded_by=textbook.uploaded_by,
        created_at=as_utc(textbook.created_at).isoformat(),
    )


def _folder_to_read(node: textbook_service.FolderNode) -> FolderRead:
    return FolderRead(
        level=node.level,
        key=node.key,
        count=node.count,
        children=[_folder_to_read(child) for child in node.children],
        files=[_textbook_to_read(t) for t in node.files],
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=list[TextbookRead])
def list_textbooks(
    program_type: str | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("view", "textbooks")),
):
    return [_textbook_to_read(t) for t in textbook_service.list_textbooks(db, session.org_id, program_type)]


@router.get("/tree", response_model=list[FolderRead])
def get_textbook_tree(
    program_type: str | None = None,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("view", "textbooks")),
):
    """Textbooks grouped into program → category → subcategory folders."""
    textbooks = textbook_service.list_textbooks(db, session.org_id, program_type)
    return [_folder_to_read(node) for node in textbook_service.build_folder_tree(textbooks)]


@router.post("", response_model=TextbookRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_textbook(
    body: TextbookCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "textbooks")),
):
    textbook = textbook_service.create_textbook(
        db,
        org_id=session.org_id,
        uploaded_by=session.profile_id,
        **body.model_dump(),
    )
    db.commit()
    return _textbook_to_read(textbook)


@router.patch("/{textbook_id}", response_model=TextbookRead, dependencies=[Depends(require_csrf_header)])
def update_textbook(
    textbook_id: UUID,
    body: TextbookUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "textbooks")),
):
    textbook = textbook_service.update_textbook(
        db, session.org_id, textbook_id, body.model_dump(exclude_unset=True),
    )
    db.commit()
    return _textbook_to_read(textbook)


@router.delete("/{textbook_id}", status_code=204, dependencies=[Depends(require_csrf_header)])
def delete_textbook(
    textbook_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(require_permission("manage", "textbooks")),
):
    textbook_service.delete_textbook(db, session.org_id, textbook_id)
    db.commit()
