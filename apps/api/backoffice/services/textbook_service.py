"""Textbook library: records and the program → category → subcategory tree."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from backoffice.db.enums import TextbookCategory
from backoffice.db.models import Textbook
from backoffice.services.errors import NotFoundError, ValidationError
from backoffice.utils.normalization import normalize_name


logger = logging.getLogger(__name__)

FOLDER_LEVELS = ("program_type", "category", "subcategory")
UPDATABLE_FIELDS = frozenset({
    "title", "description", "file_name", "file_url",
    "program_type", "category", "subcategory",
})


@dataclass
class FolderNode:
    """One folder of the tree. Files sit only on the deepest level."""
    level: str
    key: str | None
    children: list["FolderNode"] = field(default_factory=list)
    files: list[Textbook] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.files) + sum(child.count for child in self.children)


def _bucket_order(key: str | None) -> tuple[bool, str]:
    # None bucket sorts last
    return (key is None, (key or "").casefold())


def build_folder_tree(
    textbooks: Sequence[Textbook],
    levels: Sequence[str] = FOLDER_LEVELS,
) -> list[FolderNode]:
    """
    Group textbooks into nested folders, one level per attribute.

    Missing or empty values land in a None bucket, listed after the named
    folders. Pure: the input is not modified.
    """
    if not levels:
        return []

    level, rest = levels[0], levels[1:]
    buckets: dict[str | None, list[Textbook]] = {}
    for textbook in textbooks:
        buckets.setdefault(getattr(textbook, level, None) or None, []).append(textbook)

    nodes: list[FolderNode] = []
    for key in sorted(buckets, key=_bucket_order):
        items = buckets[key]
        if rest:
            nodes.append(FolderNode(level=level, key=key, children=build_folder_tree(items, rest)))
        else:
            files = sorted(items, key=lambda t: (t.title or "").casefold())
            nodes.append(FolderNode(level=level, key=key, files=files))
    return nodes


# =============================================================================
# CRUD
# =============================================================================

def _validate_category(category: str | None) -> str:
    if not category:
        return TextbookCategory.GENERAL.value
    if category not in {c.value for c in TextbookCategory}:
        raise ValidationError(f"Unknown textbook category '{category}'", category=category)
    return category


def list_textbooks(db: Session, org_id: UUID, program_type: str | None = None) -> list[Textbook]:
    query = db.query(Textbook).filter(Textbook.organization_id == org_id)
    if program_type:
        query = query.filter(Textbook.program_type == program_type)
    return query.order_by(Textbook.title).all()


def require_textbook(db: Session, org_id: UUID, textbook_id: UUID) -> Textbook:
    textbook = db.query(Textbook).filter(
        Textbook.id == textbook_id,
        Textbook.organization_id == org_id,
    ).first()
    if not textbook:
        raise NotFoundError("Textbook not found", textbook_id=str(textbook_id))
    return textbook


def create_textbook(
    db: Session,
    org_id: UUID,
    uploaded_by: UUID | None,
    title: str,
    file_name: str,
    file_url: str,
    description: str | None = None,
    program_type: str | None = None,
    category: str | None = None,
    subcategory: str | None = None,
) -> Textbook:
    title = normalize_name(title)
    if not title or not file_name or not file_url:
        raise ValidationError("title, file_name and file_url are required")

    textbook = Textbook(
        organization_id=org_id,
        uploaded_by=uploaded_by,
        title=title,
        description=description,
        file_name=file_name,
        file_url=file_url,
        program_type=normalize_name(program_type),
        category=_validate_category(category),
        subcategory=normalize_name(subcategory),
    )
    db.add(textbook)
    db.flush()

    logger.info("Created textbook %s in org %s", textbook.id, org_id)
    return textbook


def update_textbook(db: Session, org_id: UUID, textbook_id: UUID, changes: dict[str, Any]) -> Textbook:
    """Apply a partial update. Unknown fields are rejected."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    textbook = require_textbook(db, org_id, textbook_id)

    if "title" in changes and not normalize_name(changes["title"]):
        raise ValidationError("title cannot be empty")
    for name in ("file_name", "file_url"):
        if name in changes and not (changes[name] or "").strip():
            raise ValidationError(f"{name} cannot be empty")
    if "category" in changes:
        changes = {**changes, "category": _validate_category(changes["category"])}

    for name, value in changes.items():
        if name in ("title", "program_type", "subcategory"):
            value = normalize_name(value)
        setattr(textbook, name, value)
    db.flush()

    logger.info("Updated textbook %s", textbook_id)
    return textbook


def delete_textbook(db: Session, org_id: UUID, textbook_id: UUID) -> None:
    textbook = require_textbook(db, org_id, textbook_id)
    db.delete(textbook)
    db.flush()
    logger.info("Deleted textbook %s", textbook_id)
