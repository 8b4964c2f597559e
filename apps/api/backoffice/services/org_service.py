"""Organization lookups and creation."""

import logging
import re

from sqlalchemy.orm import Session

from backoffice.db.models import Organization
from backoffice.services.errors import ConflictError, ValidationError


logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def get_org_by_slug(db: Session, slug: str) -> Organization | None:
    return db.query(Organization).filter(Organization.slug == slug.lower()).first()


def create_org(db: Session, name: str, slug: str) -> Organization:
    """Create a new organization."""
    slug = slug.strip().lower()
    if not name.strip() or not SLUG_PATTERN.match(slug):
        raise ValidationError("Organization needs a name and a lowercase slug")
    if get_org_by_slug(db, slug):
        raise ConflictError(f"Organization '{slug}' already exists", slug=slug)

    org = Organization(name=name.strip(), slug=slug)
    db.add(org)
    db.flush()

    logger.info("Created organization %s (%s)", org.id, slug)
    return org
