"""SQLAlchemy ORM models for staff, permissions, family graph and textbooks."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint, Uuid, func, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.db.base import Base
from backoffice.db.enums import InvitationStatus, RelationshipType, TextbookCategory


# =============================================================================
# Tenant & Identity Models
# =============================================================================

class Organization(Base):
    """
    A language school (tenant).

    All domain entities belong to an organization
    and must be scoped by organization_id in all queries.
    """
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    profiles: Mapped[list["Profile"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan"
    )


class Profile(Base):
    """
    A registered, authenticatable user.

    Deactivated by admins (is_active = False), never hard-deleted here.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        Index("idx_profiles_org_id", "organization_id"),
        Index("idx_profiles_org_email", "organization_id", "email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=text("true"),
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    organization: Mapped["Organization"] = relationship(back_populates="profiles")
    roles: Mapped[list["UserRole"]] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class UserRole(Base):
    """One role label assigned to a profile. (profile_id, role) is unique."""
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("profile_id", "role", name="uq_user_roles_profile_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    profile: Mapped["Profile"] = relationship(back_populates="roles")


class RolePermission(Base):
    """
    Static capability template per role.

    Seeded from ROLE_DEFAULTS in core/permissions.py. Each row grants the
    "<permission>:<resource>" key to holders of the role.
    """
    __tablename__ = "role_permissions"
    __table_args__ = (
        Index("idx_role_permissions_role", "role"),
        UniqueConstraint("role", "permission", "resource", name="uq_role_permissions_role_perm"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    permission: Mapped[str] = mapped_column(String(50), nullable=False)
    resource: Mapped[str] = mapped_column(String(50), nullable=False)
    can_create: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_read: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_update: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def key(self) -> str:
        return f"{self.permission}:{self.resource}"


class UserPermission(Base):
    """
    Per-user permission override.

    is_granted replaces whatever the user's roles say about permission_key.
    """
    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("profile_id", "permission_key", name="uq_user_permissions_profile_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    permission_key: Mapped[str] = mapped_column(String(100), nullable=False)
    is_granted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


# =============================================================================
# Teaching Staff
# =============================================================================

class Teacher(Base):
    """
    Teaching-staff record.

    profile_id is NULL until the teacher is linked to a Profile
    (auto-link on creation, manual/bulk reconciliation, or invitation).
    """
    __tablename__ = "teachers"
    __table_args__ = (
        Index("idx_teachers_org_id", "organization_id"),
        Index("idx_teachers_profile_id", "profile_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subjects: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    categories: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=text("true"),
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    profile: Mapped["Profile | None"] = relationship()

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    @property
    def is_linked(self) -> bool:
        return self.profile_id is not None


class TeacherInvitation(Base):
    """
    Single-use onboarding token for an unlinked teacher.

    Status is stored as pending/accepted/cancelled; "expired" is derived
    from token_expires_at.
    """
    __tablename__ = "teacher_invitations"
    __table_args__ = (
        Index("idx_teacher_invitations_org_id", "organization_id"),
        Index("idx_teacher_invitations_teacher_id", "teacher_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False
    )
    invite_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=InvitationStatus.PENDING.value,
        server_default=text("'pending'"),
        nullable=False
    )
    token_expires_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True
    )
    profile_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True
    )
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    terms_accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    teacher: Mapped["Teacher"] = relationship()


# =============================================================================
# Family Graph
# =============================================================================

class Client(Base):
    """A guardian / paying contact."""
    __tablename__ = "clients"
    __table_args__ = (
        Index("idx_clients_org_id", "organization_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class FamilyGroup(Base):
    """Named grouping of students and their guardians."""
    __tablename__ = "family_groups"
    __table_args__ = (
        Index("idx_family_groups_org_id", "organization_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class Student(Base):
    """A learner; belongs to at most one family group."""
    __tablename__ = "students"
    __table_args__ = (
        Index("idx_students_org_id", "organization_id"),
        Index("idx_students_family_group_id", "family_group_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    family_group_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("family_groups.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    family_group: Mapped["FamilyGroup | None"] = relationship()

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class FamilyMember(Base):
    """
    Guardian edge: links a Client to a FamilyGroup.

    At most one edge per (family_group_id, client_id) is valid; extra
    edges are import defects removed by the dedup tools.
    """
    __tablename__ = "family_members"
    __table_args__ = (
        Index("idx_family_members_group_client", "family_group_id", "client_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    family_group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("family_groups.id", ondelete="CASCADE"),
        nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False
    )
    relationship_type: Mapped[str] = mapped_column(
        String(30),
        default=RelationshipType.MAIN.value,
        nullable=False
    )
    is_primary_contact: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    family_group: Mapped["FamilyGroup"] = relationship()
    client: Mapped["Client"] = relationship()


# =============================================================================
# Textbook Library
# =============================================================================

class Textbook(Base):
    """Uploaded course material, filed under program / category / subcategory."""
    __tablename__ = "textbooks"
    __table_args__ = (
        Index("idx_textbooks_org_program", "organization_id", "program_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    program_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category: Mapped[str] = mapped_column(
        String(50),
        default=TextbookCategory.GENERAL.value,
        nullable=False
    )
    subcategory: Mapped[str | None] = mapped_column(String(100), nullable=True)
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
