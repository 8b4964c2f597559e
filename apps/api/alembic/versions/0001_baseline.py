"""Baseline migration - tenants, staff, RBAC, family graph, textbooks

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Portable column types only, so the same revision runs on PostgreSQL and
SQLite.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    """Create all back-office tables."""

    # ==========================================================================
    # Organizations & Profiles
    # ==========================================================================
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        _timestamp(),
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("middle_name", sa.String(100)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("branch", sa.String(100)),
        sa.Column("password_hash", sa.String(255)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("idx_profiles_org_id", "profiles", ["organization_id"])
    op.create_index("idx_profiles_org_email", "profiles", ["organization_id", "email"])

    # ==========================================================================
    # Roles & Permissions
    # ==========================================================================
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("profile_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("profile_id", "role", name="uq_user_roles_profile_role"),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("permission", sa.String(50), nullable=False),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("can_create", sa.Boolean(), nullable=False),
        sa.Column("can_read", sa.Boolean(), nullable=False),
        sa.Column("can_update", sa.Boolean(), nullable=False),
        sa.Column("can_delete", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("role", "permission", "resource", name="uq_role_permissions_role_perm"),
    )
    op.create_index("idx_role_permissions_role", "role_permissions", ["role"])

    op.create_table(
        "user_permissions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("profile_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("permission_key", sa.String(100), nullable=False),
        sa.Column("is_granted", sa.Boolean(), nullable=False),
        _timestamp(),
        _timestamp("updated_at"),
        sa.UniqueConstraint("profile_id", "permission_key", name="uq_user_permissions_profile_key"),
    )

    # ==========================================================================
    # Teachers & Invitations
    # ==========================================================================
    op.create_table(
        "teachers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("profile_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL")),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("branch", sa.String(100)),
        sa.Column("subjects", sa.JSON(), nullable=False),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp(),
        _timestamp("updated_at"),
    )
    op.create_index("idx_teachers_org_id", "teachers", ["organization_id"])
    op.create_index("idx_teachers_profile_id", "teachers", ["profile_id"])

    op.create_table(
        "teacher_invitations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("teacher_id", sa.Uuid(), sa.ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invite_token", sa.String(64), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("branch", sa.String(100)),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL")),
        sa.Column("profile_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL")),
        sa.Column("accepted_at", sa.DateTime(timezone=True)),
        sa.Column("terms_accepted_at", sa.DateTime(timezone=True)),
        _timestamp(),
    )
    op.create_index("idx_teacher_invitations_org_id", "teacher_invitations", ["organization_id"])
    op.create_index("idx_teacher_invitations_teacher_id", "teacher_invitations", ["teacher_id"])

    # ==========================================================================
    # Family Graph
    # ==========================================================================
    op.create_table(
        "clients",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("email", sa.String(255)),
        _timestamp(),
    )
    op.create_index("idx_clients_org_id", "clients", ["organization_id"])

    op.create_table(
        "family_groups",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        _timestamp(),
    )
    op.create_index("idx_family_groups_org_id", "family_groups", ["organization_id"])

    op.create_table(
        "students",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100)),
        sa.Column("family_group_id", sa.Uuid(), sa.ForeignKey("family_groups.id", ondelete="SET NULL")),
        _timestamp(),
    )
    op.create_index("idx_students_org_id", "students", ["organization_id"])
    op.create_index("idx_students_family_group_id", "students", ["family_group_id"])

    op.create_table(
        "family_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("family_group_id", sa.Uuid(), sa.ForeignKey("family_groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("relationship_type", sa.String(30), nullable=False),
        sa.Column("is_primary_contact", sa.Boolean(), nullable=False),
        _timestamp(),
    )
    op.create_index("idx_family_members_group_client", "family_members", ["family_group_id", "client_id"])

    # ==========================================================================
    # Textbooks
    # ==========================================================================
    op.create_table(
        "textbooks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_url", sa.String(1000), nullable=False),
        sa.Column("program_type", sa.String(100)),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("subcategory", sa.String(100)),
        sa.Column("uploaded_by", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="SET NULL")),
        _timestamp(),
    )
    op.create_index("idx_textbooks_org_program", "textbooks", ["organization_id", "program_type"])


def downgrade() -> None:
    """Drop all back-office tables."""
    for table in (
        "textbooks",
        "family_members",
        "students",
        "family_groups",
        "clients",
        "teacher_invitations",
        "teachers",
        "user_permissions",
        "role_permissions",
        "user_roles",
        "profiles",
        "organizations",
    ):
        op.drop_table(table)
