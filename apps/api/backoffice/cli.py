"""CLI tools for back-office administration and family-graph repair."""

import csv
from uuid import UUID

import click

from backoffice.db.enums import Role
from backoffice.db.session import SessionLocal
from backoffice.services.errors import BackofficeError


@click.group()
def cli():
    """Back-office CLI tools."""
    pass


def _require_org(db, slug: str):
    from backoffice.services import org_service

    org = org_service.get_org_by_slug(db, slug)
    if not org:
        raise click.ClickException(f"Organization '{slug}' not found")
    return org


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, hyphens)")
@click.option("--admin-email", required=True, help="Admin email address")
@click.option("--admin-password", required=True, prompt=True, hide_input=True, help="Admin password")
def create_org(name: str, slug: str, admin_email: str, admin_password: str):
    """
    Create organization and its first admin profile.

    Example:
        python -m backoffice.cli create-org --name "Okey English" --slug okey --admin-email admin@okey.ru
    """
    from backoffice.core.security import hash_password
    from backoffice.db.models import Profile
    from backoffice.services import org_service, role_service
    from backoffice.utils.normalization import normalize_email

    db = SessionLocal()
    try:
        org = org_service.create_org(db, name, slug)
        admin = Profile(
            organization_id=org.id,
            email=normalize_email(admin_email),
            password_hash=hash_password(admin_password),
        )
        db.add(admin)
        db.flush()
        role_service.assign_role(db, org.id, admin.id, Role.ADMIN)
        db.commit()

        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Slug: {org.slug}")
        click.echo(f"✓ Created admin profile for {admin.email}")
    except BackofficeError as e:
        db.rollback()
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command()
def seed_roles():
    """
    Seed role_permissions with the default role templates.

    Safe to re-run: only missing rows are created.

    Example:
        python -m backoffice.cli seed-roles
    """
    from backoffice.core.permissions import PERMISSION_REGISTRY, ROLE_DEFAULTS
    from backoffice.services import permission_service

    db = SessionLocal()
    try:
        click.echo(f"Permission registry: {len(PERMISSION_REGISTRY)} permissions")
        click.echo(f"Role templates: {len(ROLE_DEFAULTS)} roles")

        created = permission_service.seed_role_defaults(db)
        db.commit()

        if created > 0:
            click.echo(f"✓ Created {created} role permission(s)")
        else:
            click.echo("✓ All role permissions already up to date")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--dry-run", is_flag=True, help="Preview matches without linking")
def link_teachers(org_slug: str, dry_run: bool):
    """
    Link unlinked teachers to profiles by email, then phone.

    Example:
        python -m backoffice.cli link-teachers --org-slug okey --dry-run
    """
    from backoffice.services import reconciliation_service

    db = SessionLocal()
    try:
        org = _require_org(db, org_slug)
        suggestions = reconciliation_service.suggest_links(db, org.id)
        click.echo(f"Found {len(suggestions)} teacher(s) with a matching profile")
        for s in suggestions:
            click.echo(f"  {s.teacher.full_name} → {s.profile.full_name or s.profile.id} ({s.reason.value})")

        if dry_run or not suggestions:
            return

        result = reconciliation_service.bulk_link(db, org.id)
        click.echo(f"✓ Linked {result.success}, failed {result.failure}")
        for teacher_id, reason in result.reasons.items():
            click.echo(f"  ❌ {teacher_id}: {reason}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--file", "csv_file", required=True, type=click.File("r", encoding="utf-8-sig"), help="CSV file")
def import_teachers(org_slug: str, csv_file):
    """
    Import teachers from CSV, auto-linking each to a matching profile.

    Columns: first_name, last_name, email, phone, branch, subjects,
    categories. Subjects and categories are separated by ";".
    Unmatched teachers get an invitation link.

    Example:
        python -m backoffice.cli import-teachers --org-slug okey --file teachers.csv
    """
    from backoffice.core.config import settings
    from backoffice.services import reconciliation_service
    from backoffice.services.teacher_service import TeacherInput

    def split(value: str | None) -> list[str]:
        return [part for part in (value or "").split(";") if part.strip()]

    rows = [
        TeacherInput(
            first_name=record.get("first_name") or "",
            last_name=record.get("last_name") or None,
            email=record.get("email") or None,
            phone=record.get("phone") or None,
            branch=record.get("branch") or None,
            subjects=split(record.get("subjects")),
            categories=split(record.get("categories")),
        )
        for record in csv.DictReader(csv_file)
    ]
    if not rows:
        raise click.ClickException("No rows found")

    db = SessionLocal()
    try:
        org = _require_org(db, org_slug)
        result = reconciliation_service.bulk_create_teachers(db, org.id, rows, created_by=None)

        click.echo(f"✓ Linked {result.linked}, invited {result.invited}, failed {result.failed}")
        for r in result.rows:
            if not r.ok:
                click.echo(f"  ❌ row {r.row}: {r.error}")
            elif r.invite_token:
                click.echo(f"  row {r.row}: {settings.invite_link(r.invite_token)}")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--group-id", default=None, help="Only this family group")
def dedup_families(org_slug: str, group_id: str | None):
    """
    Remove duplicate guardian edges (keeps the first per client).

    Example:
        python -m backoffice.cli dedup-families --org-slug okey
    """
    from backoffice.services import family_service

    db = SessionLocal()
    try:
        org = _require_org(db, org_slug)
        if group_id:
            removed = family_service.deduplicate_group(db, org.id, UUID(group_id))
        else:
            removed = family_service.deduplicate_all(db, org.id)
        click.echo(f"✓ Removed {removed} duplicate edge(s)")
    except BackofficeError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--group-id", required=True, help="Family group to split")
@click.option("--yes", is_flag=True, help="Confirm the destructive split")
def split_family(org_slug: str, group_id: str, yes: bool):
    """Split a multi-student family group into one group per student."""
    from backoffice.services import family_service

    db = SessionLocal()
    try:
        org = _require_org(db, org_slug)
        preview = family_service.preview_split(db, org.id, UUID(group_id))
        click.echo(f"Group '{preview.group.name}': {len(preview.students)} student(s), "
                   f"{preview.members_to_delete} edge(s) to delete")
        for name in preview.new_group_names:
            click.echo(f"  + {name}")

        if not yes:
            click.echo("Nothing changed. Re-run with --yes to split.")
            return

        created = family_service.split_group(db, org.id, UUID(group_id))
        click.echo(f"✓ Created {created} group(s)")
    except BackofficeError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
@click.option("--yes", is_flag=True, help="Confirm deleting every family group")
@click.option("--no-restore", is_flag=True, help="Skip guardian link restoration")
def reorganize_families(org_slug: str, yes: bool, no_restore: bool):
    """
    Rebuild every family group as one group per student.

    Example:
        python -m backoffice.cli reorganize-families --org-slug okey --yes
    """
    from backoffice.services import family_service

    db = SessionLocal()
    try:
        org = _require_org(db, org_slug)
        preview = family_service.preview_reorganize(db, org.id)
        click.echo(f"Will delete {preview.total_groups} group(s) and {preview.total_members} edge(s), "
                   f"then create {preview.total_students} group(s)")

        if not yes:
            click.echo("Nothing changed. Re-run with --yes to reorganize.")
            return

        result = family_service.reorganize_all(db, org.id)
        click.echo(f"✓ Created {result.created_groups} group(s) for {result.total_students} student(s), "
                   f"{result.errors} error(s)")

        if not no_restore:
            restore = family_service.restore_guardian_links(db, org.id)
            click.echo(f"✓ Restored {restore.linked} guardian link(s), {restore.not_found} not found")
    finally:
        db.close()


@cli.command()
@click.option("--org-slug", required=True, help="Organization slug")
def restore_guardians(org_slug: str):
    """Re-link guardians to family groups that have none."""
    from backoffice.services import family_service

    db = SessionLocal()
    try:
        org = _require_org(db, org_slug)
        result = family_service.restore_guardian_links(db, org.id)
        click.echo(f"✓ Linked {result.linked}, not found {result.not_found}, "
                   f"skipped {result.skipped}, errors {result.errors}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
