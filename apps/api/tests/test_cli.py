"""CLI command tests (click CliRunner against the test database)."""

import pytest
from click.testing import CliRunner

from backoffice import cli as cli_module
from backoffice.db.models import FamilyGroup, FamilyMember, Organization, Profile, RolePermission, Teacher
from backoffice.services import role_service


@pytest.fixture
def runner(monkeypatch, session_factory) -> CliRunner:
    monkeypatch.setattr(cli_module, "SessionLocal", session_factory)
    return CliRunner()


def test_create_org(runner, db):
    result = runner.invoke(cli_module.cli, [
        "create-org", "--name", "Okey English", "--slug", "okey",
        "--admin-email", "Admin@Okey.test", "--admin-password", "secret",
    ])

    assert result.exit_code == 0, result.output
    org = db.query(Organization).filter(Organization.slug == "okey").one()
    admin = db.query(Profile).filter(Profile.organization_id == org.id).one()
    assert admin.email == "admin@okey.test"
    assert role_service.list_roles(db, admin.id) == ["admin"]

    again = runner.invoke(cli_module.cli, [
        "create-org", "--name", "Dup", "--slug", "okey",
        "--admin-email", "x@okey.test", "--admin-password", "secret",
    ])
    assert again.exit_code != 0


def test_seed_roles_is_rerunnable(runner, db):
    first = runner.invoke(cli_module.cli, ["seed-roles"])
    second = runner.invoke(cli_module.cli, ["seed-roles"])

    assert first.exit_code == 0 and second.exit_code == 0
    assert "already up to date" in second.output
    assert db.query(RolePermission).count() > 0


def test_unknown_org_fails(runner):
    result = runner.invoke(cli_module.cli, ["restore-guardians", "--org-slug", "missing"])

    assert result.exit_code != 0
    assert "not found" in result.output


def test_link_teachers_dry_run_then_apply(runner, db, test_org, make_profile, make_teacher):
    profile = make_profile(email="anna@school.test")
    teacher = make_teacher(email="anna@school.test")
    db.commit()

    dry = runner.invoke(cli_module.cli, ["link-teachers", "--org-slug", test_org.slug, "--dry-run"])
    assert dry.exit_code == 0
    assert "Found 1 teacher(s)" in dry.output
    db.expire_all()
    assert db.get(Teacher, teacher.id).profile_id is None

    applied = runner.invoke(cli_module.cli, ["link-teachers", "--org-slug", test_org.slug])
    assert applied.exit_code == 0
    db.expire_all()
    assert db.get(Teacher, teacher.id).profile_id == profile.id



def test_import_teachers_from_csv(runner, db, test_org, make_profile, tmp_path):
    profile = make_profile(phone="+79261234567")
    db.commit()
    csv_path = tmp_path / "teachers.csv"
    csv_path.write_text(
        "first_name,last_name,email,phone,branch,subjects,categories\n"
        "Анна,Иванова,,8 926 123 45 67,Центр,English;German,Kids\n"
        ",Пустой,empty@x.com,,,,\n"
        "Борис,,boris@x.com,,,,\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli_module.cli, [
        "import-teachers", "--org-slug", test_org.slug, "--file", str(csv_path),
    ])

    assert result.exit_code == 0, result.output
    assert "Linked 1, invited 1, failed 1" in result.output
    assert "row 2: first_name is required" in result.output
    assert "/teacher/onboarding/" in result.output
    db.expire_all()
    anna = db.query(Teacher).filter(Teacher.first_name == "Анна").one()
    assert anna.profile_id == profile.id
    assert anna.subjects == ["English", "German"]
    assert anna.categories == ["Kids"]
    assert db.query(Teacher).count() == 2


def test_split_family_needs_yes(runner, db, test_org, make_group, make_student):
    group = make_group()
    make_student("Петя", group=group)
    make_student("Аня", group=group)
    db.commit()

    preview = runner.invoke(cli_module.cli, [
        "split-family", "--org-slug", test_org.slug, "--group-id", str(group.id),
    ])
    assert preview.exit_code == 0
    assert "Nothing changed" in preview.output
    assert db.query(FamilyGroup).count() == 1

    applied = runner.invoke(cli_module.cli, [
        "split-family", "--org-slug", test_org.slug, "--group-id", str(group.id), "--yes",
    ])
    assert applied.exit_code == 0
    assert db.query(FamilyGroup).filter(FamilyGroup.id == group.id).count() == 0
    assert db.query(FamilyGroup).count() == 2


def test_dedup_and_reorganize(runner, db, test_org, make_group, make_client, make_member, make_student):
    group = make_group("Семья Лена")
    mom = make_client("Лена Иванова")
    make_member(group, mom)
    make_member(group, mom)
    make_student("Лена", group=group)
    db.commit()

    dedup = runner.invoke(cli_module.cli, ["dedup-families", "--org-slug", test_org.slug])
    assert dedup.exit_code == 0
    assert "Removed 1 duplicate edge(s)" in dedup.output

    reorganized = runner.invoke(cli_module.cli, [
        "reorganize-families", "--org-slug", test_org.slug, "--yes",
    ])
    assert reorganized.exit_code == 0
    assert "Restored 1 guardian link(s)" in reorganized.output
    assert db.query(FamilyMember).count() == 1
