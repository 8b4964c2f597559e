"""Role assignment tests."""

import uuid

import pytest

from backoffice.db.enums import Role
from backoffice.services import profile_service, role_service
from backoffice.services.errors import NotFoundError, ValidationError


def test_assign_role_is_idempotent(db, test_org, make_profile):
    profile = make_profile()

    assert role_service.assign_role(db, test_org.id, profile.id, Role.MANAGER) is True
    assert role_service.assign_role(db, test_org.id, profile.id, "manager") is False

    assert role_service.list_roles(db, profile.id) == ["manager"]


def test_revoke_missing_role_is_noop(db, test_org, make_profile):
    profile = make_profile(roles=(Role.TEACHER,))

    assert role_service.revoke_role(db, test_org.id, profile.id, Role.ACCOUNTANT) is False
    assert role_service.revoke_role(db, test_org.id, profile.id, Role.TEACHER) is True
    assert role_service.list_roles(db, profile.id) == []


def test_unknown_role_is_rejected(db, test_org, make_profile):
    profile = make_profile()

    with pytest.raises(ValidationError):
        role_service.assign_role(db, test_org.id, profile.id, "superuser")
    with pytest.raises(ValidationError):
        role_service.assign_role(db, test_org.id, profile.id, "")


def test_missing_profile_is_not_found(db, test_org, make_org, make_profile):
    with pytest.raises(NotFoundError):
        role_service.assign_role(db, test_org.id, uuid.uuid4(), Role.TEACHER)

    foreign = make_profile(org=make_org("Other"))
    with pytest.raises(NotFoundError):
        role_service.revoke_role(db, test_org.id, foreign.id, Role.TEACHER)


def test_actor_cannot_change_own_roles(db, test_org, make_profile):
    admin = make_profile(roles=(Role.ADMIN,))
    other = make_profile()

    with pytest.raises(ValidationError):
        role_service.assign_role(db, test_org.id, admin.id, Role.MANAGER, actor_profile_id=admin.id)
    with pytest.raises(ValidationError):
        role_service.revoke_role(db, test_org.id, admin.id, Role.ADMIN, actor_profile_id=admin.id)

    assert role_service.assign_role(db, test_org.id, other.id, Role.MANAGER, actor_profile_id=admin.id)
    assert role_service.list_roles(db, admin.id) == ["admin"]


def test_multiple_roles_sorted(db, test_org, make_profile):
    profile = make_profile()
    for role in (Role.TEACHER, Role.ACCOUNTANT, Role.METHODIST):
        role_service.assign_role(db, test_org.id, profile.id, role)

    assert role_service.list_roles(db, profile.id) == ["accountant", "methodist", "teacher"]
    assert role_service.has_role(db, profile.id, Role.METHODIST)
    assert not role_service.has_role(db, profile.id, Role.ADMIN)


def test_list_profiles_with_roles(db, test_org, make_profile):
    first = make_profile(first_name="A", roles=(Role.MANAGER, Role.ADMIN))
    second = make_profile(first_name="B")
    make_profile(first_name="C", is_active=False, roles=(Role.TEACHER,))

    rows = role_service.list_profiles_with_roles(db, test_org.id)

    assert [(p.id, roles) for p, roles in rows] == [
        (first.id, ["admin", "manager"]),
        (second.id, []),
    ]
    assert len(role_service.list_profiles_with_roles(db, test_org.id, include_inactive=True)) == 3


def test_deactivated_profile_drops_out_of_listing(db, test_org, make_profile):
    profile = make_profile(roles=(Role.MANAGER,))

    profile_service.deactivate_profile(db, test_org.id, profile.id)
    profile_service.deactivate_profile(db, test_org.id, profile.id)

    assert profile.is_active is False
    assert role_service.list_profiles_with_roles(db, test_org.id) == []
    assert role_service.list_roles(db, profile.id) == ["manager"]
