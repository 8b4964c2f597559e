"""
HTTP-level tests: auth, CSRF, permission gates and error mapping.

Service behaviour is covered in the service test modules; these check the
wiring around it.
"""

import uuid

import pytest

from backoffice.core.deps import COOKIE_NAME
from backoffice.core.security import hash_password
from backoffice.db.enums import AdminSection, Role
from backoffice.db.models import Teacher


# =============================================================================
# Health & Auth
# =============================================================================

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_unauthenticated_request_is_rejected(client):
    response = await client.get("/teachers")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_garbage_cookie_is_rejected(client):
    client.cookies.set(COOKIE_NAME, "not-a-jwt")

    response = await client.get("/auth/me")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_sets_session_cookie(client, db, test_org, make_profile):
    make_profile(email="staff@school.test", password_hash=hash_password("correct horse"), roles=(Role.MANAGER,))
    db.commit()

    bad = await client.post("/auth/login", json={
        "org_slug": test_org.slug, "email": "staff@school.test", "password": "wrong",
    })
    assert bad.status_code == 401

    response = await client.post("/auth/login", json={
        "org_slug": test_org.slug, "email": "STAFF@school.test", "password": "correct horse",
    })
    assert response.status_code == 200
    assert COOKIE_NAME in response.cookies

    client.cookies.set(COOKIE_NAME, response.cookies[COOKIE_NAME])
    me = await client.get("/auth/me")
    assert me.status_code == 200
    assert me.json()["roles"] == ["manager"]


@pytest.mark.asyncio
async def test_me_lists_all_sections_for_admin(authed_client):
    response = await authed_client.get("/auth/me")

    assert response.status_code == 200
    data = response.json()
    assert data["roles"] == ["admin"]
    assert data["admin_sections"] == [s.value for s in AdminSection]


@pytest.mark.asyncio
async def test_deactivated_profile_loses_session(db, client_for, make_profile):
    profile = make_profile(roles=(Role.ADMIN,))

    async with client_for(profile) as c:
        assert (await c.get("/auth/me")).status_code == 200

        profile.is_active = False
        db.commit()

        assert (await c.get("/auth/me")).status_code == 401


@pytest.mark.asyncio
async def test_mutation_without_csrf_header_is_rejected(client_for, admin_profile):
    async with client_for(admin_profile, csrf=False) as c:
        response = await c.post("/teachers", json={"first_name": "Anna"})

    assert response.status_code == 403


# =============================================================================
# Permission Gates
# =============================================================================

@pytest.mark.asyncio
async def test_teacher_role_cannot_manage_teachers(seeded_roles, client_for, make_profile):
    teacher = make_profile(roles=(Role.TEACHER,))

    async with client_for(teacher) as c:
        assert (await c.get("/teachers")).status_code == 403
        assert (await c.get("/textbooks")).status_code == 200


@pytest.mark.asyncio
async def test_branch_manager_family_sections(seeded_roles, client_for, make_profile):
    manager = make_profile(roles=(Role.BRANCH_MANAGER,))

    async with client_for(manager) as c:
        assert (await c.get("/family-groups/issues")).status_code == 200
        assert (await c.get("/family-groups/reorganize/preview")).status_code == 403


@pytest.mark.asyncio
async def test_override_grants_access(db, test_org, seeded_roles, client_for, make_profile, admin_profile):
    receptionist = make_profile(roles=(Role.RECEPTIONIST,))

    async with client_for(receptionist) as c:
        assert (await c.get("/teachers")).status_code == 403

    async with client_for(admin_profile) as admin:
        response = await admin.put(
            f"/settings/permissions/profiles/{receptionist.id}/overrides",
            json={"permission": "view:teachers", "is_granted": True},
        )
        assert response.status_code == 200
        assert "view:teachers" in response.json()["permissions"]

        own = await admin.put(
            f"/settings/permissions/profiles/{admin_profile.id}/overrides",
            json={"permission": "view:teachers", "is_granted": False},
        )
        assert own.status_code == 422

    async with client_for(receptionist) as c:
        assert (await c.get("/teachers")).status_code == 200


@pytest.mark.asyncio
async def test_assign_unknown_role_is_rejected(authed_client, make_profile):
    profile = make_profile()

    response = await authed_client.post(f"/settings/profiles/{profile.id}/roles", json={"role": "wizard"})

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_admin_cannot_change_own_roles(authed_client, admin_profile):
    granted = await authed_client.post(f"/settings/profiles/{admin_profile.id}/roles", json={"role": "manager"})
    revoked = await authed_client.delete(f"/settings/profiles/{admin_profile.id}/roles/admin")

    assert granted.status_code == 422
    assert revoked.status_code == 422
    assert revoked.json()["detail"] == "Cannot change your own roles"


# =============================================================================
# Teachers & Onboarding
# =============================================================================

@pytest.mark.asyncio
async def test_create_teacher_links_matching_profile(authed_client, make_profile):
    profile = make_profile(email="anna@school.test")

    response = await authed_client.post("/teachers", json={"first_name": "Anna", "email": " Anna@School.test "})

    assert response.status_code == 201
    data = response.json()
    assert data["linked"] is True
    assert data["match_reason"] == "email"
    assert data["teacher"]["profile_id"] == str(profile.id)
    assert data["invite_link"] is None


@pytest.mark.asyncio
async def test_invitation_onboarding_flow(db, authed_client, client):
    created = await authed_client.post("/teachers", json={"first_name": "Boris", "branch": "Центр"})
    assert created.status_code == 201
    data = created.json()
    assert data["linked"] is False
    token = data["invite_link"].rsplit("/", 1)[-1]

    info = await client.get(f"/onboarding/{token}")
    assert info.status_code == 200
    assert info.json()["first_name"] == "Boris"

    completed = await client.post(f"/onboarding/{token}/complete", json={
        "email": "boris@school.test",
        "password": "long-enough",
        "last_name": "Petrov",
        "terms_accepted": True,
    })
    assert completed.status_code == 200
    teacher = db.get(Teacher, uuid.UUID(data["teacher"]["id"]))
    db.refresh(teacher)
    assert str(teacher.profile_id) == completed.json()["profile_id"]

    reused = await client.get(f"/onboarding/{token}")
    assert reused.status_code == 409
    assert reused.json()["code"] == "already_used"


@pytest.mark.asyncio
async def test_onboarding_bad_tokens(client):
    malformed = await client.get("/onboarding/short")
    unknown = await client.get(f"/onboarding/{'x' * 43}")

    assert (malformed.status_code, malformed.json()["code"]) == (400, "invalid_token")
    assert (unknown.status_code, unknown.json()["code"]) == (404, "not_found")


@pytest.mark.asyncio
async def test_import_teachers_reports_rows(authed_client, make_profile):
    profile = make_profile(email="anna@school.test")

    response = await authed_client.post("/teachers/import", json={"rows": [
        {"first_name": "Anna", "email": "anna@school.test"},
        {"first_name": "", "email": "blank@school.test"},
        {"first_name": "Boris", "subjects": ["English"]},
    ]})

    assert response.status_code == 200
    data = response.json()
    assert (data["linked"], data["invited"], data["failed"]) == (1, 1, 1)
    linked, failed, invited = data["rows"]
    assert linked["match_reason"] == "email"
    assert linked["invite_link"] is None
    assert (failed["row"], failed["ok"], failed["error"]) == (2, False, "first_name is required")
    assert invited["invite_link"].startswith("http")
    teacher = await authed_client.get(f"/teachers/{linked['teacher_id']}")
    assert teacher.json()["profile_id"] == str(profile.id)


@pytest.mark.asyncio
async def test_patch_teacher(authed_client, make_teacher):
    teacher = make_teacher(is_active=False)

    response = await authed_client.patch(f"/teachers/{teacher.id}", json={
        "phone": "8 926 123 45 67", "is_active": True,
    })

    assert response.status_code == 200
    data = response.json()
    assert data["phone"] == "+79261234567"
    assert data["is_active"] is True
    assert data["first_name"] == "Anna"

    empty = await authed_client.patch(f"/teachers/{teacher.id}", json={"first_name": " "})
    assert empty.status_code == 422


@pytest.mark.asyncio
async def test_missing_teacher_is_404(authed_client):
    response = await authed_client.get(f"/teachers/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json() == {"detail": "Teacher not found", "code": "not_found"}


# =============================================================================
# Family Groups
# =============================================================================

@pytest.mark.asyncio
async def test_split_requires_confirmation(authed_client, make_group, make_student):
    group = make_group()
    make_student("Петя", group=group)
    make_student("Аня", group=group)

    preview = await authed_client.get(f"/family-groups/{group.id}/split/preview")
    assert preview.json()["new_group_names"] == ["Семья Петя", "Семья Аня"]

    refused = await authed_client.post(f"/family-groups/{group.id}/split", json={})
    assert refused.status_code == 422
    assert refused.json()["code"] == "validation_error"

    done = await authed_client.post(f"/family-groups/{group.id}/split", json={"confirm": True})
    assert done.status_code == 200
    assert done.json() == {"created_groups": 2}


@pytest.mark.asyncio
async def test_reorganize_with_restore(authed_client, make_group, make_client, make_member, make_student):
    group = make_group("Семья Ивановы")
    make_member(group, make_client("Лена Иванова"))
    make_student("Лена", group=group)
    make_student("Олег", group=group)

    response = await authed_client.post("/family-groups/reorganize", json={"confirm": True})

    assert response.status_code == 200
    data = response.json()
    assert data["created_groups"] == 2
    assert data["restore"] == {"linked": 1, "not_found": 1, "skipped": 0, "errors": 0}


@pytest.mark.asyncio
async def test_family_members_page(authed_client, make_group, make_client, make_member):
    group = make_group()
    member = make_member(group, make_client("Мама"))

    page = await authed_client.get("/family-groups/members", params={"per_page": 10})
    assert page.status_code == 200
    assert page.json()["total"] == 1
    assert page.json()["pages"] == 1

    deleted = await authed_client.delete(f"/family-groups/members/{member.id}")
    assert deleted.status_code == 204
    assert (await authed_client.get("/family-groups/members")).json()["total"] == 0
