"""
Family-graph maintenance tests.

Tests cover:
- Issue detection (duplicates, oversized groups)
- Per-group and org-wide deduplication (first edge per client survives)
- Split into singleton groups
- Reorganize + guardian restore, including per-student storage failures
- Member listing and deletion
"""

import uuid

import pytest

from backoffice.db.models import FamilyGroup, FamilyMember, Student
from backoffice.services import family_service
from backoffice.services.errors import NotFoundError, ValidationError
from backoffice.utils.pagination import PaginationParams


def _edges(db, group) -> list[tuple[uuid.UUID, uuid.UUID]]:
    rows = db.query(FamilyMember).filter(
        FamilyMember.family_group_id == group.id,
    ).order_by(FamilyMember.created_at).all()
    return [(m.id, m.client_id) for m in rows]


def _group_exists(db, group_id) -> bool:
    return db.query(FamilyGroup).filter(FamilyGroup.id == group_id).count() > 0


# =============================================================================
# Helpers
# =============================================================================

@pytest.mark.parametrize("name,expected", [
    ("Иван Петров", "Семья Иван"),
    ("  Маша  ", "Семья Маша"),
    ("", "Семья"),
    (None, "Семья"),
])
def test_group_name_for(name, expected):
    assert family_service.group_name_for(name) == expected


@pytest.mark.parametrize("group_name,expected", [
    ("Семья Иван", "Иван"),
    ("Семья ", None),
    ("Ивановы", None),
    (None, None),
])
def test_guardian_name_from_group(group_name, expected):
    assert family_service.guardian_name_from_group(group_name) == expected


def test_guardian_name_custom_prefix():
    assert family_service.guardian_name_from_group("Family Smith", prefix="Family ") == "Smith"


# =============================================================================
# Detection & Deduplication
# =============================================================================

def test_detect_issues(db, test_org, make_group, make_client, make_member):
    mom, dad, gran, aunt = (make_client(n) for n in ("Мама", "Папа", "Бабушка", "Тётя"))

    clean = make_group("Семья A")
    make_member(clean, mom)

    duplicated = make_group("Семья B")
    make_member(duplicated, mom)
    make_member(duplicated, mom)

    oversized = make_group("Семья C")
    for client in (mom, dad, gran, aunt):
        make_member(oversized, client)

    issues = family_service.detect_issues(db, test_org.id)

    assert [i.group.id for i in issues] == [duplicated.id, oversized.id]
    assert issues[0].has_duplicates and issues[0].duplicate_count == 1
    assert not issues[1].has_duplicates and len(issues[1].members) == 4

    assert [i.group.id for i in family_service.detect_issues(db, test_org.id, max_members=4)] == [duplicated.id]


def test_deduplicate_group_keeps_first_edge(db, test_org, make_group, make_client, make_member):
    mom, dad = make_client("Мама"), make_client("Папа")
    group = make_group()
    first = make_member(group, mom)
    make_member(group, dad)
    make_member(group, mom)
    make_member(group, mom)

    removed = family_service.deduplicate_group(db, test_org.id, group.id)

    assert removed == 2
    edges = _edges(db, group)
    assert [client for _, client in edges] == [mom.id, dad.id]
    assert edges[0][0] == first.id
    assert family_service.deduplicate_group(db, test_org.id, group.id) == 0


def test_deduplicate_group_missing(db, test_org, make_org, make_group):
    foreign = make_group(org=make_org("Other"))

    with pytest.raises(NotFoundError):
        family_service.deduplicate_group(db, test_org.id, uuid.uuid4())
    with pytest.raises(NotFoundError):
        family_service.deduplicate_group(db, test_org.id, foreign.id)


def test_deduplicate_all_in_chunks(db, test_org, make_org, make_group, make_client, make_member):
    mom = make_client("Мама")
    a, b = make_group("A"), make_group("B")
    for _ in range(3):
        make_member(a, mom)
    make_member(b, mom)
    make_member(b, mom)

    other_org = make_org("Other")
    other_group = make_group(org=other_org)
    other_client = make_client("Чужая", org=other_org)
    make_member(other_group, other_client)
    make_member(other_group, other_client)

    removed = family_service.deduplicate_all(db, test_org.id, chunk_size=1)

    assert removed == 3
    assert len(_edges(db, a)) == 1
    assert len(_edges(db, b)) == 1
    assert len(_edges(db, other_group)) == 2
    assert family_service.detect_issues(db, test_org.id) == []


# =============================================================================
# Split
# =============================================================================

def test_split_group(db, test_org, make_group, make_client, make_member, make_student):
    group = make_group("Семья Ивановы")
    make_member(group, make_client("Мама"))
    kids = [make_student("Петя", "Иванов", group), make_student("Аня", "Иванова", group)]
    bystander = make_student("Коля")

    preview = family_service.preview_split(db, test_org.id, group.id)
    assert preview.members_to_delete == 1
    assert preview.new_group_names == ["Семья Петя", "Семья Аня"]

    created = family_service.split_group(db, test_org.id, group.id)

    assert created == 2
    assert not _group_exists(db, group.id)
    assert db.query(FamilyMember).count() == 0

    new_group_ids = {db.get(Student, kid.id).family_group_id for kid in kids}
    assert len(new_group_ids) == 2
    names = {db.get(FamilyGroup, gid).name for gid in new_group_ids}
    assert names == {"Семья Петя", "Семья Аня"}
    assert db.get(Student, bystander.id).family_group_id is None


def test_split_needs_two_students(db, test_org, make_group, make_student):
    group = make_group()
    make_student("Петя", group=group)

    with pytest.raises(ValidationError):
        family_service.split_group(db, test_org.id, group.id)
    assert _group_exists(db, group.id)



def test_student_display_name_is_derived(make_student):
    student = make_student("Маша", "Смирнова")

    assert student.full_name == "Маша Смирнова"
    assert make_student("Ира").full_name == "Ира"
    assert "name" not in Student.__table__.columns

# =============================================================================
# Reorganize & Restore
# =============================================================================

def test_reorganize_then_restore(db, test_org, make_org, make_group, make_client, make_member, make_student):
    shared = make_group("Семья Смирновы")
    mom = make_client("МАША Смирнова (мама)")
    make_member(shared, mom)
    make_member(shared, mom)
    masha = make_student("маша", "Смирнова", shared)
    petya = make_student("Петя", "Смирнов", shared)
    loner = make_student("Ира")

    other_org = make_org("Other")
    other_group = make_group(org=other_org)
    make_student("Чужой", group=other_group, org=other_org)
    shared_id, other_group_id = shared.id, other_group.id

    preview = family_service.preview_reorganize(db, test_org.id)
    assert (preview.total_groups, preview.total_members, preview.total_students) == (1, 2, 3)

    result = family_service.reorganize_all(db, test_org.id)

    assert result.total_students == 3
    assert result.created_groups == 3
    assert result.errors == 0
    assert not _group_exists(db, shared_id)
    assert _group_exists(db, other_group_id)

    groups = {
        s.id: s.family_group_id
        for s in db.query(Student).filter(Student.organization_id == test_org.id)
    }
    assert len(set(groups.values())) == 3
    assert db.get(FamilyGroup, groups[masha.id]).name == "Семья маша"

    restored = family_service.restore_guardian_links(db, test_org.id)

    assert restored.linked == 1
    assert restored.not_found == 2
    assert restored.skipped == 0
    assert set(restored.results.reasons) == {str(petya.id), str(loner.id)}

    edges = db.query(FamilyMember).filter(FamilyMember.family_group_id == groups[masha.id]).all()
    assert [(e.client_id, e.relationship_type, e.is_primary_contact) for e in edges] == [
        (mom.id, "main", True),
    ]

    again = family_service.restore_guardian_links(db, test_org.id)
    assert again.linked == 0
    assert again.skipped == 1


def test_restore_first_matching_client_wins(db, test_org, make_group, make_client, make_student):
    first = make_client("Анна Петровна")
    make_client("Анна Сергеевна")
    group = make_group("Семья Анна")
    make_student("Дима", group=group)

    result = family_service.restore_guardian_links(db, test_org.id)

    assert result.linked == 1
    assert [client for _, client in _edges(db, group)] == [first.id]


def test_restore_ignores_groups_without_prefix(db, test_org, make_group, make_client, make_student):
    make_client("Ивановы")
    make_student("Дима", group=make_group("Ивановы"))

    result = family_service.restore_guardian_links(db, test_org.id)

    assert (result.linked, result.not_found) == (0, 1)



def test_reorganize_continues_past_failed_student(db, test_org, make_student, monkeypatch):
    real_name_for = family_service.group_name_for
    monkeypatch.setattr(
        family_service, "group_name_for",
        lambda name, prefix=None: None if name == "Сбой" else real_name_for(name, prefix),
    )
    first = make_student("Петя")
    broken = make_student("Сбой")
    last = make_student("Аня")
    broken_id = broken.id
    db.commit()

    result = family_service.reorganize_all(db, test_org.id)

    assert (result.created_groups, result.errors) == (2, 1)
    assert set(result.results.reasons) == {str(broken_id)}
    assert "NOT NULL" in result.results.reasons[str(broken_id)]
    assert db.get(Student, broken_id).family_group_id is None
    assert db.get(Student, first.id).family_group_id is not None
    assert db.get(Student, last.id).family_group_id is not None


def test_restore_reports_storage_failure(db, test_org, make_group, make_client, make_student, monkeypatch):
    real_find = family_service._find_client
    monkeypatch.setattr(
        family_service, "_find_client",
        lambda clients, name: uuid.uuid4() if name == "Призрак" else real_find(clients, name),
    )
    make_client("Анна Петровна")
    good = make_group("Семья Анна")
    make_student("Дима", group=good)
    ghost_student = make_student("Оля", group=make_group("Семья Призрак"))
    ghost_id = ghost_student.id
    db.commit()

    result = family_service.restore_guardian_links(db, test_org.id)

    assert (result.linked, result.errors, result.not_found) == (1, 1, 0)
    assert set(result.results.reasons) == {str(ghost_id)}
    assert "FOREIGN KEY" in result.results.reasons[str(ghost_id)]
    assert len(_edges(db, good)) == 1

# =============================================================================
# Member Listing
# =============================================================================

def test_list_family_members_paginates(db, test_org, make_group, make_client, make_member, make_student):
    a, b = make_group("Семья A"), make_group("Семья B")
    make_student("Яна", group=a)
    make_student("Боря", group=a)
    for i in range(3):
        make_member(b, make_client(f"Client {i}"))
    make_member(a, make_client("Mom"))

    rows, total = family_service.list_family_members(db, test_org.id, PaginationParams(page=1, per_page=2))

    assert total == 4
    assert [(r.group_name, r.client_name) for r in rows] == [("Семья A", "Mom"), ("Семья B", "Client 0")]
    assert rows[0].students == ["Боря", "Яна"]
    assert rows[1].students == []

    last, _ = family_service.list_family_members(db, test_org.id, PaginationParams(page=2, per_page=2))
    assert [r.client_name for r in last] == ["Client 1", "Client 2"]


def test_delete_family_member(db, test_org, make_org, make_group, make_client, make_member):
    member = make_member(make_group(), make_client("Мама"))
    other_org = make_org("Other")
    foreign = make_member(make_group(org=other_org), make_client("Чужая", org=other_org))

    family_service.delete_family_member(db, test_org.id, member.id)

    assert db.query(FamilyMember).filter(FamilyMember.id == member.id).count() == 0
    with pytest.raises(NotFoundError):
        family_service.delete_family_member(db, test_org.id, member.id)
    with pytest.raises(NotFoundError):
        family_service.delete_family_member(db, test_org.id, foreign.id)
