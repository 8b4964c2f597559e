"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite schema per test (services commit freely)
- Factories for organizations, profiles, teachers and the family graph
- JWT cookie minting for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import itertools
import os
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.core.deps import COOKIE_NAME, get_db
from backoffice.core.security import create_session_token
from backoffice.db.base import Base
from backoffice.db.enums import Role
from backoffice.db.models import (
    Client,
    FamilyGroup,
    FamilyMember,
    Organization,
    Profile,
    Student,
    Teacher,
    UserRole,
)
from backoffice.main import app


CSRF_HEADERS = {"X-Requested-With": "XMLHttpRequest"}

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
_clock = itertools.count()


def _tick() -> datetime:
    """Strictly increasing created_at so insertion order is deterministic."""
    return _BASE_TIME + timedelta(seconds=next(_clock))


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture(scope="function")
def make_org(db: Session):
    def _make(name: str = "Test School") -> Organization:
        org = Organization(
            id=uuid.uuid4(),
            name=name,
            slug=f"test-org-{uuid.uuid4().hex[:8]}",
            created_at=_tick(),
        )
        db.add(org)
        db.flush()
        return org
    return _make


@pytest.fixture(scope="function")
def test_org(make_org) -> Organization:
    return make_org()


@pytest.fixture(scope="function")
def make_profile(db: Session, test_org: Organization):
    def _make(
        email: str | None = None,
        phone: str | None = None,
        first_name: str = "Test",
        last_name: str = "Profile",
        roles: tuple[Role, ...] = (),
        org: Organization | None = None,
        is_active: bool = True,
        password_hash: str | None = None,
    ) -> Profile:
        profile = Profile(
            id=uuid.uuid4(),
            organization_id=(org or test_org).id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            is_active=is_active,
            password_hash=password_hash,
            created_at=_tick(),
        )
        db.add(profile)
        db.flush()
        for role in roles:
            db.add(UserRole(profile_id=profile.id, role=role.value))
        db.flush()
        return profile
    return _make


@pytest.fixture(scope="function")
def make_teacher(db: Session, test_org: Organization):
    def _make(
        first_name: str = "Anna",
        last_name: str | None = "Teacher",
        email: str | None = None,
        phone: str | None = None,
        profile_id: uuid.UUID | None = None,
        is_active: bool = True,
        org: Organization | None = None,
    ) -> Teacher:
        teacher = Teacher(
            id=uuid.uuid4(),
            organization_id=(org or test_org).id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            profile_id=profile_id,
            is_active=is_active,
            created_at=_tick(),
        )
        db.add(teacher)
        db.flush()
        return teacher
    return _make


@pytest.fixture(scope="function")
def make_client(db: Session, test_org: Organization):
    def _make(name: str, org: Organization | None = None) -> Client:
        client = Client(
            id=uuid.uuid4(),
            organization_id=(org or test_org).id,
            name=name,
            created_at=_tick(),
        )
        db.add(client)
        db.flush()
        return client
    return _make


@pytest.fixture(scope="function")
def make_group(db: Session, test_org: Organization):
    def _make(name: str = "Семья Тест", org: Organization | None = None) -> FamilyGroup:
        group = FamilyGroup(
            id=uuid.uuid4(),
            organization_id=(org or test_org).id,
            name=name,
            created_at=_tick(),
        )
        db.add(group)
        db.flush()
        return group
    return _make


@pytest.fixture(scope="function")
def make_student(db: Session, test_org: Organization):
    def _make(
        first_name: str,
        last_name: str | None = None,
        group: FamilyGroup | None = None,
        org: Organization | None = None,
    ) -> Student:
        student = Student(
            id=uuid.uuid4(),
            organization_id=(org or test_org).id,
            first_name=first_name,
            last_name=last_name,
            family_group_id=group.id if group else None,
            created_at=_tick(),
        )
        db.add(student)
        db.flush()
        return student
    return _make


@pytest.fixture(scope="function")
def make_member(db: Session):
    def _make(group: FamilyGroup, client: Client, is_primary_contact: bool = False) -> FamilyMember:
        member = FamilyMember(
            id=uuid.uuid4(),
            family_group_id=group.id,
            client_id=client.id,
            is_primary_contact=is_primary_contact,
            created_at=_tick(),
        )
        db.add(member)
        db.flush()
        return member
    return _make


@pytest.fixture(scope="function")
def seeded_roles(db: Session) -> int:
    """Role templates seeded from ROLE_DEFAULTS."""
    from backoffice.services import permission_service

    created = permission_service.seed_role_defaults(db)
    db.commit()
    return created


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    profile: Profile
    org: Organization
    token: str
    cookie_name: str = COOKIE_NAME


def mint_auth(profile: Profile, org: Organization) -> TestAuth:
    return TestAuth(
        profile=profile,
        org=org,
        token=create_session_token(profile.id, org.id),
    )


@pytest.fixture(scope="function")
def admin_profile(make_profile) -> Profile:
    return make_profile(
        email=f"admin-{uuid.uuid4().hex[:8]}@test.com",
        first_name="Admin",
        last_name="User",
        roles=(Role.ADMIN,),
    )


@pytest.fixture(scope="function")
def test_auth(db: Session, admin_profile: Profile, test_org: Organization) -> TestAuth:
    db.commit()
    return mint_auth(admin_profile, test_org)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def override_db(db: Session):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(override_db) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=CSRF_HEADERS,
    ) as c:
        yield c


@pytest.fixture(scope="function")
async def authed_client(override_db, test_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated (admin) AsyncClient with JWT cookie and CSRF header.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers=CSRF_HEADERS,
    ) as c:
        yield c


@pytest.fixture(scope="function")
def client_for(db: Session, override_db, test_org: Organization):
    """Factory: AsyncClient authenticated as an arbitrary profile."""
    @asynccontextmanager
    async def _client(profile: Profile, csrf: bool = True):
        db.commit()
        auth = mint_auth(profile, test_org)
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={auth.cookie_name: auth.token},
            headers=CSRF_HEADERS if csrf else {},
        ) as c:
            yield c
    return _client
