"""
Test configuration and fixtures.

Provides:
- SQLite in-memory database, rebuilt for each test, with the catalog seeded
- An in-process Redis double behind a real PresenceStore
- Registered tenants (company + admin + trial) with JWTs
- HTTPX AsyncClient wired to the app with dependency overrides
"""
import asyncio
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["REDIS_URL"] = ""
os.environ["BOOTSTRAP_CATALOG"] = "false"

import pytest
from httpx import AsyncClient, ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.orm import Session

from chatdesk.core.deps import get_db, get_presence_store
from chatdesk.core.presence import PresenceStore
from chatdesk.core.security import create_access_token
from chatdesk.db.base import Base
from chatdesk.db.models import Company, User
from chatdesk.db.session import SessionLocal, engine
from chatdesk.main import app
from chatdesk.schemas.company import CompanyRegister
from chatdesk.schemas.user import UserCreate
from chatdesk.services import catalog_service, company_service, user_service


# =============================================================================
# Redis double
# =============================================================================

class FakeRedis:
    """Minimal async Redis stand-in for the commands PresenceStore issues."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def ping(self):
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.values[key] = value
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
            removed += int(self.sets.pop(key, None) is not None)
        return removed

    async def sadd(self, key, *members):
        self._check()
        bucket = self.sets.setdefault(key, set())
        before = len(bucket)
        bucket.update(members)
        return len(bucket) - before

    async def srem(self, key, *members):
        self._check()
        bucket = self.sets.get(key, set())
        removed = len(bucket & set(members))
        bucket.difference_update(members)
        return removed

    async def smembers(self, key):
        self._check()
        return set(self.sets.get(key, set()))

    async def aclose(self):
        return None


def _run_sync(coro):
    """Run a coroutine on a private loop, leaving the current loop untouched."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture(scope="function")
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture(scope="function")
def presence(fake_redis: FakeRedis) -> Generator[PresenceStore, None, None]:
    """A ready presence store over FakeRedis. Reconnects are disabled."""
    store = PresenceStore(client=fake_redis, retry_base_seconds=0, max_retries=0)
    _run_sync(store.start())
    yield store
    _run_sync(store.stop())


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test on the shared in-memory engine.

    App code commits freely; the tables are dropped afterwards.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    catalog_service.ensure_catalog(session)

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


# =============================================================================
# Tenant Fixtures
# =============================================================================

@dataclass
class TestTenant:
    """A registered company with its company_admin and tokens."""
    company: Company
    admin: User
    token: str
    refresh_token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def register_tenant(db: Session, slug: str, email: str | None = None) -> TestTenant:
    company, tokens = company_service.register_company(
        db,
        CompanyRegister(
            company_name=f"{slug.title()} Inc",
            slug=slug,
            email=email or f"admin-{uuid.uuid4().hex[:8]}@example.com",
            password="password123",
            first_name="Ada",
            last_name="Admin",
        ),
    )
    admin = db.get(User, tokens.user.id)
    return TestTenant(
        company=company,
        admin=admin,
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@pytest.fixture(scope="function")
def tenant(db: Session) -> TestTenant:
    return register_tenant(db, "acme")


@pytest.fixture(scope="function")
def other_tenant(db: Session) -> TestTenant:
    return register_tenant(db, "globex")


@pytest.fixture(scope="function")
def make_tenant(db: Session) -> Callable[[str], TestTenant]:
    return lambda slug: register_tenant(db, slug)


def token_for(user: User, role_name: str) -> str:
    return create_access_token(
        user_id=user.id,
        company_id=user.company_id,
        role=role_name,
        token_version=user.token_version,
    )


@pytest.fixture(scope="function")
def make_user(db: Session) -> Callable[..., tuple[User, dict[str, str]]]:
    """
    Factory creating a user with a system role in a company.

    Returns (user, auth_headers).
    """
    def _make(company_id, role_name: str = "agent", first_name: str = "Sam"):
        role = catalog_service.get_system_role(db, role_name)
        user = user_service.create_user(
            db,
            company_id,
            UserCreate(
                email=f"{role_name}-{uuid.uuid4().hex[:8]}@example.com",
                password="password123",
                first_name=first_name,
                last_name="Tester",
                role_id=role.id,
            ),
        )
        return user, {"Authorization": f"Bearer {token_for(user, role_name)}"}

    return _make


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, presence: PresenceStore) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient; pass auth headers per request."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_presence_store] = lambda: presence

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    presence: PresenceStore,
    tenant: TestTenant,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient authenticated as the tenant's company_admin."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_presence_store] = lambda: presence

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=tenant.headers,
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def super_admin(db: Session) -> tuple[User, dict[str, str]]:
    """Platform super admin living in its own platform company."""
    from chatdesk.core.security import generate_widget_key, hash_password

    company = Company(
        name="Platform",
        slug="platform",
        email="ops@example.com",
        widget_key=generate_widget_key(),
    )
    db.add(company)
    db.flush()
    role = catalog_service.get_system_role(db, "super_admin")
    user = User(
        company_id=company.id,
        role_id=role.id,
        email="root@example.com",
        password_hash=hash_password("password123"),
        first_name="Root",
        last_name="Admin",
    )
    db.add(user)
    db.commit()
    return user, {"Authorization": f"Bearer {token_for(user, 'super_admin')}"}
