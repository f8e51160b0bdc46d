"""
Pytest fixtures for all tests.

Provides:
- In-memory SQLite database, recreated per test
- Test application with the database dependency overridden
- Users for every role plus a second organization
- Authenticated test clients
- Blob storage redirected to a temporary directory
"""

import os
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import create_application
from app.models import Organization, Role, User
from tests.factories import OrganizationFactory, UserFactory

# Point at a Postgres database to run the suite against the production dialect.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

DEFAULT_PASSWORD = "Test123!"


def _enable_sqlite_savepoints(engine) -> None:
    """
    Let pysqlite run SAVEPOINT inside transactions.

    The driver's own transaction handling gets in the way of nested
    transactions; take it over as described in the SQLAlchemy docs.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Fresh schema for every test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        _enable_sqlite_savepoints(engine)
    else:
        engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session shared by the test body and the application under test."""
    session_factory = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def mock_storage(monkeypatch, tmp_path):
    """
    Store blobs under a temporary directory.

    Storage reads ``settings.upload_dir`` on every call, so patching the
    setting redirects every blob read and write.
    """
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    monkeypatch.setattr(settings, "upload_dir", str(upload_dir))
    return upload_dir


@pytest_asyncio.fixture
async def app(db_session: AsyncSession):
    """Test application using the test session."""
    application = create_application()

    async def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Anonymous HTTP client.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/v1/invitations/validate/ABC123")
    """
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Test data --------------------------------------------------------------

@pytest_asyncio.fixture
async def organization(db_session: AsyncSession) -> Organization:
    return await OrganizationFactory.create(db_session, name="Acme Corporation")


@pytest_asyncio.fixture
async def other_organization(db_session: AsyncSession) -> Organization:
    return await OrganizationFactory.create(db_session, name="Globex Corporation")


@pytest_asyncio.fixture
async def platform_owner(db_session: AsyncSession) -> User:
    return await UserFactory.create(
        db_session,
        organization=None,
        role=Role.PLATFORM_OWNER.value,
        email="owner@example.com",
        password=DEFAULT_PASSWORD,
    )


@pytest_asyncio.fixture
async def org_admin(db_session: AsyncSession, organization: Organization) -> User:
    return await UserFactory.create(
        db_session,
        organization=organization,
        role=Role.ORGANIZATION_ADMIN.value,
        email="admin@example.com",
        password=DEFAULT_PASSWORD,
    )


@pytest_asyncio.fixture
async def member(db_session: AsyncSession, organization: Organization) -> User:
    return await UserFactory.create(
        db_session,
        organization=organization,
        email="member@example.com",
        password=DEFAULT_PASSWORD,
    )


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession, other_organization: Organization) -> User:
    return await UserFactory.create(
        db_session,
        organization=other_organization,
        email="other@example.com",
        password=DEFAULT_PASSWORD,
    )


def token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role,
        organization_id=user.organization_id,
    )


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build a Bearer header for any user."""
    def build(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user)}"}
    return build


async def _client_for(app, user: User) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"Authorization": f"Bearer {token_for(user)}"},
    )


@pytest_asyncio.fixture
async def owner_client(app, platform_owner: User) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as the platform owner."""
    async with await _client_for(app, platform_owner) as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(app, org_admin: User) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as the organization admin."""
    async with await _client_for(app, org_admin) as ac:
        yield ac


@pytest_asyncio.fixture
async def member_client(app, member: User) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as a member."""
    async with await _client_for(app, member) as ac:
        yield ac


@pytest_asyncio.fixture
async def other_member_client(app, other_member: User) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client authenticated as a member of the second organization."""
    async with await _client_for(app, other_member) as ac:
        yield ac
