"""
Test configuration and fixtures.

Each test gets a fresh in-memory SQLite database. API tests talk to the
app through httpx's ASGI transport with get_db overridden, so the app's
own engine and lifespan are never started.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from projecthub.auth import create_access_token
from projecthub.database import Base, get_db, configure_sqlite
from projecthub.models import User, UserRole, Project, ProjectCategory, ProjectStatus

# Test database URL (in-memory SQLite)
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


async def _create_engine(url: str, **kwargs):
    engine = create_async_engine(url, **kwargs)
    event.listen(engine.sync_engine, "connect", configure_sqlite)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory database."""
    engine = await _create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """
    Session factory on a file database with a real connection pool.

    Needed when several sessions write at the same time: with StaticPool
    they would all share one connection and one transaction.
    """
    engine = await _create_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'projecthub.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A database session for direct setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client against the app with the test database."""
    from projecthub.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def _create_user(db_session, name: str, role: UserRole) -> User:
    user = User(name=name, email=f"{name.lower().replace(' ', '.')}@test.com", role=role)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def client_user(db_session):
    """The client who owns projects."""
    return await _create_user(db_session, "Client Test", UserRole.CLIENT)


@pytest_asyncio.fixture
async def developer_user(db_session):
    return await _create_user(db_session, "Developer Test", UserRole.DEVELOPER)


@pytest_asyncio.fixture
async def admin_user(db_session):
    return await _create_user(db_session, "Admin Test", UserRole.ADMIN)


@pytest_asyncio.fixture
async def outsider_user(db_session):
    """A client with no relation to the test project."""
    return await _create_user(db_session, "Outsider Test", UserRole.CLIENT)


@pytest_asyncio.fixture
async def project(db_session, client_user, developer_user):
    """An in-development project owned by client_user, assigned to developer_user."""
    project = Project(
        title="Test Project",
        description="A project used by the test suite",
        category=ProjectCategory.WEB_APP,
        status=ProjectStatus.IN_DEVELOPMENT,
        owner_id=client_user.id,
        assigned_developer_id=developer_user.id,
    )
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def client_headers(client_user):
    return _headers(client_user)


@pytest.fixture
def developer_headers(developer_user):
    return _headers(developer_user)


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def outsider_headers(outsider_user):
    return _headers(outsider_user)
