"""Pytest fixtures for advance tracker tests."""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from advance_tracker.config import Settings
from advance_tracker.models import (
    Base,
    Project,
    ProjectStatus,
    User,
    UserRole,
)
from advance_tracker.realtime.events import ChangeBatch
from tests.factories import add_user

# Use in-memory SQLite for tests (with async support)
# StaticPool keeps one connection so every session sees the same database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings for tests, independent of the environment."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        app_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        admin_sees_all_projects=False,
        storage_dir=str(tmp_path / "storage"),
        public_base_url="http://testserver",
    )


@pytest.fixture
def changes() -> ChangeBatch:
    return ChangeBatch()


@pytest.fixture
async def admin(session: AsyncSession) -> User:
    """Root admin of the main organization."""
    return await add_user(session, "Alice Admin", UserRole.ADMIN)


@pytest.fixture
async def engineer(session: AsyncSession, admin: User) -> User:
    return await add_user(session, "Eve Engineer", UserRole.ENGINEER, admin, admin)


@pytest.fixture
async def technician(session: AsyncSession, admin: User, engineer: User) -> User:
    """Technician managed by ``engineer``."""
    return await add_user(session, "Tom Technician", UserRole.TECHNICIAN, engineer, admin)


@pytest.fixture
async def other_engineer(session: AsyncSession, admin: User) -> User:
    return await add_user(session, "Oscar Engineer", UserRole.ENGINEER, admin, admin)


@pytest.fixture
async def other_technician(
    session: AsyncSession, admin: User, other_engineer: User
) -> User:
    """Technician managed by ``other_engineer``."""
    return await add_user(
        session, "Tina Technician", UserRole.TECHNICIAN, other_engineer, admin
    )


@pytest.fixture
async def project(session: AsyncSession, admin: User) -> Project:
    project = Project(
        name="Pipeline North",
        location="Basra",
        manager_id=admin.user_id,
        status=ProjectStatus.ACTIVE.value,
    )
    session.add(project)
    await session.flush()
    return project


@pytest.fixture
async def rival_admin(session: AsyncSession) -> User:
    """Admin of an unrelated organization."""
    return await add_user(session, "Rita Rival", UserRole.ADMIN)


@pytest.fixture
async def rival_engineer(session: AsyncSession, rival_admin: User) -> User:
    return await add_user(session, "Reed Engineer", UserRole.ENGINEER, rival_admin, rival_admin)
