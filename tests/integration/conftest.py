"""API test fixtures: the app wired to the in-memory test database."""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.api.app import create_app
from advance_tracker.api.dependencies import (
    get_app_settings,
    get_blob_storage,
    get_db_session,
    get_feed,
)
from advance_tracker.realtime.events import ChangeFeed
from advance_tracker.storage import LocalBlobStorage


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def published(feed: ChangeFeed) -> list:
    """Events delivered by the feed, in order."""
    events: list = []
    feed.subscribe(events.append)
    return events


@pytest.fixture
async def client(session_factory, settings, feed) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app(settings)

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    storage = LocalBlobStorage(settings.storage_dir, settings.public_base_url)
    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_feed] = lambda: feed
    app.dependency_overrides[get_blob_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
async def seeded_db(session, admin, engineer, technician, other_technician, project) -> AsyncSession:
    """Commit the organization fixtures so request sessions can see them."""
    await session.commit()
    return session


def as_user(user) -> dict[str, str]:
    return {"X-User-ID": str(user.user_id)}
