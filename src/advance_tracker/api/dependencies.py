"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.database import init_db
from advance_tracker.models import User
from advance_tracker.realtime.events import ChangeBatch, ChangeFeed, get_change_feed
from advance_tracker.storage import BlobStorage, get_storage


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_app_settings() -> Settings:
    return get_settings()


def get_feed() -> ChangeFeed:
    return get_change_feed()


def get_blob_storage() -> BlobStorage:
    return get_storage()


class UnitOfWork:
    """One request's transaction and the change events it produced.

    Events are published only after the commit succeeds.
    """

    def __init__(self, session: AsyncSession, feed: ChangeFeed):
        self.session = session
        self.feed = feed
        self.changes = ChangeBatch()

    async def commit(self) -> None:
        await self.session.commit()
        await self.feed.publish_batch(self.changes)


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Feed = Annotated[ChangeFeed, Depends(get_feed)]
Storage = Annotated[BlobStorage, Depends(get_blob_storage)]


async def get_unit_of_work(db: DbSession, feed: Feed) -> UnitOfWork:
    return UnitOfWork(db, feed)


async def get_current_user(
    db: DbSession,
    x_user_id: Annotated[str | None, Header()] = None,
) -> User:
    """Resolve the acting user from the X-User-ID header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format",
        )
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


# Type aliases for cleaner dependency injection
UoW = Annotated[UnitOfWork, Depends(get_unit_of_work)]
CurrentUser = Annotated[User, Depends(get_current_user)]
