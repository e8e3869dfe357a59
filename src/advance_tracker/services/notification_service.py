"""Notifications produced as side effects of domain events."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.models import Notification, NotificationType, User
from advance_tracker.realtime.events import ChangeBatch
from advance_tracker.services.errors import EntityNotFoundError

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates and reads per-user notifications.

    Delivery is the change feed's job: inserting a row here produces an
    INSERT event on ``notifications`` once the unit of work commits.
    """

    def __init__(self, session: AsyncSession, changes: ChangeBatch | None = None):
        self.session = session
        self.changes = changes if changes is not None else ChangeBatch()

    async def notify(
        self,
        user_id: UUID | None,
        message: str,
        type: NotificationType = NotificationType.INFO,
    ) -> Notification | None:
        """Queue a notification for ``user_id``. No-op when there is no recipient."""
        if user_id is None:
            return None

        notification = Notification(
            user_id=user_id,
            message=message,
            type=NotificationType(type).value,
            is_read=False,
        )
        self.session.add(notification)
        await self.session.flush()
        self.changes.inserted(notification)
        return notification

    async def list_for_user(self, user_id: UUID) -> list[Notification]:
        """Notifications for a user, newest first."""
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
        )
        return list(result.scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        count = await self.session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return int(count or 0)

    async def mark_read(self, requester: User, notification_id: UUID) -> Notification:
        notification = await self.session.get(Notification, notification_id)
        # Someone else's notification is reported as missing
        if notification is None or notification.user_id != requester.user_id:
            raise EntityNotFoundError("Notification", notification_id)

        if not notification.is_read:
            notification.is_read = True
            await self.session.flush()
            self.changes.updated(notification)
        return notification

    async def mark_all_read(self, requester: User) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == requester.user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        count = result.rowcount or 0
        logger.debug("Marked %d notification(s) read for user %s", count, requester.user_id)
        return count
