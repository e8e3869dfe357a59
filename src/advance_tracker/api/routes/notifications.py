"""Notification endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from advance_tracker.api.dependencies import CurrentUser, UoW
from advance_tracker.api.schemas import (
    ErrorResponse,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from advance_tracker.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(uow: UoW, user: CurrentUser) -> NotificationListResponse:
    """The requester's notifications, newest first."""
    service = NotificationService(uow.session, uow.changes)
    items = await service.list_for_user(user.user_id)
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        unread=sum(1 for n in items if not n.is_read),
    )


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def mark_read(
    uow: UoW,
    user: CurrentUser,
    notification_id: Annotated[UUID, Path()],
) -> NotificationResponse:
    service = NotificationService(uow.session, uow.changes)
    notification = await service.mark_read(user, notification_id)
    await uow.commit()
    return NotificationResponse.model_validate(notification)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(uow: UoW, user: CurrentUser) -> MarkAllReadResponse:
    service = NotificationService(uow.session, uow.changes)
    updated = await service.mark_all_read(user)
    await uow.commit()
    return MarkAllReadResponse(updated=updated)
