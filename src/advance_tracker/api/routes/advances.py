"""Advance lifecycle endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from advance_tracker.api.dependencies import AppSettings, CurrentUser, UoW
from advance_tracker.api.schemas import (
    AdvanceCreate,
    AdvanceResponse,
    ErrorResponse,
    RejectRequest,
)
from advance_tracker.services.advance_service import AdvanceService

router = APIRouter(prefix="/advances", tags=["advances"])


@router.get("", response_model=list[AdvanceResponse])
async def list_advances(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[AdvanceResponse]:
    """Advances visible to the requester, optionally filtered by status."""
    service = AdvanceService(uow.session, uow.changes, settings)
    advances = await service.list_advances(user, status_filter)
    return [AdvanceResponse.model_validate(a) for a in advances]


@router.post(
    "",
    response_model=AdvanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_advance(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    payload: AdvanceCreate,
) -> AdvanceResponse:
    """Issue or request an advance."""
    service = AdvanceService(uow.session, uow.changes, settings)
    advance = await service.create_advance(
        user,
        payload.project_id,
        payload.user_id or user.user_id,
        payload.amount,
        payload.description,
    )
    await uow.commit()
    return AdvanceResponse.model_validate(advance)


@router.get(
    "/{advance_id}",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_advance(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    advance_id: Annotated[UUID, Path()],
) -> AdvanceResponse:
    service = AdvanceService(uow.session, uow.changes, settings)
    return AdvanceResponse.model_validate(await service.get_visible_advance(user, advance_id))


@router.post(
    "/{advance_id}/approve",
    response_model=AdvanceResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_advance(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    advance_id: Annotated[UUID, Path()],
) -> AdvanceResponse:
    """Approve a pending advance."""
    service = AdvanceService(uow.session, uow.changes, settings)
    advance = await service.approve_advance(user, advance_id)
    await uow.commit()
    return AdvanceResponse.model_validate(advance)


@router.post(
    "/{advance_id}/reject",
    response_model=AdvanceResponse,
    responses={
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def reject_advance(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    advance_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> AdvanceResponse:
    """Reject a pending advance with a reason."""
    service = AdvanceService(uow.session, uow.changes, settings)
    advance = await service.reject_advance(user, advance_id, payload.reason)
    await uow.commit()
    return AdvanceResponse.model_validate(advance)
