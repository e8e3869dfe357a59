"""Settlement endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from advance_tracker.api.dependencies import AppSettings, CurrentUser, UoW
from advance_tracker.api.schemas import (
    AdvanceResponse,
    ErrorResponse,
    SettlementPreviewResponse,
    SettlementRequest,
    SettlementResponse,
)
from advance_tracker.services.settlement_service import SettlementService

router = APIRouter(prefix="/advances", tags=["settlements"])


@router.get(
    "/{advance_id}/settlement",
    response_model=SettlementPreviewResponse,
    responses={404: {"model": ErrorResponse}},
)
async def preview_settlement(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    advance_id: Annotated[UUID, Path()],
) -> SettlementPreviewResponse:
    """Approved spend and theoretical balance before closing."""
    service = SettlementService(uow.session, uow.changes, settings)
    preview = await service.preview_settlement(user, advance_id)
    return SettlementPreviewResponse(
        advance_id=advance_id,
        amount=preview.advance.amount,
        approved_expenses=preview.approved_expenses,
        theoretical_balance=preview.theoretical_balance,
        pending_expenses=preview.pending_expenses,
    )


@router.post(
    "/{advance_id}/close",
    response_model=SettlementResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def close_advance(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    advance_id: Annotated[UUID, Path()],
    payload: SettlementRequest,
) -> SettlementResponse:
    """Settle an open advance, carrying any deficit into a new advance."""
    service = SettlementService(uow.session, uow.changes, settings)
    result = await service.close_advance(
        user, advance_id, payload.returned_cash_amount, payload.notes
    )
    await uow.commit()
    return SettlementResponse(
        advance=AdvanceResponse.model_validate(result.advance),
        approved_expenses=result.approved_expenses,
        theoretical_balance=result.theoretical_balance,
        returned_cash_amount=result.figures.returned_cash,
        deficit=result.deficit,
        carry_forward=(
            AdvanceResponse.model_validate(result.carry_forward)
            if result.carry_forward is not None
            else None
        ),
    )
