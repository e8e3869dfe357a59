"""Expense endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, File, Path, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from advance_tracker.api.dependencies import AppSettings, CurrentUser, Storage, UoW
from advance_tracker.api.schemas import (
    EditabilityRequest,
    ErrorResponse,
    ExpenseCreate,
    ExpenseResponse,
    ExpenseUpdate,
    InvoiceItemIn,
    RejectRequest,
)
from advance_tracker.services.errors import InvalidInputError
from advance_tracker.services.expense_service import ExpenseService

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _items(items: list[InvoiceItemIn] | None) -> list[dict[str, Any]] | None:
    if items is None:
        return None
    return [item.model_dump() for item in items]


@router.get("", response_model=list[ExpenseResponse])
async def list_expenses(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    advance_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[ExpenseResponse]:
    """Expenses visible to the requester."""
    service = ExpenseService(uow.session, uow.changes, settings)
    expenses = await service.list_expenses(user, advance_id, status_filter)
    return [ExpenseResponse.model_validate(e) for e in expenses]


@router.post(
    "",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_expense(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    payload: ExpenseCreate,
) -> ExpenseResponse:
    """Record an expense against an open advance."""
    service = ExpenseService(uow.session, uow.changes, settings)
    expense = await service.create_expense(
        user,
        payload.advance_id,
        payload.description,
        fixed_amount=payload.amount,
        invoice_items=_items(payload.invoice_items),
        additional_amount=payload.additional_amount,
        notes=payload.notes,
        image_url=payload.image_url,
    )
    await uow.commit()
    return ExpenseResponse.model_validate(expense)


@router.get(
    "/{expense_id}",
    response_model=ExpenseResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_expense(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
) -> ExpenseResponse:
    service = ExpenseService(uow.session, uow.changes, settings)
    return ExpenseResponse.model_validate(await service.get_visible_expense(user, expense_id))


@router.patch(
    "/{expense_id}",
    response_model=ExpenseResponse,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def edit_expense(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
    payload: ExpenseUpdate,
) -> ExpenseResponse:
    """Edit a pending expense, or an approved one that was unlocked."""
    service = ExpenseService(uow.session, uow.changes, settings)
    optional: dict[str, Any] = {}
    if "notes" in payload.model_fields_set:
        optional["notes"] = payload.notes
    if "image_url" in payload.model_fields_set:
        optional["image_url"] = payload.image_url

    expense = await service.edit_expense(
        user,
        expense_id,
        description=payload.description,
        fixed_amount=payload.amount,
        invoice_items=_items(payload.invoice_items),
        additional_amount=payload.additional_amount,
        **optional,
    )
    await uow.commit()
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/approve",
    response_model=ExpenseResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_expense(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
) -> ExpenseResponse:
    """Approve a pending expense, drawing down its advance."""
    service = ExpenseService(uow.session, uow.changes, settings)
    expense = await service.approve_expense(user, expense_id)
    await uow.commit()
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/reject",
    response_model=ExpenseResponse,
    responses={
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def reject_expense(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
    payload: RejectRequest,
) -> ExpenseResponse:
    service = ExpenseService(uow.session, uow.changes, settings)
    expense = await service.reject_expense(user, expense_id, payload.reason)
    await uow.commit()
    return ExpenseResponse.model_validate(expense)


@router.put(
    "/{expense_id}/editability",
    response_model=ExpenseResponse,
    responses={403: {"model": ErrorResponse}},
)
async def set_editability(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
    payload: EditabilityRequest,
) -> ExpenseResponse:
    """Lock or unlock an expense for its owner."""
    service = ExpenseService(uow.session, uow.changes, settings)
    expense = await service.set_editability(user, expense_id, payload.is_editable)
    await uow.commit()
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/toggle-edit",
    response_model=ExpenseResponse,
    responses={403: {"model": ErrorResponse}},
)
async def toggle_editability(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
) -> ExpenseResponse:
    service = ExpenseService(uow.session, uow.changes, settings)
    expense = await service.toggle_editability(user, expense_id)
    await uow.commit()
    return ExpenseResponse.model_validate(expense)


@router.post(
    "/{expense_id}/receipt",
    response_model=ExpenseResponse,
    responses={
        403: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def upload_receipt(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    storage: Storage,
    expense_id: Annotated[UUID, Path()],
    file: Annotated[UploadFile, File()],
) -> ExpenseResponse:
    """Attach a receipt image to an expense the requester may edit."""
    data = await file.read()
    if not data:
        raise InvalidInputError("file", "is empty")

    service = ExpenseService(uow.session, uow.changes, settings)
    existing = await service.get_visible_expense(user, expense_id)
    previous = existing.image_url

    url = await run_in_threadpool(
        storage.put, data, file.filename or "receipt", file.content_type
    )
    try:
        expense = await service.edit_expense(user, expense_id, image_url=url)
        await uow.commit()
    except Exception:
        await run_in_threadpool(storage.delete, url)
        raise

    if previous:
        await run_in_threadpool(storage.delete, previous)
    return ExpenseResponse.model_validate(expense)
