"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str
    field: str | None = None


# ============================================================================
# User schemas
# ============================================================================


class AdminRegister(BaseModel):
    """Schema for registering an organization admin."""

    name: str = Field(min_length=1, max_length=100)
    email: str
    job_title: str | None = None
    phone: str | None = None


class UserCreate(BaseModel):
    """Schema for adding an engineer or technician."""

    name: str = Field(min_length=1, max_length=100)
    email: str
    role: str
    manager_id: UUID | None = None
    job_title: str | None = None
    phone: str | None = None


class ProfileUpdate(BaseModel):
    """Schema for editing one's own profile. Omitted fields are left unchanged."""

    phone: str | None = Field(default=None, max_length=40)
    job_title: str | None = Field(default=None, max_length=100)


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    name: str
    email: str
    role: str
    job_title: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    manager_id: UUID | None = None
    root_admin_id: UUID | None = None
    created_at: datetime


# ============================================================================
# Project schemas
# ============================================================================


class ProjectCreate(BaseModel):
    """Schema for creating a project."""

    name: str
    location: str


class ProjectResponse(BaseModel):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    project_id: UUID
    name: str
    location: str
    manager_id: UUID
    status: str
    created_at: datetime


# ============================================================================
# Advance schemas
# ============================================================================


class AdvanceCreate(BaseModel):
    """Schema for issuing or requesting an advance.

    ``user_id`` defaults to the requester.
    """

    project_id: UUID
    user_id: UUID | None = None
    amount: Decimal
    description: str


class RejectRequest(BaseModel):
    """Schema for rejecting an advance or expense."""

    reason: str


class AdvanceResponse(BaseModel):
    """Schema for advance response."""

    model_config = ConfigDict(from_attributes=True)

    advance_id: UUID
    project_id: UUID
    user_id: UUID
    amount: Decimal
    remaining_amount: Decimal
    description: str
    status: str
    date: date
    settlement_data: dict[str, Any] | None = None
    rejection_reason: str | None = None
    parent_advance_id: UUID | None = None
    is_overdrawn: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Expense schemas
# ============================================================================


class InvoiceItemIn(BaseModel):
    """One itemized invoice line."""

    item_name: str
    quantity: Decimal
    unit_price: Decimal


class ExpenseCreate(BaseModel):
    """Schema for recording an expense.

    Give either ``amount`` or ``invoice_items``.
    """

    advance_id: UUID
    description: str
    amount: Decimal | None = None
    invoice_items: list[InvoiceItemIn] | None = None
    additional_amount: Decimal | None = None
    notes: str | None = None
    image_url: str | None = None


class ExpenseUpdate(BaseModel):
    """Schema for editing an expense. Omitted fields are left unchanged."""

    description: str | None = None
    notes: str | None = None
    image_url: str | None = None
    amount: Decimal | None = None
    invoice_items: list[InvoiceItemIn] | None = None
    additional_amount: Decimal | None = None


class EditabilityRequest(BaseModel):
    """Schema for locking or unlocking an expense."""

    is_editable: bool


class ExpenseResponse(BaseModel):
    """Schema for expense response."""

    model_config = ConfigDict(from_attributes=True)

    expense_id: UUID
    advance_id: UUID
    user_id: UUID
    amount: Decimal
    additional_amount: Decimal
    description: str
    notes: str | None = None
    image_url: str | None = None
    date: date
    status: str
    is_editable: bool
    is_invoice: bool
    invoice_items: list[dict[str, Any]] | None = None
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Settlement schemas
# ============================================================================


class SettlementRequest(BaseModel):
    """Schema for closing an advance."""

    returned_cash_amount: Decimal
    notes: str | None = None


class SettlementPreviewResponse(BaseModel):
    """Figures known before the returned cash is counted."""

    advance_id: UUID
    amount: Decimal
    approved_expenses: Decimal
    theoretical_balance: Decimal
    pending_expenses: int


class SettlementResponse(BaseModel):
    """Schema for settlement response."""

    advance: AdvanceResponse
    approved_expenses: Decimal
    theoretical_balance: Decimal
    returned_cash_amount: Decimal
    deficit: Decimal
    carry_forward: AdvanceResponse | None = None


# ============================================================================
# Notification schemas
# ============================================================================


class NotificationResponse(BaseModel):
    """Schema for notification response."""

    model_config = ConfigDict(from_attributes=True)

    notification_id: UUID
    user_id: UUID
    message: str
    type: str
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Schema for listing notifications."""

    items: list[NotificationResponse]
    unread: int


class MarkAllReadResponse(BaseModel):
    updated: int
