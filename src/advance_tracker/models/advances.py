"""Advance and expense models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from advance_tracker.models.base import Base, JSONType, TimestampMixin, UpdatedAtMixin


class Advance(Base, TimestampMixin, UpdatedAtMixin):
    """Cash float issued to one user for one project."""

    __tablename__ = "advances"

    advance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("projects.project_id"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    # Populated at CLOSED only
    settlement_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    # Populated at REJECTED only
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Carry-forward advances point at the advance whose deficit they track
    parent_advance_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("advances.advance_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'OPEN', 'CLOSED', 'REJECTED')",
            name="advances_status_check",
        ),
        CheckConstraint("amount > 0", name="advances_amount_positive"),
    )

    @property
    def is_overdrawn(self) -> bool:
        return self.remaining_amount < 0


class Expense(Base, TimestampMixin, UpdatedAtMixin):
    """Spend recorded against an advance.

    ``amount`` is the full total: either a fixed value or the sum of the
    invoice item totals, plus ``additional_amount`` in both cases.
    """

    __tablename__ = "expenses"

    expense_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    advance_id: Mapped[UUID] = mapped_column(
        ForeignKey("advances.advance_id"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.user_id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    additional_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    is_editable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_invoice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    invoice_items: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType, nullable=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED')",
            name="expenses_status_check",
        ),
    )
