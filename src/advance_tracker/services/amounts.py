"""Money arithmetic for expenses, balances and settlements."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from advance_tracker.services.errors import InvalidInputError
from advance_tracker.services.state_machine import ExpenseStateMachine

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any, field: str = "amount") -> Decimal:
    """Convert to a two-place Decimal, rejecting non-numeric input."""
    if value is None:
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidInputError(field, f"not a number: {value!r}") from e
    if not amount.is_finite():
        raise InvalidInputError(field, "must be finite")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceItem:
    """One itemized invoice line."""

    item_name: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return (self.quantity * self.unit_price).quantize(CENTS, rounding=ROUND_HALF_UP)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InvoiceItem:
        name = str(data.get("itemName") or data.get("item_name") or "").strip()
        try:
            quantity = Decimal(str(data.get("quantity", 0)))
        except InvalidOperation as e:
            raise InvalidInputError("quantity", f"not a number: {data.get('quantity')!r}") from e
        unit_price = to_money(data.get("unitPrice", data.get("unit_price")), "unitPrice")
        return cls(item_name=name, quantity=quantity, unit_price=unit_price)

    def validate(self, index: int) -> None:
        if not self.item_name:
            raise InvalidInputError(f"invoiceItems[{index}].itemName", "is required")
        if self.quantity <= 0:
            raise InvalidInputError(f"invoiceItems[{index}].quantity", "must be positive")
        if self.unit_price < 0:
            raise InvalidInputError(f"invoiceItems[{index}].unitPrice", "cannot be negative")

    def to_dict(self) -> dict[str, Any]:
        # Stored as JSON; floats keep the stored shape of the original records
        return {
            "itemName": self.item_name,
            "quantity": float(self.quantity),
            "unitPrice": float(self.unit_price),
            "total": float(self.total),
        }


@dataclass(frozen=True)
class ComposedAmount:
    """Validated expense amount and the stored form of its parts."""

    amount: Decimal
    additional_amount: Decimal
    is_invoice: bool
    invoice_items: list[dict[str, Any]] | None


def compose_expense_amount(
    *,
    fixed_amount: Any = None,
    invoice_items: Sequence[InvoiceItem | dict[str, Any]] | None = None,
    additional_amount: Any = None,
) -> ComposedAmount:
    """Build an expense total from a fixed amount or invoice items, plus extras.

    Exactly one of ``fixed_amount`` and ``invoice_items`` must be given.
    """
    additional = to_money(additional_amount, "additionalAmount")
    if additional < 0:
        raise InvalidInputError("additionalAmount", "cannot be negative")

    if invoice_items:
        if fixed_amount is not None:
            raise InvalidInputError("amount", "give either a fixed amount or invoice items")
        items = [
            item if isinstance(item, InvoiceItem) else InvoiceItem.from_dict(item)
            for item in invoice_items
        ]
        for index, item in enumerate(items):
            item.validate(index)
        base = sum((item.total for item in items), ZERO)
        stored_items: list[dict[str, Any]] | None = [item.to_dict() for item in items]
        is_invoice = True
    else:
        if fixed_amount is None:
            raise InvalidInputError("amount", "a fixed amount or invoice items are required")
        base = to_money(fixed_amount)
        if base < 0:
            raise InvalidInputError("amount", "cannot be negative")
        stored_items = None
        is_invoice = False

    total = base + additional
    if total <= 0:
        raise InvalidInputError("amount", "must be greater than zero")

    return ComposedAmount(
        amount=total,
        additional_amount=additional,
        is_invoice=is_invoice,
        invoice_items=stored_items,
    )


def approved_total(expenses: Iterable[Any]) -> Decimal:
    """Sum of APPROVED expense amounts."""
    return sum(
        (
            to_money(e.amount)
            for e in expenses
            if ExpenseStateMachine.counts_against_balance(e.status)
        ),
        ZERO,
    )


@dataclass(frozen=True)
class SettlementFigures:
    """Reconciliation of issued cash against approved spend and returned cash."""

    amount: Decimal
    approved_expenses: Decimal
    returned_cash: Decimal

    @property
    def theoretical_balance(self) -> Decimal:
        return self.amount - self.approved_expenses

    @property
    def deficit(self) -> Decimal:
        """Positive: the holder owes money. Zero or negative: fully reconciled."""
        return self.theoretical_balance - self.returned_cash

    @property
    def requires_carry_forward(self) -> bool:
        return self.deficit > 0


def settlement_figures(
    amount: Any, expenses: Iterable[Any], returned_cash: Any
) -> SettlementFigures:
    returned = to_money(returned_cash, "returnedCashAmount")
    if returned < 0:
        raise InvalidInputError("returnedCashAmount", "cannot be negative")
    return SettlementFigures(
        amount=to_money(amount),
        approved_expenses=approved_total(expenses),
        returned_cash=returned,
    )
