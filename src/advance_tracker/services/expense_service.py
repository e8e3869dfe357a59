"""Expense service - recording, approval and the advance balance."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.models import Advance, Expense, NotificationType, User
from advance_tracker.realtime.events import ChangeBatch
from advance_tracker.services.amounts import (
    ComposedAmount,
    InvoiceItem,
    compose_expense_amount,
    to_money,
)
from advance_tracker.services.authority import can_edit_expense, require_approval_authority
from advance_tracker.services.errors import (
    ActionNotPermittedError,
    EntityNotFoundError,
    InvalidInputError,
)
from advance_tracker.services.notification_service import NotificationService
from advance_tracker.services.queries import load_scope, require_advance, require_expense
from advance_tracker.services.state_machine import (
    AdvanceStateMachine,
    ExpenseStateMachine,
    ExpenseStatus,
)
from advance_tracker.services.visibility import VisibleScope

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class ExpenseService:
    """Service for the expense lifecycle.

    Operations:
    - create_expense: record spend against an OPEN advance (PENDING)
    - edit_expense: owner edits while PENDING, or APPROVED and unlocked
    - approve_expense: PENDING → APPROVED, decrementing the advance balance
    - reject_expense: PENDING → REJECTED with a reason
    - set_editability / toggle_editability: approver unlocks or relocks

    Approval and the balance decrement share the caller's unit of work, so
    they commit or roll back together.
    """

    def __init__(
        self,
        session: AsyncSession,
        changes: ChangeBatch | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.changes = changes if changes is not None else ChangeBatch()
        self.settings = settings or get_settings()
        self.notifications = NotificationService(session, self.changes)

    async def scope_for(self, requester: User) -> VisibleScope:
        return await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )

    async def get_visible_expense(self, requester: User, expense_id: UUID) -> Expense:
        scope = await self.scope_for(requester)
        if not scope.can_see_expense(expense_id):
            raise EntityNotFoundError("Expense", expense_id)
        return await require_expense(self.session, expense_id)

    async def list_expenses(
        self,
        requester: User,
        advance_id: UUID | None = None,
        status: ExpenseStatus | str | None = None,
    ) -> list[Expense]:
        scope = await self.scope_for(requester)
        expenses = scope.expenses
        if advance_id is not None:
            expenses = [e for e in expenses if e.advance_id == advance_id]
        if status is not None:
            expenses = [e for e in expenses if e.status == status]
        return expenses

    async def create_expense(
        self,
        requester: User,
        advance_id: UUID,
        description: str,
        *,
        fixed_amount: Any = None,
        invoice_items: Sequence[InvoiceItem | dict[str, Any]] | None = None,
        additional_amount: Any = None,
        notes: str | None = None,
        image_url: str | None = None,
    ) -> Expense:
        """Record an expense against an OPEN advance."""
        if advance_id is None:
            raise InvalidInputError("advanceId", "a target advance is required")
        description = (description or "").strip()
        if not description:
            raise InvalidInputError("description", "is required")

        composed = compose_expense_amount(
            fixed_amount=fixed_amount,
            invoice_items=invoice_items,
            additional_amount=additional_amount,
        )

        scope = await self.scope_for(requester)
        if not scope.can_see_advance(advance_id):
            raise EntityNotFoundError("Advance", advance_id)
        advance = await require_advance(self.session, advance_id)
        if not AdvanceStateMachine.accepts_expenses(advance.status):
            raise InvalidInputError(
                "advanceId", f"advance is {advance.status}, expenses need an OPEN advance"
            )

        expense = Expense(
            advance_id=advance_id,
            user_id=requester.user_id,
            description=description,
            notes=notes,
            image_url=image_url,
            date=date.today(),
            status=ExpenseStatus.PENDING.value,
            is_editable=False,
        )
        self._apply_amount(expense, composed)
        self.session.add(expense)
        await self.session.flush()
        self.changes.inserted(expense)

        logger.info(
            "Expense %s recorded by %s on advance %s: %s",
            expense.expense_id,
            requester.user_id,
            advance_id,
            expense.amount,
        )
        await self.notifications.notify(
            requester.manager_id,
            f"New expense from {requester.name}: {description} ({expense.amount})",
            NotificationType.INFO,
        )
        return expense

    async def edit_expense(
        self,
        requester: User,
        expense_id: UUID,
        *,
        description: str | None = None,
        notes: str | None = _UNSET,
        image_url: str | None = _UNSET,
        fixed_amount: Any = None,
        invoice_items: Sequence[InvoiceItem | dict[str, Any]] | None = None,
        additional_amount: Any = None,
    ) -> Expense:
        """Edit an expense's own content.

        Changing the amount of an unlocked APPROVED expense moves the advance
        balance by the difference.
        """
        expense = await self.get_visible_expense(requester, expense_id)
        if not can_edit_expense(requester, expense):
            raise ActionNotPermittedError(
                "edit_expense", f"expense is {expense.status} and not editable by you"
            )

        if description is not None:
            description = description.strip()
            if not description:
                raise InvalidInputError("description", "is required")
            expense.description = description
        if notes is not _UNSET:
            expense.notes = notes
        if image_url is not _UNSET:
            expense.image_url = image_url

        amount_changed = (
            fixed_amount is not None
            or invoice_items is not None
            or additional_amount is not None
        )
        if amount_changed:
            old_amount = to_money(expense.amount)
            composed = self._recompose(
                expense,
                fixed_amount=fixed_amount,
                invoice_items=invoice_items,
                additional_amount=additional_amount,
            )
            self._apply_amount(expense, composed)
            delta = composed.amount - old_amount
            if expense.status == ExpenseStatus.APPROVED and delta:
                advance = await require_advance(self.session, expense.advance_id)
                await self._adjust_balance(advance, delta)

        await self.session.flush()
        self.changes.updated(expense)
        return expense

    async def approve_expense(self, requester: User, expense_id: UUID) -> Expense:
        """Approve a pending expense and subtract it from the advance balance.

        The balance is not checked for sufficiency; an overdrawn advance is
        logged and surfaced, not refused.
        """
        expense = await self.get_visible_expense(requester, expense_id)
        owner = await self.session.get(User, expense.user_id)
        require_approval_authority(requester, owner, "approve_expense")
        ExpenseStateMachine.validate_transition(expense.status, ExpenseStatus.APPROVED)

        advance = await require_advance(self.session, expense.advance_id)

        expense.status = ExpenseStatus.APPROVED.value
        expense.is_editable = False
        expense.rejection_reason = None
        await self.session.flush()
        self.changes.updated(expense)

        await self._adjust_balance(advance, to_money(expense.amount))

        logger.info("Expense %s approved by %s", expense_id, requester.user_id)
        await self.notifications.notify(
            expense.user_id,
            f"Your expense was approved: {expense.description}",
            NotificationType.SUCCESS,
        )
        return expense

    async def reject_expense(
        self, requester: User, expense_id: UUID, reason: str
    ) -> Expense:
        """Reject a pending expense. No balance effect."""
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError("reason", "a rejection reason is required")

        expense = await self.get_visible_expense(requester, expense_id)
        owner = await self.session.get(User, expense.user_id)
        require_approval_authority(requester, owner, "reject_expense")
        ExpenseStateMachine.validate_transition(expense.status, ExpenseStatus.REJECTED)

        expense.status = ExpenseStatus.REJECTED.value
        expense.rejection_reason = reason
        expense.is_editable = False
        await self.session.flush()
        self.changes.updated(expense)

        logger.info("Expense %s rejected by %s", expense_id, requester.user_id)
        await self.notifications.notify(
            expense.user_id,
            f"Your expense was rejected: {reason}",
            NotificationType.ERROR,
        )
        return expense

    async def set_editability(
        self, requester: User, expense_id: UUID, is_editable: bool
    ) -> Expense:
        """Lock or unlock an expense for its owner without touching its status."""
        expense = await self.get_visible_expense(requester, expense_id)
        owner = await self.session.get(User, expense.user_id)
        require_approval_authority(requester, owner, "set_expense_editability")

        if expense.is_editable != is_editable:
            expense.is_editable = is_editable
            await self.session.flush()
            self.changes.updated(expense)
            await self.notifications.notify(
                expense.user_id,
                (
                    f"Editing was unlocked for your expense: {expense.description}"
                    if is_editable
                    else f"Editing was locked for your expense: {expense.description}"
                ),
                NotificationType.INFO,
            )
        return expense

    async def toggle_editability(self, requester: User, expense_id: UUID) -> Expense:
        expense = await self.get_visible_expense(requester, expense_id)
        return await self.set_editability(requester, expense_id, not expense.is_editable)

    async def _adjust_balance(self, advance: Advance, spent: Decimal) -> None:
        advance.remaining_amount = to_money(advance.remaining_amount) - spent
        await self.session.flush()
        self.changes.updated(advance)
        if advance.is_overdrawn:
            logger.warning(
                "Advance %s is overdrawn: remaining %s",
                advance.advance_id,
                advance.remaining_amount,
            )

    @staticmethod
    def _apply_amount(expense: Expense, composed: ComposedAmount) -> None:
        expense.amount = composed.amount
        expense.additional_amount = composed.additional_amount
        expense.is_invoice = composed.is_invoice
        expense.invoice_items = composed.invoice_items

    @staticmethod
    def _recompose(
        expense: Expense,
        *,
        fixed_amount: Any,
        invoice_items: Sequence[InvoiceItem | dict[str, Any]] | None,
        additional_amount: Any,
    ) -> ComposedAmount:
        """Merge new amount parts with the ones already stored."""
        additional = (
            additional_amount
            if additional_amount is not None
            else expense.additional_amount
        )
        if invoice_items is not None:
            return compose_expense_amount(
                invoice_items=invoice_items, additional_amount=additional
            )
        if fixed_amount is not None:
            return compose_expense_amount(
                fixed_amount=fixed_amount, additional_amount=additional
            )
        if expense.is_invoice:
            return compose_expense_amount(
                invoice_items=expense.invoice_items or [], additional_amount=additional
            )
        base = to_money(expense.amount) - to_money(expense.additional_amount)
        return compose_expense_amount(fixed_amount=base, additional_amount=additional)

