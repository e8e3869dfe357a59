"""Settlement - closing advances and carrying deficits forward.

Reconciles the cash issued on an advance against approved spend and the cash
physically handed back:

    theoretical balance = amount - approved expenses
    deficit             = theoretical balance - returned cash

A positive deficit is a debt of the holder and is carried into a new OPEN
advance on the same project. Zero or negative deficits close the advance
with nothing carried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.models import Advance, NotificationType, User
from advance_tracker.realtime.events import ChangeBatch
from advance_tracker.services.amounts import SettlementFigures, settlement_figures
from advance_tracker.services.authority import require_settlement_authority
from advance_tracker.services.errors import EntityNotFoundError
from advance_tracker.services.notification_service import NotificationService
from advance_tracker.services.queries import (
    expenses_for_advance,
    load_scope,
    require_advance,
)
from advance_tracker.services.state_machine import (
    AdvanceStateMachine,
    AdvanceStatus,
    ExpenseStatus,
    InvalidTransitionError,
)

logger = logging.getLogger(__name__)

CARRY_FORWARD_PREFIX = "deficit settlement: "


@dataclass(frozen=True)
class SettlementPreview:
    """Figures shown before the returned cash is known."""

    advance: Advance
    approved_expenses: Decimal
    theoretical_balance: Decimal
    pending_expenses: int


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of closing an advance."""

    advance: Advance
    figures: SettlementFigures
    carry_forward: Advance | None = None

    @property
    def approved_expenses(self) -> Decimal:
        return self.figures.approved_expenses

    @property
    def theoretical_balance(self) -> Decimal:
        return self.figures.theoretical_balance

    @property
    def deficit(self) -> Decimal:
        return self.figures.deficit


def build_settlement_data(
    figures: SettlementFigures, notes: str | None, settled_on: date
) -> dict[str, Any]:
    """Stored form of a settlement."""
    data: dict[str, Any] = {
        "totalApprovedExpenses": float(figures.approved_expenses),
        "returnedCashAmount": float(figures.returned_cash),
        "deficitAmount": float(figures.deficit),
        "settlementDate": settled_on.isoformat(),
    }
    if notes:
        data["notes"] = notes
    return data


class SettlementService:
    """Closes OPEN advances.

    Closing and the carry-forward advance are written in the same unit of
    work: either both are committed or neither is.
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

    async def _visible_advance(self, requester: User, advance_id: UUID) -> Advance:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        if not scope.can_see_advance(advance_id):
            raise EntityNotFoundError("Advance", advance_id)
        return await require_advance(self.session, advance_id)

    async def preview_settlement(self, requester: User, advance_id: UUID) -> SettlementPreview:
        advance = await self._visible_advance(requester, advance_id)
        expenses = await expenses_for_advance(self.session, advance_id)
        figures = settlement_figures(advance.amount, expenses, 0)
        return SettlementPreview(
            advance=advance,
            approved_expenses=figures.approved_expenses,
            theoretical_balance=figures.theoretical_balance,
            pending_expenses=sum(1 for e in expenses if e.status == ExpenseStatus.PENDING),
        )

    async def close_advance(
        self,
        requester: User,
        advance_id: UUID,
        returned_cash_amount: Any,
        notes: str | None = None,
    ) -> SettlementResult:
        """Settle an OPEN advance and carry any deficit forward."""
        advance = await self._visible_advance(requester, advance_id)
        require_settlement_authority(requester, advance)
        AdvanceStateMachine.validate_transition(advance.status, AdvanceStatus.CLOSED)

        expenses = await expenses_for_advance(self.session, advance_id)
        figures = settlement_figures(advance.amount, expenses, returned_cash_amount)
        notes = (notes or "").strip() or None
        today = date.today()

        from_status = advance.status
        advance.settlement_data = build_settlement_data(figures, notes, today)
        errors = AdvanceStateMachine.validate_advance_for_transition(
            advance, AdvanceStatus.CLOSED
        )
        if errors:
            raise InvalidTransitionError(from_status, AdvanceStatus.CLOSED, "; ".join(errors))

        advance.status = AdvanceStatus.CLOSED.value
        await self.session.flush()
        self.changes.updated(advance)
        logger.info(
            "Advance %s closed by %s: approved=%s returned=%s deficit=%s",
            advance_id,
            requester.user_id,
            figures.approved_expenses,
            figures.returned_cash,
            figures.deficit,
        )

        carry_forward = None
        if figures.requires_carry_forward:
            carry_forward = await self._carry_forward(advance, figures.deficit, today)

        if carry_forward is not None:
            await self.notifications.notify(
                advance.user_id,
                f"Advance settled with a deficit of {figures.deficit}, "
                "carried into a new advance",
                NotificationType.WARNING,
            )
        else:
            await self.notifications.notify(
                advance.user_id,
                f"Your advance was settled: {advance.description}",
                NotificationType.SUCCESS,
            )

        return SettlementResult(advance=advance, figures=figures, carry_forward=carry_forward)

    async def _carry_forward(self, closed: Advance, deficit: Decimal, today: date) -> Advance:
        """Open a debt advance for the deficit. Debt skips the approval workflow."""
        debt = Advance(
            project_id=closed.project_id,
            user_id=closed.user_id,
            amount=deficit,
            remaining_amount=deficit,
            description=f"{CARRY_FORWARD_PREFIX}{closed.description}",
            status=AdvanceStatus.OPEN.value,
            date=today,
            parent_advance_id=closed.advance_id,
        )
        self.session.add(debt)
        await self.session.flush()
        self.changes.inserted(debt)
        logger.warning(
            "Deficit of %s on advance %s carried forward as advance %s",
            deficit,
            closed.advance_id,
            debt.advance_id,
        )
        return debt
