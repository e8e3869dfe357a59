"""Tests for closing advances and carrying deficits forward."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from advance_tracker.models import Advance
from advance_tracker.services.errors import ActionNotPermittedError, InvalidInputError
from advance_tracker.services.settlement_service import (
    CARRY_FORWARD_PREFIX,
    SettlementService,
)
from advance_tracker.services.state_machine import InvalidTransitionError
from tests.factories import add_advance, add_expense

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(session, changes, settings):
    return SettlementService(session, changes, settings)


async def _advances_for(session, user):
    result = await session.execute(
        select(Advance).where(Advance.user_id == user.user_id).order_by(Advance.created_at)
    )
    return list(result.scalars().all())


class TestCloseAdvance:
    async def test_deficit_is_carried_forward(
        self, session, service, admin, engineer, project
    ):
        advance = await add_advance(session, project, engineer, "10000", description="Q3 float")
        await add_expense(session, advance, engineer, "4000", status="APPROVED")
        await add_expense(session, advance, engineer, "3000", status="APPROVED")
        await add_expense(session, advance, engineer, "900", status="REJECTED")

        result = await service.close_advance(admin, advance.advance_id, "1000", "Counted twice")

        assert result.approved_expenses == Decimal("7000.00")
        assert result.theoretical_balance == Decimal("3000.00")
        assert result.deficit == Decimal("2000.00")

        assert advance.status == "CLOSED"
        assert advance.settlement_data["totalApprovedExpenses"] == 7000.0
        assert advance.settlement_data["returnedCashAmount"] == 1000.0
        assert advance.settlement_data["deficitAmount"] == 2000.0
        assert advance.settlement_data["notes"] == "Counted twice"
        assert "settlementDate" in advance.settlement_data

        debt = result.carry_forward
        assert debt is not None
        assert debt.status == "OPEN"
        assert debt.amount == Decimal("2000.00")
        assert debt.remaining_amount == Decimal("2000.00")
        assert debt.user_id == engineer.user_id
        assert debt.project_id == project.project_id
        assert debt.parent_advance_id == advance.advance_id
        assert debt.description == f"{CARRY_FORWARD_PREFIX}Q3 float"

        assert len(await _advances_for(session, engineer)) == 2

    async def test_zero_deficit_closes_without_carry_forward(
        self, session, service, admin, engineer, project
    ):
        advance = await add_advance(session, project, engineer, "1000")
        await add_expense(session, advance, engineer, "400", status="APPROVED")

        result = await service.close_advance(admin, advance.advance_id, "600")

        assert result.carry_forward is None
        assert advance.status == "CLOSED"
        assert advance.settlement_data["deficitAmount"] == 0
        assert "notes" not in advance.settlement_data
        assert len(await _advances_for(session, engineer)) == 1

    async def test_surplus_is_recorded_not_carried(
        self, session, service, admin, engineer, project
    ):
        advance = await add_advance(session, project, engineer, "1000")

        result = await service.close_advance(admin, advance.advance_id, "1100")

        assert result.deficit == Decimal("-100.00")
        assert result.carry_forward is None
        assert advance.settlement_data["deficitAmount"] == -100.0

    async def test_pending_expenses_are_ignored(
        self, session, service, admin, engineer, project
    ):
        advance = await add_advance(session, project, engineer, "1000")
        await add_expense(session, advance, engineer, "300", status="APPROVED")
        await add_expense(session, advance, engineer, "200", status="PENDING")

        result = await service.close_advance(admin, advance.advance_id, "700")

        assert advance.settlement_data["totalApprovedExpenses"] == 300.0
        assert result.deficit == Decimal("0.00")

    async def test_holder_cannot_settle_own_advance(self, session, service, engineer, project):
        advance = await add_advance(session, project, engineer, "1000")
        with pytest.raises(ActionNotPermittedError):
            await service.close_advance(engineer, advance.advance_id, "1000")
        assert advance.status == "OPEN"

    async def test_only_open_advances_close(self, session, service, admin, engineer, project):
        advance = await add_advance(session, project, engineer, "1000", status="PENDING")
        with pytest.raises(InvalidTransitionError):
            await service.close_advance(admin, advance.advance_id, "0")
        assert advance.settlement_data is None

    async def test_negative_returned_cash_rejected(
        self, session, service, admin, engineer, project
    ):
        advance = await add_advance(session, project, engineer, "1000")
        with pytest.raises(InvalidInputError):
            await service.close_advance(admin, advance.advance_id, "-5")
        assert advance.status == "OPEN"

    async def test_engineer_cannot_settle_technician_advance(
        self, session, service, engineer, technician, project
    ):
        advance = await add_advance(session, project, technician, "1500")

        with pytest.raises(ActionNotPermittedError):
            await service.close_advance(engineer, advance.advance_id, "500")

        assert advance.status == "OPEN"
        assert len(await _advances_for(session, technician)) == 1

    async def test_admin_settles_technician_advance(
        self, session, service, admin, technician, project
    ):
        advance = await add_advance(session, project, technician, "1500")
        await add_expense(session, advance, technician, "500", status="APPROVED")

        result = await service.close_advance(admin, advance.advance_id, "0")

        assert advance.status == "CLOSED"
        assert result.deficit == Decimal("1000.00")
        assert result.carry_forward.user_id == technician.user_id

    async def test_admin_cannot_settle_own_advance(self, session, service, admin, project):
        advance = await add_advance(session, project, admin, "300")
        with pytest.raises(ActionNotPermittedError):
            await service.close_advance(admin, advance.advance_id, "300")
        assert advance.status == "OPEN"

    async def test_events_recorded_for_close_and_carry_forward(
        self, session, service, changes, admin, engineer, project
    ):
        advance = await add_advance(session, project, engineer, "1000")
        await service.close_advance(admin, advance.advance_id, "0")

        kinds = [(e.table, e.event_type.value) for e in changes.events]
        assert ("advances", "UPDATE") in kinds
        assert ("advances", "INSERT") in kinds
        assert ("notifications", "INSERT") in kinds


class TestPreviewSettlement:
    async def test_preview_figures(self, session, service, admin, engineer, project):
        advance = await add_advance(session, project, engineer, "1000")
        await add_expense(session, advance, engineer, "250", status="APPROVED")
        await add_expense(session, advance, engineer, "100", status="PENDING")

        preview = await service.preview_settlement(admin, advance.advance_id)

        assert preview.approved_expenses == Decimal("250.00")
        assert preview.theoretical_balance == Decimal("750.00")
        assert preview.pending_expenses == 1
        assert advance.status == "OPEN"

