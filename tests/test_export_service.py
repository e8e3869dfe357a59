"""Tests for CSV exports."""

import csv
import io
from decimal import Decimal

import pytest

from advance_tracker.services.errors import EntityNotFoundError
from advance_tracker.services.export_service import ExportService
from advance_tracker.services.expense_service import ExpenseService
from tests.factories import add_advance, add_expense

pytestmark = pytest.mark.asyncio


def _rows(content: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(content)))


@pytest.fixture
def service(session, settings):
    return ExportService(session, settings)


class TestExpenseSheet:
    async def test_invoice_sheet(self, session, service, changes, settings, technician, project):
        advance = await add_advance(session, project, technician, "1000")
        expense = await ExpenseService(session, changes, settings).create_expense(
            technician,
            advance.advance_id,
            "Hardware",
            invoice_items=[{"itemName": "Bolts", "quantity": 4, "unitPrice": "2.50"}],
            additional_amount="3",
        )

        rows = _rows(await service.export_expense(technician, expense.expense_id))

        assert ["1", "Bolts", "4.0", "2.50", "10.00"] in rows
        assert ["", "", "", "Additional amounts", "3.00"] in rows
        assert ["", "", "", "Grand total", "13.00"] in rows

    async def test_fixed_sheet_has_single_line(self, session, service, technician, project):
        advance = await add_advance(session, project, technician, "1000")
        expense = await add_expense(session, advance, technician, "75")

        rows = _rows(await service.export_expense(technician, expense.expense_id))

        assert ["1", "Cement", "1", "75.00", "75.00"] in rows
        assert not any("Additional amounts" in row for row in rows)

    async def test_invisible_expense(self, session, service, technician, other_technician, project):
        advance = await add_advance(session, project, technician, "1000")
        expense = await add_expense(session, advance, technician, "75")

        with pytest.raises(EntityNotFoundError):
            await service.export_expense(other_technician, expense.expense_id)


class TestFinancialReport:
    async def test_one_row_per_visible_advance(
        self, session, service, admin, engineer, technician, project
    ):
        first = await add_advance(session, project, engineer, "1000", description="Float A")
        await add_expense(session, first, engineer, "400", status="APPROVED")
        first.remaining_amount = Decimal("600")
        await add_advance(session, project, technician, "500", description="Float B")

        rows = _rows(await service.export_report(admin))

        body = [row for row in rows if row and row[2] in ("Float A", "Float B")]
        assert len(body) == 2
        row_a = next(row for row in body if row[2] == "Float A")
        assert row_a[0] == "Pipeline North"
        assert row_a[1] == "Eve Engineer"
        assert row_a[5:8] == ["1000.00", "400.00", "600.00"]
        assert rows[-1][4:7] == ["Totals", "1500.00", "400.00"]

    async def test_technician_sees_only_own(self, session, service, engineer, technician, project):
        await add_advance(session, project, engineer, "1000", description="Float A")
        await add_advance(session, project, technician, "500", description="Float B")

        rows = _rows(await service.export_report(technician))

        assert [row[2] for row in rows if row and row[2] in ("Float A", "Float B")] == ["Float B"]


class TestProjectArchive:
    async def test_summary_and_detailed_sections(
        self, session, service, admin, engineer, project
    ):
        advance = await add_advance(
            session, project, engineer, "1000", status="CLOSED", description="Float A"
        )
        advance.settlement_data = {"returnedCashAmount": 250, "deficitAmount": 0}
        receipt = await add_expense(session, advance, engineer, "750", status="APPROVED")
        receipt.notes = "Paid in cash"
        receipt.is_invoice = True
        await add_expense(session, advance, engineer, "40", status="REJECTED")

        rows = _rows(await service.export_project_archive(admin, project.project_id))

        assert ["Project", "Pipeline North"] in rows
        summary = rows.index(["Summary"])
        assert rows[summary + 1] == [
            "Advance", "Employee", "Date", "Status", "Amount", "Spent", "Returned", "Deficit"
        ]
        assert rows[summary + 2][0:2] == ["Float A", "Eve Engineer"]
        assert rows[summary + 2][3:] == ["CLOSED", "1000.00", "750.00", "250.00", "0.00"]

        detailed = rows.index(["Detailed expenses"])
        assert detailed > summary
        expense_rows = rows[detailed + 2:]
        assert len(expense_rows) == 2
        approved = next(row for row in expense_rows if row[4] == "APPROVED")
        assert approved[3] == "750.00"
        assert approved[5:] == ["Paid in cash", "Yes"]
        rejected = next(row for row in expense_rows if row[4] == "REJECTED")
        assert rejected[5:] == ["", "No"]

    async def test_open_advance_returns_nothing(self, session, service, admin, engineer, project):
        await add_advance(session, project, engineer, "300", description="Float B")

        rows = _rows(await service.export_project_archive(admin, project.project_id))

        summary = rows.index(["Summary"])
        assert rows[summary + 2][6:] == ["0.00", "0.00"]

    async def test_other_tenant_project_not_found(self, service, rival_admin, project):
        with pytest.raises(EntityNotFoundError):
            await service.export_project_archive(rival_admin, project.project_id)
