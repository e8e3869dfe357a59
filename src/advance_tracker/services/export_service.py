"""Spreadsheet (CSV) export of expenses and advances."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.models import Advance, Expense, Project, User
from advance_tracker.services.amounts import ZERO, approved_total, to_money
from advance_tracker.services.errors import EntityNotFoundError
from advance_tracker.services.queries import load_scope

COMPANY_NAME = "PETROTEC ENGINEERING"


def expense_sheet(
    expense: Expense,
    advance: Advance | None,
    project: Project | None,
    owner: User | None,
) -> str:
    """Invoice-detail sheet for a single expense."""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([COMPANY_NAME])
    writer.writerow(["Expense invoice detail"])
    writer.writerow([])
    writer.writerow(["Date", expense.date.isoformat(), "Expense", str(expense.expense_id)[:8]])
    writer.writerow(["Project", project.name if project else "-", "Employee", owner.name if owner else "-"])
    writer.writerow(["Advance", advance.description if advance else "-", "Status", expense.status])
    writer.writerow([])
    writer.writerow(["Description", expense.description])
    writer.writerow(["Notes", expense.notes or "-"])
    writer.writerow([])
    writer.writerow(["#", "Item", "Quantity", "Unit price", "Total"])

    additional = to_money(expense.additional_amount)
    if expense.is_invoice and expense.invoice_items:
        for index, item in enumerate(expense.invoice_items, start=1):
            writer.writerow([
                index,
                item.get("itemName", ""),
                item.get("quantity", ""),
                str(to_money(item.get("unitPrice"))),
                str(to_money(item.get("total"))),
            ])
    else:
        base = to_money(expense.amount) - additional
        writer.writerow([1, expense.description, 1, str(base), str(base)])

    writer.writerow([])
    if additional:
        writer.writerow(["", "", "", "Additional amounts", str(additional)])
    writer.writerow(["", "", "", "Grand total", str(to_money(expense.amount))])

    return output.getvalue()


def financial_report(
    projects: Iterable[Project],
    advances: Iterable[Advance],
    expenses: Iterable[Expense],
    users: Iterable[User],
    generated_on: date | None = None,
) -> str:
    """One row per advance with its spend, balance and settlement deficit."""
    projects_by_id = {p.project_id: p for p in projects}
    users_by_id = {u.user_id: u for u in users}
    expenses_by_advance: dict[UUID, list[Expense]] = {}
    for expense in expenses:
        expenses_by_advance.setdefault(expense.advance_id, []).append(expense)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([COMPANY_NAME, "Financial report", (generated_on or date.today()).isoformat()])
    writer.writerow([
        "Project",
        "Employee",
        "Advance",
        "Date",
        "Status",
        "Amount",
        "Approved expenses",
        "Remaining",
        "Deficit",
    ])

    total_amount = ZERO
    total_approved = ZERO
    for advance in advances:
        project = projects_by_id.get(advance.project_id)
        holder = users_by_id.get(advance.user_id)
        approved = approved_total(expenses_by_advance.get(advance.advance_id, []))
        deficit = (advance.settlement_data or {}).get("deficitAmount")
        writer.writerow([
            project.name if project else "-",
            holder.name if holder else "-",
            advance.description,
            advance.date.isoformat(),
            advance.status,
            str(to_money(advance.amount)),
            str(approved),
            str(to_money(advance.remaining_amount)),
            str(to_money(deficit)) if deficit is not None else "",
        ])
        total_amount += to_money(advance.amount)
        total_approved += approved

    writer.writerow([])
    writer.writerow(["", "", "", "", "Totals", str(total_amount), str(total_approved), "", ""])
    return output.getvalue()


def project_archive_report(
    project: Project,
    advances: Iterable[Advance],
    expenses: Iterable[Expense],
    users: Iterable[User],
    generated_on: date | None = None,
) -> str:
    """Closing report for one project: an advance summary, then every expense."""
    advances = [a for a in advances if a.project_id == project.project_id]
    users_by_id = {u.user_id: u for u in users}
    expenses_by_advance: dict[UUID, list[Expense]] = {}
    for expense in expenses:
        expenses_by_advance.setdefault(expense.advance_id, []).append(expense)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([f"{COMPANY_NAME} - Project archive report"])
    writer.writerow([])
    writer.writerow(["Project", project.name])
    writer.writerow(["Location", project.location])
    writer.writerow(["Status", project.status])
    writer.writerow(["Report date", (generated_on or date.today()).isoformat()])

    writer.writerow([])
    writer.writerow(["Summary"])
    writer.writerow(
        ["Advance", "Employee", "Date", "Status", "Amount", "Spent", "Returned", "Deficit"]
    )
    for advance in advances:
        holder = users_by_id.get(advance.user_id)
        settlement = advance.settlement_data or {}
        writer.writerow([
            advance.description,
            holder.name if holder else str(advance.user_id),
            advance.date.isoformat(),
            advance.status,
            str(to_money(advance.amount)),
            str(approved_total(expenses_by_advance.get(advance.advance_id, []))),
            str(to_money(settlement.get("returnedCashAmount"))),
            str(to_money(settlement.get("deficitAmount"))),
        ])

    writer.writerow([])
    writer.writerow(["Detailed expenses"])
    writer.writerow(
        ["Advance", "Description", "Date", "Amount", "Status", "Notes", "Invoice"]
    )
    for advance in advances:
        for expense in expenses_by_advance.get(advance.advance_id, []):
            writer.writerow([
                advance.description,
                expense.description,
                expense.date.isoformat(),
                str(to_money(expense.amount)),
                expense.status,
                expense.notes or "",
                "Yes" if expense.is_invoice else "No",
            ])

    return output.getvalue()


class ExportService:
    """Builds exports limited to what the requester can see."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def export_expense(self, requester: User, expense_id: UUID) -> str:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        expense = next((e for e in scope.expenses if e.expense_id == expense_id), None)
        if expense is None:
            raise EntityNotFoundError("Expense", expense_id)
        advance = next((a for a in scope.advances if a.advance_id == expense.advance_id), None)
        project = (
            next((p for p in scope.projects if p.project_id == advance.project_id), None)
            if advance
            else None
        )
        owner = await self.session.get(User, expense.user_id)
        return expense_sheet(expense, advance, project, owner)

    async def export_report(self, requester: User, project_id: UUID | None = None) -> str:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        advances = scope.advances
        if project_id is not None:
            if not scope.can_see_project(project_id):
                raise EntityNotFoundError("Project", project_id)
            advances = [a for a in advances if a.project_id == project_id]

        holders = await self._holders(scope.users, advances)
        return financial_report(scope.projects, advances, scope.expenses, holders)

    async def export_project_archive(self, requester: User, project_id: UUID) -> str:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        project = next((p for p in scope.projects if p.project_id == project_id), None)
        if project is None:
            raise EntityNotFoundError("Project", project_id)

        advances = [a for a in scope.advances if a.project_id == project_id]
        holders = await self._holders(scope.users, advances)
        return project_archive_report(project, advances, scope.expenses, holders)

    async def _holders(self, known: Iterable[User], advances: Iterable[Advance]) -> list[User]:
        """Visible users plus any advance holder outside that list."""
        holders = list(known)
        seen = {u.user_id for u in holders}
        for user_id in {a.user_id for a in advances} - seen:
            user = await self.session.get(User, user_id)
            if user is not None:
                holders.append(user)
        return holders
