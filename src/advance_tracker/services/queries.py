"""Shared loaders used by the services."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.models import Advance, Expense, Project, User, UserRole
from advance_tracker.services.errors import EntityNotFoundError
from advance_tracker.services.visibility import VisibleScope, filter_visible


async def require_user(session: AsyncSession, user_id: UUID) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise EntityNotFoundError("User", user_id)
    return user


async def require_project(session: AsyncSession, project_id: UUID) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise EntityNotFoundError("Project", project_id)
    return project


async def require_advance(session: AsyncSession, advance_id: UUID) -> Advance:
    advance = await session.get(Advance, advance_id)
    if advance is None:
        raise EntityNotFoundError("Advance", advance_id)
    return advance


async def require_expense(session: AsyncSession, expense_id: UUID) -> Expense:
    expense = await session.get(Expense, expense_id)
    if expense is None:
        raise EntityNotFoundError("Expense", expense_id)
    return expense


async def expenses_for_advance(session: AsyncSession, advance_id: UUID) -> list[Expense]:
    result = await session.execute(
        select(Expense)
        .where(Expense.advance_id == advance_id)
        .order_by(Expense.created_at)
    )
    return list(result.scalars().all())


def tenant_of(user: User) -> UUID | None:
    """The root admin id owning the user's hierarchy."""
    if user.role == UserRole.ADMIN:
        return user.user_id
    return user.root_admin_id


async def load_scope(
    session: AsyncSession,
    requester: User,
    *,
    admin_sees_all_projects: bool = False,
) -> VisibleScope:
    """Fetch the requester's tenant and compute the visible scope.

    The SQL only narrows to the tenant; the role rules themselves live in
    ``filter_visible``.
    """
    tenant_id = tenant_of(requester)
    see_all = requester.role == UserRole.ADMIN and admin_sees_all_projects

    user_query = select(User)
    project_query = select(Project)
    if tenant_id is None:
        user_query = user_query.where(User.user_id == requester.user_id)
        project_query = project_query.where(Project.project_id.is_(None))
    else:
        user_query = user_query.where(
            or_(
                User.user_id == requester.user_id,
                User.user_id == tenant_id,
                User.root_admin_id == tenant_id,
            )
        )
        if not see_all:
            project_query = project_query.where(Project.manager_id == tenant_id)

    users = list((await session.execute(user_query)).scalars().all())
    projects = list(
        (await session.execute(project_query.order_by(Project.created_at))).scalars().all()
    )

    project_ids = [p.project_id for p in projects]
    advances = list(
        (
            await session.execute(
                select(Advance)
                .where(Advance.project_id.in_(project_ids))
                .order_by(Advance.created_at)
            )
        ).scalars().all()
    )

    advance_ids = [a.advance_id for a in advances]
    expenses = list(
        (
            await session.execute(
                select(Expense)
                .where(Expense.advance_id.in_(advance_ids))
                .order_by(Expense.created_at)
            )
        ).scalars().all()
    )

    return filter_visible(
        requester,
        users,
        projects,
        advances,
        expenses,
        admin_sees_all_projects=admin_sees_all_projects,
    )
