"""Role-scoped visibility over the full entity sets.

``filter_visible`` is a pure function of the requester and the complete
collections: projects first, then users, then advances on visible projects,
then expenses on visible advances. Each layer only narrows the previous one.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from advance_tracker.models.organization import ProjectStatus, UserRole

if TYPE_CHECKING:
    from advance_tracker.models import Advance, Expense, Project, User


@dataclass
class VisibleScope:
    """What one requester is allowed to see."""

    requester: User
    projects: list[Project] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    advances: list[Advance] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._project_ids = {p.project_id for p in self.projects}
        self._user_ids = {u.user_id for u in self.users}
        self._advance_ids = {a.advance_id for a in self.advances}
        self._expense_ids = {e.expense_id for e in self.expenses}

    @property
    def team(self) -> list[User]:
        """Visible users other than the requester."""
        return [u for u in self.users if u.user_id != self.requester.user_id]

    @property
    def advance_ids(self) -> set[UUID]:
        return set(self._advance_ids)

    def can_see_project(self, project_id: UUID) -> bool:
        return project_id in self._project_ids

    def can_see_user(self, user_id: UUID) -> bool:
        return user_id in self._user_ids

    def can_see_advance(self, advance_id: UUID) -> bool:
        return advance_id in self._advance_ids

    def can_see_expense(self, expense_id: UUID) -> bool:
        return expense_id in self._expense_ids


def visible_projects(
    requester: User,
    projects: Iterable[Project],
    *,
    admin_sees_all_projects: bool = False,
) -> list[Project]:
    """Admins see the projects they own; everyone else sees their tenant's active ones."""
    if requester.role == UserRole.ADMIN:
        if admin_sees_all_projects:
            return list(projects)
        return [p for p in projects if p.manager_id == requester.user_id]

    return [
        p
        for p in projects
        if p.manager_id == requester.root_admin_id
        and p.status == ProjectStatus.ACTIVE
    ]


def visible_users(requester: User, users: Iterable[User]) -> list[User]:
    """Self always; admins their whole tenant; engineers their technicians."""
    result = []
    for user in users:
        if user.user_id == requester.user_id:
            result.append(user)
        elif requester.role == UserRole.ADMIN:
            if user.root_admin_id == requester.user_id:
                result.append(user)
        elif requester.role == UserRole.ENGINEER:
            if user.role == UserRole.TECHNICIAN and user.manager_id == requester.user_id:
                result.append(user)
    return result


def visible_advances(
    requester: User,
    advances: Iterable[Advance],
    project_ids: set[UUID],
    users_by_id: dict[UUID, User],
) -> list[Advance]:
    """Advances on visible projects, narrowed by role."""
    result = []
    for advance in advances:
        if advance.project_id not in project_ids:
            continue

        if requester.role == UserRole.ADMIN:
            result.append(advance)
        elif requester.role == UserRole.ENGINEER:
            if advance.user_id == requester.user_id:
                result.append(advance)
                continue
            # Missing holder record fails closed
            holder = users_by_id.get(advance.user_id)
            if holder is not None and holder.manager_id == requester.user_id:
                result.append(advance)
        elif advance.user_id == requester.user_id:
            result.append(advance)
    return result


def filter_visible(
    requester: User,
    users: Iterable[User],
    projects: Iterable[Project],
    advances: Iterable[Advance],
    expenses: Iterable[Expense],
    *,
    admin_sees_all_projects: bool = False,
) -> VisibleScope:
    """Compute the requester's visibility scope over the full entity sets."""
    all_users = list(users)
    users_by_id = {u.user_id: u for u in all_users}

    projects_seen = visible_projects(
        requester, projects, admin_sees_all_projects=admin_sees_all_projects
    )
    users_seen = visible_users(requester, all_users)
    advances_seen = visible_advances(
        requester,
        advances,
        {p.project_id for p in projects_seen},
        users_by_id,
    )
    advance_ids = {a.advance_id for a in advances_seen}
    expenses_seen = [e for e in expenses if e.advance_id in advance_ids]

    return VisibleScope(
        requester=requester,
        projects=projects_seen,
        users=users_seen,
        advances=advances_seen,
        expenses=expenses_seen,
    )
