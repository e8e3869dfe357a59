"""Project creation and archival."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.models import Advance, Project, ProjectStatus, User, UserRole
from advance_tracker.realtime.events import ChangeBatch
from advance_tracker.services.errors import (
    ActionNotPermittedError,
    EntityNotFoundError,
    InvalidInputError,
)
from advance_tracker.services.queries import load_scope, require_project, tenant_of
from advance_tracker.services.state_machine import (
    AdvanceStateMachine,
    InvalidTransitionError,
    ProjectStateMachine,
)

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(
        self,
        session: AsyncSession,
        changes: ChangeBatch | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.changes = changes if changes is not None else ChangeBatch()
        self.settings = settings or get_settings()

    async def create_project(self, requester: User, name: str, location: str) -> Project:
        """Create an ACTIVE project owned by the requester's organization admin."""
        name = (name or "").strip()
        location = (location or "").strip()
        if not name:
            raise InvalidInputError("name", "is required")
        if not location:
            raise InvalidInputError("location", "is required")

        owner_id = tenant_of(requester)
        if owner_id is None:
            raise ActionNotPermittedError("create_project", "user has no organization")

        project = Project(
            name=name,
            location=location,
            manager_id=owner_id,
            status=ProjectStatus.ACTIVE.value,
        )
        self.session.add(project)
        await self.session.flush()
        self.changes.inserted(project)
        logger.info("Project %s created by %s", project.project_id, requester.user_id)
        return project

    async def count_active_advances(self, project_id: UUID) -> int:
        count = await self.session.scalar(
            select(func.count())
            .select_from(Advance)
            .where(
                Advance.project_id == project_id,
                Advance.status.in_([s.value for s in AdvanceStateMachine.ACTIVE_STATUSES]),
            )
        )
        return int(count or 0)

    async def archive_project(self, requester: User, project_id: UUID) -> Project:
        """Archive a project; refused while any advance is still OPEN or PENDING."""
        project = await require_project(self.session, project_id)
        can_archive = requester.role == UserRole.ADMIN and (
            project.manager_id == requester.user_id
            or self.settings.admin_sees_all_projects
        )
        if not can_archive:
            raise ActionNotPermittedError(
                "archive_project", "only the owning admin can archive a project"
            )

        ProjectStateMachine.validate_transition(project.status, ProjectStatus.ARCHIVED)

        active = await self.count_active_advances(project_id)
        if active:
            raise InvalidTransitionError(
                project.status,
                ProjectStatus.ARCHIVED,
                f"{active} advance(s) still open or pending",
            )

        project.status = ProjectStatus.ARCHIVED.value
        await self.session.flush()
        self.changes.updated(project)
        logger.info("Project %s archived by %s", project_id, requester.user_id)
        return project

    async def list_projects(self, requester: User) -> list[Project]:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        return scope.projects

    async def get_visible_project(self, requester: User, project_id: UUID) -> Project:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        if not scope.can_see_project(project_id):
            raise EntityNotFoundError("Project", project_id)
        return await require_project(self.session, project_id)
