"""Advance service - creation and approval routing for cash advances."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.models import Advance, NotificationType, ProjectStatus, User
from advance_tracker.realtime.events import ChangeBatch
from advance_tracker.services.amounts import to_money
from advance_tracker.services.authority import opens_on_creation, require_approval_authority
from advance_tracker.services.errors import EntityNotFoundError, InvalidInputError
from advance_tracker.services.notification_service import NotificationService
from advance_tracker.services.queries import load_scope, require_advance, require_user
from advance_tracker.services.state_machine import (
    AdvanceStateMachine,
    AdvanceStatus,
    InvalidTransitionError,
)
from advance_tracker.services.visibility import VisibleScope

logger = logging.getLogger(__name__)


class AdvanceService:
    """Service for managing the advance lifecycle.

    Operations:
    - create_advance: issue a new advance, OPEN or PENDING depending on who asks
    - approve_advance: PENDING → OPEN
    - reject_advance: PENDING → REJECTED with a reason

    Closing (OPEN → CLOSED) belongs to SettlementService.
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

    async def get_visible_advance(self, requester: User, advance_id: UUID) -> Advance:
        """Load an advance, treating anything outside the scope as missing."""
        scope = await self.scope_for(requester)
        if not scope.can_see_advance(advance_id):
            raise EntityNotFoundError("Advance", advance_id)
        return await require_advance(self.session, advance_id)

    async def list_advances(
        self, requester: User, status: AdvanceStatus | str | None = None
    ) -> list[Advance]:
        scope = await self.scope_for(requester)
        if status is None:
            return scope.advances
        return [a for a in scope.advances if a.status == status]

    async def create_advance(
        self,
        requester: User,
        project_id: UUID,
        user_id: UUID,
        amount: Any,
        description: str,
    ) -> Advance:
        """Issue an advance to ``user_id`` on ``project_id``.

        Admin-issued advances and advances an engineer creates for one of their
        technicians open immediately; everything else starts PENDING.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidInputError("amount", "must be greater than zero")
        description = (description or "").strip()
        if not description:
            raise InvalidInputError("description", "is required")

        scope = await self.scope_for(requester)
        if not scope.can_see_project(project_id):
            raise EntityNotFoundError("Project", project_id)
        if not scope.can_see_user(user_id):
            raise EntityNotFoundError("User", user_id)

        project = next(p for p in scope.projects if p.project_id == project_id)
        if project.status != ProjectStatus.ACTIVE:
            raise InvalidInputError("projectId", "project is archived")

        beneficiary = await require_user(self.session, user_id)
        status = (
            AdvanceStatus.OPEN
            if opens_on_creation(requester, beneficiary)
            else AdvanceStatus.PENDING
        )

        advance = Advance(
            project_id=project_id,
            user_id=user_id,
            amount=amount,
            remaining_amount=amount,
            description=description,
            status=status.value,
            date=date.today(),
        )
        self.session.add(advance)
        await self.session.flush()
        self.changes.inserted(advance)

        logger.info(
            "Advance %s created by %s for %s: %s %s",
            advance.advance_id,
            requester.user_id,
            user_id,
            amount,
            status.value,
        )

        if status == AdvanceStatus.PENDING:
            await self.notifications.notify(
                beneficiary.manager_id,
                f"New advance request from {beneficiary.name}: {description} ({amount})",
                NotificationType.INFO,
            )
        elif user_id != requester.user_id:
            await self.notifications.notify(
                user_id,
                f"An advance of {amount} was issued to you: {description}",
                NotificationType.SUCCESS,
            )

        return advance

    async def approve_advance(self, requester: User, advance_id: UUID) -> Advance:
        """Approve a pending advance, opening it for expenses."""
        advance = await self.get_visible_advance(requester, advance_id)
        holder = await self.session.get(User, advance.user_id)
        require_approval_authority(requester, holder, "approve_advance")

        await self._transition(advance, AdvanceStatus.OPEN)
        await self.notifications.notify(
            advance.user_id,
            f"Your advance request was approved: {advance.description}",
            NotificationType.SUCCESS,
        )
        return advance

    async def reject_advance(
        self, requester: User, advance_id: UUID, reason: str
    ) -> Advance:
        """Reject a pending advance. A non-empty reason is required."""
        reason = (reason or "").strip()
        if not reason:
            raise InvalidInputError("reason", "a rejection reason is required")

        advance = await self.get_visible_advance(requester, advance_id)
        holder = await self.session.get(User, advance.user_id)
        require_approval_authority(requester, holder, "reject_advance")

        AdvanceStateMachine.validate_transition(advance.status, AdvanceStatus.REJECTED)
        advance.rejection_reason = reason
        await self._transition(advance, AdvanceStatus.REJECTED)
        await self.notifications.notify(
            advance.user_id,
            f"Your advance request was rejected: {reason}",
            NotificationType.ERROR,
        )
        return advance

    async def _transition(self, advance: Advance, to_status: AdvanceStatus) -> None:
        from_status = advance.status
        errors = AdvanceStateMachine.validate_advance_for_transition(advance, to_status)
        if errors:
            raise InvalidTransitionError(from_status, to_status, "; ".join(errors))

        advance.status = to_status.value
        await self.session.flush()
        self.changes.updated(advance)
        logger.info(
            "Advance %s: %s -> %s", advance.advance_id, from_status, to_status.value
        )

