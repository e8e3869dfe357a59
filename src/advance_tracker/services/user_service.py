"""Team management: tenant admins, engineers and technicians."""

from __future__ import annotations

import logging
from urllib.parse import quote
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from advance_tracker.config import Settings, get_settings
from advance_tracker.models import User, UserRole
from advance_tracker.realtime.events import ChangeBatch
from advance_tracker.services.errors import (
    ActionNotPermittedError,
    EntityNotFoundError,
    InvalidInputError,
)
from advance_tracker.services.queries import load_scope, require_user, tenant_of

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _to_int32(value: int) -> int:
    return ((value + 2**31) % 2**32) - 2**31


def stable_avatar_url(name: str) -> str:
    """Deterministic initials avatar with a colour derived from the name."""
    if not name:
        return "https://ui-avatars.com/api/?name=NA&background=000&color=fff"

    h = 0
    for ch in name:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    color = format(_to_int32(h) & 0x00FFFFFF, "X").rjust(6, "0")
    return (
        f"https://ui-avatars.com/api/?name={quote(name, safe='-_.!~*()')}"
        f"&background={color}&color=fff&bold=true&size=128"
    )


def validate_hierarchy(user: User, manager: User | None, root_admin: User | None) -> list[str]:
    """Check a user's place in the ADMIN → ENGINEER → TECHNICIAN hierarchy.

    Returns list of error messages (empty if valid).
    """
    errors: list[str] = []
    if user.role == UserRole.ADMIN:
        if user.manager_id is not None or user.root_admin_id is not None:
            errors.append("An admin has no manager and no root admin")
        return errors

    if root_admin is None or root_admin.role != UserRole.ADMIN:
        errors.append("Root admin must be an admin")

    expected_manager_role = (
        UserRole.ADMIN if user.role == UserRole.ENGINEER else UserRole.ENGINEER
    )
    if manager is None or manager.role != expected_manager_role:
        errors.append(f"A {user.role.lower()}'s manager must be a {expected_manager_role.value.lower()}")
    elif root_admin is not None and tenant_of(manager) != root_admin.user_id:
        errors.append("Manager belongs to a different organization")

    return errors


class UserService:
    """Adds and removes users while keeping the hierarchy valid."""

    def __init__(
        self,
        session: AsyncSession,
        changes: ChangeBatch | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.changes = changes if changes is not None else ChangeBatch()
        self.settings = settings or get_settings()

    async def get_user(self, user_id: UUID) -> User | None:
        return await self.session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def register_admin(
        self,
        name: str,
        email: str,
        job_title: str | None = None,
        phone: str | None = None,
    ) -> User:
        """Create a tenant-owning admin."""
        name, email = self._validate_identity(name, email)
        await self._ensure_email_free(email)
        admin = User(
            name=name,
            email=email,
            role=UserRole.ADMIN.value,
            job_title=job_title,
            phone=phone,
            avatar_url=stable_avatar_url(name),
        )
        self.session.add(admin)
        await self.session.flush()
        self.changes.inserted(admin)
        logger.info("Registered admin %s", admin.user_id)
        return admin

    async def add_user(
        self,
        requester: User,
        name: str,
        email: str,
        role: UserRole | str,
        manager_id: UUID | None = None,
        job_title: str | None = None,
        phone: str | None = None,
    ) -> User:
        """Add an engineer or technician to the requester's organization.

        Admins may add engineers (managed by the admin unless told otherwise)
        and technicians (managed by one of their engineers). Engineers may add
        technicians only and always become their manager.
        """
        name, email = self._validate_identity(name, email)
        try:
            role = UserRole(role)
        except ValueError as e:
            raise InvalidInputError("role", f"unknown role {role!r}") from e
        await self._ensure_email_free(email)

        if role == UserRole.ADMIN:
            raise ActionNotPermittedError("add_user", "admins are registered, not added")

        if requester.role == UserRole.ADMIN:
            if role == UserRole.ENGINEER:
                manager_id = manager_id or requester.user_id
            elif manager_id is None:
                raise InvalidInputError("managerId", "a technician needs a managing engineer")
        elif requester.role == UserRole.ENGINEER:
            if role != UserRole.TECHNICIAN:
                raise ActionNotPermittedError("add_user", "engineers may only add technicians")
            manager_id = requester.user_id
        else:
            raise ActionNotPermittedError("add_user", "technicians cannot add users")

        root_admin_id = tenant_of(requester)
        manager = await self.session.get(User, manager_id)
        root_admin = await self.session.get(User, root_admin_id) if root_admin_id else None

        user = User(
            name=name,
            email=email,
            role=role.value,
            job_title=job_title,
            phone=phone,
            avatar_url=stable_avatar_url(name),
            manager_id=manager_id,
            root_admin_id=root_admin_id,
        )
        errors = validate_hierarchy(user, manager, root_admin)
        if errors:
            raise InvalidInputError("managerId", "; ".join(errors))

        self.session.add(user)
        await self.session.flush()
        self.changes.inserted(user)
        logger.info(
            "User %s added %s %s under manager %s",
            requester.user_id,
            role.value,
            user.user_id,
            manager_id,
        )
        return user

    async def delete_user(self, requester: User, user_id: UUID) -> None:
        """Hard-delete a visible team member."""
        if user_id == requester.user_id:
            raise ActionNotPermittedError("delete_user", "cannot delete yourself")
        if requester.role == UserRole.TECHNICIAN:
            raise ActionNotPermittedError("delete_user", "technicians cannot delete users")

        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        if not scope.can_see_user(user_id):
            raise EntityNotFoundError("User", user_id)

        user = await require_user(self.session, user_id)
        self.changes.deleted(user)
        await self.session.delete(user)
        await self.session.flush()
        logger.info("User %s deleted user %s", requester.user_id, user_id)

    async def update_profile(
        self,
        requester: User,
        *,
        phone: str | None = _UNSET,
        job_title: str | None = _UNSET,
    ) -> User:
        """Change the requester's own contact details. Blank values clear the field."""
        if phone is not _UNSET:
            requester.phone = (phone or "").strip() or None
        if job_title is not _UNSET:
            requester.job_title = (job_title or "").strip() or None
        await self.session.flush()
        self.changes.updated(requester)
        logger.info("User %s updated their profile", requester.user_id)
        return requester

    async def list_team(self, requester: User) -> list[User]:
        scope = await load_scope(
            self.session,
            requester,
            admin_sees_all_projects=self.settings.admin_sees_all_projects,
        )
        return scope.team

    async def _ensure_email_free(self, email: str) -> None:
        if await self.get_by_email(email) is not None:
            raise InvalidInputError("email", "is already registered")

    def _validate_identity(self, name: str, email: str) -> tuple[str, str]:
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name:
            raise InvalidInputError("name", "is required")
        if "@" not in email:
            raise InvalidInputError("email", "is not a valid address")
        return name, email
