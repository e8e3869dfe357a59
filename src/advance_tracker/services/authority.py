"""Approval authority and edit permission rules.

Pure predicates over user records; nothing here touches the database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from advance_tracker.models.organization import UserRole
from advance_tracker.services.errors import ActionNotPermittedError
from advance_tracker.services.state_machine import ExpenseStatus

if TYPE_CHECKING:
    from advance_tracker.models import Advance, Expense, User


def can_approve(approver: User, owner: User | None) -> bool:
    """Whether ``approver`` may approve/reject a request owned by ``owner``.

    - unknown owner: no
    - self-approval: never
    - ADMIN: engineers, other admins, or anyone they directly manage
    - ENGINEER: technicians they directly manage
    - TECHNICIAN: nobody
    """
    if owner is None:
        return False
    if approver.user_id == owner.user_id:
        return False

    if approver.role == UserRole.ADMIN:
        if owner.role in (UserRole.ENGINEER, UserRole.ADMIN):
            return True
        return owner.manager_id == approver.user_id

    if approver.role == UserRole.ENGINEER:
        return (
            owner.role == UserRole.TECHNICIAN
            and owner.manager_id == approver.user_id
        )

    return False


def require_approval_authority(approver: User, owner: User | None, action: str) -> None:
    """Raise ActionNotPermittedError unless ``approver`` may act on ``owner``'s request."""
    if owner is not None and approver.user_id == owner.user_id:
        raise ActionNotPermittedError(action, "self-approval is not allowed")
    if not can_approve(approver, owner):
        raise ActionNotPermittedError(action, "no approval authority over the owner")


def can_edit_expense(user: User, expense: Expense) -> bool:
    """Owner may edit a PENDING expense, or an APPROVED one that was unlocked."""
    if expense.user_id != user.user_id:
        return False
    if expense.status == ExpenseStatus.PENDING:
        return True
    return expense.status == ExpenseStatus.APPROVED and bool(expense.is_editable)


def opens_on_creation(creator: User, beneficiary: User) -> bool:
    """Whether an advance created by ``creator`` for ``beneficiary`` skips approval.

    Admin-issued advances are self-approved. An engineer funding a technician
    they manage also opens directly. Everything else waits as PENDING.
    """
    if creator.role == UserRole.ADMIN:
        return True
    if creator.role == UserRole.ENGINEER and beneficiary.user_id != creator.user_id:
        return beneficiary.manager_id == creator.user_id
    return False


def can_settle(requester: User, advance: Advance) -> bool:
    """Only admins settle, and never an advance they hold themselves."""
    return requester.role == UserRole.ADMIN and advance.user_id != requester.user_id


def require_settlement_authority(requester: User, advance: Advance) -> None:
    if advance.user_id == requester.user_id:
        raise ActionNotPermittedError("close_advance", "cannot settle your own advance")
    if not can_settle(requester, advance):
        raise ActionNotPermittedError("close_advance", "only an admin can settle advances")
