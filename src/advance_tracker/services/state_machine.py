"""Advance, expense and project state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from advance_tracker.models.organization import ProjectStatus

if TYPE_CHECKING:
    from advance_tracker.models import Advance


class AdvanceStatus(str, Enum):
    """Advance status values."""

    PENDING = "PENDING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"


class ExpenseStatus(str, Enum):
    """Expense status values."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = str(getattr(from_status, "value", from_status))
        self.to_status = str(getattr(to_status, "value", to_status))
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class _StateMachine:
    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)


class AdvanceStateMachine(_StateMachine):
    """State machine for advance status transitions.

    Allowed transitions:
    - PENDING → OPEN (approval)
    - PENDING → REJECTED
    - OPEN → CLOSED (settlement)

    CLOSED and REJECTED are terminal. Closing may spawn a new advance, but
    that is a new record, not a transition of the closed one.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        AdvanceStatus.PENDING: [AdvanceStatus.OPEN, AdvanceStatus.REJECTED],
        AdvanceStatus.OPEN: [AdvanceStatus.CLOSED],
        AdvanceStatus.CLOSED: [],  # Terminal state
        AdvanceStatus.REJECTED: [],  # Terminal state
    }

    # Statuses that block project archival
    ACTIVE_STATUSES = {
        AdvanceStatus.PENDING,
        AdvanceStatus.OPEN,
    }

    @classmethod
    def accepts_expenses(cls, status: str) -> bool:
        """Expenses may only be recorded against an OPEN advance."""
        return status == AdvanceStatus.OPEN

    @classmethod
    def is_active(cls, status: str) -> bool:
        return status in cls.ACTIVE_STATUSES

    @classmethod
    def validate_advance_for_transition(
        cls, advance: Advance, to_status: str
    ) -> list[str]:
        """Validate an advance for a specific transition, returning any errors.

        Returns list of error messages (empty if valid).
        """
        errors: list[str] = []
        from_status = advance.status

        if not cls.can_transition(from_status, to_status):
            to_value = getattr(to_status, "value", to_status)
            errors.append(f"Cannot transition from '{from_status}' to '{to_value}'")
            return errors

        if to_status == AdvanceStatus.REJECTED:
            if not (advance.rejection_reason or "").strip():
                errors.append("Rejection requires a reason")

        elif to_status == AdvanceStatus.CLOSED:
            if advance.settlement_data is None:
                errors.append("Closing requires settlement data")

        return errors


class ExpenseStateMachine(_StateMachine):
    """State machine for expense status transitions.

    Allowed transitions:
    - PENDING → APPROVED
    - PENDING → REJECTED

    Editability of an APPROVED expense is a separate flag, not a status.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ExpenseStatus.PENDING: [ExpenseStatus.APPROVED, ExpenseStatus.REJECTED],
        ExpenseStatus.APPROVED: [],
        ExpenseStatus.REJECTED: [],
    }

    @classmethod
    def counts_against_balance(cls, status: str) -> bool:
        """Only approved spend is subtracted from an advance's balance."""
        return status == ExpenseStatus.APPROVED


class ProjectStateMachine(_StateMachine):
    """ACTIVE → ARCHIVED, one way."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        ProjectStatus.ACTIVE: [ProjectStatus.ARCHIVED],
        ProjectStatus.ARCHIVED: [],
    }
