"""Advance tracker services."""

from advance_tracker.services.state_machine import (
    AdvanceStateMachine,
    AdvanceStatus,
    ExpenseStateMachine,
    ExpenseStatus,
    InvalidTransitionError,
)
from advance_tracker.services.errors import (
    ActionNotPermittedError,
    EntityNotFoundError,
    ExternalWriteError,
    InvalidInputError,
)
from advance_tracker.services.advance_service import AdvanceService
from advance_tracker.services.expense_service import ExpenseService
from advance_tracker.services.settlement_service import SettlementService
from advance_tracker.services.project_service import ProjectService
from advance_tracker.services.user_service import UserService
from advance_tracker.services.notification_service import NotificationService
from advance_tracker.services.export_service import ExportService

__all__ = [
    "AdvanceStateMachine",
    "AdvanceStatus",
    "ExpenseStateMachine",
    "ExpenseStatus",
    "InvalidTransitionError",
    "ActionNotPermittedError",
    "EntityNotFoundError",
    "ExternalWriteError",
    "InvalidInputError",
    "AdvanceService",
    "ExpenseService",
    "SettlementService",
    "ProjectService",
    "UserService",
    "NotificationService",
    "ExportService",
]
