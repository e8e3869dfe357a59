"""ORM models."""

from advance_tracker.models.base import Base
from advance_tracker.models.organization import Project, ProjectStatus, User, UserRole
from advance_tracker.models.advances import Advance, Expense
from advance_tracker.models.notification import Notification, NotificationType

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Project",
    "ProjectStatus",
    "Advance",
    "Expense",
    "Notification",
    "NotificationType",
]
