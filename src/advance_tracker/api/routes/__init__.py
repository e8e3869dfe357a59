"""API routes."""

from advance_tracker.api.routes.advances import router as advances_router
from advance_tracker.api.routes.changes import router as changes_router
from advance_tracker.api.routes.expenses import router as expenses_router
from advance_tracker.api.routes.exports import router as exports_router
from advance_tracker.api.routes.health import router as health_router
from advance_tracker.api.routes.notifications import router as notifications_router
from advance_tracker.api.routes.projects import router as projects_router
from advance_tracker.api.routes.settlements import router as settlements_router
from advance_tracker.api.routes.users import router as users_router

__all__ = [
    "advances_router",
    "changes_router",
    "expenses_router",
    "exports_router",
    "health_router",
    "notifications_router",
    "projects_router",
    "settlements_router",
    "users_router",
]
