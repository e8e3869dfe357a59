"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from advance_tracker.api.routes import (
    advances_router,
    changes_router,
    expenses_router,
    exports_router,
    health_router,
    notifications_router,
    projects_router,
    settlements_router,
    users_router,
)
from advance_tracker.config import Settings, get_settings
from advance_tracker.database import create_tables, dispose_db
from advance_tracker.realtime.events import get_change_feed
from advance_tracker.realtime.hub import hub
from advance_tracker.services.errors import (
    ActionNotPermittedError,
    EntityNotFoundError,
    ExternalWriteError,
    InvalidInputError,
)
from advance_tracker.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    await create_tables()
    feed = get_change_feed()
    feed.subscribe(hub)
    yield
    # Shutdown
    feed.unsubscribe(hub)
    await dispose_db()


def _error(status_code: int, detail: str, code: str, field: str | None = None) -> JSONResponse:
    content = {"detail": detail, "code": code}
    if field is not None:
        content["field"] = field
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Map service errors onto JSON error responses."""

    @app.exception_handler(ActionNotPermittedError)
    async def not_permitted_handler(
        request: Request, exc: ActionNotPermittedError
    ) -> JSONResponse:
        return _error(status.HTTP_403_FORBIDDEN, str(exc), "ACTION_NOT_PERMITTED")

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(
        request: Request, exc: InvalidInputError
    ) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INVALID_INPUT", exc.field
        )

    @app.exception_handler(EntityNotFoundError)
    async def not_found_handler(
        request: Request, exc: EntityNotFoundError
    ) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "INVALID_TRANSITION")

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, exc.orig)
        return _error(
            status.HTTP_409_CONFLICT,
            "The change conflicts with existing records",
            "CONFLICT",
        )

    @app.exception_handler(ExternalWriteError)
    async def external_write_handler(
        request: Request, exc: ExternalWriteError
    ) -> JSONResponse:
        logger.error("External write failed during %s: %r", exc.operation, exc.cause)
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Storage is temporarily unavailable",
            "EXTERNAL_WRITE_FAILED",
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Storage is temporarily unavailable",
            "EXTERNAL_WRITE_FAILED",
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="Advance Tracker API",
        description="Cash advances, expense approval and settlement for project teams",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(projects_router, prefix="/api/v1")
    app.include_router(advances_router, prefix="/api/v1")
    app.include_router(settlements_router, prefix="/api/v1")
    app.include_router(expenses_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(exports_router, prefix="/api/v1")
    app.include_router(changes_router, prefix="/api/v1")

    storage_dir = Path(settings.storage_dir)
    storage_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/files", StaticFiles(directory=storage_dir), name="files")

    return app


# Default app instance for uvicorn
app = create_app()
