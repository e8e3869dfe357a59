"""Spreadsheet export endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path
from fastapi.responses import Response

from advance_tracker.api.dependencies import AppSettings, CurrentUser, DbSession
from advance_tracker.api.schemas import ErrorResponse
from advance_tracker.services.export_service import ExportService

router = APIRouter(prefix="/exports", tags=["exports"])

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def _csv(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get(
    "/expenses/{expense_id}",
    responses={404: {"model": ErrorResponse}},
)
async def export_expense(
    db: DbSession,
    user: CurrentUser,
    settings: AppSettings,
    expense_id: Annotated[UUID, Path()],
) -> Response:
    """Invoice-detail sheet for one expense."""
    service = ExportService(db, settings)
    content = await service.export_expense(user, expense_id)
    return _csv(content, f"expense-{str(expense_id)[:8]}.csv")


@router.get(
    "/report",
    responses={404: {"model": ErrorResponse}},
)
async def export_report(
    db: DbSession,
    user: CurrentUser,
    settings: AppSettings,
    project_id: UUID | None = None,
) -> Response:
    """Financial report over every visible advance."""
    service = ExportService(db, settings)
    content = await service.export_report(user, project_id)
    return _csv(content, "financial-report.csv")


@router.get(
    "/projects/{project_id}/archive",
    responses={404: {"model": ErrorResponse}},
)
async def export_project_archive(
    db: DbSession,
    user: CurrentUser,
    settings: AppSettings,
    project_id: Annotated[UUID, Path()],
) -> Response:
    """Advance summary and detailed expenses for one project."""
    service = ExportService(db, settings)
    content = await service.export_project_archive(user, project_id)
    return _csv(content, f"project-archive-{str(project_id)[:8]}.csv")
