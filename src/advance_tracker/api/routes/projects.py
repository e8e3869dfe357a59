"""Project endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from advance_tracker.api.dependencies import AppSettings, CurrentUser, UoW
from advance_tracker.api.schemas import ErrorResponse, ProjectCreate, ProjectResponse
from advance_tracker.services.project_service import ProjectService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=list[ProjectResponse])
async def list_projects(uow: UoW, user: CurrentUser, settings: AppSettings) -> list[ProjectResponse]:
    """Projects visible to the requester."""
    service = ProjectService(uow.session, uow.changes, settings)
    return [ProjectResponse.model_validate(p) for p in await service.list_projects(user)]


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_project(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    payload: ProjectCreate,
) -> ProjectResponse:
    """Create a project owned by the requester's organization."""
    service = ProjectService(uow.session, uow.changes, settings)
    project = await service.create_project(user, payload.name, payload.location)
    await uow.commit()
    return ProjectResponse.model_validate(project)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_project(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    project_id: Annotated[UUID, Path()],
) -> ProjectResponse:
    service = ProjectService(uow.session, uow.changes, settings)
    return ProjectResponse.model_validate(await service.get_visible_project(user, project_id))


@router.post(
    "/{project_id}/archive",
    response_model=ProjectResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def archive_project(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    project_id: Annotated[UUID, Path()],
) -> ProjectResponse:
    """Archive a project with no open or pending advances."""
    service = ProjectService(uow.session, uow.changes, settings)
    project = await service.archive_project(user, project_id)
    await uow.commit()
    return ProjectResponse.model_validate(project)
