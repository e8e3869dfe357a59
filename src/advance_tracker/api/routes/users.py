"""User and team endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Path, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from advance_tracker.api.dependencies import AppSettings, CurrentUser, Storage, UoW
from advance_tracker.api.schemas import (
    AdminRegister,
    ErrorResponse,
    ProfileUpdate,
    UserCreate,
    UserResponse,
)
from advance_tracker.services.errors import InvalidInputError
from advance_tracker.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def register_admin(uow: UoW, settings: AppSettings, payload: AdminRegister) -> UserResponse:
    """Register a new organization admin."""
    service = UserService(uow.session, uow.changes, settings)
    admin = await service.register_admin(
        payload.name, payload.email, payload.job_title, payload.phone
    )
    await uow.commit()
    return UserResponse.model_validate(admin)


@router.get("/me", response_model=UserResponse)
async def get_me(user: CurrentUser) -> UserResponse:
    """The acting user."""
    return UserResponse.model_validate(user)


@router.patch(
    "/me",
    response_model=UserResponse,
    responses={422: {"model": ErrorResponse}},
)
async def update_profile(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    payload: ProfileUpdate,
) -> UserResponse:
    """Update the acting user's phone and job title."""
    service = UserService(uow.session, uow.changes, settings)
    fields = {name: getattr(payload, name) for name in payload.model_fields_set}
    updated = await service.update_profile(user, **fields)
    await uow.commit()
    return UserResponse.model_validate(updated)


@router.get("", response_model=list[UserResponse])
async def list_team(uow: UoW, user: CurrentUser, settings: AppSettings) -> list[UserResponse]:
    """Visible team members, excluding the requester."""
    service = UserService(uow.session, uow.changes, settings)
    team = await service.list_team(user)
    return [UserResponse.model_validate(u) for u in team]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def add_user(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    payload: UserCreate,
) -> UserResponse:
    """Add an engineer or technician to the requester's organization."""
    service = UserService(uow.session, uow.changes, settings)
    created = await service.add_user(
        user,
        payload.name,
        payload.email,
        payload.role,
        manager_id=payload.manager_id,
        job_title=payload.job_title,
        phone=payload.phone,
    )
    await uow.commit()
    return UserResponse.model_validate(created)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_user(
    uow: UoW,
    user: CurrentUser,
    settings: AppSettings,
    user_id: Annotated[UUID, Path()],
) -> None:
    """Remove a team member."""
    service = UserService(uow.session, uow.changes, settings)
    await service.delete_user(user, user_id)
    await uow.commit()


@router.post(
    "/me/avatar",
    response_model=UserResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def upload_avatar(
    uow: UoW,
    user: CurrentUser,
    storage: Storage,
    file: Annotated[UploadFile, File()],
) -> UserResponse:
    """Replace the acting user's avatar image."""
    data = await file.read()
    if not data:
        raise InvalidInputError("file", "is empty")

    previous = user.avatar_url
    user.avatar_url = await run_in_threadpool(
        storage.put, data, file.filename or "avatar", file.content_type
    )
    await uow.session.flush()
    uow.changes.updated(user)
    await uow.commit()
    if previous:
        await run_in_threadpool(storage.delete, previous)
    return UserResponse.model_validate(user)
