from typing import Annotated

from fastapi import APIRouter, Query, Request

from huddle.core.dependencies import AdminUser, CurrentUser, ProfileServiceDep
from huddle.core.logging import SecurityLogger
from huddle.models.enums import ProfileRole
from huddle.schemas.common import ErrorResponse
from huddle.schemas.profile import ProfileAdminUpdate, ProfileRead, ProfileUpdate

router = APIRouter()


@router.get("/me", response_model=ProfileRead)
async def get_own_profile(current_user: CurrentUser):
    return ProfileRead.model_validate(current_user)


@router.patch("/me", response_model=ProfileRead)
async def update_own_profile(
    profile_data: ProfileUpdate,
    current_user: CurrentUser,
    profile_service: ProfileServiceDep,
):
    changes = profile_data.model_dump(exclude_unset=True)
    if changes.get("is_available") is None:
        changes.pop("is_available", None)

    profile = await profile_service.update_own_profile(current_user.id, changes)
    return ProfileRead.model_validate(profile)


@router.get("/", response_model=list[ProfileRead])
async def get_profiles(
    current_admin: AdminUser,
    profile_service: ProfileServiceDep,
    role: Annotated[ProfileRole | None, Query()] = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
):
    profiles = await profile_service.list_profiles(role=role, skip=skip, limit=limit)
    return [ProfileRead.model_validate(profile) for profile in profiles]


@router.patch(
    "/{profile_id}",
    response_model=ProfileRead,
    responses={
        400: {"model": ErrorResponse, "description": "Admins cannot demote themselves"},
        404: {"model": ErrorResponse, "description": "Profile not found"},
    },
)
async def admin_update_profile(
    request: Request,
    profile_id: int,
    profile_data: ProfileAdminUpdate,
    current_admin: AdminUser,
    profile_service: ProfileServiceDep,
):
    admin_id = current_admin.id
    profile = await profile_service.admin_update_profile(
        profile_id,
        acting_admin_id=admin_id,
        role=profile_data.role,
        is_active=profile_data.is_active,
    )

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="update_profile",
        target_user_id=profile_id,
        details=profile_data.model_dump(exclude_none=True, mode="json"),
    )

    return ProfileRead.model_validate(profile)
