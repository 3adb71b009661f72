from fastapi import APIRouter, Request, Response, status
from sqlalchemy import func, select

from huddle.core.dependencies import (
    AdminUser,
    DatabaseSession,
    PollServiceDep,
    ProfileServiceDep,
)
from huddle.core.logging import SecurityLogger
from huddle.models.activity import Activity, ActivityParticipation
from huddle.models.enums import ParticipationStatus, PollStatus
from huddle.models.poll import Poll
from huddle.schemas.common import ErrorResponse
from huddle.schemas.poll import PromotionSweepRead
from huddle.schemas.profile import AdminEmailCreate, AdminEmailRead

router = APIRouter()


@router.get("/dashboard")
async def get_dashboard(current_admin: AdminUser, db: DatabaseSession):
    active_polls_result = await db.execute(
        select(func.count(Poll.id)).where(Poll.status == PollStatus.ACTIVE)
    )
    total_activities_result = await db.execute(select(func.count(Activity.id)))
    pending_result = await db.execute(
        select(func.count(ActivityParticipation.id)).where(
            ActivityParticipation.status == ParticipationStatus.PENDING
        )
    )

    return {
        "active_polls": active_polls_result.scalar() or 0,
        "total_activities": total_activities_result.scalar() or 0,
        "pending_responses": pending_result.scalar() or 0,
    }


@router.get("/admins", response_model=list[AdminEmailRead])
async def get_admin_emails(current_admin: AdminUser, profile_service: ProfileServiceDep):
    admin_emails = await profile_service.list_admin_emails()
    return [AdminEmailRead.model_validate(admin_email) for admin_email in admin_emails]


@router.post(
    "/admins",
    response_model=AdminEmailRead,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Email already listed"}},
)
async def add_admin_email(
    request: Request,
    admin_data: AdminEmailCreate,
    current_admin: AdminUser,
    profile_service: ProfileServiceDep,
):
    admin_id = current_admin.id
    admin_email = await profile_service.add_admin_email(
        admin_data.email, added_by_id=admin_id
    )

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="add_admin_email",
        details={"admin_email_id": admin_email.id},
    )

    return AdminEmailRead.model_validate(admin_email)


@router.delete(
    "/admins/{admin_email_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"model": ErrorResponse, "description": "Cannot remove own email"},
        404: {"model": ErrorResponse, "description": "Admin email not found"},
    },
)
async def remove_admin_email(
    request: Request,
    admin_email_id: int,
    current_admin: AdminUser,
    profile_service: ProfileServiceDep,
):
    admin_id = current_admin.id
    await profile_service.remove_admin_email(admin_email_id, acting_admin_id=admin_id)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="remove_admin_email",
        details={"admin_email_id": admin_email_id},
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tasks/process-expired-polls", response_model=PromotionSweepRead)
async def run_expired_poll_sweep(
    request: Request,
    current_admin: AdminUser,
    poll_service: PollServiceDep,
):
    admin_id = current_admin.id
    sweep = await poll_service.process_expired_polls(promoter_id=admin_id)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="process_expired_polls",
        details={
            "polls_checked": sweep["polls_checked"],
            "promoted": sweep["promoted"],
            "failed": sweep["failed"],
        },
    )

    return PromotionSweepRead.model_validate(sweep)
