from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Query, Request, Response, status

from huddle.core.dependencies import (
    ActivityServiceDep,
    AdminUser,
    CurrentUser,
    ParticipationServiceDep,
)
from huddle.core.logging import SecurityLogger
from huddle.models.activity import Activity
from huddle.models.enums import ActivityStatus, ParticipationStatus
from huddle.schemas.activity import (
    ActivityCreate,
    ActivityDetail,
    ActivityFromPoll,
    ActivityRead,
    ActivityUpdate,
    ParticipationRead,
    ParticipationRespond,
)
from huddle.schemas.common import ErrorResponse
from huddle.services.activity_service import ActivityService, display_status

router = APIRouter()

REQUIRED_FIELDS = ("title", "status")


def _activity_fields(activity: Activity, now: datetime) -> dict[str, object]:
    return {
        "id": activity.id,
        "title": activity.title,
        "description": activity.description,
        "location": activity.location,
        "scheduled_at": activity.scheduled_at,
        "status": activity.status,
        "display_status": display_status(activity.status, activity.scheduled_at, now),
        "created_by_id": activity.created_by_id,
        "poll_id": activity.poll_id,
        "poll_option_id": activity.poll_option_id,
        "created_at": activity.created_at,
    }


async def _activity_reads(
    activity_service: ActivityService, activities: list[Activity], user_id: int
) -> list[ActivityRead]:
    activity_ids = [activity.id for activity in activities]
    counts = await activity_service.get_accepted_counts(activity_ids)
    responses = await activity_service.get_user_responses(activity_ids, user_id)
    now = datetime.now(timezone.utc)

    return [
        ActivityRead(
            **_activity_fields(activity, now),
            accepted_count=counts.get(activity.id, 0),
            user_response=responses.get(activity.id),
        )
        for activity in activities
    ]


async def _activity_read(
    activity_service: ActivityService, activity_id: int, user_id: int
) -> ActivityRead:
    activity = await activity_service.get_activity(activity_id, refresh=True)
    reads = await _activity_reads(activity_service, [activity], user_id)
    return reads[0]


@router.get("/", response_model=list[ActivityRead])
async def get_activities(
    current_user: CurrentUser,
    activity_service: ActivityServiceDep,
    status_filter: Annotated[ActivityStatus | None, Query(alias="status")] = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
):
    activities = await activity_service.list_activities(
        status=status_filter, skip=skip, limit=limit
    )
    return await _activity_reads(activity_service, activities, current_user.id)


@router.get(
    "/{activity_id}",
    response_model=ActivityDetail,
    responses={404: {"model": ErrorResponse, "description": "Activity not found"}},
)
async def get_activity(
    activity_id: int, current_user: CurrentUser, activity_service: ActivityServiceDep
):
    activity = await activity_service.get_activity(
        activity_id, with_participants=True, refresh=True
    )
    participations = sorted(activity.participations, key=lambda p: p.id)

    return ActivityDetail(
        **_activity_fields(activity, datetime.now(timezone.utc)),
        accepted_count=sum(
            1 for p in participations if p.status == ParticipationStatus.ACCEPTED
        ),
        user_response=next(
            (p.status for p in participations if p.user_id == current_user.id), None
        ),
        participants=[ParticipationRead.model_validate(p) for p in participations],
    )


@router.post(
    "/",
    response_model=ActivityRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"model": ErrorResponse, "description": "Admin access required"},
        409: {"model": ErrorResponse, "description": "Activity already exists for poll"},
    },
)
async def create_activity(
    request: Request,
    activity_data: ActivityCreate,
    current_admin: AdminUser,
    activity_service: ActivityServiceDep,
):
    admin_id = current_admin.id
    result = await activity_service.create_activity(
        creator_id=admin_id,
        title=activity_data.title,
        description=activity_data.description,
        location=activity_data.location,
        scheduled_at=activity_data.scheduled_at,
        poll_id=activity_data.poll_id,
        poll_option_id=activity_data.poll_option_id,
    )
    activity_id = result["activity"].id

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="create_activity",
        details={
            "activity_id": activity_id,
            "notifications_sent": result["notifications_sent"],
        },
    )

    return await _activity_read(activity_service, activity_id, admin_id)


@router.post(
    "/from-poll",
    response_model=ActivityRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Option does not belong to this poll"},
        404: {"model": ErrorResponse, "description": "Poll not found"},
        409: {"model": ErrorResponse, "description": "Activity already exists for poll"},
    },
)
async def create_activity_from_poll(
    request: Request,
    selection: ActivityFromPoll,
    current_admin: AdminUser,
    activity_service: ActivityServiceDep,
):
    admin_id = current_admin.id
    result = await activity_service.create_activity_from_poll(
        selection.poll_id, selection.option_id, creator_id=admin_id
    )
    activity_id = result["activity"].id

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="create_activity_from_poll",
        details={
            "activity_id": activity_id,
            "poll_id": selection.poll_id,
            "option_id": selection.option_id,
            "notifications_sent": result["notifications_sent"],
        },
    )

    return await _activity_read(activity_service, activity_id, admin_id)


@router.patch(
    "/{activity_id}",
    response_model=ActivityRead,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid state change"},
        404: {"model": ErrorResponse, "description": "Activity not found"},
    },
)
async def update_activity(
    request: Request,
    activity_id: int,
    activity_data: ActivityUpdate,
    current_admin: AdminUser,
    activity_service: ActivityServiceDep,
):
    admin_id = current_admin.id
    changes = activity_data.model_dump(exclude_unset=True)
    for field in REQUIRED_FIELDS:
        if field in changes and changes[field] is None:
            del changes[field]

    _ = await activity_service.update_activity(activity_id, changes)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="update_activity",
        details={"activity_id": activity_id, "fields": sorted(changes)},
    )

    return await _activity_read(activity_service, activity_id, admin_id)


@router.post(
    "/{activity_id}/complete",
    response_model=ActivityRead,
    responses={
        400: {"model": ErrorResponse, "description": "Activity cannot be completed"},
        404: {"model": ErrorResponse, "description": "Activity not found"},
    },
)
async def complete_activity(
    request: Request,
    activity_id: int,
    current_admin: AdminUser,
    activity_service: ActivityServiceDep,
):
    admin_id = current_admin.id
    _ = await activity_service.complete_activity(activity_id)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="complete_activity",
        details={"activity_id": activity_id},
    )

    return await _activity_read(activity_service, activity_id, admin_id)


@router.delete(
    "/{activity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Activity not found"}},
)
async def delete_activity(
    request: Request,
    activity_id: int,
    current_admin: AdminUser,
    activity_service: ActivityServiceDep,
):
    admin_id = current_admin.id
    await activity_service.delete_activity(activity_id)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=admin_id,
        action="delete_activity",
        details={"activity_id": activity_id},
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{activity_id}/respond",
    response_model=ParticipationRead,
    responses={
        400: {"model": ErrorResponse, "description": "Activity is closed"},
        404: {"model": ErrorResponse, "description": "Activity not found"},
        422: {"model": ErrorResponse, "description": "Rejection reason required"},
    },
)
async def respond_to_activity(
    activity_id: int,
    response_data: ParticipationRespond,
    current_user: CurrentUser,
    participation_service: ParticipationServiceDep,
):
    participation = await participation_service.respond(
        activity_id,
        responder=current_user,
        status=response_data.status,
        reason=response_data.reason,
    )
    return ParticipationRead.model_validate(participation)


@router.get(
    "/{activity_id}/participants",
    response_model=list[ParticipationRead],
    responses={404: {"model": ErrorResponse, "description": "Activity not found"}},
)
async def get_participants(
    activity_id: int,
    current_user: CurrentUser,
    participation_service: ParticipationServiceDep,
    status_filter: Annotated[ParticipationStatus | None, Query(alias="status")] = None,
):
    participations = await participation_service.list_participants(
        activity_id, status=status_filter
    )
    return [ParticipationRead.model_validate(p) for p in participations]
