from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Query, Request, Response, status

from huddle.core.dependencies import AdminUser, CurrentUser, PollServiceDep
from huddle.core.logging import SecurityLogger
from huddle.models.enums import PollStatus
from huddle.models.poll import Poll
from huddle.schemas.common import ErrorResponse
from huddle.schemas.poll import (
    PollCreate,
    PollOptionRead,
    PollRead,
    VoteCreate,
    VoteRead,
)
from huddle.schemas.profile import ProfileSummary
from huddle.services.poll_service import (
    PollService,
    PollTally,
    is_poll_closed_for_display,
    is_poll_expired,
)

router = APIRouter()


def _build_poll_read(
    poll: Poll,
    tally: PollTally,
    user_vote: int | None,
    activity_id: int | None,
    now: datetime,
) -> PollRead:
    return PollRead(
        id=poll.id,
        title=poll.title,
        description=poll.description,
        status=poll.status,
        expires_at=poll.expires_at,
        event_date=poll.event_date,
        event_time=poll.event_time,
        created_at=poll.created_at,
        creator=ProfileSummary.model_validate(poll.creator) if poll.creator else None,
        options=[PollOptionRead.model_validate(option) for option in tally["options"]],
        total_votes=tally["total_votes"],
        yes_share=round(tally["yes_share"], 4),
        is_expired=is_poll_expired(poll.expires_at, now),
        is_closed=is_poll_closed_for_display(poll.status, poll.expires_at, now),
        user_vote=user_vote,
        activity_id=activity_id,
    )


async def _poll_reads(
    poll_service: PollService, polls: list[Poll], user_id: int
) -> list[PollRead]:
    poll_ids = [poll.id for poll in polls]
    counts = await poll_service.get_option_counts(poll_ids)
    user_votes = await poll_service.get_user_votes(poll_ids, user_id)
    activity_ids = await poll_service.get_activity_ids(poll_ids)
    now = datetime.now(timezone.utc)

    return [
        _build_poll_read(
            poll,
            PollService.build_tally(poll, counts),
            user_votes.get(poll.id),
            activity_ids.get(poll.id),
            now,
        )
        for poll in polls
    ]


async def _poll_read(poll_service: PollService, poll_id: int, user_id: int) -> PollRead:
    poll = await poll_service.get_poll(poll_id, refresh=True)
    reads = await _poll_reads(poll_service, [poll], user_id)
    return reads[0]


@router.get(
    "/",
    response_model=list[PollRead],
    summary="List polls with live tallies",
)
async def get_polls(
    current_user: CurrentUser,
    poll_service: PollServiceDep,
    status_filter: Annotated[
        PollStatus | None, Query(alias="status", description="Filter by poll status")
    ] = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
):
    polls = await poll_service.list_polls(status=status_filter, skip=skip, limit=limit)
    return await _poll_reads(poll_service, polls, current_user.id)


@router.get(
    "/{poll_id}",
    response_model=PollRead,
    responses={404: {"model": ErrorResponse, "description": "Poll not found"}},
)
async def get_poll(poll_id: int, current_user: CurrentUser, poll_service: PollServiceDep):
    return await _poll_read(poll_service, poll_id, current_user.id)


@router.post(
    "/",
    response_model=PollRead,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid poll data"}},
)
async def create_poll(
    poll_data: PollCreate, current_user: CurrentUser, poll_service: PollServiceDep
):
    poll = await poll_service.create_poll(
        creator_id=current_user.id,
        title=poll_data.title,
        description=poll_data.description,
        expires_at=poll_data.expires_at,
        event_date=poll_data.event_date,
        event_time=poll_data.event_time,
        options=[(option.title, option.description) for option in poll_data.options],
    )
    return await _poll_read(poll_service, poll.id, current_user.id)


@router.post(
    "/{poll_id}/vote",
    response_model=VoteRead,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Poll closed or invalid option"},
        404: {"model": ErrorResponse, "description": "Poll not found"},
        409: {"model": ErrorResponse, "description": "Already voted"},
    },
)
async def vote(
    poll_id: int,
    vote_data: VoteCreate,
    current_user: CurrentUser,
    poll_service: PollServiceDep,
):
    vote = await poll_service.cast_vote(poll_id, vote_data.option_id, current_user.id)
    return VoteRead.model_validate(vote)


@router.put(
    "/{poll_id}/vote",
    response_model=VoteRead,
    responses={
        400: {"model": ErrorResponse, "description": "Poll closed or invalid option"},
        404: {"model": ErrorResponse, "description": "Poll not found"},
        409: {"model": ErrorResponse, "description": "No existing vote"},
    },
)
async def change_vote(
    poll_id: int,
    vote_data: VoteCreate,
    current_user: CurrentUser,
    poll_service: PollServiceDep,
):
    vote = await poll_service.change_vote(poll_id, vote_data.option_id, current_user.id)
    return VoteRead.model_validate(vote)


@router.post(
    "/{poll_id}/close",
    response_model=PollRead,
    responses={
        403: {"model": ErrorResponse, "description": "Admin access required"},
        404: {"model": ErrorResponse, "description": "Poll not found"},
    },
)
async def close_poll(
    request: Request,
    poll_id: int,
    current_admin: AdminUser,
    poll_service: PollServiceDep,
):
    _ = await poll_service.close_poll(poll_id)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=current_admin.id,
        action="close_poll",
        details={"poll_id": poll_id},
    )

    return await _poll_read(poll_service, poll_id, current_admin.id)


@router.delete(
    "/{poll_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        403: {"model": ErrorResponse, "description": "Admin access required"},
        404: {"model": ErrorResponse, "description": "Poll not found"},
    },
)
async def delete_poll(
    request: Request,
    poll_id: int,
    current_admin: AdminUser,
    poll_service: PollServiceDep,
):
    await poll_service.delete_poll(poll_id)

    SecurityLogger.log_admin_action(
        request,
        admin_user_id=current_admin.id,
        action="delete_poll",
        details={"poll_id": poll_id},
    )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
