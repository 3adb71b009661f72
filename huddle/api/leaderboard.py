from typing import Annotated

from fastapi import APIRouter, Query, Request

from huddle.core.dependencies import AdminUser, CurrentUser, LeaderboardServiceDep
from huddle.core.logging import SecurityLogger
from huddle.models.enums import ActivityStatus
from huddle.schemas.common import ErrorResponse
from huddle.schemas.leaderboard import (
    ActivityLeaderboard,
    LeaderboardRow,
    RankResult,
    RankUpdate,
    StandingRead,
)
from huddle.schemas.profile import ProfileSummary
from huddle.services.leaderboard_service import ActivityBoard

router = APIRouter()


def _board_read(board: ActivityBoard) -> ActivityLeaderboard:
    activity = board["activity"]
    return ActivityLeaderboard(
        activity_id=activity.id,
        title=activity.title,
        scheduled_at=activity.scheduled_at,
        status=activity.status,
        entries=[
            LeaderboardRow(
                user=ProfileSummary.model_validate(row["user"]),
                rank=row["rank"],
                marked_by_id=row["marked_by_id"],
            )
            for row in board["entries"]
        ],
    )


@router.get("/", response_model=list[ActivityLeaderboard])
async def get_leaderboards(
    current_user: CurrentUser,
    leaderboard_service: LeaderboardServiceDep,
    status_filter: Annotated[ActivityStatus, Query(alias="status")] = ActivityStatus.COMPLETED,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
):
    boards = await leaderboard_service.get_leaderboards(
        status=status_filter, skip=skip, limit=limit
    )
    return [_board_read(board) for board in boards]


@router.get("/standings", response_model=list[StandingRead])
async def get_standings(
    current_user: CurrentUser,
    leaderboard_service: LeaderboardServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
):
    standings = await leaderboard_service.get_standings(limit=limit)
    return [
        StandingRead(
            user=ProfileSummary.model_validate(standing["user"]),
            ranked_finishes=standing["ranked_finishes"],
            podium_finishes=standing["podium_finishes"],
            first_places=standing["first_places"],
            best_rank=standing["best_rank"],
        )
        for standing in standings
    ]


@router.get(
    "/{activity_id}",
    response_model=ActivityLeaderboard,
    responses={404: {"model": ErrorResponse, "description": "Activity not found"}},
)
async def get_activity_leaderboard(
    activity_id: int,
    current_user: CurrentUser,
    leaderboard_service: LeaderboardServiceDep,
):
    board = await leaderboard_service.get_activity_leaderboard(activity_id)
    return _board_read(board)


@router.put(
    "/{activity_id}/{user_id}",
    response_model=RankResult,
    responses={
        400: {"model": ErrorResponse, "description": "Activity not completed or user not a participant"},
        403: {"model": ErrorResponse, "description": "Admin access required"},
        404: {"model": ErrorResponse, "description": "Activity not found"},
    },
)
async def set_rank(
    request: Request,
    activity_id: int,
    user_id: int,
    rank_data: RankUpdate,
    current_admin: AdminUser,
    leaderboard_service: LeaderboardServiceDep,
):
    admin_id = current_admin.id
    result = await leaderboard_service.set_rank(
        activity_id, user_id, rank=rank_data.rank, marker_id=admin_id
    )

    if result["action"] != "noop":
        SecurityLogger.log_admin_action(
            request,
            admin_user_id=admin_id,
            action="set_rank",
            target_user_id=user_id,
            details={
                "activity_id": activity_id,
                "rank": result["rank"],
                "result": result["action"],
            },
        )

    return RankResult(**result)
