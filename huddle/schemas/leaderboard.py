from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from .profile import ProfileSummary
from ..models.enums import ActivityStatus


class RankUpdate(BaseModel):
    rank: int | None = Field(None, gt=0, description="Null clears the rank")


class RankResult(BaseModel):
    activity_id: int
    user_id: int
    rank: int | None = None
    action: Literal["created", "updated", "deleted", "noop"]


class LeaderboardRow(BaseModel):
    user: ProfileSummary
    rank: int | None = None
    marked_by_id: int | None = None


class ActivityLeaderboard(BaseModel):
    activity_id: int
    title: str
    scheduled_at: datetime | None = None
    status: ActivityStatus
    entries: list[LeaderboardRow] = []


class StandingRead(BaseModel):
    user: ProfileSummary
    ranked_finishes: int
    podium_finishes: int
    first_places: int
    best_rank: int
