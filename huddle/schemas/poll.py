from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .profile import ProfileSummary
from ..models.enums import PollStatus


class PollOptionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)


class PollOptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    vote_count: int = 0


class PollCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    expires_at: datetime
    event_date: str | None = Field(None, max_length=32, examples=["2026-01-17"])
    event_time: str | None = Field(None, max_length=32, examples=["19:15:00"])
    options: list[PollOptionCreate]


class PollRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    status: PollStatus
    expires_at: datetime
    event_date: str | None = None
    event_time: str | None = None
    created_at: datetime
    creator: ProfileSummary | None = None
    options: list[PollOptionRead] = []
    total_votes: int = 0
    yes_share: float = 0.0
    is_expired: bool = False
    is_closed: bool = False
    user_vote: int | None = None
    activity_id: int | None = None


class VoteCreate(BaseModel):
    option_id: int


class VoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: int
    option_id: int
    user_id: int
    created_at: datetime
    updated_at: datetime


class PromotionResultRead(BaseModel):
    poll_id: int
    outcome: Literal["promoted", "skipped", "failed"]
    success: bool
    reason: str
    activity_id: int | None = None


class PromotionSweepRead(BaseModel):
    polls_checked: int
    promoted: int
    skipped: int
    failed: int
    results: list[PromotionResultRead] = []
