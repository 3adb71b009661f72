from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .profile import ProfileSummary
from ..models.enums import ActivityStatus, ParticipationStatus


class ActivityCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    location: str | None = Field(None, max_length=300)
    scheduled_at: datetime | None = None
    poll_id: int | None = None
    poll_option_id: int | None = None


class ActivityFromPoll(BaseModel):
    poll_id: int
    option_id: int


class ActivityUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    location: str | None = Field(None, max_length=300)
    scheduled_at: datetime | None = None
    status: ActivityStatus | None = None


class ParticipationRespond(BaseModel):
    status: Literal["accepted", "rejected"]
    reason: str | None = Field(None, max_length=1000)


class ParticipationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    activity_id: int
    user_id: int
    status: ParticipationStatus
    rejection_reason: str | None = None
    responded_at: datetime | None = None
    user: ProfileSummary | None = None


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    location: str | None = None
    scheduled_at: datetime | None = None
    status: ActivityStatus
    display_status: ActivityStatus
    created_by_id: int | None = None
    poll_id: int | None = None
    poll_option_id: int | None = None
    created_at: datetime
    accepted_count: int = 0
    user_response: ParticipationStatus | None = None


class ActivityDetail(ActivityRead):
    participants: list[ParticipationRead] = []
