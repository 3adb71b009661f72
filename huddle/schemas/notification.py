from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ..models.enums import NotificationType
from .common import MessageResponse


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    reference_id: int | None = None
    is_read: bool
    created_at: datetime


class NotificationUpdate(BaseModel):
    is_read: bool


class NotificationStats(BaseModel):
    total_unread: int
    unread_by_type: dict[str, int]
    latest_notifications: list[NotificationRead]


class MarkReadResult(MessageResponse):
    count: int


class DeleteReadResult(MessageResponse):
    deleted_count: int
