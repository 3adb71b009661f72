from typing import Annotated

from fastapi import APIRouter, Query, Response, status
from sqlalchemy import delete, func, select

from huddle.core.dependencies import CurrentUser, DatabaseSession
from huddle.core.exceptions import ForbiddenError, NotificationNotFoundError
from huddle.database import commit_or_raise
from huddle.models.enums import NotificationType
from huddle.models.notification import Notification
from huddle.schemas.notification import (
    DeleteReadResult,
    MarkReadResult,
    NotificationRead,
    NotificationStats,
    NotificationUpdate,
)

router = APIRouter()


async def _get_own_notification(
    db: DatabaseSession, notification_id: int, user_id: int, action: str
) -> Notification:
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id)
    )
    notification = result.scalar_one_or_none()

    if not notification:
        raise NotificationNotFoundError()

    if notification.user_id != user_id:
        raise ForbiddenError(f"Not authorized to {action} this notification")

    return notification


@router.get(
    "/",
    response_model=list[NotificationRead],
    summary="Get user notifications",
)
async def get_notifications(
    current_user: CurrentUser,
    db: DatabaseSession,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    unread_only: Annotated[bool, Query()] = False,
    type_filter: Annotated[NotificationType | None, Query()] = None,
):
    query = select(Notification).where(Notification.user_id == current_user.id)

    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    if type_filter:
        query = query.where(Notification.type == type_filter)

    query = query.order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).offset(skip).limit(limit)

    result = await db.execute(query)
    notifications = result.scalars().all()

    return [NotificationRead.model_validate(n) for n in notifications]


@router.get(
    "/stats",
    response_model=NotificationStats,
    summary="Get notification statistics",
)
async def get_notification_stats(current_user: CurrentUser, db: DatabaseSession):
    unread_count_result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
    )
    total_unread = unread_count_result.scalar() or 0

    unread_by_type_result = await db.execute(
        select(Notification.type, func.count(Notification.id))
        .where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
        .group_by(Notification.type)
    )
    unread_by_type = {
        notification_type.value: count
        for notification_type, count in unread_by_type_result.all()
    }

    latest_result = await db.execute(
        select(Notification)
        .where(Notification.user_id == current_user.id)
        .order_by(
            Notification.is_read.asc(),
            Notification.created_at.desc(),
            Notification.id.desc(),
        )
        .limit(5)
    )
    latest_notifications = latest_result.scalars().all()

    return NotificationStats(
        total_unread=total_unread,
        unread_by_type=unread_by_type,
        latest_notifications=[
            NotificationRead.model_validate(n) for n in latest_notifications
        ],
    )


@router.put(
    "/{notification_id}",
    response_model=NotificationRead,
    summary="Update notification (mark as read/unread)",
)
async def update_notification(
    notification_id: int,
    notification_update: NotificationUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
):
    notification = await _get_own_notification(
        db, notification_id, current_user.id, "update"
    )

    notification.is_read = notification_update.is_read
    await commit_or_raise(db, "update notification")

    return NotificationRead.model_validate(notification)


@router.post(
    "/mark-all-read",
    response_model=MarkReadResult,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    current_user: CurrentUser,
    db: DatabaseSession,
    type_filter: Annotated[NotificationType | None, Query()] = None,
):
    query = select(Notification).where(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False),
    )

    if type_filter:
        query = query.where(Notification.type == type_filter)

    result = await db.execute(query)
    notifications = result.scalars().all()

    for notification in notifications:
        notification.is_read = True

    await commit_or_raise(db, "mark notifications read")

    return {
        "message": f"Marked {len(notifications)} notifications as read",
        "count": len(notifications),
    }


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: int,
    current_user: CurrentUser,
    db: DatabaseSession,
):
    _ = await _get_own_notification(db, notification_id, current_user.id, "delete")

    _ = await db.execute(delete(Notification).where(Notification.id == notification_id))
    await commit_or_raise(db, "delete notification")

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/",
    response_model=DeleteReadResult,
    summary="Delete all read notifications",
)
async def delete_all_read(current_user: CurrentUser, db: DatabaseSession):
    result = await db.execute(
        delete(Notification).where(
            Notification.user_id == current_user.id,
            Notification.is_read,
        )
    )
    await commit_or_raise(db, "delete read notifications")

    return {
        "message": "Deleted all read notifications",
        "deleted_count": result.rowcount,
    }
