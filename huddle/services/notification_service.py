import logging
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.models.enums import NotificationType
from huddle.models.notification import Notification
from huddle.models.profile import Profile

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NotificationService:
    """Writes notification rows.

    The ``notify_*`` methods only flush; ``deliver`` commits them on their
    own so a failed notification never undoes the action that caused it.
    """

    @staticmethod
    async def deliver(db: AsyncSession, pending: Awaitable[T], context: str) -> T | None:
        try:
            notification = await pending
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(f"⚠️ Notification delivery failed ({context}): {e}")
            return None
        return notification

    @staticmethod
    async def notify_activity_created(
        db: AsyncSession,
        activity_id: int,
        activity_title: str,
        actor_id: int | None,
    ) -> list[Notification]:
        query = select(Profile.id).where(Profile.is_active)
        if actor_id is not None:
            query = query.where(Profile.id != actor_id)

        result = await db.execute(query)
        recipient_ids = list(result.scalars().all())

        notifications = [
            Notification(
                user_id=recipient_id,
                type=NotificationType.ACTIVITY_CREATED,
                title="New Activity Created",
                message=f"{activity_title} has been scheduled!",
                reference_id=activity_id,
            )
            for recipient_id in recipient_ids
        ]

        db.add_all(notifications)
        await db.flush()

        logger.info(
            f"📣 Activity {activity_id} announced to {len(notifications)} profiles"
        )
        return notifications

    @staticmethod
    async def notify_participation_response(
        db: AsyncSession,
        activity_id: int,
        activity_title: str,
        creator_id: int | None,
        responder_id: int,
        responder_name: str,
        status: str,
    ) -> Notification | None:
        if creator_id is None or creator_id == responder_id:
            return None

        notification = Notification(
            user_id=creator_id,
            type=NotificationType.PARTICIPATION_RESPONSE,
            title="Participation Response",
            message=f"{responder_name} {status} participation in {activity_title}",
            reference_id=activity_id,
        )

        db.add(notification)
        await db.flush()

        return notification

    @staticmethod
    async def notify_leaderboard_marked(
        db: AsyncSession,
        activity_id: int,
        activity_title: str,
        user_id: int,
        rank: int,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=NotificationType.LEADERBOARD_MARKED,
            title="Leaderboard Achievement",
            message=f"You ranked #{rank} in {activity_title}!",
            reference_id=activity_id,
        )

        db.add(notification)
        await db.flush()

        return notification
