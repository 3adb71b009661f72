import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TypedDict

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import (
    ActivityNotFoundError,
    ActivityStateError,
    ConflictError,
    InvalidOptionError,
    PollNotFoundError,
)
from ..database import commit_or_raise
from ..models.activity import Activity, ActivityParticipation
from ..models.enums import ActivityStatus, ParticipationStatus, PollStatus
from ..models.poll import Poll, PollOption
from ..utils.datetime_utils import ensure_utc
from .notification_service import NotificationService
from .poll_service import compose_activity_description, resolve_scheduled_at

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "location", "scheduled_at", "status")


class ActivityCreateResult(TypedDict):
    activity: Activity
    notifications_sent: int


def display_status(
    status: ActivityStatus, scheduled_at: datetime | None, now: datetime | None = None
) -> ActivityStatus:
    if status != ActivityStatus.UPCOMING or scheduled_at is None:
        return status

    now = now or datetime.now(timezone.utc)
    return ActivityStatus.ONGOING if scheduled_at <= now else status


class ActivityService:
    db: AsyncSession

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_activity(
        self, activity_id: int, with_participants: bool = False, refresh: bool = False
    ) -> Activity:
        query = select(Activity).where(Activity.id == activity_id)
        if with_participants:
            query = query.options(
                selectinload(Activity.participations).selectinload(
                    ActivityParticipation.user
                )
            )
        if refresh:
            query = query.execution_options(populate_existing=True)

        result = await self.db.execute(query)
        activity = result.scalar_one_or_none()
        if not activity:
            raise ActivityNotFoundError()
        return activity

    async def list_activities(
        self,
        status: ActivityStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Activity]:
        query = select(Activity)
        if status:
            query = query.where(Activity.status == status)

        query = query.order_by(
            Activity.scheduled_at.is_(None),
            Activity.scheduled_at.asc(),
            Activity.id.asc(),
        )
        result = await self.db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def get_accepted_counts(self, activity_ids: Sequence[int]) -> dict[int, int]:
        if not activity_ids:
            return {}

        result = await self.db.execute(
            select(ActivityParticipation.activity_id, func.count(ActivityParticipation.id))
            .where(
                ActivityParticipation.activity_id.in_(activity_ids),
                ActivityParticipation.status == ParticipationStatus.ACCEPTED,
            )
            .group_by(ActivityParticipation.activity_id)
        )
        return {activity_id: count for activity_id, count in result.all()}

    async def get_user_responses(
        self, activity_ids: Sequence[int], user_id: int
    ) -> dict[int, ParticipationStatus]:
        if not activity_ids:
            return {}

        result = await self.db.execute(
            select(ActivityParticipation.activity_id, ActivityParticipation.status).where(
                ActivityParticipation.activity_id.in_(activity_ids),
                ActivityParticipation.user_id == user_id,
            )
        )
        return {activity_id: status for activity_id, status in result.all()}

    async def _check_poll_reference(
        self, poll_id: int | None, poll_option_id: int | None
    ) -> None:
        if poll_id is not None:
            result = await self.db.execute(select(Poll.id).where(Poll.id == poll_id))
            if result.scalar_one_or_none() is None:
                raise PollNotFoundError()

        if poll_option_id is not None:
            query = select(PollOption.id).where(PollOption.id == poll_option_id)
            if poll_id is not None:
                query = query.where(PollOption.poll_id == poll_id)
            result = await self.db.execute(query)
            if result.scalar_one_or_none() is None:
                raise InvalidOptionError()

    async def create_activity(
        self,
        creator_id: int,
        title: str,
        description: str | None = None,
        location: str | None = None,
        scheduled_at: datetime | None = None,
        poll_id: int | None = None,
        poll_option_id: int | None = None,
    ) -> ActivityCreateResult:
        await self._check_poll_reference(poll_id, poll_option_id)

        activity = Activity(
            title=title.strip(),
            description=description,
            location=location,
            scheduled_at=ensure_utc(scheduled_at),
            status=ActivityStatus.UPCOMING,
            created_by_id=creator_id,
            poll_id=poll_id,
            poll_option_id=poll_option_id,
        )
        self.db.add(activity)

        try:
            await commit_or_raise(self.db, "create activity")
        except IntegrityError:
            raise ConflictError("An activity already exists for this poll") from None

        return await self._announce(activity, creator_id)

    async def create_activity_from_poll(
        self, poll_id: int, option_id: int, creator_id: int
    ) -> ActivityCreateResult:
        """Schedule an activity for the option an admin picked on a poll.

        Title, description and scheduled time come from the poll, and the
        poll is closed in the same commit so it stops taking votes.
        """
        result = await self.db.execute(
            select(Poll).where(Poll.id == poll_id).options(selectinload(Poll.options))
        )
        poll = result.scalar_one_or_none()
        if not poll:
            raise PollNotFoundError()

        option = next((o for o in poll.options if o.id == option_id), None)
        if option is None:
            raise InvalidOptionError()

        activity = Activity(
            title=poll.title,
            description=compose_activity_description(
                poll.description, option.title, option.description
            ),
            scheduled_at=resolve_scheduled_at(poll.event_date, poll.event_time),
            status=ActivityStatus.UPCOMING,
            created_by_id=creator_id,
            poll_id=poll.id,
            poll_option_id=option.id,
        )
        poll.status = PollStatus.CLOSED
        self.db.add(activity)

        try:
            await commit_or_raise(self.db, "create activity from poll")
        except IntegrityError:
            raise ConflictError("An activity already exists for this poll") from None

        logger.info(f"🔒 Poll {poll_id} closed after scheduling option {option_id}")
        return await self._announce(activity, creator_id)

    async def _announce(self, activity: Activity, creator_id: int) -> ActivityCreateResult:
        activity_id = activity.id
        notifications = await NotificationService.deliver(
            self.db,
            NotificationService.notify_activity_created(
                self.db, activity_id, activity.title, creator_id
            ),
            f"activity {activity_id} created",
        )

        logger.info(f"📅 Activity {activity_id} created by profile {creator_id}")
        return {
            "activity": await self.get_activity(activity_id, refresh=True),
            "notifications_sent": len(notifications or []),
        }

    async def update_activity(
        self, activity_id: int, changes: dict[str, object], now: datetime | None = None
    ) -> Activity:
        activity = await self.get_activity(activity_id)

        if changes.get("status") == ActivityStatus.COMPLETED:
            self._check_completable(activity, now)

        for field, value in changes.items():
            if field not in EDITABLE_FIELDS:
                raise ValueError(f"Field {field} cannot be updated")
            if field == "scheduled_at":
                value = ensure_utc(value)  # type: ignore[arg-type]
            setattr(activity, field, value)

        await commit_or_raise(self.db, "update activity")
        return activity

    @staticmethod
    def _check_completable(activity: Activity, now: datetime | None) -> None:
        now = now or datetime.now(timezone.utc)

        if activity.status == ActivityStatus.CANCELLED:
            raise ActivityStateError("Cancelled activities cannot be completed")

        if activity.scheduled_at and activity.scheduled_at > now:
            raise ActivityStateError(
                "Activity cannot be completed before its scheduled time"
            )

    async def complete_activity(
        self, activity_id: int, now: datetime | None = None
    ) -> Activity:
        activity = await self.get_activity(activity_id)
        if activity.status == ActivityStatus.COMPLETED:
            return activity

        self._check_completable(activity, now)
        activity.status = ActivityStatus.COMPLETED
        await commit_or_raise(self.db, "complete activity")

        logger.info(f"🏁 Activity {activity_id} completed")
        return activity

    async def delete_activity(self, activity_id: int) -> None:
        result = await self.db.execute(
            select(Activity)
            .where(Activity.id == activity_id)
            .options(
                selectinload(Activity.participations),
                selectinload(Activity.leaderboard_entries),
            )
        )
        activity = result.scalar_one_or_none()
        if not activity:
            raise ActivityNotFoundError()

        await self.db.delete(activity)
        await commit_or_raise(self.db, "delete activity")

        logger.info(f"🗑️ Activity {activity_id} deleted")
