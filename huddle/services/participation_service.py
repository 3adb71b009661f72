import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import (
    ActivityNotFoundError,
    ActivityStateError,
    HuddleError,
    RejectionReasonRequiredError,
)
from ..database import commit_or_raise
from ..models.activity import Activity, ActivityParticipation
from ..models.enums import ActivityStatus, ParticipationStatus
from ..models.profile import Profile
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

RESPONSE_STATUSES = (ParticipationStatus.ACCEPTED, ParticipationStatus.REJECTED)
CLOSED_ACTIVITY_STATUSES = (ActivityStatus.COMPLETED, ActivityStatus.CANCELLED)


def normalize_response(
    status: ParticipationStatus | str, reason: str | None
) -> tuple[ParticipationStatus, str | None]:
    """Validate an RSVP and return the status and reason to store.

    A reason is mandatory for rejections and dropped for acceptances.
    """
    try:
        status = ParticipationStatus(status)
    except ValueError:
        raise HuddleError(f"Invalid participation status: {status}") from None

    if status not in RESPONSE_STATUSES:
        raise HuddleError("Status must be accepted or rejected")

    if status == ParticipationStatus.REJECTED:
        if not reason or not reason.strip():
            raise RejectionReasonRequiredError()
        return status, reason.strip()

    return status, None


class ParticipationService:
    db: AsyncSession

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find(self, activity_id: int, user_id: int) -> ActivityParticipation | None:
        result = await self.db.execute(
            select(ActivityParticipation)
            .where(
                ActivityParticipation.activity_id == activity_id,
                ActivityParticipation.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def respond(
        self,
        activity_id: int,
        responder: Profile,
        status: ParticipationStatus | str,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> ActivityParticipation:
        status, reason = normalize_response(status, reason)
        now = now or datetime.now(timezone.utc)
        responder_id = responder.id
        responder_name = responder.display_name

        result = await self.db.execute(
            select(Activity).where(Activity.id == activity_id)
        )
        activity = result.scalar_one_or_none()
        if not activity:
            raise ActivityNotFoundError()

        if activity.status in CLOSED_ACTIVITY_STATUSES:
            raise ActivityStateError(
                f"Cannot respond to a {activity.status.value} activity"
            )

        activity_title = activity.title
        creator_id = activity.created_by_id

        participation = await self._find(activity_id, responder_id)
        if participation is None:
            participation = ActivityParticipation(
                activity_id=activity_id, user_id=responder_id
            )
            self.db.add(participation)

        participation.status = status
        participation.rejection_reason = reason
        participation.responded_at = now

        try:
            await commit_or_raise(self.db, "save participation")
        except IntegrityError:
            # Lost the insert race to a concurrent response; overwrite it.
            participation = await self._find(activity_id, responder_id)
            if participation is None:
                raise
            participation.status = status
            participation.rejection_reason = reason
            participation.responded_at = now
            await commit_or_raise(self.db, "save participation")

        participation_id = participation.id

        await NotificationService.deliver(
            self.db,
            NotificationService.notify_participation_response(
                self.db,
                activity_id,
                activity_title,
                creator_id,
                responder_id,
                responder_name,
                status.value,
            ),
            f"participation {participation_id}",
        )

        logger.info(
            f"🙋 Profile {responder_id} {status.value} activity {activity_id}"
        )
        return await self.get_participation(participation_id)

    async def get_participation(self, participation_id: int) -> ActivityParticipation:
        result = await self.db.execute(
            select(ActivityParticipation)
            .where(ActivityParticipation.id == participation_id)
            .options(selectinload(ActivityParticipation.user))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def get_user_response(
        self, activity_id: int, user_id: int
    ) -> ActivityParticipation | None:
        return await self._find(activity_id, user_id)

    async def accepted_count(self, activity_id: int) -> int:
        result = await self.db.execute(
            select(func.count(ActivityParticipation.id)).where(
                ActivityParticipation.activity_id == activity_id,
                ActivityParticipation.status == ParticipationStatus.ACCEPTED,
            )
        )
        return result.scalar() or 0

    async def list_participants(
        self, activity_id: int, status: ParticipationStatus | None = None
    ) -> list[ActivityParticipation]:
        result = await self.db.execute(
            select(Activity.id).where(Activity.id == activity_id)
        )
        if result.scalar_one_or_none() is None:
            raise ActivityNotFoundError()

        query = (
            select(ActivityParticipation)
            .where(ActivityParticipation.activity_id == activity_id)
            .options(selectinload(ActivityParticipation.user))
            .order_by(ActivityParticipation.id)
        )
        if status:
            query = query.where(ActivityParticipation.status == status)

        result = await self.db.execute(query)
        return list(result.scalars().all())
