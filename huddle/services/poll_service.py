import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Literal, TypedDict

from dateutil.parser import isoparse
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import settings
from ..core.exceptions import (
    AlreadyVotedError,
    InvalidOptionError,
    NoExistingVoteError,
    PollClosedError,
    PollNotFoundError,
    PollValidationError,
)
from ..database import commit_or_raise
from ..models.activity import Activity
from ..models.enums import ActivityStatus, PollStatus
from ..models.poll import Poll, PollOption, Vote
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

YES_OPTION_TITLE = "yes"


class OptionTally(TypedDict):
    id: int
    title: str
    description: str | None
    vote_count: int


class PollTally(TypedDict):
    poll_id: int
    options: list[OptionTally]
    total_votes: int
    yes_option_id: int | None
    yes_share: float


class PromotionResult(TypedDict, total=False):
    poll_id: int
    outcome: Literal["promoted", "skipped", "failed"]
    success: bool
    reason: str
    activity_id: int | None


class PromotionSweepResult(TypedDict):
    polls_checked: int
    promoted: int
    skipped: int
    failed: int
    results: list[PromotionResult]


def find_yes_option(options: Sequence[OptionTally]) -> OptionTally | None:
    for option in options:
        if option["title"].strip().casefold() == YES_OPTION_TITLE:
            return option
    return None


def calculate_yes_share(options: Sequence[OptionTally]) -> float:
    total_votes = sum(option["vote_count"] for option in options)
    yes_option = find_yes_option(options)
    if total_votes == 0 or yes_option is None:
        return 0.0
    return yes_option["vote_count"] / total_votes


def is_poll_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return now >= expires_at


def is_poll_closed_for_display(
    status: PollStatus, expires_at: datetime, now: datetime | None = None
) -> bool:
    return status != PollStatus.ACTIVE or is_poll_expired(expires_at, now)


def resolve_scheduled_at(
    event_date: str | None, event_time: str | None
) -> datetime | None:
    """Combine a poll's proposed date and time into one UTC timestamp.

    Accepts ``2026-01-17`` or ``2026-01-17T00:00:00+00`` for the date and
    ``19:15:00`` or ``19:15:00+00`` for the time. Returns None when either
    part is missing or the result does not parse.
    """
    if not event_date or not event_time:
        return None

    date_part = event_date.strip().split("T")[0]
    time_part = event_time.strip().split("+")[0]
    if not date_part or not time_part:
        return None

    try:
        scheduled_at = isoparse(f"{date_part}T{time_part}")
    except (ValueError, OverflowError):
        return None

    if scheduled_at.tzinfo is None:
        return scheduled_at.replace(tzinfo=timezone.utc)
    return scheduled_at.astimezone(timezone.utc)


def compose_activity_description(
    poll_description: str | None,
    yes_title: str,
    yes_description: str | None,
) -> str:
    parts = [poll_description, f"Winning option: {yes_title}", yes_description]
    return "\n\n".join(part.strip() for part in parts if part and part.strip())


class PollService:
    db: AsyncSession

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_poll(self, poll_id: int, refresh: bool = False) -> Poll:
        query = (
            select(Poll)
            .where(Poll.id == poll_id)
            .options(selectinload(Poll.options), selectinload(Poll.creator))
        )
        if refresh:
            query = query.execution_options(populate_existing=True)

        result = await self.db.execute(query)
        poll = result.scalar_one_or_none()
        if not poll:
            raise PollNotFoundError()
        return poll

    async def list_polls(
        self,
        status: PollStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Poll]:
        query = select(Poll).options(
            selectinload(Poll.options), selectinload(Poll.creator)
        )
        if status:
            query = query.where(Poll.status == status)

        query = query.order_by(Poll.created_at.desc(), Poll.id.desc())
        result = await self.db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def get_option_counts(self, poll_ids: Sequence[int]) -> dict[int, int]:
        if not poll_ids:
            return {}

        result = await self.db.execute(
            select(PollOption.id, func.count(Vote.id))
            .outerjoin(Vote, Vote.option_id == PollOption.id)
            .where(PollOption.poll_id.in_(poll_ids))
            .group_by(PollOption.id)
        )
        return {option_id: count for option_id, count in result.all()}

    @staticmethod
    def build_tally(poll: Poll, counts: dict[int, int]) -> PollTally:
        options = [
            OptionTally(
                id=option.id,
                title=option.title,
                description=option.description,
                vote_count=counts.get(option.id, 0),
            )
            for option in poll.options
        ]
        yes_option = find_yes_option(options)

        return PollTally(
            poll_id=poll.id,
            options=options,
            total_votes=sum(option["vote_count"] for option in options),
            yes_option_id=yes_option["id"] if yes_option else None,
            yes_share=calculate_yes_share(options),
        )

    async def get_poll_tally(self, poll_id: int) -> PollTally:
        poll = await self.get_poll(poll_id)
        counts = await self.get_option_counts([poll.id])
        return self.build_tally(poll, counts)

    async def get_user_votes(
        self, poll_ids: Sequence[int], user_id: int
    ) -> dict[int, int]:
        if not poll_ids:
            return {}

        result = await self.db.execute(
            select(Vote.poll_id, Vote.option_id).where(
                Vote.poll_id.in_(poll_ids), Vote.user_id == user_id
            )
        )
        return {poll_id: option_id for poll_id, option_id in result.all()}

    async def get_user_vote(self, poll_id: int, user_id: int) -> int | None:
        votes = await self.get_user_votes([poll_id], user_id)
        return votes.get(poll_id)

    async def get_activity_ids(self, poll_ids: Sequence[int]) -> dict[int, int]:
        if not poll_ids:
            return {}

        result = await self.db.execute(
            select(Activity.poll_id, Activity.id).where(Activity.poll_id.in_(poll_ids))
        )
        return {poll_id: activity_id for poll_id, activity_id in result.all()}

    async def create_poll(
        self,
        creator_id: int,
        title: str,
        expires_at: datetime,
        options: Sequence[tuple[str, str | None]],
        description: str | None = None,
        event_date: str | None = None,
        event_time: str | None = None,
        now: datetime | None = None,
    ) -> Poll:
        now = now or datetime.now(timezone.utc)

        if len(options) < 2:
            raise PollValidationError("Poll must have at least 2 options")

        if len(options) > settings.POLL_MAX_OPTIONS:
            raise PollValidationError(
                f"Poll cannot have more than {settings.POLL_MAX_OPTIONS} options"
            )

        normalized_titles = {option_title.strip().casefold() for option_title, _ in options}
        if len(normalized_titles) != len(options):
            raise PollValidationError("Poll options must be unique")

        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        min_duration = timedelta(minutes=settings.POLL_MIN_DURATION_MINUTES)
        if expires_at < now + min_duration:
            raise PollValidationError(
                f"Poll must stay open for at least {settings.POLL_MIN_DURATION_MINUTES} minute(s)"
            )

        poll = Poll(
            title=title.strip(),
            description=description,
            status=PollStatus.ACTIVE,
            expires_at=expires_at,
            event_date=event_date,
            event_time=event_time,
            created_by_id=creator_id,
            options=[
                PollOption(title=option_title.strip(), description=option_description)
                for option_title, option_description in options
            ],
        )

        self.db.add(poll)
        await commit_or_raise(self.db, "create poll")

        logger.info(f"🗳️ Poll {poll.id} created by profile {creator_id}")
        return await self.get_poll(poll.id)

    async def _get_open_poll(
        self, poll_id: int, option_id: int, now: datetime | None
    ) -> Poll:
        result = await self.db.execute(select(Poll).where(Poll.id == poll_id))
        poll = result.scalar_one_or_none()
        if not poll:
            raise PollNotFoundError()

        if is_poll_closed_for_display(poll.status, poll.expires_at, now):
            raise PollClosedError()

        option_result = await self.db.execute(
            select(PollOption.id).where(
                PollOption.id == option_id, PollOption.poll_id == poll_id
            )
        )
        if option_result.scalar_one_or_none() is None:
            raise InvalidOptionError()

        return poll

    async def _find_vote(self, poll_id: int, user_id: int) -> Vote | None:
        result = await self.db.execute(
            select(Vote).where(Vote.poll_id == poll_id, Vote.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def cast_vote(
        self, poll_id: int, option_id: int, user_id: int, now: datetime | None = None
    ) -> Vote:
        await self._get_open_poll(poll_id, option_id, now)

        if await self._find_vote(poll_id, user_id):
            raise AlreadyVotedError()

        vote = Vote(poll_id=poll_id, option_id=option_id, user_id=user_id)
        self.db.add(vote)

        try:
            await commit_or_raise(self.db, "cast vote")
        except IntegrityError:
            raise AlreadyVotedError() from None

        return vote

    async def change_vote(
        self, poll_id: int, option_id: int, user_id: int, now: datetime | None = None
    ) -> Vote:
        await self._get_open_poll(poll_id, option_id, now)

        vote = await self._find_vote(poll_id, user_id)
        if not vote:
            raise NoExistingVoteError()

        vote.option_id = option_id
        await commit_or_raise(self.db, "change vote")

        return vote

    async def close_poll(self, poll_id: int) -> Poll:
        poll = await self.get_poll(poll_id)
        poll.status = PollStatus.CLOSED
        await commit_or_raise(self.db, "close poll")

        logger.info(f"🔒 Poll {poll_id} closed")
        return poll

    async def delete_poll(self, poll_id: int) -> None:
        result = await self.db.execute(
            select(Poll)
            .where(Poll.id == poll_id)
            .options(
                selectinload(Poll.options).selectinload(PollOption.votes),
                selectinload(Poll.votes),
            )
        )
        poll = result.scalar_one_or_none()
        if not poll:
            raise PollNotFoundError()

        _ = await self.db.execute(
            update(Activity)
            .where(Activity.poll_id == poll_id)
            .values(poll_id=None, poll_option_id=None)
        )
        await self.db.delete(poll)
        await commit_or_raise(self.db, "delete poll")

        logger.info(f"🗑️ Poll {poll_id} deleted")

    async def promote_poll(
        self,
        poll_id: int,
        promoter_id: int | None = None,
        now: datetime | None = None,
    ) -> PromotionResult:
        """Turn an expired, accepted poll into an upcoming activity.

        The activity insert and the switch to ``resolved`` commit together,
        and the unique ``activities.poll_id`` column rejects a second
        activity when two sweeps race on the same poll.
        """
        now = now or datetime.now(timezone.utc)

        def skipped(reason: str) -> PromotionResult:
            return {
                "poll_id": poll_id,
                "outcome": "skipped",
                "success": False,
                "reason": reason,
            }

        try:
            poll = await self.get_poll(poll_id, refresh=True)
        except PollNotFoundError:
            return skipped("Poll not found")

        if poll.status != PollStatus.ACTIVE:
            return skipped("Poll is not active")

        if not is_poll_expired(poll.expires_at, now):
            return skipped("Poll has not expired yet")

        tally = self.build_tally(poll, await self.get_option_counts([poll.id]))
        if tally["yes_option_id"] is None:
            return skipped("Poll has no yes option")

        if tally["yes_share"] < settings.POLL_PROMOTION_THRESHOLD:
            return skipped(
                f"Yes share {tally['yes_share']:.0%} is below "
                f"{settings.POLL_PROMOTION_THRESHOLD:.0%}"
            )

        existing = await self.db.execute(
            select(Activity.id).where(Activity.poll_id == poll.id)
        )
        if existing.scalar_one_or_none() is not None:
            return skipped("Activity already exists for this poll")

        yes_option = next(o for o in poll.options if o.id == tally["yes_option_id"])

        activity = Activity(
            title=poll.title,
            description=compose_activity_description(
                poll.description, yes_option.title, yes_option.description
            ),
            scheduled_at=resolve_scheduled_at(poll.event_date, poll.event_time),
            status=ActivityStatus.UPCOMING,
            created_by_id=promoter_id if promoter_id is not None else poll.created_by_id,
            poll_id=poll.id,
            poll_option_id=yes_option.id,
        )
        poll.status = PollStatus.RESOLVED
        self.db.add(activity)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Poll {poll_id} was promoted by a concurrent sweep")
            return skipped("Activity already exists for this poll")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Promotion of poll {poll_id} failed: {e}")
            return {
                "poll_id": poll_id,
                "outcome": "failed",
                "success": False,
                "reason": f"Promotion failed: {e}",
            }

        logger.info(
            f"✅ Poll {poll_id} promoted to activity {activity.id} "
            f"(yes share {tally['yes_share']:.0%})"
        )
        return {
            "poll_id": poll_id,
            "outcome": "promoted",
            "success": True,
            "reason": "Promoted",
            "activity_id": activity.id,
        }

    async def process_expired_polls(
        self, promoter_id: int | None = None, now: datetime | None = None
    ) -> PromotionSweepResult:
        now = now or datetime.now(timezone.utc)

        result = await self.db.execute(
            select(Poll.id, Poll.title, Poll.created_by_id)
            .where(Poll.status == PollStatus.ACTIVE)
            .order_by(Poll.id)
        )
        candidates = list(result.all())

        sweep: PromotionSweepResult = {
            "polls_checked": len(candidates),
            "promoted": 0,
            "skipped": 0,
            "failed": 0,
            "results": [],
        }

        for poll_id, title, created_by_id in candidates:
            try:
                outcome = await self.promote_poll(poll_id, promoter_id, now)
            except Exception as e:
                await self.db.rollback()
                logger.exception(f"❌ Promotion of poll {poll_id} raised: {e}")
                outcome = {
                    "poll_id": poll_id,
                    "outcome": "failed",
                    "success": False,
                    "reason": f"Promotion failed: {e}",
                }

            sweep["results"].append(outcome)
            if outcome["outcome"] == "promoted":
                sweep["promoted"] += 1
                actor_id = promoter_id if promoter_id is not None else created_by_id
                await NotificationService.deliver(
                    self.db,
                    NotificationService.notify_activity_created(
                        self.db, outcome["activity_id"], title, actor_id
                    ),
                    f"activity {outcome['activity_id']} created",
                )
            elif outcome["outcome"] == "failed":
                sweep["failed"] += 1
            else:
                sweep["skipped"] += 1

        return sweep
