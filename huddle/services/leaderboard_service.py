import logging
from collections.abc import Sequence
from typing import Literal, TypedDict

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.exceptions import (
    ActivityNotFoundError,
    ActivityStateError,
    HuddleError,
    NotParticipantError,
)
from ..database import commit_or_raise
from ..models.activity import Activity, ActivityParticipation, LeaderboardEntry
from ..models.enums import ActivityStatus, ParticipationStatus
from ..models.profile import Profile
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

RankAction = Literal["created", "updated", "deleted", "noop"]


class RankResult(TypedDict):
    activity_id: int
    user_id: int
    rank: int | None
    action: RankAction


class LeaderboardRow(TypedDict):
    user: Profile
    rank: int | None
    marked_by_id: int | None


class ActivityBoard(TypedDict):
    activity: Activity
    entries: list[LeaderboardRow]


class Standing(TypedDict):
    user: Profile
    ranked_finishes: int
    podium_finishes: int
    first_places: int
    best_rank: int


def order_rows(rows: Sequence[LeaderboardRow]) -> list[LeaderboardRow]:
    """Ranked rows first by ascending rank, then unranked rows in input order."""
    return sorted(rows, key=lambda row: (row["rank"] is None, row["rank"] or 0))


class LeaderboardService:
    db: AsyncSession

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_entry(self, activity_id: int, user_id: int) -> LeaderboardEntry | None:
        result = await self.db.execute(
            select(LeaderboardEntry)
            .where(
                LeaderboardEntry.activity_id == activity_id,
                LeaderboardEntry.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _is_accepted_participant(self, activity_id: int, user_id: int) -> bool:
        result = await self.db.execute(
            select(ActivityParticipation.id).where(
                ActivityParticipation.activity_id == activity_id,
                ActivityParticipation.user_id == user_id,
                ActivityParticipation.status == ParticipationStatus.ACCEPTED,
            )
        )
        return result.scalar_one_or_none() is not None

    async def set_rank(
        self,
        activity_id: int,
        user_id: int,
        rank: int | None,
        marker_id: int,
    ) -> RankResult:
        if rank is not None and rank < 1:
            raise HuddleError("Rank must be a positive integer")

        result = await self.db.execute(select(Activity).where(Activity.id == activity_id))
        activity = result.scalar_one_or_none()
        if not activity:
            raise ActivityNotFoundError()

        if activity.status != ActivityStatus.COMPLETED:
            raise ActivityStateError(
                "Leaderboard can only be marked for completed activities"
            )

        activity_title = activity.title
        entry = await self._find_entry(activity_id, user_id)

        if rank is None:
            if entry is None:
                return RankResult(
                    activity_id=activity_id, user_id=user_id, rank=None, action="noop"
                )

            await self.db.delete(entry)
            await commit_or_raise(self.db, "clear rank")
            logger.info(f"🏆 Rank cleared for profile {user_id} in activity {activity_id}")
            return RankResult(
                activity_id=activity_id, user_id=user_id, rank=None, action="deleted"
            )

        action: RankAction = "updated"
        if entry is None:
            if not await self._is_accepted_participant(activity_id, user_id):
                raise NotParticipantError()

            action = "created"
            entry = LeaderboardEntry(activity_id=activity_id, user_id=user_id)
            self.db.add(entry)

        entry.rank = rank
        entry.marked_by_id = marker_id

        try:
            await commit_or_raise(self.db, "set rank")
        except IntegrityError:
            entry = await self._find_entry(activity_id, user_id)
            if entry is None:
                raise
            action = "updated"
            entry.rank = rank
            entry.marked_by_id = marker_id
            await commit_or_raise(self.db, "set rank")

        await NotificationService.deliver(
            self.db,
            NotificationService.notify_leaderboard_marked(
                self.db, activity_id, activity_title, user_id, rank
            ),
            f"rank for profile {user_id} in activity {activity_id}",
        )

        logger.info(
            f"🏆 Profile {user_id} ranked #{rank} in activity {activity_id} ({action})"
        )
        return RankResult(activity_id=activity_id, user_id=user_id, rank=rank, action=action)

    async def _build_boards(self, activities: Sequence[Activity]) -> list[ActivityBoard]:
        activity_ids = [activity.id for activity in activities]
        if not activity_ids:
            return []

        participants_result = await self.db.execute(
            select(ActivityParticipation)
            .where(
                ActivityParticipation.activity_id.in_(activity_ids),
                ActivityParticipation.status == ParticipationStatus.ACCEPTED,
            )
            .options(selectinload(ActivityParticipation.user))
            .order_by(ActivityParticipation.id)
        )
        entries_result = await self.db.execute(
            select(LeaderboardEntry).where(LeaderboardEntry.activity_id.in_(activity_ids))
        )
        entries = {
            (entry.activity_id, entry.user_id): entry
            for entry in entries_result.scalars().all()
        }

        rows: dict[int, list[LeaderboardRow]] = {activity_id: [] for activity_id in activity_ids}
        for participation in participants_result.scalars().all():
            entry = entries.get((participation.activity_id, participation.user_id))
            rows[participation.activity_id].append(
                LeaderboardRow(
                    user=participation.user,
                    rank=entry.rank if entry else None,
                    marked_by_id=entry.marked_by_id if entry else None,
                )
            )

        return [
            ActivityBoard(activity=activity, entries=order_rows(rows[activity.id]))
            for activity in activities
        ]

    async def get_activity_leaderboard(self, activity_id: int) -> ActivityBoard:
        result = await self.db.execute(select(Activity).where(Activity.id == activity_id))
        activity = result.scalar_one_or_none()
        if not activity:
            raise ActivityNotFoundError()

        boards = await self._build_boards([activity])
        return boards[0]

    async def get_leaderboards(
        self,
        status: ActivityStatus = ActivityStatus.COMPLETED,
        skip: int = 0,
        limit: int = 20,
    ) -> list[ActivityBoard]:
        result = await self.db.execute(
            select(Activity)
            .where(Activity.status == status)
            .order_by(
                Activity.scheduled_at.is_(None),
                Activity.scheduled_at.desc(),
                Activity.id.desc(),
            )
            .offset(skip)
            .limit(limit)
        )
        return await self._build_boards(list(result.scalars().all()))

    async def get_standings(self, limit: int = 20) -> list[Standing]:
        ranked_finishes = func.count(LeaderboardEntry.id).label("ranked_finishes")
        podium_finishes = func.sum(
            case((LeaderboardEntry.rank <= 3, 1), else_=0)
        ).label("podium_finishes")
        first_places = func.sum(case((LeaderboardEntry.rank == 1, 1), else_=0)).label(
            "first_places"
        )
        best_rank = func.min(LeaderboardEntry.rank).label("best_rank")

        result = await self.db.execute(
            select(
                LeaderboardEntry.user_id,
                ranked_finishes,
                podium_finishes,
                first_places,
                best_rank,
            )
            .group_by(LeaderboardEntry.user_id)
            .order_by(
                first_places.desc(),
                podium_finishes.desc(),
                ranked_finishes.desc(),
                best_rank.asc(),
                LeaderboardEntry.user_id.asc(),
            )
            .limit(limit)
        )
        rows = result.all()

        profiles_result = await self.db.execute(
            select(Profile).where(Profile.id.in_([row.user_id for row in rows]))
        )
        profiles = {profile.id: profile for profile in profiles_result.scalars().all()}

        return [
            Standing(
                user=profiles[row.user_id],
                ranked_finishes=row.ranked_finishes,
                podium_finishes=row.podium_finishes or 0,
                first_places=row.first_places or 0,
                best_rank=row.best_rank,
            )
            for row in rows
            if row.user_id in profiles
        ]
