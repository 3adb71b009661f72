from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base
from .enums import ActivityStatus, ParticipationStatus, enum_values
from .types import UTCDateTime, utc_now

if TYPE_CHECKING:
    from .poll import Poll, PollOption
    from .profile import Profile


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(300))
    scheduled_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    status: Mapped[ActivityStatus] = mapped_column(
        SQLEnum(ActivityStatus, name="activity_status", values_callable=enum_values),
        default=ActivityStatus.UPCOMING,
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, server_default=func.now()
    )

    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL")
    )
    # Unique so a poll can be promoted at most once
    poll_id: Mapped[int | None] = mapped_column(
        ForeignKey("activity_polls.id", ondelete="SET NULL"), unique=True
    )
    poll_option_id: Mapped[int | None] = mapped_column(
        ForeignKey("poll_options.id", ondelete="SET NULL")
    )

    creator: Mapped["Profile | None"] = relationship("Profile")
    poll: Mapped["Poll | None"] = relationship("Poll")
    poll_option: Mapped["PollOption | None"] = relationship("PollOption")
    participations: Mapped[list["ActivityParticipation"]] = relationship(
        "ActivityParticipation",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ActivityParticipation.id",
    )
    leaderboard_entries: Mapped[list["LeaderboardEntry"]] = relationship(
        "LeaderboardEntry",
        back_populates="activity",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ActivityParticipation(Base):
    __tablename__ = "activity_participation"
    __table_args__ = (
        UniqueConstraint(
            "activity_id", "user_id", name="uq_activity_participation_activity_user"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    status: Mapped[ParticipationStatus] = mapped_column(
        SQLEnum(
            ParticipationStatus,
            name="participation_status",
            values_callable=enum_values,
        ),
        default=ParticipationStatus.PENDING,
        nullable=False,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, server_default=func.now()
    )

    activity_id: Mapped[int] = mapped_column(
        ForeignKey("activities.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), index=True
    )

    activity: Mapped["Activity"] = relationship(
        "Activity", back_populates="participations"
    )
    user: Mapped["Profile"] = relationship("Profile")


class LeaderboardEntry(Base):
    __tablename__ = "leaderboard_entries"
    __table_args__ = (
        UniqueConstraint(
            "activity_id", "user_id", name="uq_leaderboard_entries_activity_user"
        ),
        CheckConstraint("rank > 0", name="rank_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utc_now, onupdate=utc_now, server_default=func.now()
    )

    activity_id: Mapped[int] = mapped_column(
        ForeignKey("activities.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), index=True
    )
    marked_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL")
    )

    activity: Mapped["Activity"] = relationship(
        "Activity", back_populates="leaderboard_entries"
    )
    user: Mapped["Profile"] = relationship("Profile", foreign_keys=[user_id])
    marked_by: Mapped["Profile | None"] = relationship(
        "Profile", foreign_keys=[marked_by_id]
    )
