"""initial schema

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b31"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

profile_role = sa.Enum("admin", "user", name="profile_role")
poll_status = sa.Enum("active", "closed", "resolved", name="poll_status")
activity_status = sa.Enum(
    "upcoming", "ongoing", "completed", "cancelled", name="activity_status"
)
participation_status = sa.Enum(
    "pending", "accepted", "rejected", name="participation_status"
)
notification_type = sa.Enum(
    "activity_created",
    "participation_response",
    "leaderboard_marked",
    name="notification_type",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("auth_user_id", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("role", profile_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_profiles"),
        sa.UniqueConstraint("email", name="uq_profiles_email"),
    )
    op.create_index(
        "ix_profiles_auth_user_id", "profiles", ["auth_user_id"], unique=True
    )

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("added_by_id", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["added_by_id"],
            ["profiles.id"],
            name="fk_admins_added_by_id_profiles",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_admins"),
        sa.UniqueConstraint("email", name="uq_admins_email"),
    )

    op.create_table(
        "activity_polls",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", poll_status, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_date", sa.String(length=32), nullable=True),
        sa.Column("event_time", sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["created_by_id"],
            ["profiles.id"],
            name="fk_activity_polls_created_by_id_profiles",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activity_polls"),
    )
    op.create_index("ix_activity_polls_status", "activity_polls", ["status"])

    op.create_table(
        "poll_options",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["poll_id"],
            ["activity_polls.id"],
            name="fk_poll_options_poll_id_activity_polls",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_poll_options"),
    )
    op.create_index("ix_poll_options_poll_id", "poll_options", ["poll_id"])

    op.create_table(
        "votes",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.Column("option_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name="fk_votes_user_id_profiles",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["poll_id"],
            ["activity_polls.id"],
            name="fk_votes_poll_id_activity_polls",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["option_id"],
            ["poll_options.id"],
            name="fk_votes_option_id_poll_options",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_votes"),
        sa.UniqueConstraint("poll_id", "user_id", name="uq_votes_poll_user"),
    )
    op.create_index("ix_votes_user_id", "votes", ["user_id"])
    op.create_index("ix_votes_option_id", "votes", ["option_id"])

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=300), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", activity_status, nullable=False),
        *_timestamps(),
        sa.Column("created_by_id", sa.Integer(), nullable=True),
        sa.Column("poll_id", sa.Integer(), nullable=True),
        sa.Column("poll_option_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["created_by_id"],
            ["profiles.id"],
            name="fk_activities_created_by_id_profiles",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["poll_id"],
            ["activity_polls.id"],
            name="fk_activities_poll_id_activity_polls",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["poll_option_id"],
            ["poll_options.id"],
            name="fk_activities_poll_option_id_poll_options",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activities"),
        sa.UniqueConstraint("poll_id", name="uq_activities_poll_id"),
    )
    op.create_index("ix_activities_status", "activities", ["status"])

    op.create_table(
        "activity_participation",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", participation_status, nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["activity_id"],
            ["activities.id"],
            name="fk_activity_participation_activity_id_activities",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name="fk_activity_participation_user_id_profiles",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activity_participation"),
        sa.UniqueConstraint(
            "activity_id", "user_id", name="uq_activity_participation_activity_user"
        ),
    )
    op.create_index(
        "ix_activity_participation_activity_id",
        "activity_participation",
        ["activity_id"],
    )
    op.create_index(
        "ix_activity_participation_user_id", "activity_participation", ["user_id"]
    )

    op.create_table(
        "leaderboard_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("marked_by_id", sa.Integer(), nullable=True),
        sa.CheckConstraint("rank > 0", name="ck_leaderboard_entries_rank_positive"),
        sa.ForeignKeyConstraint(
            ["activity_id"],
            ["activities.id"],
            name="fk_leaderboard_entries_activity_id_activities",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name="fk_leaderboard_entries_user_id_profiles",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["marked_by_id"],
            ["profiles.id"],
            name="fk_leaderboard_entries_marked_by_id_profiles",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_leaderboard_entries"),
        sa.UniqueConstraint(
            "activity_id", "user_id", name="uq_leaderboard_entries_activity_user"
        ),
    )
    op.create_index(
        "ix_leaderboard_entries_activity_id", "leaderboard_entries", ["activity_id"]
    )
    op.create_index("ix_leaderboard_entries_user_id", "leaderboard_entries", ["user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name="fk_notifications_user_id_profiles",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_leaderboard_entries_user_id", table_name="leaderboard_entries")
    op.drop_index("ix_leaderboard_entries_activity_id", table_name="leaderboard_entries")
    op.drop_table("leaderboard_entries")
    op.drop_index("ix_activity_participation_user_id", table_name="activity_participation")
    op.drop_index(
        "ix_activity_participation_activity_id", table_name="activity_participation"
    )
    op.drop_table("activity_participation")
    op.drop_index("ix_activities_status", table_name="activities")
    op.drop_table("activities")
    op.drop_index("ix_votes_option_id", table_name="votes")
    op.drop_index("ix_votes_user_id", table_name="votes")
    op.drop_table("votes")
    op.drop_index("ix_poll_options_poll_id", table_name="poll_options")
    op.drop_table("poll_options")
    op.drop_index("ix_activity_polls_status", table_name="activity_polls")
    op.drop_table("activity_polls")
    op.drop_table("admins")
    op.drop_index("ix_profiles_auth_user_id", table_name="profiles")
    op.drop_table("profiles")

    bind = op.get_bind()
    for enum in (
        notification_type,
        participation_status,
        activity_status,
        poll_status,
        profile_role,
    ):
        enum.drop(bind, checkfirst=True)
