from .activity import Activity, ActivityParticipation, LeaderboardEntry
from .base import Base
from .enums import (
    ActivityStatus,
    NotificationType,
    ParticipationStatus,
    PollStatus,
    ProfileRole,
)
from .notification import Notification
from .poll import Poll, PollOption, Vote
from .profile import AdminEmail, Profile

__all__ = [
    "Base",
    "Profile",
    "AdminEmail",
    "Poll",
    "PollOption",
    "Vote",
    "Activity",
    "ActivityParticipation",
    "LeaderboardEntry",
    "Notification",
    "ProfileRole",
    "PollStatus",
    "ActivityStatus",
    "ParticipationStatus",
    "NotificationType",
]
