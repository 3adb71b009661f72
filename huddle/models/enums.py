from enum import Enum


class ProfileRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class PollStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    RESOLVED = "resolved"


class ActivityStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ParticipationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    ACTIVITY_CREATED = "activity_created"
    PARTICIPATION_RESPONSE = "participation_response"
    LEADERBOARD_MARKED = "leaderboard_marked"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]
