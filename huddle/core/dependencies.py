import secrets
from typing import Annotated

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huddle.config import settings
from huddle.database import get_db
from .auth import verify_token
from .exceptions import ForbiddenError, UnauthorizedError
from .logging import SecurityLogger
from ..models.profile import Profile
from ..services.activity_service import ActivityService
from ..services.leaderboard_service import LeaderboardService
from ..services.participation_service import ParticipationService
from ..services.poll_service import PollService
from ..services.profile_service import ProfileService

security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DatabaseSession,
) -> Profile:
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    if not payload:
        raise UnauthorizedError("Invalid or expired token")

    auth_user_id = payload.get("sub")
    if not auth_user_id or not isinstance(auth_user_id, str):
        raise UnauthorizedError("Invalid token payload")

    result = await db.execute(select(Profile).where(Profile.auth_user_id == auth_user_id))
    profile = result.scalar_one_or_none()

    if not profile:
        raise UnauthorizedError("Profile not found")

    if not profile.is_active:
        raise ForbiddenError("Inactive profile")

    return profile


CurrentUser = Annotated[Profile, Depends(get_current_user)]


async def get_current_admin_user(current_user: CurrentUser) -> Profile:
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


AdminUser = Annotated[Profile, Depends(get_current_admin_user)]


async def verify_webhook_secret(
    request: Request,
    x_webhook_secret: Annotated[str | None, Header()] = None,
) -> None:
    if not settings.WEBHOOK_SECRET:
        SecurityLogger.log_webhook_rejected(request, reason="secret_not_configured")
        raise ForbiddenError("Webhook is not configured")

    if not x_webhook_secret or not secrets.compare_digest(
        x_webhook_secret, settings.WEBHOOK_SECRET
    ):
        SecurityLogger.log_webhook_rejected(request, reason="invalid_secret")
        raise UnauthorizedError("Invalid webhook secret")


async def get_poll_service(db: DatabaseSession) -> PollService:
    return PollService(db)


async def get_activity_service(db: DatabaseSession) -> ActivityService:
    return ActivityService(db)


async def get_participation_service(db: DatabaseSession) -> ParticipationService:
    return ParticipationService(db)


async def get_leaderboard_service(db: DatabaseSession) -> LeaderboardService:
    return LeaderboardService(db)


async def get_profile_service(db: DatabaseSession) -> ProfileService:
    return ProfileService(db)


PollServiceDep = Annotated[PollService, Depends(get_poll_service)]
ActivityServiceDep = Annotated[ActivityService, Depends(get_activity_service)]
ParticipationServiceDep = Annotated[
    ParticipationService, Depends(get_participation_service)
]
LeaderboardServiceDep = Annotated[LeaderboardService, Depends(get_leaderboard_service)]
ProfileServiceDep = Annotated[ProfileService, Depends(get_profile_service)]
