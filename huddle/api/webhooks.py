import logging

from fastapi import APIRouter, Depends
from pydantic import ValidationError

from huddle.core.dependencies import ProfileServiceDep, verify_webhook_secret
from huddle.core.exceptions import HuddleError
from huddle.core.telegram import TelegramNotifier, notify_telegram
from huddle.schemas.common import ErrorResponse
from huddle.schemas.webhook import AuthUserRecord, AuthWebhookPayload, WebhookResponse

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNUP_EVENT = "INSERT"
AUTH_USERS_TABLE = "users"


@router.post(
    "/auth/user-created",
    response_model=WebhookResponse,
    dependencies=[Depends(verify_webhook_secret)],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid user record"},
        401: {"model": ErrorResponse, "description": "Invalid webhook secret"},
    },
)
async def handle_user_created(payload: AuthWebhookPayload, profile_service: ProfileServiceDep):
    if payload.type != SIGNUP_EVENT or payload.table != AUTH_USERS_TABLE:
        logger.debug(f"Ignoring {payload.type} event on {payload.table}")
        return WebhookResponse(message="Event processed")

    try:
        record = AuthUserRecord.model_validate(payload.record or {})
    except ValidationError:
        raise HuddleError("Invalid user record") from None

    if not record.email:
        raise HuddleError("User record has no email")

    result = await profile_service.handle_signup(
        auth_user_id=record.id,
        email=record.email,
        full_name=record.full_name,
        avatar_url=record.avatar_url,
    )
    profile = result["profile"]

    if result["created"]:
        notify_telegram(
            TelegramNotifier.notify_new_profile(
                email=profile.email,
                full_name=profile.full_name,
                profile_id=profile.id,
                role=profile.role.value,
            )
        )
        message = "Profile created"
    else:
        logger.info(f"👤 Signup for {record.id} already processed")
        message = "Profile already exists"

    return WebhookResponse(
        message=message,
        profile_id=profile.id,
        role=profile.role.value,
        created=result["created"],
    )
