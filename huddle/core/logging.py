import logging
import json
from datetime import datetime, timezone
from fastapi import Request
from huddle.config import settings


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = request.headers.get("x-real-ip", "")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

security_logger = logging.getLogger("security")
admin_logger = logging.getLogger("admin")


class SecurityLogger:
    @staticmethod
    def log_admin_action(
        request: Request,
        admin_user_id: int,
        action: str,
        target_user_id: int | None = None,
        details: dict[str, object] | None = None,
    ):
        log_data: dict[str, object] = {
            "event_type": "admin_action",
            "admin_user_id": admin_user_id,
            "action": action,
            "ip_address": get_client_ip(request),
            "user_agent": get_user_agent(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if target_user_id:
            log_data["target_user_id"] = target_user_id
        if details:
            log_data.update(details)

        message = f"Admin action - {action}: {json.dumps(log_data, default=str)}"
        admin_logger.info(message)

    @staticmethod
    def log_webhook_rejected(request: Request, reason: str):
        log_data: dict[str, object] = {
            "event_type": "webhook_rejected",
            "reason": reason,
            "path": request.url.path,
            "ip_address": get_client_ip(request),
            "user_agent": get_user_agent(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        security_logger.warning(f"Webhook rejected: {json.dumps(log_data)}")

    @staticmethod
    def log_rate_limit_exceeded(request: Request, limit: str):
        log_data: dict[str, object] = {
            "event_type": "rate_limit_exceeded",
            "limit": limit,
            "path": request.url.path,
            "ip_address": get_client_ip(request),
            "user_agent": get_user_agent(request),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        security_logger.warning(f"Rate limit exceeded: {json.dumps(log_data)}")
