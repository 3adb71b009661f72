import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime, timezone
from typing import Any, Literal

import httpx

from huddle.config import settings

logger = logging.getLogger(__name__)

_pending: set[asyncio.Task[Any]] = set()


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


class TelegramNotifier:
    @staticmethod
    async def send_message(
        message: str,
        level: Literal["info", "warning", "error", "critical"] = "info",
        parse_mode: str = "HTML",
    ) -> bool:
        if not settings.telegram_enabled:
            logger.debug(f"📱 [DEV] Telegram notification: [{level.upper()}] {message}")
            return False

        emoji_map = {"info": "ℹ️", "warning": "⚠️", "error": "❌", "critical": "🚨"}

        formatted_message = f"{emoji_map[level]} <b>{level.upper()}</b>\n\n{message}"

        url = f"https://api.telegram.org/bot{settings.TELEGRAM_BOT_TOKEN}/sendMessage"
        payload = {
            "chat_id": settings.TELEGRAM_CHAT_ID,
            "text": formatted_message,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(url, json=payload)
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"❌ Failed to send Telegram notification: {e}")
            return False

    @staticmethod
    async def notify_new_profile(email: str, full_name: str | None, profile_id: int, role: str):
        message = (
            f"🎉 <b>New Signup</b>\n\n"
            f"👤 <b>Name:</b> {full_name or '-'}\n"
            f"📧 <b>Email:</b> {email}\n"
            f"🆔 <b>Profile ID:</b> {profile_id}\n"
            f"🛡️ <b>Role:</b> {role}\n"
            f"🕐 <b>Time:</b> {_timestamp()}"
        )
        await TelegramNotifier.send_message(message, level="info")

    @staticmethod
    async def notify_error(
        error_type: str,
        error_message: str,
        user_id: str | None = None,
        endpoint: str | None = None,
        traceback: str | None = None,
    ):
        message = (
            f"💥 <b>Backend Error</b>\n\n"
            f"🔴 <b>Type:</b> <code>{error_type}</code>\n"
            f"📝 <b>Message:</b> {error_message}\n"
        )

        if endpoint:
            message += f"🌐 <b>Endpoint:</b> <code>{endpoint}</code>\n"

        if user_id:
            message += f"👤 <b>User:</b> {user_id}\n"

        message += f"🕐 <b>Time:</b> {_timestamp()}\n"

        if traceback:
            message += f"\n📋 <b>Traceback:</b>\n<pre>{traceback[:500]}</pre>"

        await TelegramNotifier.send_message(message, level="error")

    @staticmethod
    async def notify_promotion_failures(failed_poll_ids: list[int]):
        message = (
            f"🗳️ <b>Poll Promotion Failed</b>\n\n"
            f"📝 <b>Polls:</b> {', '.join(str(poll_id) for poll_id in failed_poll_ids)}\n"
            f"🔁 Polls stay active and are retried on the next sweep\n"
            f"🕐 <b>Time:</b> {_timestamp()}"
        )
        await TelegramNotifier.send_message(message, level="warning")


def notify_telegram(coro: Coroutine[Any, Any, Any]) -> None:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(coro)
        return

    task = loop.create_task(coro)
    _pending.add(task)
    task.add_done_callback(_pending.discard)
