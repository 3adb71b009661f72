import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from huddle.config import settings
from huddle.core.telegram import TelegramNotifier, notify_telegram
from huddle.database import AsyncSessionLocal
from huddle.services.poll_service import PollService, PromotionSweepResult

logger = logging.getLogger(__name__)


class SchedulerService:
    scheduler: AsyncIOScheduler
    session_factory: async_sessionmaker[AsyncSession]

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal
    ):
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.session_factory = session_factory

    def start(self):
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            func=self.process_expired_polls,
            trigger=IntervalTrigger(seconds=settings.POLL_PROMOTION_INTERVAL_SECONDS),
            id="process_expired_polls",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info(
            f"🕒 Scheduler started: expired polls checked every "
            f"{settings.POLL_PROMOTION_INTERVAL_SECONDS}s"
        )

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("🕒 Scheduler stopped")

    async def process_expired_polls(self) -> PromotionSweepResult | None:
        async with self.session_factory() as db:
            try:
                sweep = await PollService(db).process_expired_polls()
            except Exception as e:
                logger.error(f"❌ Expired poll sweep failed: {e}")
                await db.rollback()
                return None

        if sweep["promoted"] or sweep["failed"]:
            logger.info(
                f"🗳️ Expired poll sweep: {sweep['promoted']} promoted, "
                f"{sweep['skipped']} skipped, {sweep['failed']} failed"
            )

        if sweep["failed"]:
            failed_ids = [
                result["poll_id"]
                for result in sweep["results"]
                if result["outcome"] == "failed"
            ]
            notify_telegram(TelegramNotifier.notify_promotion_failures(failed_ids))

        return sweep


scheduler_service = SchedulerService()
