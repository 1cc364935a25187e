"""
Nightly chat retention scheduler.

Fires at local midnight in the configured timezone. The delay to the next
run is recomputed from the wall clock after every run instead of repeating a
24 hour interval, so the schedule stays on midnight across DST changes.
"""

import logging
from datetime import timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orvale_ops.core.config import CleanupSettings
from orvale_ops.core.logging_config import MaintenanceLogger
from orvale_ops.core.recurring_timer import RecurringTimer
from orvale_ops.core.time_utils import local_date, seconds_until_next_local_midnight
from orvale_ops.db.models import ChatCleanupStats
from orvale_ops.services import chat_cleanup_service
from orvale_ops.services.chat_cleanup_service import CleanupReport

logger = logging.getLogger(__name__)


class RetentionCleanupScheduler:
    """Owns the self-rearming midnight timer for chat retention."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[CleanupSettings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or CleanupSettings()
        self.timer = RecurringTimer(
            "chat_retention_cleanup",
            self.run_nightly_cleanup,
            delay_fn=self.seconds_until_next_run,
            scheduler=scheduler,
        )
        self.maintenance_logger = MaintenanceLogger("chat_cleanup")
        self.last_report: Optional[CleanupReport] = None

    def seconds_until_next_run(self) -> float:
        return seconds_until_next_local_midnight(self.settings.timezone)

    async def start(self) -> bool:
        """Arm the midnight timer. A second call while running is a no-op."""
        if not self.timer.start():
            logger.info("Chat cleanup scheduler already running")
            return False

        next_run = self.timer.next_run_time()
        self.maintenance_logger.scheduler_started(
            "chat_cleanup",
            f"Timezone: {self.settings.timezone} | "
            f"Next run: {next_run.isoformat() if next_run else 'unknown'}",
        )
        return True

    def stop(self) -> None:
        if not self.timer.is_running():
            return
        self.timer.stop()
        self.maintenance_logger.scheduler_stopped("chat_cleanup")

    def is_running(self) -> bool:
        return self.timer.is_running()

    async def run_nightly_cleanup(self) -> CleanupReport:
        """Run all cleanup steps and record the day's statistics."""
        logger.info(f"Starting nightly chat cleanup ({self.settings.timezone})")

        report = await chat_cleanup_service.run_cleanup(self.session_factory, self.settings)
        self.last_report = report

        self.maintenance_logger.cleanup_summary(
            {**report.counts, "total": report.total_items_cleaned}, report.duration_ms
        )
        for step_name, error in report.errors.items():
            self.maintenance_logger.error_occurred(f"chat_cleanup.{step_name}", error)

        return report

    async def run_cleanup_now(self) -> CleanupReport:
        """Manual trigger; does not move the next scheduled run."""
        logger.info("Manual chat cleanup triggered")
        return await self.run_nightly_cleanup()

    async def get_cleanup_history(self, days: int = 30) -> List[ChatCleanupStats]:
        since = local_date(self.settings.timezone) - timedelta(days=days)
        return await chat_cleanup_service.get_cleanup_history(self.session_factory, since)

    def get_status(self) -> dict:
        next_run = self.timer.next_run_time()
        return {
            "running": self.is_running(),
            "timezone": self.settings.timezone,
            "next_cleanup": next_run.isoformat() if next_run else None,
            "next_cleanup_local": (
                next_run.astimezone(ZoneInfo(self.settings.timezone)).isoformat()
                if next_run
                else None
            ),
        }
