"""
Automatic backup scheduler.

Runs one backup cycle right away on start and then every ``interval_hours``.
A cycle is skipped when automatic backups are disabled or when an automatic
backup newer than 24 hours already exists, so a restart shortly after a
successful cycle does not produce a duplicate.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from orvale_ops.core.exceptions import BackupError
from orvale_ops.core.logging_config import MaintenanceLogger
from orvale_ops.core.recurring_timer import RecurringTimer
from orvale_ops.db.enums import BackupType
from orvale_ops.services.backup_service import BackupRecord, BackupService

logger = logging.getLogger(__name__)

RECENT_BACKUP_WINDOW = timedelta(hours=24)


class BackupScheduler:
    """Owns the timer that drives automatic backups."""

    def __init__(
        self,
        backup_service: BackupService,
        interval_hours: float = 24,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.backup_service = backup_service
        self.interval_hours = interval_hours
        self.timer = RecurringTimer(
            "automatic_backup",
            self.run_backup_check,
            interval_seconds=interval_hours * 3600,
            run_immediately=True,
            scheduler=scheduler,
        )
        self.maintenance_logger = MaintenanceLogger("backup_scheduler")

    async def start(self) -> bool:
        """Start the scheduler. A second call while running is a no-op."""
        if not self.timer.start():
            logger.info("Backup scheduler already running")
            return False

        self.maintenance_logger.scheduler_started(
            "backup", f"Interval: {self.interval_hours} hours"
        )
        return True

    def stop(self) -> None:
        if not self.timer.is_running():
            return
        self.timer.stop()
        self.maintenance_logger.scheduler_stopped("backup")

    def is_running(self) -> bool:
        return self.timer.is_running()

    async def run_backup_check(self) -> Optional[BackupRecord]:
        """
        Run one automatic backup cycle.

        Returns:
            The backup created, or None when the cycle was skipped or failed
        """
        settings = await self.backup_service.get_backup_settings()
        if not settings.auto_backup_enabled:
            logger.info("Automatic backups disabled, skipping backup cycle")
            return None

        backups = await self.backup_service.list_backups()
        cutoff = datetime.now(timezone.utc) - RECENT_BACKUP_WINDOW
        recent = [
            backup
            for backup in backups
            if backup.type == BackupType.AUTOMATIC and backup.created_at >= cutoff
        ]
        if recent:
            logger.info(
                f"Recent automatic backup found ({recent[0].filename}), skipping backup cycle"
            )
            return None

        try:
            backup = await self.backup_service.create_backup(BackupType.AUTOMATIC, "system_scheduler")
        except BackupError as e:
            logger.error(f"Automatic backup failed: {e}", exc_info=True)
            self.maintenance_logger.error_occurred("automatic_backup", str(e))
            return None

        try:
            result = await self.backup_service.cleanup_old_backups()
            if result.errors:
                logger.warning(f"Backup cleanup finished with {len(result.errors)} error(s)")
        except Exception as e:
            logger.error(f"Backup retention cleanup failed: {e}", exc_info=True)
            self.maintenance_logger.error_occurred("backup_cleanup", str(e))

        return backup

    def get_status(self) -> dict:
        next_run = self.timer.next_run_time()
        return {
            "running": self.is_running(),
            "interval_hours": self.interval_hours,
            "next_run": next_run.isoformat() if next_run else None,
        }
