"""
Automatic presence updates.

Every tick recomputes each user's status from minutes of inactivity:

    minutes >= offline threshold -> offline
    minutes >= away threshold    -> away
    minutes >= idle threshold    -> idle
    otherwise                    -> online

The target is computed directly, so a user past the offline threshold goes
from online to offline in one write. Users in a manual status (busy, in_call,
in_meeting, presenting) or flagged ``is_manual`` are left alone until they
are reset to automatic.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orvale_ops.core.config import PresenceDefaults
from orvale_ops.core.database import session_scope
from orvale_ops.core.decorators import critical_database_operation, safe_database_query
from orvale_ops.core.logging_config import MaintenanceLogger
from orvale_ops.core.recurring_timer import RecurringTimer
from orvale_ops.core.time_utils import utc_now
from orvale_ops.db.enums import MANUAL_PRESENCE_STATUSES, PresenceStatus
from orvale_ops.db.models import UserPresence
from orvale_ops.services.settings_service import PresenceSettings, SettingsService

logger = logging.getLogger(__name__)


def determine_status(minutes_inactive: int, settings: PresenceSettings) -> PresenceStatus:
    """Target status for ``minutes_inactive``, checking the longest threshold first."""
    if minutes_inactive >= settings.offline_timeout_minutes:
        return PresenceStatus.OFFLINE
    if minutes_inactive >= settings.away_timeout_minutes:
        return PresenceStatus.AWAY
    if minutes_inactive >= settings.idle_timeout_minutes:
        return PresenceStatus.IDLE
    return PresenceStatus.ONLINE


def is_manual(presence: UserPresence) -> bool:
    return bool(presence.is_manual) or presence.status in MANUAL_PRESENCE_STATUSES


class PresenceManager:
    """Per-minute presence evaluation plus the user-driven presence writes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings_service: SettingsService,
        defaults: Optional[PresenceDefaults] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.session_factory = session_factory
        self.settings_service = settings_service
        self.defaults = defaults or PresenceDefaults()
        self._settings = PresenceSettings.from_defaults(self.defaults)
        self.timer = RecurringTimer(
            "presence_evaluation",
            self.evaluate_presence,
            interval_seconds=self.defaults.tick_seconds,
            run_immediately=True,
            scheduler=scheduler,
        )
        self.maintenance_logger = MaintenanceLogger("presence")

    async def start(self) -> bool:
        """Load settings and start ticking. A second call while running is a no-op."""
        if self.timer.is_running():
            logger.info("Presence manager already running")
            return False

        await self.reload_settings()
        self.timer.start()
        self.maintenance_logger.scheduler_started(
            "presence",
            f"Tick: {self.defaults.tick_seconds}s | "
            f"Auto updates: {self._settings.enable_auto_presence_updates}",
        )
        return True

    def stop(self) -> None:
        if not self.timer.is_running():
            return
        self.timer.stop()
        self.maintenance_logger.scheduler_stopped("presence")

    def is_running(self) -> bool:
        return self.timer.is_running()

    async def reload_settings(self) -> PresenceSettings:
        """Re-read thresholds from the settings store (call after an admin edit)."""
        self._settings = await self.settings_service.get_presence_settings(self.defaults)
        logger.info(
            f"Presence settings loaded | Idle: {self._settings.idle_timeout_minutes} min | "
            f"Away: {self._settings.away_timeout_minutes} min | "
            f"Offline: {self._settings.offline_timeout_minutes} min | "
            f"Enabled: {self._settings.enable_auto_presence_updates}"
        )
        return self._settings

    def get_settings(self) -> PresenceSettings:
        return self._settings

    @critical_database_operation("evaluate user presence")
    async def evaluate_presence(self) -> int:
        """
        Run one evaluation tick.

        Returns:
            Number of users whose status changed
        """
        settings = self._settings
        if not settings.enable_auto_presence_updates:
            return 0

        now = utc_now()
        updated = 0

        async with session_scope(self.session_factory) as db:
            result = await db.execute(
                select(UserPresence).where(UserPresence.status != PresenceStatus.OFFLINE.value)
            )
            for presence in result.scalars().all():
                if is_manual(presence):
                    continue

                minutes_inactive = int((now - presence.last_active).total_seconds() // 60)
                target = determine_status(minutes_inactive, settings)
                if target.value == presence.status:
                    continue

                self.maintenance_logger.presence_changed(
                    presence.user_id, presence.status, target.value, minutes_inactive
                )
                presence.status = target.value
                presence.updated_at = now
                updated += 1

        if updated:
            logger.info(f"Updated presence for {updated} user(s)")
        return updated

    @critical_database_operation("update user activity")
    async def update_user_activity(self, user_id: str) -> None:
        """
        Record activity for ``user_id``.

        An automatic status comes back to online; a manual one is kept.
        Unknown users get a fresh online record.
        """
        now = utc_now()
        async with session_scope(self.session_factory) as db:
            presence = await db.get(UserPresence, user_id)
            if presence is None:
                db.add(UserPresence(user_id=user_id, last_active=now, updated_at=now))
                return

            presence.last_active = now
            if not is_manual(presence) and presence.status != PresenceStatus.ONLINE.value:
                presence.status = PresenceStatus.ONLINE.value
                presence.updated_at = now

    @critical_database_operation("set manual presence status")
    async def set_manual_status(
        self,
        user_id: str,
        status: PresenceStatus,
        status_message: Optional[str] = None,
    ) -> None:
        """Pin ``user_id`` to ``status`` until reset to automatic."""
        status = PresenceStatus(status)
        now = utc_now()
        async with session_scope(self.session_factory) as db:
            presence = await db.get(UserPresence, user_id)
            if presence is None:
                presence = UserPresence(user_id=user_id)
                db.add(presence)

            presence.status = status.value
            presence.status_message = status_message
            presence.is_manual = True
            presence.last_active = now
            presence.updated_at = now

        logger.info(f"Set manual status for {user_id} to {status.value}")

    @critical_database_operation("reset presence to automatic")
    async def reset_to_automatic(self, user_id: str) -> None:
        """Clear the manual flag and message and force online."""
        now = utc_now()
        async with session_scope(self.session_factory) as db:
            presence = await db.get(UserPresence, user_id)
            if presence is None:
                logger.warning(f"No presence record for {user_id}, nothing to reset")
                return

            presence.status = PresenceStatus.ONLINE.value
            presence.status_message = None
            presence.is_manual = False
            presence.last_active = now
            presence.updated_at = now

        logger.info(f"Reset {user_id} back to automatic presence")

    @safe_database_query("read user presence")
    async def get_presence(self, user_id: str) -> Optional[UserPresence]:
        async with session_scope(self.session_factory) as db:
            return await db.get(UserPresence, user_id)
