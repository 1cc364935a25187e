"""
Lifespan startup and shutdown task functions.

``BackgroundServices`` holds the one instance of each background service for
the application. It is built explicitly and handed to whoever needs to
trigger a manual run or read status; nothing here is a module global.
"""

import logging
from dataclasses import dataclass, field
from datetime import timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from orvale_ops.core.config import Settings
from orvale_ops.services.backup_scheduler import BackupScheduler
from orvale_ops.services.backup_service import BackupService
from orvale_ops.services.chat_cleanup_scheduler import RetentionCleanupScheduler
from orvale_ops.services.presence_service import PresenceManager
from orvale_ops.services.settings_service import SettingsService
from orvale_ops.services.ticket_numbering_service import TicketNumberingService

logger = logging.getLogger("main")


@dataclass
class BackgroundServices:
    """The background services of one application instance."""

    scheduler: AsyncIOScheduler
    settings_service: SettingsService
    backup_service: BackupService
    backup_scheduler: BackupScheduler
    cleanup_scheduler: RetentionCleanupScheduler
    presence_manager: PresenceManager
    ticket_numbering: TicketNumberingService
    _started: bool = field(default=False, repr=False)

    @property
    def is_running(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the shared scheduler and every service. Safe to call twice."""
        if not self.scheduler.running:
            self.scheduler.start()

        await self.backup_scheduler.start()
        await self.cleanup_scheduler.start()
        await self.presence_manager.start()

        self._started = True
        logger.info("✅ Background services started")

    async def stop(self) -> None:
        """Stop every service and shut the shared scheduler down."""
        for name, service in (
            ("presence manager", self.presence_manager),
            ("chat cleanup scheduler", self.cleanup_scheduler),
            ("backup scheduler", self.backup_scheduler),
        ):
            try:
                service.stop()
            except Exception as e:
                logger.warning(f"⚠️  Failed to stop {name}: {e}")

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        self._started = False
        logger.info("✅ Background services stopped")

    def get_status(self) -> dict:
        return {
            "running": self._started,
            "backup": self.backup_scheduler.get_status(),
            "chat_cleanup": self.cleanup_scheduler.get_status(),
            "presence": {
                "running": self.presence_manager.is_running(),
                "settings": self.presence_manager.get_settings().model_dump(by_alias=True),
            },
        }


def build_background_services(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    engine: Optional[AsyncEngine] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
) -> BackgroundServices:
    """Wire every background service around one shared AsyncIOScheduler."""
    scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
    settings_service = SettingsService(session_factory)

    backup_service = BackupService(
        session_factory,
        settings_service,
        db_path=settings.database.sqlite_path,
        defaults=settings.backup,
        engine=engine,
    )

    return BackgroundServices(
        scheduler=scheduler,
        settings_service=settings_service,
        backup_service=backup_service,
        backup_scheduler=BackupScheduler(
            backup_service,
            interval_hours=settings.backup.interval_hours,
            scheduler=scheduler,
        ),
        cleanup_scheduler=RetentionCleanupScheduler(
            session_factory,
            settings.cleanup,
            scheduler=scheduler,
        ),
        presence_manager=PresenceManager(
            session_factory,
            settings_service,
            defaults=settings.presence,
            scheduler=scheduler,
        ),
        ticket_numbering=TicketNumberingService(session_factory),
    )


async def initialize_logging(settings: Settings) -> None:
    """Setup logging configuration."""
    from orvale_ops.core.logging_config import LogConfig, setup_logging

    setup_logging(LogConfig(**settings.logging.log_config))
    logger.info(f"🚀 Starting {settings.api.app_name}...")


async def initialize_database(engine: AsyncEngine) -> None:
    """Create the owned tables."""
    from orvale_ops.core.database import init_db

    await init_db(engine)
    logger.info("✅ Database initialized")


async def start_background_services(services: BackgroundServices, settings: Settings) -> None:
    if not settings.scheduler.enabled:
        logger.info("Background services disabled (SCHEDULER_ENABLED=false)")
        return

    try:
        await services.start()
    except Exception as e:
        logger.warning(f"⚠️  Background services failed to start: {e}", exc_info=True)


async def shutdown_background_services(services: BackgroundServices) -> None:
    try:
        await services.stop()
    except Exception as e:
        logger.warning(f"⚠️  Background services shutdown error: {e}")


async def shutdown_database(engine: AsyncEngine) -> None:
    """Close database connections."""
    from orvale_ops.core.database import close_db

    await close_db(engine)
    logger.info("✅ Database connections closed")
