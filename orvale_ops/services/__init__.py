"""
Background operations services.
"""
from .backup_scheduler import BackupScheduler
from .backup_service import BackupService
from .chat_cleanup_scheduler import RetentionCleanupScheduler
from .presence_service import PresenceManager
from .settings_service import SettingsService
from .ticket_numbering_service import TicketNumberingService

__all__ = [
    "SettingsService",
    "BackupService",
    "BackupScheduler",
    "RetentionCleanupScheduler",
    "PresenceManager",
    "TicketNumberingService",
]
