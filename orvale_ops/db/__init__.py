"""
Database models and enums for the operations layer.
"""
from .enums import (
    CLOSED_CHAT_STATUSES,
    MANUAL_PRESENCE_STATUSES,
    OPEN_CHAT_STATUSES,
    BackupType,
    ChatSessionStatus,
    PresenceStatus,
)
from .models import (
    BackupLog,
    ChatCleanupStats,
    ChatMessage,
    ChatSession,
    ChatSessionArchive,
    SystemSetting,
    TableModel,
    TicketSequence,
    UserPresence,
)

__all__ = [
    # Enums
    "BackupType",
    "ChatSessionStatus",
    "PresenceStatus",
    "MANUAL_PRESENCE_STATUSES",
    "OPEN_CHAT_STATUSES",
    "CLOSED_CHAT_STATUSES",
    # Tables
    "TableModel",
    "SystemSetting",
    "BackupLog",
    "ChatSession",
    "ChatMessage",
    "ChatSessionArchive",
    "ChatCleanupStats",
    "UserPresence",
    "TicketSequence",
]
