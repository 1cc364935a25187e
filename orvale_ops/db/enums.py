"""
Enums for the tables owned by the operations layer.

Values are stored as plain strings so rows written by other parts of the
helpdesk (which use the same literals) stay readable.
"""
from enum import Enum


class BackupType(str, Enum):
    """How a backup was triggered."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"


class ChatSessionStatus(str, Enum):
    """
    Lifecycle of a public chat session.

    Sessions only move forward: WAITING/ACTIVE -> ENDED/ABANDONED.
    """

    WAITING = "waiting"
    ACTIVE = "active"
    ENDED = "ended"
    ABANDONED = "abandoned"


class PresenceStatus(str, Enum):
    """User presence status."""

    ONLINE = "online"
    IDLE = "idle"
    AWAY = "away"
    OFFLINE = "offline"
    BUSY = "busy"
    IN_CALL = "in_call"
    IN_MEETING = "in_meeting"
    PRESENTING = "presenting"


# Statuses a user sets explicitly; automatic evaluation never touches them
MANUAL_PRESENCE_STATUSES = frozenset(
    status.value
    for status in (
        PresenceStatus.BUSY,
        PresenceStatus.IN_CALL,
        PresenceStatus.IN_MEETING,
        PresenceStatus.PRESENTING,
    )
)

OPEN_CHAT_STATUSES = (ChatSessionStatus.WAITING.value, ChatSessionStatus.ACTIVE.value)
CLOSED_CHAT_STATUSES = (ChatSessionStatus.ENDED.value, ChatSessionStatus.ABANDONED.value)
