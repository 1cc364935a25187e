"""
Database models owned by the background operations layer.

Only the handful of tables the schedulers read and write are declared
here; the rest of the helpdesk schema is managed elsewhere.

All timestamps are naive UTC (see ``core.time_utils.utc_now``).
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlmodel import Field, SQLModel

from orvale_ops.core.time_utils import utc_now
from orvale_ops.db.enums import BackupType, ChatSessionStatus, PresenceStatus


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


class SystemSetting(TableModel, table=True):
    """
    Generic key/value settings store.

    ``setting_value`` holds JSON text, e.g. ``true``, ``30`` or ``"./backups"``.
    """

    __tablename__ = "system_settings"

    setting_key: str = Field(
        sa_column=Column(String(100), primary_key=True),
        description="Setting name, e.g. backupRetentionDays",
    )
    setting_value: str = Field(
        sa_column=Column(Text, nullable=False),
        description="JSON encoded value",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    updated_by: Optional[str] = Field(
        default=None,
        sa_column=Column(String(100), nullable=True),
    )


class BackupLog(TableModel, table=True):
    """Audit trail of every successful backup."""

    __tablename__ = "backup_log"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    filename: str = Field(sa_column=Column(String(255), nullable=False))
    file_path: str = Field(sa_column=Column(Text, nullable=False))
    file_size: int = Field(sa_column=Column(Integer, nullable=False))
    backup_type: str = Field(
        default=BackupType.MANUAL.value,
        sa_column=Column(String(20), nullable=False),
        description="manual | automatic",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    triggered_by: str = Field(
        default="system",
        sa_column=Column(String(100), nullable=True),
    )
    status: str = Field(
        default="completed",
        sa_column=Column(String(20), nullable=False, server_default="completed"),
    )

    __table_args__ = (Index("ix_backup_log_created_at", "created_at"),)


class ChatSession(TableModel, table=True):
    """Live public chat session."""

    __tablename__ = "public_chat_sessions"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    session_id: str = Field(
        sa_column=Column(String(64), nullable=False, unique=True),
        description="Public session identifier shared with the visitor widget",
    )
    visitor_name: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    visitor_email: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    visitor_phone: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    visitor_department: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    session_data: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Opaque JSON blob written by the chat widget",
    )
    status: str = Field(
        default=ChatSessionStatus.WAITING.value,
        sa_column=Column(String(20), nullable=False, server_default="waiting"),
    )
    assigned_to: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    queue_position: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    ended_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    last_activity: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    __table_args__ = (
        Index("ix_public_chat_sessions_status_created", "status", "created_at"),
    )


class ChatMessage(TableModel, table=True):
    """
    Public chat message.

    ``session_id`` is deliberately not a foreign key: messages may outlive
    their session until the nightly orphan pass removes them.
    """

    __tablename__ = "public_chat_messages"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    session_id: str = Field(sa_column=Column(String(64), nullable=False, index=True))
    sender_type: str = Field(
        default="visitor",
        sa_column=Column(String(20), nullable=False),
        description="visitor | staff | system",
    )
    sender_id: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    message_text: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )


class ChatSessionArchive(TableModel, table=True):
    """Completed chat sessions moved out of the live table for reporting."""

    __tablename__ = "public_chat_sessions_archive"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    session_id: str = Field(sa_column=Column(String(64), nullable=False, unique=True))
    visitor_name: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    visitor_email: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    visitor_phone: Optional[str] = Field(default=None, sa_column=Column(String(50), nullable=True))
    visitor_department: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    session_data: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    assigned_to: Optional[str] = Field(default=None, sa_column=Column(String(100), nullable=True))
    queue_position: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    ended_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    archived_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    message_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
    duration_minutes: Optional[int] = Field(default=None, sa_column=Column(Integer, nullable=True))


class ChatCleanupStats(TableModel, table=True):
    """One row per nightly cleanup date."""

    __tablename__ = "chat_cleanup_stats"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True),
    )
    cleanup_date: date = Field(sa_column=Column(Date, nullable=False))
    abandoned_sessions: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    orphaned_messages: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    stale_presence: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    expired_recovery: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    archived_sessions: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    total_items_cleaned: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    cleanup_duration_ms: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )

    __table_args__ = (UniqueConstraint("cleanup_date", name="uq_chat_cleanup_stats_date"),)


class UserPresence(TableModel, table=True):
    """Current presence of a staff user."""

    __tablename__ = "user_presence"

    user_id: str = Field(sa_column=Column(String(100), primary_key=True))
    status: str = Field(
        default=PresenceStatus.ONLINE.value,
        sa_column=Column(String(20), nullable=False, server_default="online"),
    )
    last_active: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )
    status_message: Optional[str] = Field(default=None, sa_column=Column(String(255), nullable=True))
    is_manual: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("0")),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime, nullable=False),
    )

    __table_args__ = (Index("ix_user_presence_status", "status"),)


class TicketSequence(TableModel, table=True):
    """Per-team, per-day ticket counter."""

    __tablename__ = "ticket_sequences"

    team_id: str = Field(sa_column=Column(String(100), primary_key=True))
    date: str = Field(
        sa_column=Column(String(6), primary_key=True),
        description="YYMMDD",
    )
    last_sequence: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )
    prefix: str = Field(sa_column=Column(String(10), nullable=False))
