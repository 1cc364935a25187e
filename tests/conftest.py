"""
Pytest configuration and fixtures for testing.

Provides:
- An isolated SQLite file database per test (aiosqlite engine)
- Session factory and settings store fixtures
- Backup service wired to a temporary backup directory
- Factories for chat sessions, messages and presence rows

Usage:
    pytest tests/ -v
"""

from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

import orvale_ops.db.models  # noqa: F401 register tables
from orvale_ops.core.config import BackupDefaults, CleanupSettings, DatabaseSettings, PresenceDefaults
from orvale_ops.core.database import create_engine_from_settings, create_session_factory
from orvale_ops.core.time_utils import utc_now
from orvale_ops.db.enums import ChatSessionStatus, PresenceStatus
from orvale_ops.db.models import ChatMessage, ChatSession, UserPresence
from orvale_ops.services.backup_service import BackupService
from orvale_ops.services.settings_service import SettingsService


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_path(tmp_path) -> Path:
    """Live database file for this test."""
    return tmp_path / "orvale_test.db"


@pytest_asyncio.fixture
async def test_engine(db_path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine over a fresh SQLite file with every owned table created."""
    engine = create_engine_from_settings(
        DatabaseSettings(url=f"sqlite+aiosqlite:///{db_path}", busy_timeout=5)
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and asserting test data."""
    async with session_factory() as session:
        yield session


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def settings_service(session_factory) -> SettingsService:
    return SettingsService(session_factory)


@pytest.fixture
def backup_defaults(tmp_path) -> BackupDefaults:
    """Backups go to ``<tmp>/backups`` through a relative location."""
    return BackupDefaults(app_root=str(tmp_path), location="./backups", retention_days=30)


@pytest.fixture
def backup_dir(tmp_path) -> Path:
    return tmp_path / "backups"


@pytest.fixture
def cleanup_settings() -> CleanupSettings:
    return CleanupSettings(timezone="America/Los_Angeles", step_timeout_seconds=None)


@pytest.fixture
def presence_defaults() -> PresenceDefaults:
    return PresenceDefaults(
        idle_timeout_minutes=10,
        away_timeout_minutes=30,
        offline_timeout_minutes=60,
        enable_auto_updates=True,
    )


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def backup_service(session_factory, settings_service, db_path, backup_defaults, test_engine) -> BackupService:
    return BackupService(
        session_factory,
        settings_service,
        db_path=db_path,
        defaults=backup_defaults,
        engine=test_engine,
    )


# ============================================================================
# Data Factories
# ============================================================================

@pytest.fixture
def make_chat_session(session_factory):
    """Insert a chat session and return it."""

    async def _make(
        status: ChatSessionStatus = ChatSessionStatus.WAITING,
        created_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
        last_activity: Optional[datetime] = None,
        session_id: Optional[str] = None,
    ) -> ChatSession:
        created_at = created_at or utc_now()
        chat_session = ChatSession(
            session_id=session_id or f"chat_{uuid4().hex[:12]}",
            visitor_name="Test Visitor",
            visitor_email="visitor@example.com",
            status=ChatSessionStatus(status).value,
            created_at=created_at,
            updated_at=created_at,
            ended_at=ended_at,
            last_activity=last_activity,
        )
        async with session_factory() as db:
            db.add(chat_session)
            await db.commit()
        return chat_session

    return _make


@pytest.fixture
def make_chat_message(session_factory):
    """Insert a chat message for ``session_id`` (which need not exist)."""

    async def _make(session_id: str, text: str = "hello") -> ChatMessage:
        message = ChatMessage(session_id=session_id, message_text=text)
        async with session_factory() as db:
            db.add(message)
            await db.commit()
        return message

    return _make


@pytest.fixture
def make_presence(session_factory):
    """Insert a presence row."""

    async def _make(
        user_id: str,
        status: PresenceStatus = PresenceStatus.ONLINE,
        last_active: Optional[datetime] = None,
        is_manual: bool = False,
    ) -> UserPresence:
        presence = UserPresence(
            user_id=user_id,
            status=PresenceStatus(status).value,
            last_active=last_active or utc_now(),
            is_manual=is_manual,
        )
        async with session_factory() as db:
            db.add(presence)
            await db.commit()
        return presence

    return _make
