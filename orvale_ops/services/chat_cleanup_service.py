"""
Chat retention cleanup steps.

Each step is a plain coroutine ``step(db, now, settings) -> int`` returning the
number of rows it affected. ``run_cleanup`` runs every step in its own
session so that one failing step rolls back only its own work and reports a
count of zero, then upserts the day's ``chat_cleanup_stats`` row.

``now`` is naive UTC, matching the stored timestamps.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import func

from orvale_ops.core.config import CleanupSettings
from orvale_ops.core.database import session_scope
from orvale_ops.core.decorators import (
    critical_database_operation,
    log_database_operation,
    safe_database_query,
)
from orvale_ops.core.time_utils import local_date, utc_now
from orvale_ops.db.enums import CLOSED_CHAT_STATUSES, OPEN_CHAT_STATUSES, ChatSessionStatus
from orvale_ops.db.models import (
    ChatCleanupStats,
    ChatMessage,
    ChatSession,
    ChatSessionArchive,
)

logger = logging.getLogger(__name__)

CleanupStep = Callable[[AsyncSession, datetime, CleanupSettings], Awaitable[int]]


async def abandon_stale_sessions(db: AsyncSession, now: datetime, settings: CleanupSettings) -> int:
    """Mark waiting/active sessions with no recent activity as abandoned."""
    cutoff = now - timedelta(hours=settings.abandoned_after_hours)
    result = await db.execute(
        update(ChatSession)
        .where(
            ChatSession.status.in_(OPEN_CHAT_STATUSES),
            ChatSession.created_at < cutoff,
            or_(ChatSession.last_activity.is_(None), ChatSession.last_activity < cutoff),
        )
        .values(status=ChatSessionStatus.ABANDONED.value, ended_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def delete_orphaned_messages(db: AsyncSession, now: datetime, settings: CleanupSettings) -> int:
    """Delete messages whose session no longer exists in the live table."""
    result = await db.execute(
        delete(ChatMessage)
        .where(ChatMessage.session_id.not_in(select(ChatSession.session_id)))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def clean_stale_presence(db: AsyncSession, now: datetime, settings: CleanupSettings) -> int:
    # Presence decay is handled by PresenceManager every minute
    return 0


async def purge_expired_ended_sessions(db: AsyncSession, now: datetime, settings: CleanupSettings) -> int:
    """Delete sessions that ended normally more than ``ended_purge_days`` ago."""
    cutoff = now - timedelta(days=settings.ended_purge_days)
    result = await db.execute(
        delete(ChatSession)
        .where(
            ChatSession.status == ChatSessionStatus.ENDED.value,
            ChatSession.ended_at < cutoff,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


@log_database_operation("chat session archival")
async def archive_completed_sessions(db: AsyncSession, now: datetime, settings: CleanupSettings) -> int:
    """
    Move ended/abandoned sessions older than ``archive_after_days`` to the archive.

    Copy and delete share the caller's transaction, so a session is either
    still live or archived, never both and never neither. A session already
    present in the archive is only removed from the live table.
    """
    cutoff = now - timedelta(days=settings.archive_after_days)
    result = await db.execute(
        select(ChatSession).where(
            ChatSession.status.in_(CLOSED_CHAT_STATUSES),
            ChatSession.created_at < cutoff,
        )
    )
    sessions = list(result.scalars().all())
    if not sessions:
        return 0

    session_ids = [session.session_id for session in sessions]

    already_archived = set(
        (
            await db.execute(
                select(ChatSessionArchive.session_id).where(
                    ChatSessionArchive.session_id.in_(session_ids)
                )
            )
        ).scalars()
    )

    message_counts: Dict[str, int] = dict(
        (
            await db.execute(
                select(ChatMessage.session_id, func.count(ChatMessage.id))
                .where(ChatMessage.session_id.in_(session_ids))
                .group_by(ChatMessage.session_id)
            )
        ).all()
    )

    archived = 0
    for session in sessions:
        if session.session_id in already_archived:
            logger.warning(f"Session {session.session_id} already archived, removing live copy only")
            continue

        duration_minutes = None
        if session.ended_at is not None:
            duration_minutes = int((session.ended_at - session.created_at).total_seconds() // 60)

        db.add(
            ChatSessionArchive(
                session_id=session.session_id,
                visitor_name=session.visitor_name,
                visitor_email=session.visitor_email,
                visitor_phone=session.visitor_phone,
                visitor_department=session.visitor_department,
                session_data=session.session_data,
                status=session.status,
                assigned_to=session.assigned_to,
                queue_position=session.queue_position,
                created_at=session.created_at,
                ended_at=session.ended_at,
                archived_at=now,
                message_count=message_counts.get(session.session_id, 0),
                duration_minutes=duration_minutes,
            )
        )
        archived += 1

    await db.flush()
    await db.execute(
        delete(ChatSession)
        .where(ChatSession.id.in_([session.id for session in sessions]))
        .execution_options(synchronize_session=False)
    )
    return archived


# (name, stats column, step) in execution order
CLEANUP_STEPS: List[tuple] = [
    ("abandoned_sessions", "abandoned_sessions", abandon_stale_sessions),
    ("orphaned_messages", "orphaned_messages", delete_orphaned_messages),
    ("stale_presence", "stale_presence", clean_stale_presence),
    ("expired_ended_sessions", "expired_recovery", purge_expired_ended_sessions),
    ("archived_sessions", "archived_sessions", archive_completed_sessions),
]


@dataclass
class CleanupStepResult:
    name: str
    stats_column: str
    count: int = 0
    error: Optional[str] = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class CleanupReport:
    """Outcome of one nightly run."""

    cleanup_date: date
    started_at: datetime
    steps: List[CleanupStepResult] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def counts(self) -> Dict[str, int]:
        return {step.stats_column: step.count for step in self.steps}

    @property
    def total_items_cleaned(self) -> int:
        return sum(step.count for step in self.steps)

    @property
    def errors(self) -> Dict[str, str]:
        return {step.name: step.error for step in self.steps if step.error}


async def run_step(
    session_factory: async_sessionmaker[AsyncSession],
    name: str,
    stats_column: str,
    step: CleanupStep,
    now: datetime,
    settings: CleanupSettings,
) -> CleanupStepResult:
    """Run one step in its own transaction; a failure yields a zero count."""
    result = CleanupStepResult(name=name, stats_column=stats_column)
    started = time.monotonic()

    async def _execute() -> int:
        async with session_scope(session_factory) as db:
            return await step(db, now, settings)

    try:
        if settings.step_timeout_seconds:
            result.count = await asyncio.wait_for(_execute(), timeout=settings.step_timeout_seconds)
        else:
            result.count = await _execute()
    except asyncio.TimeoutError:
        result.error = f"timed out after {settings.step_timeout_seconds}s"
        logger.error(f"Cleanup step {name} {result.error}")
    except Exception as e:
        result.error = f"{type(e).__name__}: {e}"
        logger.error(f"Cleanup step {name} failed: {e}", exc_info=True)

    result.duration_ms = int((time.monotonic() - started) * 1000)
    if result.count:
        logger.info(f"Cleanup step {name}: {result.count} item(s)")
    return result


async def run_cleanup(
    session_factory: async_sessionmaker[AsyncSession],
    settings: CleanupSettings,
    now: Optional[datetime] = None,
    steps: Optional[List[tuple]] = None,
) -> CleanupReport:
    """Run every cleanup step in order, then upsert the stats row for the local date."""
    now = now or utc_now()
    started = time.monotonic()
    report = CleanupReport(
        cleanup_date=local_date(settings.timezone, now),
        started_at=now,
    )

    for name, stats_column, step in steps or CLEANUP_STEPS:
        report.steps.append(await run_step(session_factory, name, stats_column, step, now, settings))

    report.duration_ms = int((time.monotonic() - started) * 1000)

    try:
        await save_cleanup_stats(session_factory, report)
    except Exception as e:
        logger.error(f"Failed to update cleanup statistics: {e}", exc_info=True)

    return report


def _dialect_insert(db: AsyncSession):
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


@critical_database_operation("upsert chat cleanup stats")
async def save_cleanup_stats(
    session_factory: async_sessionmaker[AsyncSession], report: CleanupReport
) -> None:
    """Insert or replace the stats row for ``report.cleanup_date``."""
    values = {
        "cleanup_date": report.cleanup_date,
        "abandoned_sessions": 0,
        "orphaned_messages": 0,
        "stale_presence": 0,
        "expired_recovery": 0,
        "archived_sessions": 0,
        **report.counts,
        "total_items_cleaned": report.total_items_cleaned,
        "cleanup_duration_ms": report.duration_ms,
        "created_at": utc_now(),
    }

    async with session_scope(session_factory) as db:
        insert = _dialect_insert(db)
        stmt = insert(ChatCleanupStats).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["cleanup_date"],
            set_={key: stmt.excluded[key] for key in values if key != "cleanup_date"},
        )
        await db.execute(stmt)


@safe_database_query("read chat cleanup history", default_return=[])
async def get_cleanup_history(
    session_factory: async_sessionmaker[AsyncSession],
    since: date,
) -> List[ChatCleanupStats]:
    """Stats rows on or after ``since``, newest first."""
    async with session_scope(session_factory) as db:
        result = await db.execute(
            select(ChatCleanupStats)
            .where(ChatCleanupStats.cleanup_date >= since)
            .order_by(ChatCleanupStats.cleanup_date.desc())
        )
        return list(result.scalars().all())
