"""
Database configuration.

Async SQLAlchemy engine over the helpdesk SQLite file (aiosqlite driver).
Services never import the module-level engine directly; they receive a
session factory so tests can point them at an isolated database.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.exc import PendingRollbackError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from .config import DatabaseSettings, settings

logger = logging.getLogger(__name__)


def create_engine_from_settings(db_settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine; SQLite connections get a busy timeout so writers queue instead of failing."""
    is_sqlite = db_settings.url.startswith("sqlite")
    connect_args = {"timeout": db_settings.busy_timeout} if is_sqlite else {}

    async_engine = create_async_engine(
        db_settings.url,
        echo=db_settings.echo,
        future=True,
        connect_args=connect_args,
    )

    if is_sqlite:

        @event.listens_for(async_engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute(f"PRAGMA busy_timeout = {db_settings.busy_timeout * 1000}")
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return async_engine


def create_session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory the services are constructed with."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent additional queries after commit
        autoflush=False,
    )


engine = create_engine_from_settings(settings.database)
AsyncSessionLocal = create_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.
    Commits on success, rolls back on error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            if session.in_transaction():
                try:
                    await session.commit()
                except PendingRollbackError:
                    await session.rollback()
                    raise
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Open an isolated session for one unit of background work.

    Commits on clean exit and rolls back if the block raises.

    Example:
        async with session_scope(self.session_factory) as db:
            await db.execute(stmt)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(async_engine: AsyncEngine = engine) -> None:
    """
    Create the tables owned by the operations layer.
    Safe to call on every startup; existing tables are left untouched.
    """
    # Register table metadata
    from orvale_ops.db import models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db(async_engine: AsyncEngine = engine) -> None:
    """
    Close database connections.
    Should be called on application shutdown.
    """
    await async_engine.dispose()
