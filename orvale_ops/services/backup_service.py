"""
Backup Service for the helpdesk SQLite database.

Handles snapshot creation, listing, retention cleanup and restore:
- snapshots use SQLite's online backup API and fall back to a raw file copy
- every successful snapshot is recorded in ``backup_log``
- restore always takes a fresh manual safety backup before touching the live file
"""

import asyncio
import logging
import os
import shutil
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from orvale_ops.core.config import BackupDefaults
from orvale_ops.core.database import session_scope
from orvale_ops.core.decorators import handle_database_exceptions, safe_database_query
from orvale_ops.core.exceptions import (
    BackupError,
    BackupNotFoundError,
    InvalidBackupNameError,
    RestoreError,
)
from orvale_ops.core.logging_config import MaintenanceLogger
from orvale_ops.db.enums import BackupType
from orvale_ops.db.models import BackupLog
from orvale_ops.services.settings_service import BackupSettings, SettingsService

logger = logging.getLogger(__name__)

BACKUP_FILENAME_PREFIX = "orvale_backup_"
BACKUP_FILENAME_SUFFIX = ".db"


@dataclass
class BackupRecord:
    """A backup file on disk."""

    filename: str
    path: Path
    size: int
    created_at: datetime
    type: BackupType

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "path": str(self.path),
            "size": self.size,
            "created_at": self.created_at.isoformat(),
            "type": self.type.value,
        }


@dataclass
class BackupCleanupResult:
    deleted_count: int = 0
    deleted: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class BackupStats:
    total_backups: int = 0
    total_size: int = 0
    manual_backups: int = 0
    automatic_backups: int = 0
    oldest_backup: Optional[datetime] = None
    newest_backup: Optional[datetime] = None


def classify_backup_type(filename: str) -> BackupType:
    """Backup type is encoded in the file name."""
    return BackupType.MANUAL if f"_{BackupType.MANUAL.value}_" in filename else BackupType.AUTOMATIC


def is_backup_filename(filename: str) -> bool:
    return (
        filename.startswith(BACKUP_FILENAME_PREFIX)
        and filename.endswith(BACKUP_FILENAME_SUFFIX)
        and Path(filename).name == filename
    )


def _sqlite_online_backup(source: Path, destination: Path) -> None:
    """Consistent snapshot through the SQLite backup API (runs in a worker thread)."""
    src = sqlite3.connect(f"{source.as_uri()}?mode=ro", uri=True)
    try:
        dst = sqlite3.connect(str(destination))
        try:
            src.backup(dst)
        finally:
            dst.close()
    finally:
        src.close()


class BackupService:
    """Create, list, retain and restore database snapshots."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings_service: SettingsService,
        db_path: Optional[Path],
        defaults: Optional[BackupDefaults] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        """
        Args:
            session_factory: Session factory for the audit log
            settings_service: Source of the runtime backup settings
            db_path: Live SQLite database file (None when not on SQLite)
            defaults: Fallback settings and the app root for relative locations
            engine: Engine whose pooled connections are released before a restore
        """
        self.session_factory = session_factory
        self.settings_service = settings_service
        self.db_path = Path(db_path) if db_path else None
        self.defaults = defaults or BackupDefaults()
        self.engine = engine
        self.maintenance_logger = MaintenanceLogger("backup")

    # ------------------------------------------------------------------
    # Settings and paths
    # ------------------------------------------------------------------

    async def get_backup_settings(self) -> BackupSettings:
        return await self.settings_service.get_backup_settings(self.defaults)

    async def get_backup_directory(self) -> Path:
        """Resolve the configured location; relative paths hang off the app root."""
        settings = await self.get_backup_settings()
        location = Path(settings.backup_location).expanduser()
        if location.is_absolute():
            return location
        return (Path(self.defaults.app_root) / location).resolve()

    async def ensure_backup_directory(self) -> Path:
        backup_dir = await self.get_backup_directory()
        backup_dir.mkdir(parents=True, exist_ok=True)
        return backup_dir

    @staticmethod
    def generate_backup_filename(backup_type: BackupType = BackupType.MANUAL) -> str:
        """``orvale_backup_{type}_{timestamp}.db`` with microsecond resolution."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        return f"{BACKUP_FILENAME_PREFIX}{BackupType(backup_type).value}_{timestamp}{BACKUP_FILENAME_SUFFIX}"

    def _resolve_backup_path(self, backup_dir: Path, filename: str) -> Path:
        if not is_backup_filename(filename):
            raise InvalidBackupNameError(filename)
        return backup_dir / filename

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_backup(
        self,
        backup_type: BackupType = BackupType.MANUAL,
        triggered_by: Optional[str] = None,
    ) -> BackupRecord:
        """
        Snapshot the live database into the backup directory.

        Raises:
            BackupError: If neither the online backup nor the file copy succeeded
        """
        backup_type = BackupType(backup_type)
        triggered_by = triggered_by or "system"

        if self.db_path is None:
            raise BackupError("Backups are only supported for SQLite databases")

        try:
            backup_dir = await self.ensure_backup_directory()
        except OSError as e:
            raise BackupError(f"Backup directory is not usable: {e}") from e

        filename = self.generate_backup_filename(backup_type)
        backup_path = backup_dir / filename

        logger.info(f"Starting {backup_type.value} database backup: {filename} (triggered by {triggered_by})")

        await self._snapshot(backup_path)

        try:
            size = backup_path.stat().st_size
        except OSError as e:
            backup_path.unlink(missing_ok=True)
            raise BackupError(f"Backup file vanished after creation: {e}") from e

        record = BackupRecord(
            filename=filename,
            path=backup_path,
            size=size,
            created_at=datetime.now(timezone.utc),
            type=backup_type,
        )

        await self._log_backup(record, triggered_by)
        self.maintenance_logger.backup_created(filename, size, backup_type.value, triggered_by)
        return record

    async def _snapshot(self, backup_path: Path) -> None:
        try:
            await asyncio.to_thread(_sqlite_online_backup, self.db_path, backup_path)
            logger.debug("Backup written with the SQLite online backup API")
            return
        except Exception as native_error:
            backup_path.unlink(missing_ok=True)
            logger.info(f"SQLite online backup failed ({native_error}), falling back to file copy")

            try:
                # copyfile, not copy2: a backup's mtime is its creation time
                await asyncio.to_thread(shutil.copyfile, self.db_path, backup_path)
                logger.debug("Backup written with a raw file copy")
            except Exception as copy_error:
                backup_path.unlink(missing_ok=True)
                raise BackupError(
                    f"Backup creation failed: online backup error: {native_error}; "
                    f"file copy error: {copy_error}"
                ) from copy_error

    @handle_database_exceptions("record backup audit entry", reraise=False, log_level="warning")
    async def _log_backup(self, record: BackupRecord, triggered_by: str) -> None:
        # The snapshot itself succeeded; an audit failure is logged, not raised
        async with session_scope(self.session_factory) as db:
            db.add(
                BackupLog(
                    filename=record.filename,
                    file_path=str(record.path),
                    file_size=record.size,
                    backup_type=record.type.value,
                    triggered_by=triggered_by,
                    created_at=record.created_at.replace(tzinfo=None),
                )
            )

    # ------------------------------------------------------------------
    # List / stats / history
    # ------------------------------------------------------------------

    async def list_backups(self) -> List[BackupRecord]:
        """All backup files, newest first. Unreadable files are skipped."""
        backup_dir = await self.get_backup_directory()
        if not backup_dir.is_dir():
            return []

        try:
            names = [entry.name for entry in backup_dir.iterdir()]
        except OSError as e:
            logger.error(f"Failed to list backups: {e}")
            return []

        backups: List[BackupRecord] = []
        for name in names:
            if not is_backup_filename(name):
                continue

            path = backup_dir / name
            try:
                stat_result = path.stat()
            except OSError as e:
                logger.warning(f"Failed to get stats for backup file {name}: {e}")
                continue

            backups.append(
                BackupRecord(
                    filename=name,
                    path=path,
                    size=stat_result.st_size,
                    created_at=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
                    type=classify_backup_type(name),
                )
            )

        backups.sort(key=lambda backup: backup.created_at, reverse=True)
        return backups

    async def get_backup_stats(self) -> BackupStats:
        backups = await self.list_backups()
        if not backups:
            return BackupStats()

        return BackupStats(
            total_backups=len(backups),
            total_size=sum(backup.size for backup in backups),
            manual_backups=sum(1 for backup in backups if backup.type == BackupType.MANUAL),
            automatic_backups=sum(1 for backup in backups if backup.type == BackupType.AUTOMATIC),
            oldest_backup=backups[-1].created_at,
            newest_backup=backups[0].created_at,
        )

    @safe_database_query("read backup history", default_return=[])
    async def get_backup_history(self, limit: int = 50) -> List[BackupLog]:
        async with session_scope(self.session_factory) as db:
            result = await db.execute(
                select(BackupLog).order_by(BackupLog.created_at.desc(), BackupLog.id.desc()).limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Retention / delete
    # ------------------------------------------------------------------

    async def cleanup_old_backups(self) -> BackupCleanupResult:
        """
        Delete every backup created strictly before now - retention days.

        A failed delete is recorded in ``errors`` and the remaining files are
        still processed.
        """
        settings = await self.get_backup_settings()
        backups = await self.list_backups()
        cutoff = datetime.now(timezone.utc) - timedelta(days=settings.backup_retention_days)

        logger.info(
            f"Starting backup cleanup | Total: {len(backups)} | "
            f"Retention: {settings.backup_retention_days} days | Cutoff: {cutoff.isoformat()}"
        )

        result = BackupCleanupResult()
        for backup in backups:
            if backup.created_at >= cutoff:
                continue
            try:
                backup.path.unlink()
            except OSError as e:
                message = f"Failed to delete {backup.filename}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue

            result.deleted.append(backup.filename)
            self.maintenance_logger.backup_deleted(backup.filename, backup.created_at)

        result.deleted_count = len(result.deleted)
        logger.info(
            f"Backup cleanup completed | Deleted: {result.deleted_count} | Errors: {len(result.errors)}"
        )
        return result

    async def delete_backup(self, filename: str) -> None:
        """Delete one backup by name."""
        backup_dir = await self.get_backup_directory()
        backup_path = self._resolve_backup_path(backup_dir, filename)
        try:
            backup_path.unlink()
        except FileNotFoundError as e:
            raise BackupNotFoundError(filename) from e
        logger.info(f"Deleted backup {filename}")

    # ------------------------------------------------------------------
    # Automatic / restore
    # ------------------------------------------------------------------

    async def perform_automatic_backup(self) -> Optional[BackupRecord]:
        """Create an automatic backup and apply retention; None when disabled."""
        settings = await self.get_backup_settings()
        if not settings.auto_backup_enabled:
            logger.info("Automatic backup is disabled")
            return None

        backup = await self.create_backup(BackupType.AUTOMATIC, "system_scheduler")
        await self.cleanup_old_backups()
        return backup

    async def restore_from_backup(self, filename: str, restored_by: str) -> BackupRecord:
        """
        Replace the live database with ``filename``.

        A manual safety backup of the current database is taken first; if it
        fails the live file is left untouched.

        Returns:
            The safety backup taken before the restore

        Raises:
            BackupNotFoundError: The requested backup does not exist
            RestoreError: The safety backup or the file swap failed
        """
        backup_dir = await self.get_backup_directory()
        backup_path = self._resolve_backup_path(backup_dir, filename)

        if not backup_path.is_file():
            raise BackupNotFoundError(filename)

        try:
            safety_backup = await self.create_backup(BackupType.MANUAL, f"{restored_by}_pre_restore")
        except BackupError as e:
            logger.error(f"Restore from {filename} aborted, safety backup failed: {e}")
            raise RestoreError(f"Restore aborted: safety backup failed: {e}") from e

        logger.info(
            f"Starting database restore from {filename} | Safety backup: {safety_backup.filename} | "
            f"Restored by: {restored_by}"
        )

        try:
            if self.engine is not None:
                # Pooled connections still point at the old file
                await self.engine.dispose()
            await asyncio.to_thread(self._replace_database_file, backup_path)
        except Exception as e:
            logger.error(f"Failed to restore from backup {filename}: {e}", exc_info=True)
            raise RestoreError(f"Restore failed: {e}") from e

        # The safety backup's audit row went to the database that was just replaced
        await self._log_backup(safety_backup, f"{restored_by}_pre_restore")
        self.maintenance_logger.backup_restored(filename, safety_backup.filename, restored_by)
        return safety_backup

    def _replace_database_file(self, backup_path: Path) -> None:
        staging_path = self.db_path.with_name(f"{self.db_path.name}.restore-tmp")
        try:
            shutil.copy2(backup_path, staging_path)
            os.replace(staging_path, self.db_path)
        finally:
            staging_path.unlink(missing_ok=True)

        for suffix in ("-wal", "-shm", "-journal"):
            self.db_path.with_name(f"{self.db_path.name}{suffix}").unlink(missing_ok=True)
