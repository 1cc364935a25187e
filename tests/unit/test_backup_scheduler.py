"""
Unit tests for the automatic backup scheduler.

Tests:
- Idempotency guard against recent automatic backups
- Disabled automatic backups
- Cycle failures are contained
- start/stop idempotency
"""

import os
import time
from datetime import timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from orvale_ops.core.exceptions import BackupError
from orvale_ops.db.enums import BackupType
from orvale_ops.services.backup_scheduler import BackupScheduler
from orvale_ops.services.settings_service import BackupSettings


def _automatic_backups(backup_dir):
    if not backup_dir.exists():
        return []
    return sorted(p.name for p in backup_dir.iterdir() if "_automatic_" in p.name)


class TestRunBackupCheck:
    """Tests for a single backup cycle."""

    @pytest.mark.asyncio
    async def test_creates_backup_when_none_recent(self, backup_service, backup_dir):
        """Test that the first cycle creates an automatic backup."""
        scheduler = BackupScheduler(backup_service)

        record = await scheduler.run_backup_check()

        assert record is not None
        assert record.type == BackupType.AUTOMATIC
        assert _automatic_backups(backup_dir) == [record.filename]

    @pytest.mark.asyncio
    async def test_skips_when_recent_automatic_exists(self, backup_service, backup_dir):
        """Test that a second cycle within 24h creates nothing."""
        scheduler = BackupScheduler(backup_service)
        await scheduler.run_backup_check()

        assert await scheduler.run_backup_check() is None
        assert len(_automatic_backups(backup_dir)) == 1

    @pytest.mark.asyncio
    async def test_recent_manual_backup_does_not_count(self, backup_service, backup_dir):
        """Test that only automatic backups satisfy the guard."""
        await backup_service.create_backup(BackupType.MANUAL, "admin")
        scheduler = BackupScheduler(backup_service)

        record = await scheduler.run_backup_check()

        assert record is not None
        assert len(_automatic_backups(backup_dir)) == 1

    @pytest.mark.asyncio
    async def test_old_automatic_backup_does_not_count(self, backup_service, backup_dir):
        """Test that an automatic backup older than 24h does not block a new one."""
        scheduler = BackupScheduler(backup_service)
        first = await scheduler.run_backup_check()
        stamp = time.time() - 25 * 3600
        os.utime(first.path, (stamp, stamp))

        second = await scheduler.run_backup_check()

        assert second is not None
        assert len(_automatic_backups(backup_dir)) == 2

    @pytest.mark.asyncio
    async def test_disabled(self, backup_service, settings_service, backup_dir):
        """Test that disabled automatic backups skip the cycle."""
        await settings_service.set_value("autoBackupEnabled", False)
        scheduler = BackupScheduler(backup_service)

        assert await scheduler.run_backup_check() is None
        assert _automatic_backups(backup_dir) == []

    @pytest.mark.asyncio
    async def test_create_failure_contained(self):
        """Test that a failed backup is logged and returns None."""
        service = MagicMock()
        service.get_backup_settings = AsyncMock(return_value=BackupSettings())
        service.list_backups = AsyncMock(return_value=[])
        service.create_backup = AsyncMock(side_effect=BackupError("disk full"))
        service.cleanup_old_backups = AsyncMock()

        scheduler = BackupScheduler(service)

        assert await scheduler.run_backup_check() is None
        service.cleanup_old_backups.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cleanup_failure_contained(self):
        """Test that a failed retention pass does not lose the new backup."""
        created = MagicMock()
        service = MagicMock()
        service.get_backup_settings = AsyncMock(return_value=BackupSettings())
        service.list_backups = AsyncMock(return_value=[])
        service.create_backup = AsyncMock(return_value=created)
        service.cleanup_old_backups = AsyncMock(side_effect=OSError("permission denied"))

        scheduler = BackupScheduler(service)

        assert await scheduler.run_backup_check() is created
        service.create_backup.assert_awaited_once_with(BackupType.AUTOMATIC, "system_scheduler")


class TestLifecycle:
    """Tests for starting and stopping."""

    @pytest.mark.asyncio
    async def test_start_twice_one_job(self):
        """Test that starting twice leaves exactly one job."""
        service = MagicMock()
        service.get_backup_settings = AsyncMock(return_value=BackupSettings(auto_backup_enabled=False))
        aps = AsyncIOScheduler(timezone=timezone.utc)
        scheduler = BackupScheduler(service, interval_hours=24, scheduler=aps)

        assert await scheduler.start() is True
        assert await scheduler.start() is False
        assert len(aps.get_jobs()) == 1

        scheduler.stop()

        assert aps.get_jobs() == []
        assert not scheduler.is_running()
        aps.shutdown(wait=False)

    @pytest.mark.asyncio
    async def test_status(self):
        """Test the status report."""
        service = MagicMock()
        service.get_backup_settings = AsyncMock(return_value=BackupSettings(auto_backup_enabled=False))
        scheduler = BackupScheduler(service, interval_hours=12)

        assert scheduler.get_status() == {"running": False, "interval_hours": 12, "next_run": None}

        await scheduler.start()
        status = scheduler.get_status()
        scheduler.stop()

        assert status["running"] is True
        assert status["next_run"] is not None
