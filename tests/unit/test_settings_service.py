"""
Unit tests for the runtime settings store.

Tests:
- Defaults when no rows exist
- Stored values override defaults
- Malformed and invalid values are ignored
"""

import pytest

from orvale_ops.core.config import BackupDefaults, PresenceDefaults
from orvale_ops.core.exceptions import SettingsError
from orvale_ops.db.models import SystemSetting


class TestBackupSettings:
    """Tests for reading backup settings."""

    @pytest.mark.asyncio
    async def test_defaults_when_empty(self, settings_service):
        """Test that missing rows fall back to the defaults."""
        settings = await settings_service.get_backup_settings(
            BackupDefaults(auto_backup_enabled=False, retention_days=14, location="/srv/backups")
        )

        assert settings.auto_backup_enabled is False
        assert settings.backup_retention_days == 14
        assert settings.backup_location == "/srv/backups"

    @pytest.mark.asyncio
    async def test_stored_values_override(self, settings_service):
        """Test that stored values win over defaults."""
        await settings_service.set_value("autoBackupEnabled", False)
        await settings_service.set_value("backupRetentionDays", 7)
        await settings_service.set_value("backupLocation", "./nightly")

        settings = await settings_service.get_backup_settings()

        assert settings.auto_backup_enabled is False
        assert settings.backup_retention_days == 7
        assert settings.backup_location == "./nightly"

    @pytest.mark.asyncio
    async def test_retention_coerced(self, settings_service):
        """Test that a numeric string is read as whole days."""
        await settings_service.set_value("backupRetentionDays", "45")

        assert (await settings_service.get_backup_settings()).backup_retention_days == 45

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored", [0, -3, "soon", None, True])
    async def test_invalid_retention_keeps_configured_default(self, settings_service, stored):
        """Test that an unusable retention value falls back to the process default."""
        await settings_service.set_value("backupRetentionDays", stored)

        settings = await settings_service.get_backup_settings(BackupDefaults(retention_days=14))

        assert settings.backup_retention_days == 14

    @pytest.mark.asyncio
    async def test_malformed_json_ignored(self, settings_service, db_session):
        """Test that a value that is not JSON keeps the default."""
        db_session.add(SystemSetting(setting_key="backupRetentionDays", setting_value="{not json"))
        await db_session.commit()

        settings = await settings_service.get_backup_settings()

        assert settings.backup_retention_days == 30


class TestPresenceSettings:
    """Tests for reading presence settings."""

    @pytest.mark.asyncio
    async def test_defaults(self, settings_service):
        """Test the documented default thresholds."""
        settings = await settings_service.get_presence_settings(PresenceDefaults())

        assert settings.idle_timeout_minutes == 10
        assert settings.away_timeout_minutes == 30
        assert settings.offline_timeout_minutes == 60
        assert settings.enable_auto_presence_updates is True

    @pytest.mark.asyncio
    async def test_invalid_value_dropped_others_kept(self, settings_service):
        """Test that one invalid key does not discard the valid ones."""
        await settings_service.set_value("idleTimeoutMinutes", 5)
        await settings_service.set_value("awayTimeoutMinutes", {"minutes": 20})

        settings = await settings_service.get_presence_settings()

        assert settings.idle_timeout_minutes == 5
        assert settings.away_timeout_minutes == 30


class TestSetValue:
    """Tests for writing settings."""

    @pytest.mark.asyncio
    async def test_overwrite(self, settings_service):
        """Test that writing twice keeps the latest value."""
        await settings_service.set_value("idleTimeoutMinutes", 5, updated_by="admin")
        await settings_service.set_value("idleTimeoutMinutes", 15, updated_by="admin")

        values = await settings_service.get_values(["idleTimeoutMinutes"])

        assert values == {"idleTimeoutMinutes": 15}

    @pytest.mark.asyncio
    async def test_not_serializable(self, settings_service):
        """Test that non-JSON values are rejected."""
        with pytest.raises(SettingsError):
            await settings_service.set_value("backupLocation", object())
