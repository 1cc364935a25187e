"""
Runtime settings store access.

Administrators edit backup and presence settings at runtime; they are kept
as JSON text in ``system_settings`` and parsed here into typed models. A
missing row falls back to the process-level default, a malformed value is
logged and ignored.
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orvale_ops.core.config import BackupDefaults, PresenceDefaults
from orvale_ops.core.database import session_scope
from orvale_ops.core.decorators import critical_database_operation, safe_database_query
from orvale_ops.core.exceptions import SettingsError
from orvale_ops.core.time_utils import utc_now
from orvale_ops.db.models import SystemSetting

logger = logging.getLogger(__name__)

BACKUP_SETTING_KEYS = ("autoBackupEnabled", "backupRetentionDays", "backupLocation")
PRESENCE_SETTING_KEYS = (
    "idleTimeoutMinutes",
    "awayTimeoutMinutes",
    "offlineTimeoutMinutes",
    "enableAutoPresenceUpdates",
)


class BackupSettings(BaseModel):
    """Backup settings as stored under their camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    auto_backup_enabled: bool = Field(default=True, alias="autoBackupEnabled")
    backup_retention_days: int = Field(default=30, alias="backupRetentionDays", ge=1)
    backup_location: str = Field(default="./backups", alias="backupLocation")

    @field_validator("backup_retention_days", mode="before")
    @classmethod
    def coerce_retention_days(cls, v):
        # Stored values may be strings ("30") or floats (30.0)
        if isinstance(v, bool):
            raise ValueError("backupRetentionDays must be a whole number of days")
        try:
            return int(v)
        except (TypeError, ValueError) as e:
            raise ValueError(f"backupRetentionDays must be a whole number of days, got {v!r}") from e

    @field_validator("backup_location", mode="before")
    @classmethod
    def default_empty_location(cls, v):
        return str(v) if v else "./backups"

    @classmethod
    def from_defaults(cls, defaults: BackupDefaults) -> "BackupSettings":
        return cls(
            auto_backup_enabled=defaults.auto_backup_enabled,
            backup_retention_days=defaults.retention_days,
            backup_location=defaults.location,
        )


class PresenceSettings(BaseModel):
    """Presence thresholds as stored under their camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    idle_timeout_minutes: int = Field(default=10, alias="idleTimeoutMinutes", ge=0)
    away_timeout_minutes: int = Field(default=30, alias="awayTimeoutMinutes", ge=0)
    offline_timeout_minutes: int = Field(default=60, alias="offlineTimeoutMinutes", ge=0)
    enable_auto_presence_updates: bool = Field(default=True, alias="enableAutoPresenceUpdates")

    @classmethod
    def from_defaults(cls, defaults: PresenceDefaults) -> "PresenceSettings":
        return cls(
            idle_timeout_minutes=defaults.idle_timeout_minutes,
            away_timeout_minutes=defaults.away_timeout_minutes,
            offline_timeout_minutes=defaults.offline_timeout_minutes,
            enable_auto_presence_updates=defaults.enable_auto_updates,
        )


class SettingsService:
    """Reads and writes the ``system_settings`` key/JSON store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @safe_database_query("read system settings", default_return={})
    async def get_values(self, keys: Iterable[str]) -> Dict[str, Any]:
        """
        Return the decoded values for ``keys`` that exist in the store.

        Rows whose value is not valid JSON are skipped with a warning.
        """
        keys = list(keys)
        async with session_scope(self.session_factory) as db:
            result = await db.execute(
                select(SystemSetting.setting_key, SystemSetting.setting_value).where(
                    SystemSetting.setting_key.in_(keys)
                )
            )
            rows = result.all()

        values: Dict[str, Any] = {}
        for key, raw_value in rows:
            try:
                values[key] = json.loads(raw_value)
            except (TypeError, json.JSONDecodeError):
                logger.warning(f"Failed to parse setting {key}: {raw_value!r}")
        return values

    @critical_database_operation("write system setting")
    async def set_value(self, key: str, value: Any, updated_by: Optional[str] = None) -> None:
        """Insert or replace a setting, storing ``value`` as JSON."""
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise SettingsError(f"Setting {key} is not JSON serializable: {e}") from e

        async with session_scope(self.session_factory) as db:
            row = await db.get(SystemSetting, key)
            if row is None:
                db.add(SystemSetting(setting_key=key, setting_value=encoded, updated_by=updated_by))
            else:
                row.setting_value = encoded
                row.updated_at = utc_now()
                row.updated_by = updated_by

    async def get_backup_settings(self, defaults: Optional[BackupDefaults] = None) -> BackupSettings:
        base = BackupSettings.from_defaults(defaults or BackupDefaults())
        stored = await self.get_values(BACKUP_SETTING_KEYS)
        return self._merge(base, stored)

    async def get_presence_settings(self, defaults: Optional[PresenceDefaults] = None) -> PresenceSettings:
        base = PresenceSettings.from_defaults(defaults or PresenceDefaults())
        stored = await self.get_values(PRESENCE_SETTING_KEYS)
        return self._merge(base, stored)

    @staticmethod
    def _merge(base: BaseModel, stored: Dict[str, Any]):
        """Overlay stored values onto ``base`` one key at a time, dropping invalid ones."""
        merged = base.model_dump(by_alias=True)
        for key, value in stored.items():
            candidate = {**merged, key: value}
            try:
                type(base).model_validate(candidate)
            except ValidationError as e:
                logger.warning(f"Ignoring invalid setting {key}={value!r}: {e.errors()[0]['msg']}")
                continue
            merged = candidate
        return type(base).model_validate(merged)
