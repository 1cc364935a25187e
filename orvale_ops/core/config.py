"""
Core configuration module.
Organized into separate settings classes for better maintainability.

These are process-level settings read from the environment / .env file.
Runtime settings edited by administrators (backup retention, presence
thresholds, ...) live in the ``system_settings`` table and are read through
``services.settings_service``; the values here are only their fallbacks.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url


class APISettings(BaseSettings):
    """API configuration settings."""

    app_name: str = "Orvale Operations"
    app_version: str = "1.0.0"
    debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class DatabaseSettings(BaseSettings):
    """Database configuration settings.

    The helpdesk runs on a single SQLite file; the backup service snapshots
    that file directly, so ``sqlite_path`` must resolve for backups to work.
    """

    url: str = "sqlite+aiosqlite:///./orvale_tickets.db"
    echo: bool = False
    busy_timeout: int = Field(
        default=30,
        ge=1,
        description="Seconds a writer waits on a locked SQLite database",
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def sqlite_path(self) -> Optional[Path]:
        """Absolute path of the live SQLite file, or None for other backends."""
        url = make_url(self.url)
        if not url.get_backend_name().startswith("sqlite"):
            return None
        if not url.database or url.database == ":memory:":
            return None
        return Path(url.database).resolve()


class BackupDefaults(BaseSettings):
    """Fallback backup settings used when the settings store has no row."""

    auto_backup_enabled: bool = True
    retention_days: int = Field(default=30, ge=1)
    location: str = "./backups"
    interval_hours: float = Field(default=24, gt=0)
    app_root: str = Field(
        default_factory=os.getcwd,
        description="Directory relative backup locations are resolved against",
    )

    model_config = SettingsConfigDict(
        env_prefix="BACKUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class CleanupSettings(BaseSettings):
    """Nightly chat retention settings."""

    timezone: str = "America/Los_Angeles"
    abandoned_after_hours: int = Field(default=24, ge=1)
    ended_purge_days: int = Field(default=7, ge=1)
    archive_after_days: int = Field(default=30, ge=1)
    step_timeout_seconds: Optional[float] = Field(
        default=300,
        description="Upper bound for a single cleanup step (None disables the bound)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CLEANUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class PresenceDefaults(BaseSettings):
    """Fallback presence thresholds used when the settings store has no row."""

    idle_timeout_minutes: int = 10
    away_timeout_minutes: int = 30
    offline_timeout_minutes: int = 60
    enable_auto_updates: bool = True
    tick_seconds: float = Field(default=60, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="PRESENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class SchedulerSettings(BaseSettings):
    """Background scheduler master switch."""

    enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = "INFO"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_size: int = 10_485_760  # 10MB
    backup_count: int = 5
    enable_console_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def log_config(self) -> dict:
        """Get logging configuration."""
        return {
            "level": self.level,
            "enable_file_logging": self.enable_file_logging,
            "log_dir": self.log_dir,
            "max_file_size": self.max_size,
            "backup_count": self.backup_count,
            "enable_console": self.enable_console_logging,
        }


class Settings(BaseSettings):
    """Main application settings."""

    api: APISettings = APISettings()
    database: DatabaseSettings = DatabaseSettings()
    backup: BackupDefaults = BackupDefaults()
    cleanup: CleanupSettings = CleanupSettings()
    presence: PresenceDefaults = PresenceDefaults()
    scheduler: SchedulerSettings = SchedulerSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
