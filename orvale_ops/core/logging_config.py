"""
Logging configuration for the operations layer.

File handlers sit behind a QueueHandler so log writes never block the event
loop; a QueueListener thread does the file I/O.
"""

import atexit
import logging
import logging.handlers
import queue
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel


# Global queue listener for cleanup
_queue_listener: Optional[logging.handlers.QueueListener] = None


class LogConfig(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_console: bool = True


class ColoredFormatter(logging.Formatter):
    """Formatter with colored level names for console output."""

    grey = "\x1b[38;21m"
    yellow = "\x1b[33;21m"
    red = "\x1b[31;21m"
    bold_red = "\x1b[31;1m"
    blue = "\x1b[34;21m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: blue,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    def format(self, record):
        # Work on a copy so queued file handlers never see color codes
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelno, self.grey)
        record.levelname = f"{color}{record.levelname}{self.reset}"
        return f"{super().format(record)}{self.reset}"


def _rotating_handler(config: LogConfig, filename: str, formatter: logging.Formatter):
    handler = logging.handlers.RotatingFileHandler(
        Path(config.log_dir) / filename,
        maxBytes=config.max_file_size,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, config.level.upper()))
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """Setup application logging.

    - console handler is attached directly (stdout does not block)
    - app.log receives everything
    - maintenance.log receives only the ``maintenance.*`` loggers
    """
    global _queue_listener

    if config is None:
        config = LogConfig()

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    if config.enable_file_logging:
        Path(config.log_dir).mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))
    root_logger.handlers.clear()

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, config.level.upper()))
        console_handler.setFormatter(
            ColoredFormatter(
                fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
                datefmt=config.date_format,
            )
        )
        root_logger.addHandler(console_handler)

    file_handlers = []

    if config.enable_file_logging:
        file_formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt=config.date_format,
        )
        file_handlers.append(_rotating_handler(config, "app.log", file_formatter))

        maintenance_handler = _rotating_handler(config, "maintenance.log", file_formatter)
        maintenance_handler.addFilter(logging.Filter("maintenance"))
        file_handlers.append(maintenance_handler)

    if file_handlers:
        log_queue = queue.Queue(-1)
        root_logger.addHandler(logging.handlers.QueueHandler(log_queue))

        # respect_handler_level=True keeps per-handler levels and filters
        _queue_listener = logging.handlers.QueueListener(
            log_queue,
            *file_handlers,
            respect_handler_level=True,
        )
        _queue_listener.start()
        atexit.register(stop_queue_listener)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def stop_queue_listener() -> None:
    """Stop the queue listener gracefully.

    Called automatically on exit via atexit.
    Can also be called manually during shutdown.
    """
    global _queue_listener

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None


class MaintenanceLogger:
    """Structured logger for background maintenance operations."""

    def __init__(self, name: str = "operations"):
        self.logger = logging.getLogger(f"maintenance.{name}")

    def scheduler_started(self, scheduler: str, detail: str) -> None:
        self.logger.info(f"Scheduler started | Scheduler: {scheduler} | {detail}")

    def scheduler_stopped(self, scheduler: str) -> None:
        self.logger.info(f"Scheduler stopped | Scheduler: {scheduler}")

    def backup_created(
        self, filename: str, size_bytes: int, backup_type: str, triggered_by: str
    ) -> None:
        """Log a completed backup."""
        size_mb = round(size_bytes / 1024 / 1024, 2)
        self.logger.info(
            f"Backup created | File: {filename} | Type: {backup_type} | "
            f"Size: {size_mb} MB | Triggered by: {triggered_by}"
        )

    def backup_deleted(self, filename: str, created_at: datetime) -> None:
        age_days = (datetime.now(created_at.tzinfo) - created_at).days
        self.logger.info(f"Backup deleted | File: {filename} | Age: {age_days} days")

    def backup_restored(self, filename: str, safety_backup: str, restored_by: str) -> None:
        self.logger.warning(
            f"Database restored | From: {filename} | Safety backup: {safety_backup} | "
            f"Restored by: {restored_by}"
        )

    def cleanup_summary(self, stats: dict, duration_ms: int) -> None:
        """Log the nightly chat cleanup summary."""
        counts = " | ".join(f"{key}: {value}" for key, value in stats.items())
        self.logger.info(f"Chat cleanup summary | {counts} | Duration: {duration_ms} ms")

    def presence_changed(self, user_id: str, old_status: str, new_status: str, minutes_inactive: int) -> None:
        self.logger.debug(
            f"Presence changed | User: {user_id} | {old_status} -> {new_status} | "
            f"Inactive: {minutes_inactive} min"
        )

    def error_occurred(self, operation: str, error: str) -> None:
        self.logger.error(f"Maintenance error | Operation: {operation} | Error: {error}")
