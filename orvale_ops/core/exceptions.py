"""
Exceptions raised by the background operations layer.

Only caller-facing failures get a dedicated type; per-item and per-cycle
failures are logged where they happen and never leave their scheduler.
"""


class OperationsError(Exception):
    """Base class for errors surfaced to callers of the operations layer."""


class BackupError(OperationsError):
    """A backup could not be created."""


class RestoreError(OperationsError):
    """A restore could not be completed."""


class BackupNotFoundError(RestoreError):
    """The requested backup file does not exist in the backup directory."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Backup file not found: {filename}")


class InvalidBackupNameError(OperationsError):
    """A filename does not follow the backup naming convention."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Not a backup file name: {filename}")


class SettingsError(OperationsError):
    """A runtime setting could not be read or written."""
