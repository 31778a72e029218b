"""Error hierarchy for backup operations."""
from __future__ import annotations


class BackupError(RuntimeError):
    """Base exception for backup related failures."""


class ConfigurationError(BackupError):
    """Raised when settings would make a run unsafe to start."""


class ScanError(BackupError):
    """Raised when the backup root cannot be listed."""


class DeletionError(BackupError):
    """Raised when a single backup artifact could not be removed."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"cannot delete backup {name}: {reason}")
        self.name = name
        self.reason = reason


class LockError(BackupError):
    """Raised when another run holds a fresh lock."""


class BackupCommandError(BackupError):
    """Raised when innobackupex did not report a completed backup."""


class CompressionError(BackupError):
    """Raised when compressing a fresh backup directory fails."""


__all__ = [
    "BackupCommandError",
    "BackupError",
    "CompressionError",
    "ConfigurationError",
    "DeletionError",
    "LockError",
    "ScanError",
]
