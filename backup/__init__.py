"""MySQL backup creation and rotation."""
from __future__ import annotations

from .errors import BackupError, ConfigurationError, DeletionError, ScanError
from .retention import apply_retention
from .types import ArtifactKind, BackupItem, RetentionConfig, RetentionSummary

__all__ = [
    "ArtifactKind",
    "BackupError",
    "BackupItem",
    "ConfigurationError",
    "DeletionError",
    "RetentionConfig",
    "RetentionSummary",
    "ScanError",
    "apply_retention",
]
