"""Common dataclasses shared across backup modules."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .errors import ConfigurationError


class ArtifactKind(str, enum.Enum):
    """Physical shape of a backup on disk."""

    ARCHIVE = "archive"
    DIRECTORY = "directory"


class ItemState(str, enum.Enum):
    PENDING = "pending"
    EVALUATED = "evaluated"
    KEPT = "kept"
    DELETE_REQUESTED = "delete_requested"
    DELETED = "deleted"
    DELETE_FAILED = "delete_failed"


class Tier(str, enum.Enum):
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"


@dataclass(slots=True)
class BackupItem:
    """One backup artifact found in the backup root.

    ``id`` is the ``YYYY-MM-DD_HH-MM-SS`` timestamp id, ``name`` the actual
    directory entry (``id`` plus an optional ``.tar.<ext>`` suffix).
    """

    name: str
    id: str
    created: datetime
    timestamp: float
    kind: ArtifactKind
    extension: Optional[str] = None
    long_term_period: Optional[str] = None
    is_current: bool = False
    do_not_delete: bool = False
    force_delete: bool = False

    @property
    def is_long_term(self) -> bool:
        return self.long_term_period is not None


# Keyed by directory entry name.
BackupSet = Dict[str, BackupItem]


@dataclass(frozen=True, slots=True)
class RetentionConfig:
    """Immutable retention settings for a single run."""

    retention_days: int = 7
    long_term_backups: int = 3
    long_term_day: str = "01"
    min_backups: int = 5
    max_backups: int = 30
    current_id: Optional[str] = None
    independent_passes: bool = False

    @property
    def anchor_day(self) -> int:
        return int(self.long_term_day)

    def validate(self) -> "RetentionConfig":
        for label in ("retention_days", "long_term_backups", "min_backups", "max_backups"):
            if getattr(self, label) < 0:
                raise ConfigurationError(f"{label} must not be negative")
        try:
            day = int(self.long_term_day)
        except (TypeError, ValueError):
            raise ConfigurationError(f"invalid long_term_day {self.long_term_day!r}") from None
        if not 1 <= day <= 31:
            raise ConfigurationError(f"long_term_day must be within 01..31, got {self.long_term_day!r}")
        if self.max_backups != 0 and self.min_backups >= self.max_backups:
            raise ConfigurationError("min_backups >= max_backups")
        return self


@dataclass(slots=True)
class Decision:
    """Keep/delete verdict for one item in one retention pass."""

    item: BackupItem
    tier: Tier
    state: ItemState = ItemState.PENDING
    reason: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class PassResult:
    tier: Tier
    decisions: List[Decision] = field(default_factory=list)
    ok: bool = True
    executed: bool = True

    @property
    def deleted(self) -> List[str]:
        return [d.item.name for d in self.decisions if d.state is ItemState.DELETED]

    @property
    def failed(self) -> List[str]:
        return [d.item.name for d in self.decisions if d.state is ItemState.DELETE_FAILED]


@dataclass(slots=True)
class RetentionSummary:
    ok: bool
    passes: List[PassResult]
    kept: List[str]
    removed: List[str]
    dry_run: bool = False


__all__ = [
    "ArtifactKind",
    "BackupItem",
    "BackupSet",
    "Decision",
    "ItemState",
    "PassResult",
    "RetentionConfig",
    "RetentionSummary",
    "Tier",
]
