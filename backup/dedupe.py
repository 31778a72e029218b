"""Keep at most one long-term candidate per retention period."""
from __future__ import annotations

from typing import Dict, Optional

from .logs import BackupLogger
from .types import BackupItem, BackupSet


def _ascending_key(item: BackupItem) -> tuple:
    return (item.timestamp, item.id, item.name)


def unmark_duplicate_long_term(items: BackupSet, *, logger: Optional[BackupLogger] = None) -> BackupSet:
    """Strip the long-term flag from every candidate but the earliest of its period.

    Demoted items stay in the set and are handled as short-term backups.
    """

    holders: Dict[str, str] = {}
    for item in sorted(items.values(), key=_ascending_key):
        period = item.long_term_period
        if period is None:
            continue
        if period in holders:
            item.long_term_period = None
            if logger is not None:
                logger.info("long_term_unmarked", name=item.name, period=period, holder=holders[period])
            continue
        holders[period] = item.name
    return items


__all__ = ["unmark_duplicate_long_term"]
