"""Rank backups by recency and assign lifecycle flags."""
from __future__ import annotations

from typing import Iterable, List

from .types import BackupItem, BackupSet, RetentionConfig


def _descending_key(item: BackupItem) -> tuple:
    return (item.timestamp, item.id, item.name)


def rank_items(items: Iterable[BackupItem]) -> List[BackupItem]:
    """Newest first; equal timestamps fall back to id then entry name."""

    return sorted(items, key=_descending_key, reverse=True)


def classify_items(items: BackupSet, config: RetentionConfig) -> BackupSet:
    # Ranks span both tiers so min/max bound the total number of backups.
    for rank, item in enumerate(rank_items(items.values()), start=1):
        item.is_current = config.current_id is not None and item.id == config.current_id
        item.do_not_delete = rank <= config.min_backups
        item.force_delete = config.max_backups != 0 and rank > config.max_backups and not item.is_current
    return items


__all__ = ["classify_items", "rank_items"]
