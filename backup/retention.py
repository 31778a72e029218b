"""Retention policy enforcement for backups.

A run goes through two passes over the freshly scanned backup set:

* the short-term pass covers every item without a long-term period and
  deletes what is older than ``retention_days`` (unless protected by
  ``min_backups``) or what falls beyond ``max_backups``;
* the long-term pass re-ranks the long-term items among themselves and
  deletes everything past ``long_term_backups``.

Each pass stops at the first removal failure. Nothing is rolled back.
"""
from __future__ import annotations

import shutil
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from .classify import classify_items, rank_items
from .dedupe import unmark_duplicate_long_term
from .errors import BackupError, DeletionError
from .logs import BackupLogger
from .scan import scan_backup_root
from .types import (
    ArtifactKind,
    BackupItem,
    BackupSet,
    Decision,
    ItemState,
    PassResult,
    RetentionConfig,
    RetentionSummary,
    Tier,
)

SECONDS_PER_DAY = 86400

_TRANSITIONS: Dict[ItemState, Set[ItemState]] = {
    ItemState.PENDING: {ItemState.EVALUATED},
    ItemState.EVALUATED: {ItemState.KEPT, ItemState.DELETE_REQUESTED},
    ItemState.DELETE_REQUESTED: {ItemState.DELETED, ItemState.DELETE_FAILED},
}


def advance(decision: Decision, state: ItemState, *, reason: Optional[str] = None) -> Decision:
    allowed = _TRANSITIONS.get(decision.state, set())
    if state not in allowed:
        raise BackupError(
            f"illegal transition {decision.state.value} -> {state.value} for {decision.item.name}"
        )
    decision.state = state
    if reason is not None:
        decision.reason = reason
    return decision


def _decide(decision: Decision, delete: bool, reason: str) -> Decision:
    advance(decision, ItemState.EVALUATED)
    return advance(decision, ItemState.DELETE_REQUESTED if delete else ItemState.KEPT, reason=reason)


def _oldest_first(decisions: Iterable[Decision]) -> List[Decision]:
    return list(reversed(list(decisions)))


def plan_short_term(items: BackupSet, config: RetentionConfig, now: float) -> PassResult:
    """Evaluate every item that is not a long-term candidate."""

    max_age = config.retention_days * SECONDS_PER_DAY
    decisions: List[Decision] = []
    for item in rank_items(items.values()):
        if item.is_long_term:
            continue
        decision = Decision(item=item, tier=Tier.SHORT_TERM)
        if item.is_current:
            _decide(decision, False, "current")
        elif item.force_delete:
            # The count cap wins over min_backups protection.
            _decide(decision, True, "over_max_backups")
        elif now - item.timestamp > max_age:
            if item.do_not_delete:
                _decide(decision, False, "min_backups")
            else:
                _decide(decision, True, "expired")
        else:
            _decide(decision, False, "within_retention")
        decisions.append(decision)
    return PassResult(tier=Tier.SHORT_TERM, decisions=_oldest_first(decisions))


def plan_long_term(items: BackupSet, config: RetentionConfig) -> PassResult:
    decisions: List[Decision] = []
    long_term = [item for item in rank_items(items.values()) if item.is_long_term]
    for rank, item in enumerate(long_term, start=1):
        decision = Decision(item=item, tier=Tier.LONG_TERM)
        if item.is_current:
            _decide(decision, False, "current")
        elif rank > config.long_term_backups:
            _decide(decision, True, "over_long_term_backups")
        else:
            _decide(decision, False, "long_term_kept")
        decisions.append(decision)
    return PassResult(tier=Tier.LONG_TERM, decisions=_oldest_first(decisions))


def remove_artifact(path: Path, item: BackupItem) -> None:
    try:
        if item.kind is ArtifactKind.DIRECTORY and path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as exc:
        raise DeletionError(item.name, exc.strerror or str(exc)) from exc


def execute_pass(
    result: PassResult,
    root: Path,
    *,
    logger: BackupLogger,
    dry_run: bool = False,
) -> PassResult:
    phase = result.tier.value
    for decision in result.decisions:
        if decision.state is not ItemState.DELETE_REQUESTED:
            continue
        item = decision.item
        logger.info("backup_delete_requested", phase=phase, name=item.name, reason=decision.reason, dry_run=dry_run)
        if dry_run:
            continue
        try:
            remove_artifact(Path(root) / item.name, item)
        except DeletionError as exc:
            advance(decision, ItemState.DELETE_FAILED)
            decision.error = exc.reason
            result.ok = False
            logger.error("backup_delete_failed", phase=phase, name=item.name, error=exc.reason)
            break
        advance(decision, ItemState.DELETED)
        logger.info("backup_deleted", phase=phase, name=item.name, kind=item.kind.value)
    return result


def apply_retention(
    backup_root: Path,
    config: RetentionConfig,
    *,
    logger: BackupLogger,
    now: Optional[float] = None,
    dry_run: bool = False,
) -> RetentionSummary:
    config.validate()
    now = time.time() if now is None else now
    items = scan_backup_root(backup_root, config, logger=logger)
    items = unmark_duplicate_long_term(items, logger=logger)
    items = classify_items(items, config)

    short_term = execute_pass(plan_short_term(items, config, now), backup_root, logger=logger, dry_run=dry_run)
    if short_term.ok or config.independent_passes:
        long_term = execute_pass(plan_long_term(items, config), backup_root, logger=logger, dry_run=dry_run)
    else:
        long_term = PassResult(tier=Tier.LONG_TERM, executed=False)
        logger.warning("long_term_pass_skipped", phase=Tier.LONG_TERM.value, reason="short_term_failed")

    passes = [short_term, long_term]
    ok = all(result.ok for result in passes)
    removed = [name for result in passes for name in result.deleted]
    kept = sorted(name for name in items if name not in removed)
    logger.event(
        event="retention_applied",
        phase="retention",
        ok=ok,
        removed=len(removed),
        kept=len(kept),
        failed=[name for result in passes for name in result.failed],
        dry_run=dry_run,
    )
    return RetentionSummary(ok=ok, passes=passes, kept=kept, removed=removed, dry_run=dry_run)


__all__ = [
    "SECONDS_PER_DAY",
    "advance",
    "apply_retention",
    "execute_pass",
    "plan_long_term",
    "plan_short_term",
    "remove_artifact",
]
