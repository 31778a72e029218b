"""Discover backup artifacts in the backup root."""
from __future__ import annotations

import re
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from .errors import ScanError
from .logs import BackupLogger
from .types import ArtifactKind, BackupItem, BackupSet, RetentionConfig

BACKUP_ID_FORMAT = "%Y-%m-%d_%H-%M-%S"
ARCHIVE_EXTENSIONS = ("gz", "bz2", "xz")

_NAME_RE = re.compile(
    r"^(?P<id>(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"_(?P<hour>\d{2})-(?P<minute>\d{2})-(?P<second>\d{2}))(?P<rest>.*)\Z",
    re.DOTALL,
)
_ARCHIVE_RE = re.compile(r"^\.tar\.(?P<ext>gz|bz2|xz)\Z")


def backup_id_for(moment: datetime) -> str:
    return moment.strftime(BACKUP_ID_FORMAT)


def archive_name(backup_id: str, extension: str) -> str:
    return f"{backup_id}.tar.{extension}"


def parse_artifact_name(
    name: str,
    *,
    long_term_day: int,
    current_id: Optional[str] = None,
) -> Optional[BackupItem]:
    """Turn a directory entry name into a :class:`BackupItem`.

    Returns ``None`` for names outside the naming convention and for names
    whose captured fields do not form a valid local date/time.
    """

    match = _NAME_RE.match(name)
    if not match:
        return None
    try:
        created = datetime(
            int(match["year"]),
            int(match["month"]),
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
        )
    except ValueError:
        return None
    # mktime reads the naive tuple as local civil time, DST resolved by the OS.
    timestamp = time.mktime(created.timetuple())

    archive = _ARCHIVE_RE.match(match["rest"])
    kind = ArtifactKind.ARCHIVE if archive else ArtifactKind.DIRECTORY
    item = BackupItem(
        name=name,
        id=match["id"],
        created=created,
        timestamp=timestamp,
        kind=kind,
        extension=archive["ext"] if archive else None,
    )
    if created.day == int(long_term_day):
        item.long_term_period = f"{created.year:04d}{created.month:02d}"
    if current_id is not None and item.id == current_id:
        item.is_current = True
    return item


def scan_backup_root(
    root: Path,
    config: RetentionConfig,
    *,
    logger: Optional[BackupLogger] = None,
) -> BackupSet:
    root = Path(root)
    if not root.is_dir():
        raise ScanError(f"Backup root {root} does not exist or is not a directory")
    try:
        names = sorted(entry.name for entry in root.iterdir())
    except OSError as exc:
        raise ScanError(f"Cannot list backup root {root}: {exc}") from exc

    items: BackupSet = {}
    for name in names:
        item = parse_artifact_name(name, long_term_day=config.anchor_day, current_id=config.current_id)
        if item is None:
            if logger is not None and _NAME_RE.match(name):
                logger.warning("artifact_ignored", name=name, reason="invalid timestamp")
            continue
        items[name] = item
    if logger is not None:
        logger.info("scan_complete", root=str(root), items=len(items))
    return items


__all__ = [
    "ARCHIVE_EXTENSIONS",
    "BACKUP_ID_FORMAT",
    "archive_name",
    "backup_id_for",
    "parse_artifact_name",
    "scan_backup_root",
]
