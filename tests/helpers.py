from __future__ import annotations

import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

from backup.scan import backup_id_for

NOW = datetime(2024, 3, 15, 12, 0, 0)
NOW_TS = time.mktime(NOW.timetuple())


class StubLogger:
    def __init__(self) -> None:
        self.events = []

    def info(self, event: str, **extra):  # pragma: no cover - recorder
        self.events.append(("info", event, extra))

    def warning(self, event: str, **extra):  # pragma: no cover - recorder
        self.events.append(("warning", event, extra))

    def error(self, event: str, **extra):  # pragma: no cover - recorder
        self.events.append(("error", event, extra))

    def event(self, *, event: str, phase: str, ok: bool, **extra):  # pragma: no cover - recorder
        self.events.append(("event", event, phase, ok, extra))

    def names(self, level: str) -> List[str]:
        return [entry[1] for entry in self.events if entry[0] == level]


def days_ago(days: float, *, hour: int = 3) -> datetime:
    moment = NOW - timedelta(days=days)
    return moment.replace(hour=hour, minute=0, second=0)


def make_backup(root: Path, moment: datetime, *, archive: str | None = "xz") -> str:
    backup_id = backup_id_for(moment)
    if archive:
        name = f"{backup_id}.tar.{archive}"
        (root / name).write_bytes(b"archive")
    else:
        name = backup_id
        (root / name).mkdir()
        (root / name / "ibdata1").write_bytes(b"data")
    return name
