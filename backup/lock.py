"""Single-run lock file with staleness takeover."""
from __future__ import annotations

import contextlib
import os
import time
from pathlib import Path
from typing import Optional

from .errors import LockError
from .logs import BackupLogger


class RunLock(contextlib.AbstractContextManager):
    """Hold ``path`` for the duration of a backup run.

    A lock older than ``stale_after_s`` seconds is assumed to belong to a
    crashed run and is taken over.
    """

    def __init__(self, path: Path, *, stale_after_s: float = 129600, logger: Optional[BackupLogger] = None) -> None:
        self._path = Path(path)
        self._stale_after_s = float(stale_after_s)
        self._logger = logger
        self._held = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def held(self) -> bool:
        return self._held

    def _log(self, level: str, event: str, **extra) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(event, path=str(self._path), **extra)

    def _create(self) -> None:
        fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))

    def acquire(self) -> None:
        try:
            self._create()
        except FileExistsError:
            self._take_over_if_stale()
        except OSError as exc:
            raise LockError(f"cannot create lock file {self._path}: {exc}") from exc
        self._held = True
        self._log("info", "lock_acquired", pid=os.getpid())

    def _take_over_if_stale(self) -> None:
        try:
            age = time.time() - self._path.stat().st_mtime
        except FileNotFoundError:
            # Released between open() and stat().
            try:
                self._create()
            except OSError as exc:
                raise LockError(f"cannot create lock file {self._path}: {exc}") from exc
            return
        if age <= self._stale_after_s:
            self._log("warning", "lock_busy", age_s=int(age))
            raise LockError(f"backup is locked by {self._path}")
        self._log("warning", "lock_expired", age_s=int(age))
        try:
            self._path.write_text(str(os.getpid()), encoding="utf-8")
        except OSError as exc:
            raise LockError(f"cannot take over lock file {self._path}: {exc}") from exc

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            self._log("error", "lock_release_failed", error=str(exc))
            raise LockError(f"cannot delete lock file {self._path}: {exc}") from exc
        self._log("info", "lock_released")

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
        return None


__all__ = ["RunLock"]
