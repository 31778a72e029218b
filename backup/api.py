"""Public API for backup runs."""
from __future__ import annotations

import random
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from core.logging_utils import format_duration
from core.paths import is_mountpoint, resolve_path
from core.settings import retention_config_from_settings

from .create import compress_backup, compression_extension, run_innobackupex
from .errors import BackupError, ConfigurationError
from .lock import RunLock
from .logs import BackupLogger
from .notify import FAIL, SUCCESS, Notifier, build_notifiers, notify_all
from .retention import apply_retention
from .scan import backup_id_for
from .types import RetentionConfig, RetentionSummary

_DEFAULT_KEYS = {"key": "mysql.backup", "duration_key": "mysql.backup.duration"}


class BackupService:
    """Coordinate one backup run: create, compress, rotate, notify."""

    def __init__(
        self,
        settings: Dict[str, object],
        *,
        logger: BackupLogger,
        now: Optional[datetime] = None,
        notifiers: Optional[List[Notifier]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = dict(settings)
        self._logger = logger
        self._started = now or datetime.now()
        self._started_ts = time.mktime(self._started.timetuple())
        self._backup_id = backup_id_for(self._started)
        self._notifiers = notifiers if notifiers is not None else build_notifiers(self._settings)
        self._sleep = sleep

    # ------------------------------------------------------------------
    @property
    def backup_id(self) -> str:
        return self._backup_id

    @property
    def backup_root(self) -> Path:
        return resolve_path(str(self._settings.get("backup_root")))

    @property
    def current_dir(self) -> Path:
        return self.backup_root / self._backup_id

    def _mysql(self) -> Dict[str, object]:
        raw = self._settings.get("mysql")
        return raw if isinstance(raw, dict) else {}

    def _zabbix(self) -> Dict[str, object]:
        notify = self._settings.get("notify") if isinstance(self._settings.get("notify"), dict) else {}
        raw = notify.get("zabbix")
        return raw if isinstance(raw, dict) else {}

    def retention_config(self) -> RetentionConfig:
        return retention_config_from_settings(self._settings, current_id=self._backup_id)

    def lock(self) -> RunLock:
        raw = self._settings.get("lock")
        lock = raw if isinstance(raw, dict) else {}
        return RunLock(
            resolve_path(str(lock.get("path"))),
            stale_after_s=float(lock.get("expire_s") or 0),
            logger=self._logger,
        )

    # ------------------------------------------------------------------
    def check_preconditions(self, *, retention_only: bool = False) -> None:
        root = self.backup_root
        if not root.is_dir():
            raise ConfigurationError(f"backup root directory {root} does not exist")
        if self._settings.get("check_mountpoint") and not is_mountpoint(root):
            raise ConfigurationError(f"mount point for {root} does not exist")
        self.retention_config()
        if retention_only:
            return
        mysql = self._mysql()
        innobackupex = Path(str(mysql.get("innobackupex")))
        if not innobackupex.exists():
            raise ConfigurationError(f"{innobackupex} does not exist")
        zabbix = self._zabbix()
        if zabbix.get("enable"):
            sender = Path(str(zabbix.get("sender")))
            conf = Path(str(zabbix.get("agentd_conf")))
            if not sender.exists() or not conf.exists():
                raise ConfigurationError(f"zabbix_sender {sender} or zabbix_agentd.conf {conf} does not exist")
        if not mysql.get("debian_cnf") and (not mysql.get("user") or mysql.get("password") is None):
            raise ConfigurationError("cannot find valid mysql credentials")
        compression_extension(self._settings.get("compress"))

    def initial_sleep(self, *, interactive: bool) -> float:
        """Spread non-interactive starts over ``initial_sleep_s`` seconds."""

        if interactive:
            self._logger.info("interactive_run")
            return 0.0
        window = int(self._settings.get("initial_sleep_s") or 0)
        if window <= 0:
            return 0.0
        delay = float(random.randrange(window))
        self._logger.info("initial_sleep", seconds=delay)
        self._sleep(delay)
        return delay

    # ------------------------------------------------------------------
    def apply_retention(self, *, dry_run: bool = False) -> RetentionSummary:
        return apply_retention(
            self.backup_root,
            self.retention_config(),
            logger=self._logger,
            now=self._started_ts,
            dry_run=dry_run,
        )

    def _notify(self, key_name: str, value: object) -> None:
        key = str(self._zabbix().get(key_name) or _DEFAULT_KEYS[key_name])
        notify_all(self._notifiers, key, value, logger=self._logger)

    def run(self) -> bool:
        """Create, compress and rotate; return the single run outcome."""

        try:
            run_innobackupex(self._mysql(), self.current_dir, logger=self._logger)
            extension = compression_extension(self._settings.get("compress"))
            if extension:
                compress_backup(self.backup_root, self._backup_id, extension, logger=self._logger)
            summary = self.apply_retention()
        except BackupError as exc:
            self._logger.event(event="run_finished", phase="run", ok=False, error=str(exc))
            self._notify("key", FAIL)
            return False

        if not summary.ok:
            self._logger.event(event="run_finished", phase="run", ok=False, error="retention failed")
            self._notify("key", FAIL)
            return False

        duration = int(time.time() - self._started_ts)
        self._notify("key", SUCCESS)
        self._notify("duration_key", duration)
        self._logger.event(
            event="run_finished",
            phase="run",
            ok=True,
            duration_s=duration,
            duration=format_duration(duration),
        )
        return True


__all__ = ["BackupService"]
