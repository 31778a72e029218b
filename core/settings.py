from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from backup.errors import ConfigurationError
from backup.types import RetentionConfig

from .paths import (
    DEFAULT_BACKUP_ROOT,
    DEFAULT_LOCK_FILE,
    DEFAULT_LOG_DIR,
    get_default_settings_paths,
)
from .settings_schema import SETTINGS_VALIDATOR

__all__ = [
    "DEFAULT_SETTINGS",
    "SETTINGS_VERSION",
    "load_settings",
    "merge_defaults",
    "retention_config_from_settings",
    "save_settings",
]

LOGGER = logging.getLogger("mysqlbackup.settings")

SETTINGS_VERSION = 1


DEFAULT_SETTINGS: Dict[str, Any] = {
    "version": SETTINGS_VERSION,
    "backup_root": DEFAULT_BACKUP_ROOT,
    "log_dir": DEFAULT_LOG_DIR,
    "lock": {
        "path": DEFAULT_LOCK_FILE,
        "expire_s": 129600,
    },
    "initial_sleep_s": 1800,
    "check_mountpoint": False,
    "mysql": {
        "innobackupex": "/usr/bin/innobackupex",
        "debian_cnf": "/etc/mysql/debian.cnf",
        "my_cnf": None,
        "user": None,
        "password": None,
        "qpress": False,
        "timeout_s": None,
    },
    # none | gzip | bz2 | xz
    "compress": "xz",
    "retention": {
        "days": 7,
        "long_term_backups": 3,
        "long_term_day": "01",
        "min_backups": 5,
        "max_backups": 30,
        "independent_passes": False,
    },
    "notify": {
        "zabbix": {
            "enable": True,
            "sender": "/usr/bin/zabbix_sender",
            "agentd_conf": "/etc/zabbix/zabbix_agentd.conf",
            "key": "mysql.backup",
            "duration_key": "mysql.backup.duration",
        },
        "webhook": {
            "enable": False,
            "url": None,
            "timeout_s": 10,
            "headers": {},
        },
    },
}


def merge_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    def _merge(default: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in default.items():
            if isinstance(value, dict):
                current = payload.get(key)
                if isinstance(current, dict) and value:
                    result[key] = _merge(value, current)
                elif isinstance(current, dict):
                    result[key] = dict(current)
                else:
                    result[key] = _merge(value, {})
            else:
                result[key] = payload.get(key, value)
        for key, value in payload.items():
            if key not in result:
                result[key] = value
        return result

    return _merge(DEFAULT_SETTINGS, data or {})


def _apply_migrations(settings: Dict[str, Any]) -> Dict[str, Any]:
    version = settings.get("version")
    try:
        version_int = int(version)
    except (TypeError, ValueError):
        version_int = 0
    if version_int < SETTINGS_VERSION:
        settings["version"] = SETTINGS_VERSION
    # Older configs used the numeric compression levels of the shell tool.
    legacy = {0: "none", 1: "gzip", 2: "xz"}
    if isinstance(settings.get("compress"), int) and not isinstance(settings.get("compress"), bool):
        settings["compress"] = legacy.get(settings["compress"], "xz")
    return settings


def _log_unknown_keys(settings: Dict[str, Any]) -> None:
    unknown = list(SETTINGS_VALIDATOR.unknown_keys(settings))
    if unknown:
        LOGGER.warning("Unknown settings keys ignored: %s", ", ".join(unknown))


def load_settings(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the first readable settings file, merged over the defaults.

    An explicitly requested *path* must exist and parse; the implicit
    candidates are skipped when missing.
    """

    data: Dict[str, Any] = {}
    source: Optional[Path] = None
    for candidate in get_default_settings_paths(path):
        try:
            with open(candidate, "r", encoding="utf-8") as handle:
                loaded = json.load(handle)
        except FileNotFoundError:
            if path is not None and candidate == Path(path):
                raise ConfigurationError(f"Settings file {candidate} not found") from None
            continue
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Settings file {candidate} is not valid JSON: {exc}") from exc
        except OSError as exc:
            LOGGER.warning("Cannot read settings file %s: %s", candidate, exc)
            continue
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Settings file {candidate} must contain a JSON object")
        data = loaded
        source = candidate
        break
    merged = merge_defaults(data)
    merged = _apply_migrations(merged)
    _log_unknown_keys(merged)
    if source is not None:
        LOGGER.debug("Loaded settings from %s", source)
    return merged


def save_settings(settings: Dict[str, Any], path: Path) -> None:
    merged = merge_defaults(dict(settings))
    merged = _apply_migrations(merged)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(merged, handle, ensure_ascii=False, indent=2)


def _as_int(section: Dict[str, Any], key: str) -> int:
    value = section.get(key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"retention.{key} must be an integer, got {value!r}") from None


def retention_config_from_settings(settings: Dict[str, Any], current_id: Optional[str] = None) -> RetentionConfig:
    raw = settings.get("retention")
    retention = raw if isinstance(raw, dict) else {}
    day = retention.get("long_term_day", "01")
    if isinstance(day, int) and not isinstance(day, bool):
        day = f"{day:02d}"
    config = RetentionConfig(
        retention_days=_as_int(retention, "days"),
        long_term_backups=_as_int(retention, "long_term_backups"),
        long_term_day=str(day),
        min_backups=_as_int(retention, "min_backups"),
        max_backups=_as_int(retention, "max_backups"),
        current_id=current_id,
        independent_passes=bool(retention.get("independent_passes", False)),
    )
    return config.validate()
