from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

__all__ = [
    "DEFAULT_BACKUP_ROOT",
    "DEFAULT_LOCK_FILE",
    "DEFAULT_LOG_DIR",
    "SETTINGS_ENV_VAR",
    "get_default_settings_paths",
    "is_mountpoint",
    "resolve_path",
]

SETTINGS_ENV_VAR = "MYSQL_BACKUP_SETTINGS"

DEFAULT_BACKUP_ROOT = "/var/mysql-backup"
DEFAULT_LOG_DIR = "/var/log/mysql-backup"
DEFAULT_LOCK_FILE = "/var/run/mysql-backup.lock"
_SYSTEM_SETTINGS = Path("/etc/mysql-backup/settings.json")


def resolve_path(value: str | os.PathLike[str]) -> Path:
    """Expand ``~`` and environment variables in *value*."""

    expanded = os.path.expandvars(os.path.expanduser(str(value)))
    return Path(expanded)


def get_default_settings_paths(explicit: Optional[str | os.PathLike[str]] = None) -> List[Path]:
    candidates: List[Path] = []
    if explicit:
        candidates.append(resolve_path(explicit))
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        candidates.append(resolve_path(env_path))
    candidates.append(_SYSTEM_SETTINGS)
    seen = set()
    unique: List[Path] = []
    for candidate in candidates:
        key = str(candidate)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def is_mountpoint(path: str | os.PathLike[str]) -> bool:
    """Return True if *path* (trailing slash ignored) is a mount point."""

    text = str(path).rstrip("/") or "/"
    return os.path.ismount(text)
