"""Produce a fresh MySQL backup with innobackupex."""
from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

from .errors import BackupCommandError, BackupError, CompressionError, ConfigurationError
from .logs import BackupLogger
from .scan import archive_name

LOGGER = logging.getLogger("mysqlbackup.innobackupex")

_COMPLETED_RE = re.compile(r"\d{6}\s+\d{2}:\d{2}:\d{2}\s+innobackupex: completed OK!")

COMPRESSION_EXTENSIONS: Dict[str, str] = {
    "gzip": "gz",
    "bz2": "bz2",
    "xz": "xz",
}


def compression_extension(method: Optional[str]) -> Optional[str]:
    """Map a ``compress`` setting to an archive extension (``None`` = keep the directory)."""

    if method in (None, "", "none"):
        return None
    try:
        return COMPRESSION_EXTENSIONS[str(method)]
    except KeyError:
        raise ConfigurationError(f"unknown compression method {method!r}") from None


def build_innobackupex_command(mysql: Dict[str, object], target_dir: Path) -> List[str]:
    cmd = [str(mysql.get("innobackupex") or "innobackupex")]
    if mysql.get("debian_cnf"):
        cmd.append(f"--defaults-extra-file={mysql['debian_cnf']}")
    else:
        cmd.extend([f"--user={mysql.get('user')}", f"--password={mysql.get('password')}"])
    if mysql.get("my_cnf"):
        cmd.append(f"--defaults-file={mysql['my_cnf']}")
    if mysql.get("qpress"):
        cmd.append("--compress")
    cmd.extend(["--no-timestamp", str(target_dir)])
    return cmd


def backup_completed(output: str) -> bool:
    return bool(_COMPLETED_RE.search(output or ""))


def run_innobackupex(
    mysql: Dict[str, object],
    target_dir: Path,
    *,
    logger: BackupLogger,
) -> None:
    """Run innobackupex into *target_dir*; a failed attempt leaves nothing behind."""

    cmd = build_innobackupex_command(mysql, target_dir)
    timeout = mysql.get("timeout_s")
    logger.info("backup_started", target=str(target_dir))
    try:
        completed = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
            timeout=float(timeout) if timeout else None,
        )
        output = completed.stdout or ""
    except (OSError, subprocess.SubprocessError) as exc:
        output = ""
        error = str(exc)
    else:
        error = None
    for line in output.splitlines():
        LOGGER.info("%s", line)

    if error is None and backup_completed(output):
        logger.event(event="backup_created", phase="create", ok=True, target=str(target_dir))
        return

    logger.error("backup_failed", target=str(target_dir), error=error or "innobackupex did not complete")
    if target_dir.exists():
        try:
            shutil.rmtree(target_dir)
        except OSError as exc:
            logger.error("backup_cleanup_failed", target=str(target_dir), error=str(exc))
    raise BackupCommandError(f"cannot make backup in {target_dir}: {error or 'innobackupex did not complete'}")


def compress_backup(
    backup_root: Path,
    backup_id: str,
    extension: str,
    *,
    logger: BackupLogger,
) -> Path:
    """Pack ``backup_root/backup_id`` into ``<id>.tar.<extension>`` and drop the directory."""

    source = Path(backup_root) / backup_id
    target = Path(backup_root) / archive_name(backup_id, extension)
    partial = target.with_name(target.name + ".part")
    logger.info("compression_started", source=str(source), target=str(target))
    try:
        with tarfile.open(partial, f"w:{extension}") as archive:
            archive.add(source, arcname=backup_id)
        os.replace(partial, target)
    except (OSError, tarfile.TarError) as exc:
        partial.unlink(missing_ok=True)
        logger.error("compression_failed", source=str(source), error=str(exc))
        raise CompressionError(f"cannot compress {source}: {exc}") from exc

    logger.info("compression_ok", target=str(target), size=target.stat().st_size)
    try:
        shutil.rmtree(source)
    except OSError as exc:
        logger.error("backup_dir_delete_failed", source=str(source), error=str(exc))
        raise BackupError(f"cannot delete {source}: {exc}") from exc
    return target


__all__ = [
    "COMPRESSION_EXTENSIONS",
    "backup_completed",
    "build_innobackupex_command",
    "compress_backup",
    "compression_extension",
    "run_innobackupex",
]
