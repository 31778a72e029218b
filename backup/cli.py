from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from core.logging_utils import configure_json_logging
from core.paths import resolve_path
from core.settings import load_settings

from .api import BackupService
from .errors import BackupError, ConfigurationError, LockError
from .logs import BackupLogger

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_LOCKED = 3

LOGGER = logging.getLogger("mysqlbackup")


def _install_signal_handlers() -> None:
    def handle_signal(signum, frame):
        LOGGER.warning("Received signal %s, exiting", signum)
        raise SystemExit(EXIT_FAILED)

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Back up MySQL with innobackupex and rotate old backups")
    parser.add_argument("-c", "--config", type=Path, default=None, help="Path to settings.json")
    parser.add_argument(
        "--retention-only",
        action="store_true",
        help="Skip the backup and only apply the retention policy",
    )
    parser.add_argument("--dry-run", action="store_true", help="Report deletions without removing anything")
    parser.add_argument("--no-sleep", action="store_true", help="Skip the randomized startup delay")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    return parser


def cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.dry_run and not args.retention_only:
        parser.error("--dry-run requires --retention-only")

    interactive = sys.stdout.isatty()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return EXIT_CONFIG

    log_dir = resolve_path(str(settings.get("log_dir")))
    configure_json_logging(log_dir / "mysql-backup.log.jsonl", level=getattr(logging, args.log_level), console=interactive)
    logger = BackupLogger(log_dir / "backup.jsonl")
    service = BackupService(settings, logger=logger)

    try:
        service.check_preconditions(retention_only=args.retention_only)
    except ConfigurationError as exc:
        logger.error("precondition_failed", error=str(exc))
        return EXIT_CONFIG

    _install_signal_handlers()
    try:
        with service.lock():
            if args.retention_only:
                summary = service.apply_retention(dry_run=args.dry_run)
                return EXIT_OK if summary.ok else EXIT_FAILED
            if not args.no_sleep:
                service.initial_sleep(interactive=interactive)
            return EXIT_OK if service.run() else EXIT_FAILED
    except LockError as exc:
        LOGGER.warning("%s", exc)
        return EXIT_LOCKED
    except BackupError as exc:
        logger.error("run_aborted", error=str(exc))
        return EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
