from __future__ import annotations

import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_json_logging(
    log_path: Optional[Path],
    name: str = "mysqlbackup",
    *,
    level: int = logging.INFO,
    console: bool = False,
) -> logging.Logger:
    """Attach a JSON file handler (and optionally a console handler) to *name*."""

    logger = logging.getLogger(name)
    logger.setLevel(level)
    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler) and getattr(handler, "baseFilename", None) == os.path.abspath(log_path):
                break
        else:
            handler = logging.FileHandler(log_path, encoding="utf-8")
            handler.setFormatter(JsonLogFormatter())
            logger.addHandler(handler)
    if console and not any(getattr(h, "_mysqlbackup_console", False) for h in logger.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        stream._mysqlbackup_console = True  # type: ignore[attr-defined]
        logger.addHandler(stream)
    logger.propagate = False
    return logger


def format_duration(seconds: float) -> str:
    """Render *seconds* as ``1d 2h 3m 4s``; zero-valued leading units are dropped."""

    total = int(seconds)
    days, total = divmod(total, 86400)
    hours, total = divmod(total, 3600)
    minutes, secs = divmod(total, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


__all__ = ["JsonLogFormatter", "configure_json_logging", "format_duration"]
