"""Report run outcomes to monitoring systems."""
from __future__ import annotations

import socket
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import requests

from .logs import BackupLogger

SUCCESS = 1
FAIL = 0


def short_hostname(hostname: Optional[str] = None) -> str:
    name = hostname or socket.gethostname()
    return name.split(".", 1)[0]


class Notifier(Protocol):
    def send(self, key: str, value: object, *, logger: BackupLogger) -> bool: ...


@dataclass(slots=True)
class ZabbixNotifier:
    sender: Path
    agentd_conf: Path
    hostname: str = field(default_factory=short_hostname)
    timeout_s: float = 30.0

    def command(self, key: str, value: object) -> List[str]:
        return [
            str(self.sender),
            "-c",
            str(self.agentd_conf),
            "-s",
            self.hostname,
            "-k",
            key,
            "-o",
            str(value),
        ]

    def send(self, key: str, value: object, *, logger: BackupLogger) -> bool:
        try:
            completed = subprocess.run(
                self.command(key, value),
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout_s,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error("notify_failed", notifier="zabbix", key=key, error=str(exc))
            return False
        output = " ".join((completed.stdout + completed.stderr).split())
        ok = completed.returncode == 0
        logger.event(event="notify_sent", phase="notify", ok=ok, notifier="zabbix", key=key, value=value, output=output)
        return ok


@dataclass(slots=True)
class WebhookNotifier:
    url: str
    hostname: str = field(default_factory=short_hostname)
    timeout_s: float = 10.0
    headers: Dict[str, str] = field(default_factory=dict)

    def send(self, key: str, value: object, *, logger: BackupLogger) -> bool:
        payload = {"host": self.hostname, "key": key, "value": value}
        try:
            resp = requests.post(self.url, json=payload, headers=self.headers, timeout=self.timeout_s)
        except requests.RequestException as exc:
            logger.error("notify_failed", notifier="webhook", key=key, error=str(exc))
            return False
        ok = 200 <= resp.status_code < 300
        logger.event(event="notify_sent", phase="notify", ok=ok, notifier="webhook", key=key, value=value, status=resp.status_code)
        return ok


def build_notifiers(settings: Dict[str, object]) -> List[Notifier]:
    notify = settings.get("notify") if isinstance(settings.get("notify"), dict) else {}
    notifiers: List[Notifier] = []
    zabbix = notify.get("zabbix") if isinstance(notify.get("zabbix"), dict) else {}
    if zabbix.get("enable"):
        notifiers.append(ZabbixNotifier(sender=Path(zabbix["sender"]), agentd_conf=Path(zabbix["agentd_conf"])))
    webhook = notify.get("webhook") if isinstance(notify.get("webhook"), dict) else {}
    if webhook.get("enable") and webhook.get("url"):
        notifiers.append(
            WebhookNotifier(
                url=str(webhook["url"]),
                timeout_s=float(webhook.get("timeout_s") or 10),
                headers=dict(webhook.get("headers") or {}),
            )
        )
    return notifiers


def notify_all(notifiers: List[Notifier], key: str, value: object, *, logger: BackupLogger) -> bool:
    results = [notifier.send(key, value, logger=logger) for notifier in notifiers]
    return all(results)


__all__ = [
    "FAIL",
    "SUCCESS",
    "WebhookNotifier",
    "ZabbixNotifier",
    "build_notifiers",
    "notify_all",
    "short_hostname",
]
