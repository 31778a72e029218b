from __future__ import annotations

from .cli import cli

raise SystemExit(cli())
