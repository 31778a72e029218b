"""Tests for core.settings helpers."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from backup.errors import ConfigurationError
from core.settings import load_settings, merge_defaults, retention_config_from_settings, save_settings


def test_merge_defaults_includes_retention_block() -> None:
    merged = merge_defaults({})

    retention = merged["retention"]
    assert retention == {
        "days": 7,
        "long_term_backups": 3,
        "long_term_day": "01",
        "min_backups": 5,
        "max_backups": 30,
        "independent_passes": False,
    }
    assert merged["compress"] == "xz"
    assert merged["notify"]["zabbix"]["key"] == "mysql.backup"


def test_load_settings_merges_file_over_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"backup_root": "/srv/backups", "retention": {"days": 14}}), encoding="utf-8")

    loaded = load_settings(path)

    assert loaded["backup_root"] == "/srv/backups"
    assert loaded["retention"]["days"] == 14
    assert loaded["retention"]["max_backups"] == 30


def test_load_settings_upgrades_numeric_compression(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"compress": 1}), encoding="utf-8")

    assert load_settings(path)["compress"] == "gzip"


def test_load_settings_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_settings(broken)


def test_load_settings_defaults_without_files(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("core.settings.get_default_settings_paths", lambda explicit=None: [tmp_path / "absent.json"])

    assert load_settings() == merge_defaults({})


def test_unknown_keys_are_logged(tmp_path: Path, caplog) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"retention": {"keep_weekly": 4}, "colour": "blue"}), encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="mysqlbackup.settings"):
        load_settings(path)

    assert "colour" in caplog.text
    assert "retention.keep_weekly" in caplog.text


def test_save_settings_round_trips(tmp_path: Path) -> None:
    path = tmp_path / "etc" / "settings.json"

    save_settings({"retention": {"long_term_backups": 6}}, path)
    saved = json.loads(path.read_text(encoding="utf-8"))

    assert saved["retention"]["long_term_backups"] == 6
    assert saved["retention"]["days"] == 7


def test_retention_config_from_settings() -> None:
    settings = merge_defaults({"retention": {"long_term_day": 15, "independent_passes": True}})

    config = retention_config_from_settings(settings, current_id="2024-03-15_03-00-00")

    assert config.long_term_day == "15"
    assert config.anchor_day == 15
    assert config.current_id == "2024-03-15_03-00-00"
    assert config.independent_passes is True


@pytest.mark.parametrize(
    "retention",
    [
        {"min_backups": 5, "max_backups": 5},
        {"min_backups": 10, "max_backups": 3},
        {"days": -1},
        {"long_term_day": "32"},
        {"long_term_day": "first"},
        {"max_backups": "many"},
    ],
)
def test_invalid_retention_settings_raise(retention) -> None:
    with pytest.raises(ConfigurationError):
        retention_config_from_settings(merge_defaults({"retention": retention}))


def test_unlimited_max_backups_skips_ordering_check() -> None:
    config = retention_config_from_settings(merge_defaults({"retention": {"min_backups": 50, "max_backups": 0}}))

    assert config.max_backups == 0
