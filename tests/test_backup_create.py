import subprocess
import tarfile

import pytest

from backup.create import (
    backup_completed,
    build_innobackupex_command,
    compress_backup,
    compression_extension,
    run_innobackupex,
)
from backup.errors import BackupCommandError, BackupError, ConfigurationError

from helpers import StubLogger

_OK_OUTPUT = "240315 03:12:44  innobackupex: completed OK!\n"


def test_command_uses_debian_cnf_when_present(tmp_path):
    mysql = {
        "innobackupex": "/usr/bin/innobackupex",
        "debian_cnf": "/etc/mysql/debian.cnf",
        "my_cnf": "/etc/mysql/my.cnf",
        "qpress": True,
    }

    cmd = build_innobackupex_command(mysql, tmp_path / "2024-03-15_03-00-00")

    assert cmd == [
        "/usr/bin/innobackupex",
        "--defaults-extra-file=/etc/mysql/debian.cnf",
        "--defaults-file=/etc/mysql/my.cnf",
        "--compress",
        "--no-timestamp",
        str(tmp_path / "2024-03-15_03-00-00"),
    ]


def test_command_falls_back_to_credentials(tmp_path):
    mysql = {"innobackupex": "innobackupex", "debian_cnf": None, "user": "backup", "password": "s3cret"}

    cmd = build_innobackupex_command(mysql, tmp_path)

    assert cmd[1:3] == ["--user=backup", "--password=s3cret"]
    assert "--compress" not in cmd


def test_completion_marker_detection():
    assert backup_completed("xtrabackup: done\n" + _OK_OUTPUT) is True
    assert backup_completed("innobackupex: completed OK!") is False
    assert backup_completed("") is False


def test_compression_extension_mapping():
    assert compression_extension("xz") == "xz"
    assert compression_extension("gzip") == "gz"
    assert compression_extension("none") is None
    with pytest.raises(ConfigurationError):
        compression_extension("zip")


def test_run_innobackupex_success(tmp_path, monkeypatch):
    target = tmp_path / "2024-03-15_03-00-00"

    def fake_run(cmd, **kwargs):
        target.mkdir()
        return subprocess.CompletedProcess(cmd, 0, stdout=_OK_OUTPUT)

    monkeypatch.setattr("backup.create.subprocess.run", fake_run)
    logger = StubLogger()

    run_innobackupex({"innobackupex": "innobackupex", "debian_cnf": "/etc/mysql/debian.cnf"}, target, logger=logger)

    assert target.exists()
    assert ("event", "backup_created", "create", True, {"target": str(target)}) in logger.events


def test_run_innobackupex_failure_removes_partial_dir(tmp_path, monkeypatch):
    target = tmp_path / "2024-03-15_03-00-00"

    def fake_run(cmd, **kwargs):
        target.mkdir()
        (target / "partial").write_bytes(b"x")
        return subprocess.CompletedProcess(cmd, 1, stdout="innobackupex: Error: access denied\n")

    monkeypatch.setattr("backup.create.subprocess.run", fake_run)
    logger = StubLogger()

    with pytest.raises(BackupCommandError):
        run_innobackupex({"innobackupex": "innobackupex", "debian_cnf": "/etc/mysql/debian.cnf"}, target, logger=logger)

    assert not target.exists()
    assert "backup_failed" in logger.names("error")


def test_compress_backup_packs_and_removes_directory(tmp_path):
    backup_id = "2024-03-15_03-00-00"
    source = tmp_path / backup_id
    (source / "mysql").mkdir(parents=True)
    (source / "mysql" / "user.ibd").write_bytes(b"rows")

    archive = compress_backup(tmp_path, backup_id, "gz", logger=StubLogger())

    assert archive == tmp_path / f"{backup_id}.tar.gz"
    assert not source.exists()
    assert not (tmp_path / f"{backup_id}.tar.gz.part").exists()
    with tarfile.open(archive, "r:gz") as handle:
        assert f"{backup_id}/mysql/user.ibd" in handle.getnames()


def test_compress_missing_directory_raises(tmp_path):
    logger = StubLogger()

    with pytest.raises(BackupError):
        compress_backup(tmp_path, "2024-03-15_03-00-00", "xz", logger=logger)

    assert list(tmp_path.iterdir()) == []
    assert "compression_failed" in logger.names("error")
