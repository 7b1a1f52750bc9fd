"""Tests for the backup service and command runners."""

from __future__ import annotations

import subprocess
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from craftops.backup.runners import (
    BackupError,
    ContainerCraftRunner,
    MysqldumpRunner,
    runner_from_settings,
)
from craftops.backup.service import BackupService, backup_filename
from craftops.config import Settings
from craftops.models import AuditEventType, BackupOutcome

_FIXED_NOW = datetime(2025, 3, 14, 9, 26, 53)


class _FakeRunner:
    """Writes a dump file and reports a fixed exit code."""

    def __init__(self, exit_code: int = 0, output: str = "") -> None:
        self.exit_code = exit_code
        self.output = output
        self.targets: list[Path] = []

    def run(self, target: Path) -> BackupOutcome:
        self.targets.append(target)
        target.write_text("-- dump\n")
        return BackupOutcome(exit_code=self.exit_code, output=self.output)


class _MissingBinaryRunner:
    def run(self, target: Path) -> BackupOutcome:
        raise FileNotFoundError(2, "No such file or directory", "mysqldump")


def _make_service(runner: object, backup_dir: Path, **kwargs: object) -> BackupService:
    return BackupService(
        runner=runner,  # type: ignore[arg-type]
        backup_dir=backup_dir,
        clock=lambda: _FIXED_NOW,
        **kwargs,  # type: ignore[arg-type]
    )


def test_backup_filename() -> None:
    assert backup_filename(_FIXED_NOW) == "backup-20250314-092653.sql"


class TestBackupService:
    def test_success_writes_timestamped_file(self, tmp_path: Path) -> None:
        backup_dir = tmp_path / "backups" / "db"
        runner = _FakeRunner()

        result = _make_service(runner, backup_dir).run()

        expected = backup_dir / "backup-20250314-092653.sql"
        assert result.success is True
        assert result.exit_code == 0
        assert result.path == str(expected)
        assert expected.exists()
        assert runner.targets == [expected]
        assert result.as_text() == f"Backup succeeded: {expected}"

    def test_failure_removes_partial_file(self, tmp_path: Path) -> None:
        runner = _FakeRunner(exit_code=2, output="Access denied")

        result = _make_service(runner, tmp_path).run()

        assert result.success is False
        assert result.exit_code == 2
        assert result.output == "Access denied"
        assert not Path(result.path).exists()
        assert result.as_text() == "Backup failed (exit 2)"

    def test_missing_binary_reports_127(self, tmp_path: Path) -> None:
        result = _make_service(_MissingBinaryRunner(), tmp_path).run()
        assert result.success is False
        assert result.exit_code == 127

    def test_outcome_is_audited(self, tmp_path: Path, mock_audit_logger: MagicMock) -> None:
        _make_service(_FakeRunner(), tmp_path, audit_logger=mock_audit_logger).run()

        event = mock_audit_logger.log.call_args[0][0]
        assert event.event_type == AuditEventType.BACKUP
        assert event.result == "success"
        assert event.details["exit_code"] == 0


class TestMysqldumpRunner:
    def test_password_not_in_command(self) -> None:
        runner = MysqldumpRunner(user="craft", password="hunter2", host="db", database="craft")
        cmd = runner.command()
        assert cmd[0] == "mysqldump"
        assert "--user=craft" in cmd
        assert "--host=db" in cmd
        assert "--single-transaction" in cmd
        assert cmd[-1] == "craft"
        assert not any("hunter2" in part for part in cmd)

    def test_run_passes_password_via_environment(self, tmp_path: Path) -> None:
        runner = MysqldumpRunner(user="craft", password="hunter2", host="db", database="craft")
        completed = subprocess.CompletedProcess(args=[], returncode=0, stderr=b"")

        with patch("craftops.backup.runners.subprocess.run", return_value=completed) as mock_run:
            outcome = runner.run(tmp_path / "dump.sql")

        assert outcome.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["env"]["MYSQL_PWD"] == "hunter2"
        assert kwargs["stdout"] is not None

    def test_stderr_captured_on_failure(self, tmp_path: Path) -> None:
        runner = MysqldumpRunner(user="craft", password="x", host="db", database="craft")
        completed = subprocess.CompletedProcess(
            args=[], returncode=2, stderr=b"mysqldump: Got error: 1045\n",
        )

        with patch("craftops.backup.runners.subprocess.run", return_value=completed):
            outcome = runner.run(tmp_path / "dump.sql")

        assert outcome.exit_code == 2
        assert outcome.output == "mysqldump: Got error: 1045"


class TestContainerCraftRunner:
    def test_command(self) -> None:
        runner = ContainerCraftRunner(service="php")
        cmd = runner.command(Path("/backups/db/backup.sql"))
        assert cmd == [
            "docker", "compose", "exec", "-T", "php",
            "php", "craft", "db/backup", "/backups/db/backup.sql",
        ]

    def test_run_combines_output(self) -> None:
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="Backing up...\n", stderr="done\n",
        )
        with patch("craftops.backup.runners.subprocess.run", return_value=completed):
            outcome = ContainerCraftRunner().run(Path("/tmp/x.sql"))
        assert outcome.exit_code == 0
        assert outcome.output == "Backing up...\ndone"


class TestRunnerFromSettings:
    def test_mysqldump_strategy(self) -> None:
        runner = runner_from_settings(Settings(backup_strategy="mysqldump", db_port=3307))
        assert isinstance(runner, MysqldumpRunner)
        assert "--port=3307" in runner.command()

    def test_container_strategy(self) -> None:
        runner = runner_from_settings(Settings(backup_strategy=" Container ", backup_service="app"))
        assert isinstance(runner, ContainerCraftRunner)
        assert runner.command(Path("out.sql"))[4] == "app"

    def test_unknown_strategy_raises(self) -> None:
        with pytest.raises(BackupError, match="Unknown backup strategy"):
            runner_from_settings(Settings(backup_strategy="rsync"))
