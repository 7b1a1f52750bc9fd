"""Command runners that write a database dump to a target file."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Protocol

from craftops.config import Settings
from craftops.models import BackupOutcome

logger = logging.getLogger(__name__)

STRATEGIES = ("mysqldump", "container")


class BackupError(Exception):
    """Raised when no backup runner can be built from the configuration."""


class BackupRunner(Protocol):
    def run(self, target: Path) -> BackupOutcome: ...


class MysqldumpRunner:
    """Dumps the database with ``mysqldump``; the password never hits argv."""

    def __init__(
        self,
        user: str,
        password: str,
        host: str,
        database: str,
        port: int = 3306,
        binary: str = "mysqldump",
    ) -> None:
        self._user = user
        self._password = password
        self._host = host
        self._database = database
        self._port = port
        self._binary = binary

    def command(self) -> list[str]:
        return [
            self._binary,
            f"--user={self._user}",
            f"--host={self._host}",
            f"--port={self._port}",
            "--single-transaction",
            self._database,
        ]

    def run(self, target: Path) -> BackupOutcome:
        env = {**os.environ, "MYSQL_PWD": self._password}
        with open(target, "wb") as out:
            result = subprocess.run(  # noqa: S603
                self.command(), stdout=out, stderr=subprocess.PIPE, env=env, check=False,
            )
        return BackupOutcome(
            exit_code=result.returncode,
            output=result.stderr.decode(errors="replace").strip(),
        )


class ContainerCraftRunner:
    """Runs Craft's own ``db/backup`` command inside the compose web service."""

    def __init__(self, service: str = "web", compose_cmd: list[str] | None = None) -> None:
        self._service = service
        self._compose_cmd = compose_cmd or ["docker", "compose"]

    def command(self, target: Path) -> list[str]:
        return [
            *self._compose_cmd, "exec", "-T", self._service,
            "php", "craft", "db/backup", str(target),
        ]

    def run(self, target: Path) -> BackupOutcome:
        result = subprocess.run(  # noqa: S603
            self.command(target), capture_output=True, text=True, check=False,
        )
        return BackupOutcome(
            exit_code=result.returncode,
            output=(result.stdout + result.stderr).strip(),
        )


def runner_from_settings(settings: Settings) -> BackupRunner:
    strategy = settings.backup_strategy.strip().lower()
    if strategy == "mysqldump":
        return MysqldumpRunner(
            user=settings.db_user,
            password=settings.db_password,
            host=settings.db_host,
            database=settings.db_name,
            port=settings.db_port,
        )
    if strategy == "container":
        return ContainerCraftRunner(service=settings.backup_service)
    raise BackupError(
        f"Unknown backup strategy {settings.backup_strategy!r}; expected one of {STRATEGIES}"
    )
