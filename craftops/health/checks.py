"""Health checks for the Craft installation.

Each check runs in isolation: an exception inside one check marks only that
check as ``error`` and the remaining checks still run. Exception detail goes
to the server log; the report carries a fixed message and the exception type.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable
from pathlib import Path

from craftops.health.runtime import CraftRuntime
from craftops.models import CheckResult, CheckStatus, HealthReport

logger = logging.getLogger(__name__)

_FAILURE_MESSAGES = {
    "database": "Database connection failed",
    "queue": "Queue state could not be read",
    "craft": "Craft system check failed",
    "storage": "Storage check failed",
    "environment": "Environment check failed",
}


class HealthChecker:
    """Runs all checks and aggregates them to the worst status."""

    def __init__(
        self,
        runtime: CraftRuntime,
        storage_path: str | Path,
        security_key: str | None = None,
        environment: str = "production",
    ) -> None:
        self._runtime = runtime
        self._storage = Path(storage_path)
        self._security_key = security_key
        self._environment = environment

    def checks(self) -> list[tuple[str, Callable[[], CheckResult]]]:
        return [
            ("database", self.check_database),
            ("queue", self.check_queue),
            ("craft", self.check_craft),
            ("storage", self.check_storage),
            ("environment", self.check_environment),
        ]

    def run(self) -> HealthReport:
        results: dict[str, CheckResult] = {}
        for name, check in self.checks():
            try:
                results[name] = check()
            except Exception as e:
                logger.exception("Health check '%s' failed", name)
                results[name] = CheckResult(
                    name=name,
                    status=CheckStatus.ERROR,
                    message=_FAILURE_MESSAGES.get(name, "Check failed"),
                    details={"error_type": type(e).__name__},
                )

        status = CheckStatus.worst([r.status for r in results.values()])
        if status is not CheckStatus.OK:
            degraded = sorted(n for n, r in results.items() if r.status is not CheckStatus.OK)
            logger.warning("Health status %s (checks: %s)", status.value, ", ".join(degraded))
        return HealthReport(status=status, checks=results)

    def check_database(self) -> CheckResult:
        info = self._runtime.check_database()
        return CheckResult(
            name="database",
            status=CheckStatus.OK,
            message="Database connection established",
            details=info,
        )

    def check_queue(self) -> CheckResult:
        if self._runtime.has_waiting_jobs():
            return CheckResult(
                name="queue",
                status=CheckStatus.WARNING,
                message="Queue has pending jobs",
                details={"queue": "pending"},
            )
        return CheckResult(
            name="queue",
            status=CheckStatus.OK,
            message="Queue is clear",
            details={"queue": "clear"},
        )

    def check_craft(self) -> CheckResult:
        info = self._runtime.get_version_info()
        maintenance = self._runtime.is_in_maintenance_mode()
        details = {**info, "maintenance_mode": maintenance}
        if maintenance:
            return CheckResult(
                name="craft",
                status=CheckStatus.WARNING,
                message="Craft is in maintenance mode",
                details=details,
            )
        return CheckResult(
            name="craft",
            status=CheckStatus.OK,
            message="Craft is running normally",
            details=details,
        )

    def check_storage(self) -> CheckResult:
        storage = self._storage
        if not storage.is_dir() or not os.access(storage, os.W_OK):
            return CheckResult(
                name="storage",
                status=CheckStatus.ERROR,
                message="Storage directory is missing or not writable",
                details={"storage_exists": storage.is_dir()},
            )

        status = CheckStatus.OK
        message = "Storage directory is writable"
        backups = storage / "backups"
        if not backups.is_dir():
            try:
                backups.mkdir(parents=True, exist_ok=True)
            except OSError:
                logger.warning("Could not create backup directory %s", backups, exc_info=True)
                status = CheckStatus.WARNING
                message = "Backup directory could not be created"

        free_mb = round(shutil.disk_usage(storage).free / 1024 / 1024, 2)
        return CheckResult(
            name="storage",
            status=status,
            message=message,
            details={
                "storage_writable": True,
                "backup_dir_exists": backups.is_dir(),
                "backup_dir_writable": backups.is_dir() and os.access(backups, os.W_OK),
                "log_dir_exists": (storage / "logs").is_dir(),
                "disk_free_mb": free_mb,
            },
        )

    def check_environment(self) -> CheckResult:
        details = {
            "environment": self._environment,
            "security_key_set": bool(self._security_key),
        }
        if not self._security_key:
            return CheckResult(
                name="environment",
                status=CheckStatus.WARNING,
                message="Security key is not set",
                details=details,
            )
        return CheckResult(
            name="environment",
            status=CheckStatus.OK,
            message="Environment configuration loaded",
            details=details,
        )
