"""Backup orchestration: naming, directory setup, and result reporting."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from craftops.models import AuditEvent, AuditEventType, BackupResult

if TYPE_CHECKING:
    from craftops.audit.logger import AuditLogger
    from craftops.backup.runners import BackupRunner

logger = logging.getLogger(__name__)


def backup_filename(now: datetime) -> str:
    return f"backup-{now:%Y%m%d-%H%M%S}.sql"


class BackupService:
    """Runs one backup into a timestamped file under ``backup_dir``."""

    def __init__(
        self,
        runner: BackupRunner,
        backup_dir: str | Path,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._runner = runner
        self._backup_dir = Path(backup_dir)
        self._audit = audit_logger
        self._clock = clock

    def run(self) -> BackupResult:
        self._backup_dir.mkdir(parents=True, exist_ok=True)
        target = self._backup_dir / backup_filename(self._clock())
        logger.info("Starting backup to %s", target)

        try:
            outcome = self._runner.run(target)
            exit_code, output = outcome.exit_code, outcome.output
        except OSError as e:
            logger.error("Backup command could not be started: %s", e)
            exit_code, output = 127, str(e)

        success = exit_code == 0
        if success:
            logger.info("Backup written to %s", target)
        else:
            logger.error("Backup failed with exit code %d: %s", exit_code, output)
            target.unlink(missing_ok=True)

        if self._audit:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.BACKUP,
                action="backup",
                result="success" if success else "failure",
                details={"path": str(target), "exit_code": exit_code},
            ))

        return BackupResult(success=success, path=str(target), exit_code=exit_code, output=output)
