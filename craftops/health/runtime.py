"""Access to Craft CMS state without booting the PHP application.

Handlers depend on the ``CraftRuntime`` protocol; ``CraftDatabaseRuntime``
implements it by reading Craft's own tables.
"""

from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy import column, create_engine, func, select, table, text
from sqlalchemy.engine import Engine

from craftops.config import Settings


class CraftRuntimeError(Exception):
    """Raised when Craft state cannot be read."""


class CraftRuntime(Protocol):
    def check_database(self) -> dict[str, Any]: ...

    def get_version_info(self) -> dict[str, Any]: ...

    def is_in_maintenance_mode(self) -> bool: ...

    def has_waiting_jobs(self) -> bool: ...


class CraftDatabaseRuntime:
    """Reads ``info`` and ``queue`` from the Craft database via SQLAlchemy."""

    def __init__(self, engine: Engine, table_prefix: str = "") -> None:
        self._engine = engine
        self._info = table(
            f"{table_prefix}info",
            column("version"),
            column("schemaVersion"),
            column("maintenance"),
        )
        self._queue = table(
            f"{table_prefix}queue",
            column("id"),
            column("fail"),
            column("dateReserved"),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> CraftDatabaseRuntime:
        engine = create_engine(settings.database_url, pool_pre_ping=True)
        return cls(engine, table_prefix=settings.db_table_prefix)

    def check_database(self) -> dict[str, Any]:
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            version = conn.dialect.server_version_info
        return {
            "driver": self._engine.dialect.name,
            "server_version": ".".join(str(v) for v in version) if version else "unknown",
        }

    def _info_row(self) -> dict[str, Any]:
        query = select(
            self._info.c.version,
            self._info.c.schemaVersion,
            self._info.c.maintenance,
        ).limit(1)
        with self._engine.connect() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            raise CraftRuntimeError("Craft info table is empty")
        return dict(row)

    def get_version_info(self) -> dict[str, Any]:
        row = self._info_row()
        return {"version": row["version"], "schema_version": row["schemaVersion"]}

    def is_in_maintenance_mode(self) -> bool:
        return bool(self._info_row()["maintenance"])

    def has_waiting_jobs(self) -> bool:
        query = (
            select(func.count(self._queue.c.id))
            .where(self._queue.c.fail == 0)
            .where(self._queue.c.dateReserved.is_(None))
        )
        with self._engine.connect() as conn:
            waiting = conn.execute(query).scalar_one()
        return waiting > 0
