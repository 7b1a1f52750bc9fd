"""Tests for CraftDatabaseRuntime against a throwaway SQLite database."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from craftops.health.runtime import CraftDatabaseRuntime, CraftRuntimeError


def _make_engine(tmp_path: Path, prefix: str = "") -> Engine:
    engine = create_engine(f"sqlite:///{tmp_path / 'craft.db'}")
    with engine.begin() as conn:
        conn.execute(text(
            f'CREATE TABLE {prefix}info (id INTEGER PRIMARY KEY, version TEXT, '
            f'"schemaVersion" TEXT, maintenance INTEGER)'
        ))
        conn.execute(text(
            f'CREATE TABLE {prefix}queue (id INTEGER PRIMARY KEY, fail INTEGER, '
            f'"dateReserved" TEXT)'
        ))
    return engine


def _insert_info(engine: Engine, prefix: str = "", maintenance: int = 0) -> None:
    with engine.begin() as conn:
        conn.execute(
            text(
                f'INSERT INTO {prefix}info (version, "schemaVersion", maintenance) '
                "VALUES (:v, :s, :m)"
            ),
            {"v": "5.7.10", "s": "5.7.0.3", "m": maintenance},
        )


def _insert_job(engine: Engine, fail: int = 0, reserved: str | None = None) -> None:
    with engine.begin() as conn:
        conn.execute(
            text('INSERT INTO queue (fail, "dateReserved") VALUES (:f, :r)'),
            {"f": fail, "r": reserved},
        )


def test_check_database_reports_driver(tmp_path: Path) -> None:
    runtime = CraftDatabaseRuntime(_make_engine(tmp_path))
    info = runtime.check_database()
    assert info["driver"] == "sqlite"
    assert info["server_version"] != "unknown"


def test_version_info(tmp_path: Path) -> None:
    engine = _make_engine(tmp_path)
    _insert_info(engine)
    runtime = CraftDatabaseRuntime(engine)
    assert runtime.get_version_info() == {"version": "5.7.10", "schema_version": "5.7.0.3"}
    assert runtime.is_in_maintenance_mode() is False


def test_maintenance_flag(tmp_path: Path) -> None:
    engine = _make_engine(tmp_path)
    _insert_info(engine, maintenance=1)
    assert CraftDatabaseRuntime(engine).is_in_maintenance_mode() is True


def test_table_prefix(tmp_path: Path) -> None:
    engine = _make_engine(tmp_path, prefix="craft_")
    _insert_info(engine, prefix="craft_")
    runtime = CraftDatabaseRuntime(engine, table_prefix="craft_")
    assert runtime.get_version_info()["version"] == "5.7.10"


def test_empty_info_table_raises(tmp_path: Path) -> None:
    runtime = CraftDatabaseRuntime(_make_engine(tmp_path))
    with pytest.raises(CraftRuntimeError):
        runtime.get_version_info()


def test_waiting_jobs(tmp_path: Path) -> None:
    engine = _make_engine(tmp_path)
    runtime = CraftDatabaseRuntime(engine)
    assert runtime.has_waiting_jobs() is False

    _insert_job(engine, fail=1)
    _insert_job(engine, reserved="2025-01-01 00:00:00")
    assert runtime.has_waiting_jobs() is False

    _insert_job(engine)
    assert runtime.has_waiting_jobs() is True
