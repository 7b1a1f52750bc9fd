"""Shared test fixtures for craftops."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from craftops.audit.logger import AuditLogger
from craftops.dispatch.github import GitHubDispatcher
from craftops.models import (
    DispatchFailure,
    DispatchSuccess,
    FailureKind,
    PackageUpdate,
    SecurityAdvisory,
)

VALID_TOKEN = "ghp_" + "A1b2" * 9
REPOSITORY = "octo/craft-site"


class FakeRuntime:
    """In-memory CraftRuntime; set ``*_error`` attributes to make a call raise."""

    def __init__(
        self,
        version: str = "5.7.10",
        schema_version: str = "5.7.0.3",
        maintenance: bool = False,
        waiting_jobs: bool = False,
    ) -> None:
        self.version = version
        self.schema_version = schema_version
        self.maintenance = maintenance
        self.waiting_jobs = waiting_jobs
        self.database_error: Exception | None = None
        self.version_error: Exception | None = None
        self.queue_error: Exception | None = None

    def check_database(self) -> dict[str, Any]:
        if self.database_error:
            raise self.database_error
        return {"driver": "mysql", "server_version": "8.0.36"}

    def get_version_info(self) -> dict[str, Any]:
        if self.version_error:
            raise self.version_error
        return {"version": self.version, "schema_version": self.schema_version}

    def is_in_maintenance_mode(self) -> bool:
        if self.version_error:
            raise self.version_error
        return self.maintenance

    def has_waiting_jobs(self) -> bool:
        if self.queue_error:
            raise self.queue_error
        return self.waiting_jobs


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    storage = tmp_path / "storage"
    storage.mkdir()
    return storage


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_dispatcher(
    handler: Callable[[httpx.Request], httpx.Response],
    env: dict[str, str] | None = None,
    repository: str = REPOSITORY,
) -> GitHubDispatcher:
    """GitHubDispatcher whose HTTP traffic goes to ``handler``."""
    return GitHubDispatcher(
        repository=repository,
        env={"GITHUB_PAT": VALID_TOKEN} if env is None else env,
        transport=httpx.MockTransport(handler),
    )


def make_dispatch_success(**kwargs: Any) -> DispatchSuccess:
    defaults: dict[str, Any] = {
        "repository": REPOSITORY,
        "event_type": "run-backup-und-update",
        "http_code": 204,
        "execution_time_ms": 12.5,
    }
    defaults.update(kwargs)
    return DispatchSuccess(**defaults)


def make_dispatch_failure(**kwargs: Any) -> DispatchFailure:
    defaults: dict[str, Any] = {
        "kind": FailureKind.HTTP,
        "error": "GitHub API authentication failed - token invalid or expired",
        "http_code": 401,
    }
    defaults.update(kwargs)
    return DispatchFailure(**defaults)


def make_mock_dispatcher(result: DispatchSuccess | DispatchFailure | None = None) -> MagicMock:
    dispatcher = MagicMock(spec=GitHubDispatcher)
    dispatcher.dispatch = AsyncMock(return_value=result or make_dispatch_success())
    return dispatcher


def make_package_update(**kwargs: Any) -> PackageUpdate:
    defaults: dict[str, Any] = {
        "name": "craftcms/cms",
        "current_version": "5.7.10",
        "available_version": "5.8.0",
        "kind": "minor",
        "php_min": "8.2.0",
        "is_core": True,
    }
    defaults.update(kwargs)
    return PackageUpdate(**defaults)


def make_advisory(**kwargs: Any) -> SecurityAdvisory:
    defaults: dict[str, Any] = {
        "package": "craftcms/cms",
        "advisory_id": "PKSA-test-0001",
        "title": "XSS in control panel",
        "severity": "high",
        "cve": "CVE-2025-00001",
        "affected_versions": "",
    }
    defaults.update(kwargs)
    return SecurityAdvisory(**defaults)
