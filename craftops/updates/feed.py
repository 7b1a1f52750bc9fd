"""Update feeds: where available versions and security advisories come from."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from craftops.models import PackageUpdate, SecurityAdvisory
from craftops.updates.versions import (
    bump_kind,
    compare_versions,
    is_stable,
    minimum_version,
    satisfies,
)

logger = logging.getLogger(__name__)

CORE_PACKAGE = "craftcms/cms"
PACKAGIST_REPO_URL = "https://repo.packagist.org"
PACKAGIST_API_URL = "https://packagist.org"

_TIMEOUT = httpx.Timeout(20.0, connect=10.0)


class UpdateFeedError(Exception):
    """Raised when the update source cannot be queried.

    ``partial`` carries the updates that were resolved before or despite the
    failure, so callers can still score what is known.
    """

    def __init__(self, message: str, partial: list[PackageUpdate] | None = None) -> None:
        super().__init__(message)
        self.partial = partial or []


class UpdateFeed(Protocol):
    def available_updates(self, installed: dict[str, str]) -> list[PackageUpdate]: ...

    def security_advisories(self, installed: dict[str, str]) -> list[SecurityAdvisory]: ...


class StaticUpdateFeed:
    """Serves preloaded updates and advisories (fixtures, offline use)."""

    def __init__(
        self,
        updates: list[PackageUpdate] | None = None,
        advisories: list[SecurityAdvisory] | None = None,
    ) -> None:
        self._updates = updates or []
        self._advisories = advisories or []

    def available_updates(self, installed: dict[str, str]) -> list[PackageUpdate]:
        return list(self._updates)

    def security_advisories(self, installed: dict[str, str]) -> list[SecurityAdvisory]:
        return [
            a for a in self._advisories
            if not a.affected_versions
            or (a.package in installed and satisfies(installed[a.package], a.affected_versions))
        ]


class PackagistUpdateFeed:
    """Queries Packagist for the latest stable releases and security advisories."""

    def __init__(
        self,
        transport: httpx.BaseTransport | None = None,
        repo_url: str = PACKAGIST_REPO_URL,
        api_url: str = PACKAGIST_API_URL,
    ) -> None:
        self._transport = transport
        self._repo_url = repo_url.rstrip("/")
        self._api_url = api_url.rstrip("/")

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=_TIMEOUT, transport=self._transport)

    def _get_json(self, client: httpx.Client, url: str, **kwargs: Any) -> Any:
        try:
            resp = client.get(url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as e:
            logger.error("Packagist request to %s failed: %s", url, e)
            raise UpdateFeedError(f"Packagist request failed: {type(e).__name__}") from e
        except ValueError as e:
            logger.error("Packagist returned invalid JSON for %s", url)
            raise UpdateFeedError("Packagist returned invalid JSON") from e

    def available_updates(self, installed: dict[str, str]) -> list[PackageUpdate]:
        updates: list[PackageUpdate] = []
        failed: list[str] = []
        with self._client() as client:
            for name, current in installed.items():
                try:
                    data = self._get_json(client, f"{self._repo_url}/p2/{name}.json")
                except UpdateFeedError as e:
                    failed.append(f"{name} ({e})")
                    continue
                latest = _latest_stable(data.get("packages", {}).get(name, []))
                if latest is None:
                    continue
                version = latest["version"].lstrip("v")
                try:
                    if compare_versions(version, current) <= 0:
                        continue
                    kind = bump_kind(current, version)
                except ValueError:
                    logger.warning("Skipping %s: cannot compare %s with %s", name, current, version)
                    continue
                php = latest.get("require", {}).get("php")
                updates.append(PackageUpdate(
                    name=name,
                    current_version=current,
                    available_version=version,
                    kind=kind,
                    php_min=minimum_version(php) if isinstance(php, str) else None,
                    is_core=name == CORE_PACKAGE,
                ))

        if failed:
            raise UpdateFeedError(
                f"Packagist lookup failed for {'; '.join(failed)}", partial=updates,
            )
        return updates

    def security_advisories(self, installed: dict[str, str]) -> list[SecurityAdvisory]:
        if not installed:
            return []
        params = [("packages[]", name) for name in installed]
        with self._client() as client:
            data = self._get_json(
                client, f"{self._api_url}/api/security-advisories/", params=params,
            )

        advisories: list[SecurityAdvisory] = []
        for package, entries in (data.get("advisories") or {}).items():
            current = installed.get(package)
            if current is None:
                continue
            for entry in entries:
                affected = entry.get("affectedVersions", "")
                try:
                    if not satisfies(current, affected):
                        continue
                except ValueError:
                    logger.warning("Cannot evaluate constraint %r for %s", affected, package)
                    continue
                advisories.append(SecurityAdvisory(
                    package=package,
                    advisory_id=entry.get("advisoryId", ""),
                    title=entry.get("title", ""),
                    severity=entry.get("severity"),
                    cve=entry.get("cve"),
                    link=entry.get("link"),
                    affected_versions=affected,
                ))
        return advisories


def _latest_stable(entries: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Return the newest stable release from a minified p2 version list.

    Packagist's p2 format lists versions newest first; every entry after the
    first carries only the keys that changed, with ``"__unset"`` marking
    removals.
    """
    expanded: dict[str, Any] = {}
    for entry in entries:
        for key, value in entry.items():
            if value == "__unset":
                expanded.pop(key, None)
            else:
                expanded[key] = value
        version = str(expanded.get("version", "")).lstrip("v")
        try:
            if version and is_stable(version):
                return dict(expanded)
        except ValueError:
            continue
    return None
