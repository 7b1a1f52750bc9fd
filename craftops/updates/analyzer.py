"""Update analyzer: assembles the update report from a feed and the runtime."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from craftops.models import PackageUpdate, SecurityAdvisory, UpdateReport
from craftops.updates.feed import CORE_PACKAGE, UpdateFeed, UpdateFeedError
from craftops.updates.risk import assess_risk, check_runtime_compatibility, recommend

if TYPE_CHECKING:
    from craftops.health.runtime import CraftRuntime

logger = logging.getLogger(__name__)


class UpdateAnalyzer:
    """Evaluates pending updates against fixed risk rules."""

    def __init__(
        self,
        feed: UpdateFeed,
        plugins: dict[str, str] | None = None,
        craft_version: str | None = None,
        php_version: str | None = None,
        environment: str = "production",
        runtime: CraftRuntime | None = None,
    ) -> None:
        self._feed = feed
        self._plugins = plugins or {}
        self._craft_version = craft_version
        self._php_version = php_version
        self._environment = environment
        self._runtime = runtime

    def _resolve_craft_version(self) -> str | None:
        if self._craft_version:
            return self._craft_version
        if self._runtime is None:
            return None
        try:
            return str(self._runtime.get_version_info()["version"])
        except Exception:
            logger.warning("Could not read Craft version from runtime", exc_info=True)
            return None

    def installed_packages(self) -> dict[str, str]:
        installed = dict(self._plugins)
        craft_version = self._resolve_craft_version()
        if craft_version:
            installed[CORE_PACKAGE] = craft_version
        return installed

    def analyze(self) -> UpdateReport:
        installed = self.installed_packages()
        feed_errors: list[str] = []

        updates: list[PackageUpdate] = []
        try:
            updates = self._feed.available_updates(installed)
        except UpdateFeedError as e:
            updates = e.partial
            feed_errors.append(f"Update information unavailable: {e}")

        advisories: list[SecurityAdvisory] = []
        try:
            advisories = self._feed.security_advisories(installed)
        except UpdateFeedError as e:
            feed_errors.append(f"Security advisories unavailable: {e}")

        compatibility = check_runtime_compatibility(updates, self._php_version)
        major_core = any(u.is_core and u.kind == "major" for u in updates)
        risk = assess_risk(
            security_updates=bool(advisories),
            runtime_compatible=compatibility.compatible,
            major_update=major_core,
        )
        recommendations = recommend(
            security_updates=bool(advisories),
            runtime_compatible=compatibility.compatible,
            level=risk.overall_risk,
        )
        logger.info(
            "Update analysis: %d update(s), %d advisory(ies), risk=%s (%d)",
            len(updates), len(advisories), risk.overall_risk.value, risk.score,
        )

        return UpdateReport(
            status="degraded" if feed_errors else "ok",
            system_info={
                "current_craft_version": installed.get(CORE_PACKAGE),
                "current_php_version": self._php_version,
                "environment": self._environment,
                "installed_packages": installed,
            },
            available_updates=updates,
            feed_error="; ".join(feed_errors) or None,
            security_updates=advisories,
            runtime_compatibility=compatibility,
            risk_assessment=risk,
            recommendations=recommendations,
        )
