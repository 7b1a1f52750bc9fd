"""Risk scoring and recommendations for pending updates.

Weights: security updates -10 (urgent but safe to apply), PHP incompatibility
+50 (blocks the update), major core bump +20. Score buckets: <=0 low,
<=30 medium, >30 high.
"""

from __future__ import annotations

import logging

from craftops.models import (
    CompatibilityConflict,
    PackageUpdate,
    Recommendation,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    RuntimeCompatibility,
)
from craftops.updates.versions import compare_versions

logger = logging.getLogger(__name__)

SECURITY_ADJUSTMENT = -10
INCOMPATIBILITY_ADJUSTMENT = 50
MAJOR_UPDATE_ADJUSTMENT = 20


def risk_level(score: int) -> RiskLevel:
    if score <= 0:
        return RiskLevel.LOW
    if score <= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def assess_risk(
    security_updates: bool,
    runtime_compatible: bool,
    major_update: bool,
) -> RiskAssessment:
    factors: list[RiskFactor] = []
    if security_updates:
        factors.append(RiskFactor(
            factor="security_updates_available",
            impact="Security updates available - update urgently recommended",
            risk_adjustment=SECURITY_ADJUSTMENT,
        ))
    if not runtime_compatible:
        factors.append(RiskFactor(
            factor="php_incompatibility",
            impact="PHP version conflicts - update blocked",
            risk_adjustment=INCOMPATIBILITY_ADJUSTMENT,
        ))
    if major_update:
        factors.append(RiskFactor(
            factor="major_version_update",
            impact="Major version update - breaking changes possible",
            risk_adjustment=MAJOR_UPDATE_ADJUSTMENT,
        ))

    score = sum(f.risk_adjustment for f in factors)
    return RiskAssessment(score=score, overall_risk=risk_level(score), factors=factors)


def check_runtime_compatibility(
    updates: list[PackageUpdate],
    php_version: str | None,
) -> RuntimeCompatibility:
    """Compare each update's minimum PHP version with the running one.

    A conflict on the core package blocks the update; plugin conflicts are
    reported as warnings only.
    """
    if php_version is None:
        logger.warning("PHP version unknown; skipping runtime compatibility check")
        return RuntimeCompatibility(current_php=None, compatible=True)

    conflicts: list[CompatibilityConflict] = []
    for update in updates:
        if not update.php_min:
            continue
        try:
            too_old = compare_versions(php_version, update.php_min) < 0
        except ValueError:
            logger.warning("Cannot compare PHP %s with %s", php_version, update.php_min)
            continue
        if too_old:
            conflicts.append(CompatibilityConflict(
                component=update.name,
                required=update.php_min,
                current=php_version,
                severity="blocking" if update.is_core else "warning",
            ))

    compatible = not any(c.severity == "blocking" for c in conflicts)
    return RuntimeCompatibility(current_php=php_version, compatible=compatible, conflicts=conflicts)


_BUCKET_TEMPLATES = {
    RiskLevel.LOW: Recommendation(
        priority="normal",
        type="routine_update",
        action="automated_update",
        message="Routine update can run automatically",
        timeline="Next scheduled update cycle",
        automation_safe=True,
    ),
    RiskLevel.MEDIUM: Recommendation(
        priority="medium",
        type="supervised_update",
        action="manual_review_required",
        message="Review the update manually before applying it",
        timeline="After manual review",
        automation_safe=False,
    ),
    RiskLevel.HIGH: Recommendation(
        priority="high",
        type="high_risk_update",
        action="staging_test_required",
        message="Apply only after thorough testing in staging",
        timeline="After staging tests and sign-off",
        automation_safe=False,
    ),
}


def recommend(
    security_updates: bool,
    runtime_compatible: bool,
    level: RiskLevel,
) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    if security_updates:
        recommendations.append(Recommendation(
            priority="critical",
            type="security_update",
            action="immediate_update",
            message="Security updates available - update immediately",
            timeline="Within 24 hours",
            automation_safe=True,
        ))
    if not runtime_compatible:
        recommendations.append(Recommendation(
            priority="high",
            type="php_upgrade_required",
            action="upgrade_php_first",
            message="Upgrade PHP before updating Craft",
            timeline="Before the next update attempt",
            automation_safe=False,
            manual_steps=[
                "Upgrade PHP in the Docker image or on the server",
                "Check compatibility with dependent systems",
                "Run tests in a staging environment",
            ],
        ))
    recommendations.append(_BUCKET_TEMPLATES[level])
    return recommendations
