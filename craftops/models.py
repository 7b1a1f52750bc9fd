"""Shared Pydantic data models for craftops."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class WebhookAction(str, Enum):
    UPDATE = "update"
    BACKUP = "backup"
    MAINTENANCE = "maintenance"
    TEST = "test"


class CheckStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @classmethod
    def worst(cls, statuses: list[CheckStatus]) -> CheckStatus:
        """Return the most severe status (error > warning > ok)."""
        return max(statuses, key=lambda s: s.rank, default=cls.OK)


_STATUS_RANK = {CheckStatus.OK: 0, CheckStatus.WARNING: 1, CheckStatus.ERROR: 2}


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuditEventType(str, Enum):
    WEBHOOK_REQUEST = "webhook_request"
    WEBHOOK_REJECTED = "webhook_rejected"
    DISPATCH_SUCCESS = "dispatch_success"
    DISPATCH_FAILURE = "dispatch_failure"
    BACKUP = "backup"


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    HTTP = "http"
    TRANSPORT = "transport"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# --- Webhook / dispatch models ---


class WebhookRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: WebhookAction = WebhookAction.UPDATE
    source: str = "manual"


class ClientPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    timestamp: str
    triggered_by: str = "webhook"
    action: str
    request_id: str
    user_agent: str | None = None


class DispatchPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: str
    client_payload: ClientPayload


class DispatchSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    repository: str
    event_type: str
    http_code: int
    execution_time_ms: float
    timestamp: str = Field(default_factory=_now_iso)


class DispatchFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    kind: FailureKind
    error: str
    http_code: int | None = None
    github_response: Any = None
    transport_error: str | None = None
    execution_time_ms: float | None = None


DispatchResult = DispatchSuccess | DispatchFailure


# --- Health models ---


class CheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    status: CheckStatus
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class HealthReport(BaseModel):
    status: CheckStatus
    timestamp: str = Field(default_factory=_now_iso)
    checks: dict[str, CheckResult]

    @property
    def http_status(self) -> int:
        return 503 if self.status is CheckStatus.ERROR else 200


# --- Update analyzer models ---


class PackageUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    current_version: str
    available_version: str
    kind: Literal["major", "minor", "patch"]
    php_min: str | None = None
    is_core: bool = False
    changelog_url: str | None = None


class SecurityAdvisory(BaseModel):
    model_config = ConfigDict(frozen=True)

    package: str
    advisory_id: str
    title: str
    severity: str | None = None
    cve: str | None = None
    link: str | None = None
    affected_versions: str = ""


class CompatibilityConflict(BaseModel):
    model_config = ConfigDict(frozen=True)

    component: str
    required: str
    current: str
    severity: Literal["blocking", "warning"]


class RuntimeCompatibility(BaseModel):
    current_php: str | None
    compatible: bool
    conflicts: list[CompatibilityConflict] = Field(default_factory=list)


class RiskFactor(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: str
    impact: str
    risk_adjustment: int


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int
    overall_risk: RiskLevel
    factors: list[RiskFactor]


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: str
    type: str
    action: str
    message: str
    timeline: str
    automation_safe: bool
    manual_steps: list[str] = Field(default_factory=list)


class UpdateReport(BaseModel):
    status: str = "ok"
    timestamp: str = Field(default_factory=_now_iso)
    system_info: dict[str, Any]
    available_updates: list[PackageUpdate] = Field(default_factory=list)
    feed_error: str | None = None
    security_updates: list[SecurityAdvisory] = Field(default_factory=list)
    runtime_compatibility: RuntimeCompatibility
    risk_assessment: RiskAssessment
    recommendations: list[Recommendation]


# --- Backup models ---


class BackupOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    exit_code: int
    output: str = ""


class BackupResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    path: str
    exit_code: int
    output: str = ""

    def as_text(self) -> str:
        if self.success:
            return f"Backup succeeded: {self.path}"
        return f"Backup failed (exit {self.exit_code})"


# --- Audit models ---


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    user_agent: str | None = None
    action: str
    result: str  # "success" | "failure" | "rejected"
    details: dict[str, object] | None = None
