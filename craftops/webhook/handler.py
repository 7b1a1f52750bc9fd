"""Webhook endpoint that bridges automation requests to GitHub Actions.

Pipeline stages:
1. Method check (POST, OPTIONS preflight)
2. Body parsing and field validation
3. Duplicate-delivery guard (only when an Idempotency-Key is sent)
4. Audit log of the accepted request
5. Repository dispatch
6. Response envelope
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from craftops.models import (
    AuditEvent,
    AuditEventType,
    DispatchFailure,
    WebhookAction,
    WebhookRequest,
)
from craftops.webhook.models import InboundRequest, WebhookResponse

if TYPE_CHECKING:
    from craftops.audit.logger import AuditLogger
    from craftops.dispatch.github import GitHubDispatcher
    from craftops.webhook.idempotency import IdempotencyGuard

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("POST", "OPTIONS")
ALLOWED_ACTIONS = [a.value for a in WebhookAction]


class WebhookValidationError(Exception):
    """Raised when the request body cannot be turned into a WebhookRequest."""

    def __init__(self, code: str, message: str, **extra: Any) -> None:
        self.code = code
        self.extra = extra
        super().__init__(message)

    def to_response(self) -> WebhookResponse:
        return WebhookResponse(
            status_code=400,
            body={
                "status": "error",
                "error": self.code,
                "message": str(self),
                **self.extra,
                "timestamp": _now_iso(),
            },
        )


def parse_webhook_body(body: bytes) -> WebhookRequest:
    """Validate a raw JSON body and normalise its fields."""
    if not body.strip():
        raise WebhookValidationError("body_empty", "Request body is empty")

    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise WebhookValidationError(
            "invalid_json", "Request body is not valid JSON", detail=str(e),
        ) from e

    if not isinstance(data, dict):
        raise WebhookValidationError("invalid_body", "Request body must be a JSON object")

    raw_action = data.get("action", WebhookAction.UPDATE.value)
    if not isinstance(raw_action, str):
        raise WebhookValidationError(
            "invalid_action", "Action must be a string",
            received_action=raw_action, allowed_actions=ALLOWED_ACTIONS,
        )
    action = raw_action.strip().lower()
    if action not in ALLOWED_ACTIONS:
        raise WebhookValidationError(
            "invalid_action", "Unsupported action",
            received_action=action, allowed_actions=ALLOWED_ACTIONS,
        )

    source = data.get("source", "manual")
    if not isinstance(source, str):
        raise WebhookValidationError("invalid_source", "Source must be a string")

    return WebhookRequest(action=WebhookAction(action), source=source.strip())


class WebhookHandler:
    """Turns inbound webhook requests into GitHub repository dispatches."""

    def __init__(
        self,
        dispatcher: GitHubDispatcher,
        audit_logger: AuditLogger | None = None,
        idempotency: IdempotencyGuard | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._audit = audit_logger
        self._idempotency = idempotency

    async def handle(self, request: InboundRequest) -> WebhookResponse:
        """Run the full pipeline; never raises."""
        try:
            return await self._handle(request)
        except Exception:
            correlation_id = f"err_{uuid.uuid4().hex}"
            logger.exception("Unhandled webhook error (correlation_id=%s)", correlation_id)
            return WebhookResponse(
                status_code=500,
                body={
                    "status": "error",
                    "error": "internal_error",
                    "message": "Internal error while processing webhook",
                    "correlation_id": correlation_id,
                    "timestamp": _now_iso(),
                },
            )

    async def _handle(self, request: InboundRequest) -> WebhookResponse:
        method = request.method.upper()
        if method == "OPTIONS":
            return WebhookResponse(status_code=200)
        if method not in ALLOWED_METHODS:
            return WebhookResponse(
                status_code=405,
                body={
                    "status": "error",
                    "error": "method_not_allowed",
                    "allowed_methods": list(ALLOWED_METHODS),
                    "received_method": method,
                },
                headers={"Allow": ", ".join(ALLOWED_METHODS)},
            )

        try:
            webhook = parse_webhook_body(request.body)
        except WebhookValidationError as e:
            logger.info("Webhook rejected: %s (%s)", e.code, e)
            self._audit_log(
                AuditEventType.WEBHOOK_REJECTED, request, "rejected",
                action="webhook", details={"reason": e.code},
            )
            return e.to_response()

        key = request.idempotency_key
        if not (key and self._idempotency):
            return await self._accept(request, webhook)

        if not self._idempotency.claim(key):
            logger.warning("Duplicate webhook delivery ignored (key=%s)", key)
            return WebhookResponse(
                status_code=409,
                body={
                    "status": "error",
                    "error": "duplicate_request",
                    "message": "A request with this Idempotency-Key was already accepted",
                    "timestamp": _now_iso(),
                },
            )

        # Only a successful dispatch keeps the key claimed
        try:
            response = await self._accept(request, webhook)
        except BaseException:
            self._idempotency.release(key)
            raise
        if response.status_code != 200:
            self._idempotency.release(key)
        return response

    async def _accept(self, request: InboundRequest, webhook: WebhookRequest) -> WebhookResponse:
        action = webhook.action.value
        logger.info(
            "Webhook request - action=%s source=%s ip=%s user_agent=%s",
            action, webhook.source,
            request.client_ip or "unknown", request.user_agent or "unknown",
        )
        self._audit_log(
            AuditEventType.WEBHOOK_REQUEST, request, "accepted",
            action=action, details={"source": webhook.source},
        )

        request_id = f"req_{uuid.uuid4().hex}"
        result = await self._dispatcher.dispatch(
            action, webhook.source, user_agent=request.user_agent, request_id=request_id,
        )

        if isinstance(result, DispatchFailure):
            logger.error("Webhook dispatch failed for action %s: %s", action, result.error)
            self._audit_log(
                AuditEventType.DISPATCH_FAILURE, request, "failure",
                action=action,
                details={
                    "request_id": request_id,
                    "kind": result.kind.value,
                    "http_code": result.http_code,
                },
            )
            return WebhookResponse(
                status_code=500,
                body={
                    "status": "error",
                    "message": "GitHub workflow could not be triggered",
                    "error": result.error,
                    "request_id": request_id,
                    "action": action,
                    "source": webhook.source,
                    "timestamp": _now_iso(),
                },
            )

        self._audit_log(
            AuditEventType.DISPATCH_SUCCESS, request, "success",
            action=action,
            details={"request_id": request_id, "event_type": result.event_type},
        )
        return WebhookResponse(
            status_code=200,
            body={
                "status": "success",
                "message": "GitHub workflow triggered",
                "request_id": request_id,
                "action": action,
                "source": webhook.source,
                "timestamp": _now_iso(),
                "github_response": result.model_dump(mode="json"),
            },
        )

    def _audit_log(
        self,
        event_type: AuditEventType,
        request: InboundRequest,
        result: str,
        *,
        action: str,
        details: dict[str, object] | None = None,
    ) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=event_type,
                source_ip=request.client_ip,
                user_agent=request.user_agent,
                action=action,
                result=result,
                details=details,
            ))


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()
