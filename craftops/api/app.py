"""FastAPI application exposing the webhook, health and update endpoints."""

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from craftops.api.headers_middleware import ResponseHeadersMiddleware
from craftops.audit.logger import AuditLogger
from craftops.config import Settings
from craftops.dispatch.github import GitHubDispatcher
from craftops.health.checks import HealthChecker
from craftops.health.runtime import CraftDatabaseRuntime, CraftRuntime
from craftops.updates.analyzer import UpdateAnalyzer
from craftops.updates.feed import PackagistUpdateFeed
from craftops.webhook.handler import WebhookHandler
from craftops.webhook.idempotency import IdempotencyGuard
from craftops.webhook.models import InboundRequest, WebhookResponse

logger = logging.getLogger(__name__)

# The webhook route accepts every method so it can answer 405 with its own body
_WEBHOOK_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = Settings.from_env()
    audit_logger = AuditLogger.from_settings(settings)
    runtime = CraftDatabaseRuntime.from_settings(settings)
    return create_app(
        build_webhook_handler(settings, audit_logger),
        build_health_checker(settings, runtime),
        build_update_analyzer(settings, runtime),
    )


def build_webhook_handler(
    settings: Settings, audit_logger: AuditLogger | None = None,
) -> WebhookHandler:
    return WebhookHandler(
        dispatcher=GitHubDispatcher(repository=settings.github_repository),
        audit_logger=audit_logger,
        idempotency=IdempotencyGuard(settings.idempotency_window_seconds),
    )


def build_health_checker(settings: Settings, runtime: CraftRuntime) -> HealthChecker:
    return HealthChecker(
        runtime=runtime,
        storage_path=settings.storage_path,
        security_key=settings.security_key,
        environment=settings.craft_environment,
    )


def build_update_analyzer(settings: Settings, runtime: CraftRuntime | None) -> UpdateAnalyzer:
    return UpdateAnalyzer(
        feed=PackagistUpdateFeed(),
        plugins=settings.craft_plugins,
        craft_version=settings.craft_version,
        php_version=settings.php_version,
        environment=settings.craft_environment,
        runtime=runtime,
    )


def create_app(
    webhook_handler: WebhookHandler,
    health_checker: HealthChecker,
    update_analyzer: UpdateAnalyzer,
) -> FastAPI:
    """Create the operations app with explicit collaborators."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/webhook", methods=_WEBHOOK_METHODS)
    async def webhook(request: Request) -> Response:
        inbound = InboundRequest(
            method=request.method,
            body=await request.body(),
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            idempotency_key=request.headers.get("idempotency-key"),
        )
        return _render(await webhook_handler.handle(inbound))

    @app.get("/health")
    def health() -> JSONResponse:
        try:
            report = health_checker.run()
        except Exception:
            return _internal_error("health")
        return JSONResponse(report.model_dump(mode="json"), status_code=report.http_status)

    @app.get("/update-analyzer")
    def update_analysis() -> JSONResponse:
        try:
            report = update_analyzer.analyze()
        except Exception:
            return _internal_error("update-analyzer")
        return JSONResponse(report.model_dump(mode="json"))

    app.add_middleware(ResponseHeadersMiddleware)

    return app


def _render(result: WebhookResponse) -> Response:
    if result.body is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(result.body, status_code=result.status_code, headers=result.headers)


def _internal_error(endpoint: str) -> JSONResponse:
    correlation_id = f"err_{uuid.uuid4().hex}"
    logger.exception("Unhandled error in %s (correlation_id=%s)", endpoint, correlation_id)
    return JSONResponse(
        {
            "status": "error",
            "error": "internal_error",
            "message": "Internal server error",
            "correlation_id": correlation_id,
        },
        status_code=500,
    )
