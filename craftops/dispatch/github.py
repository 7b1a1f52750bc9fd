"""GitHub repository dispatch client.

Triggers a workflow in the target repository through the REST endpoint
``POST /repos/{owner}/{repo}/dispatches``. GitHub answers 204 with no body on
success. Exactly one attempt is made per call; re-invoking on failure is the
caller's job.
"""

from __future__ import annotations

import logging
import os
import re
import ssl
import time
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime

import httpx

from craftops.config import DEFAULT_REPOSITORY
from craftops.models import (
    ClientPayload,
    DispatchFailure,
    DispatchPayload,
    DispatchResult,
    DispatchSuccess,
    FailureKind,
)

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"
USER_AGENT = "craftops-webhook/1.0"

# Checked in order, first non-empty wins
TOKEN_ENV_VARS = ("GITHUB_PAT", "GITHUB_TOKEN")
TOKEN_PATTERN = re.compile(r"^(ghp_|github_pat_)[A-Za-z0-9_]+$")

EVENT_TYPES = {
    "update": "run-backup-und-update",
    "backup": "run-backup-only",
    "maintenance": "run-maintenance",
    "test": "run-test-workflow",
}
DEFAULT_EVENT_TYPE = EVENT_TYPES["update"]

_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
_MAX_LOGGED_BODY = 500


class DispatchConfigurationError(Exception):
    """Raised when the dispatcher cannot authenticate without calling the API."""


def resolve_token(env: Mapping[str, str]) -> str:
    """Return the configured GitHub token after a format check."""
    token = ""
    for name in TOKEN_ENV_VARS:
        token = env.get(name, "")
        if token:
            break
    if not token:
        raise DispatchConfigurationError(
            "GitHub token not configured - set GITHUB_PAT or GITHUB_TOKEN"
        )
    if not TOKEN_PATTERN.match(token):
        raise DispatchConfigurationError("GitHub token has an invalid format")
    return token


def event_type_for(action: str) -> str:
    return EVENT_TYPES.get(action, DEFAULT_EVENT_TYPE)


def build_payload(
    action: str,
    source: str,
    request_id: str | None = None,
    user_agent: str | None = None,
) -> DispatchPayload:
    return DispatchPayload(
        event_type=event_type_for(action),
        client_payload=ClientPayload(
            source=source,
            timestamp=datetime.now(UTC).isoformat(),
            action=action,
            request_id=request_id or f"dispatch_{uuid.uuid4().hex}",
            user_agent=user_agent,
        ),
    )


def tls_context() -> ssl.SSLContext:
    """Verifying client context that refuses anything older than TLS 1.2."""
    ctx = ssl.create_default_context()
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    return ctx


class GitHubDispatcher:
    """Sends repository dispatch events for webhook actions."""

    def __init__(
        self,
        repository: str = DEFAULT_REPOSITORY,
        env: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        api_base: str = API_BASE,
    ) -> None:
        self.repository = repository
        self._env = env
        self._transport = transport
        self._api_base = api_base.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self._api_base}/repos/{self.repository}/dispatches"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=_TIMEOUT,
            follow_redirects=False,
            verify=tls_context(),
            transport=self._transport,
        )

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
            "Content-Type": "application/json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    async def dispatch(
        self,
        action: str,
        source: str,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> DispatchResult:
        """Trigger the workflow mapped to ``action``."""
        env = os.environ if self._env is None else self._env
        try:
            token = resolve_token(env)
        except DispatchConfigurationError as e:
            logger.error("GitHub dispatch not attempted: %s", e)
            return DispatchFailure(kind=FailureKind.CONFIGURATION, error=str(e))

        payload = build_payload(action, source, request_id=request_id, user_agent=user_agent)
        start = time.perf_counter()
        try:
            async with self._client() as client:
                resp = await client.post(
                    self.url,
                    content=payload.model_dump_json(exclude_none=True),
                    headers=self._headers(token),
                )
        except httpx.TransportError as exc:
            elapsed = _elapsed_ms(start)
            error_name = type(exc).__name__
            logger.error(
                "GitHub dispatch transport failure (%s) after %.2fms: %s",
                error_name, elapsed, exc,
            )
            return DispatchFailure(
                kind=FailureKind.TRANSPORT,
                error=f"Transport error calling GitHub API: {error_name}",
                transport_error=error_name,
                execution_time_ms=elapsed,
            )

        elapsed = _elapsed_ms(start)
        if resp.status_code == 204:
            logger.info(
                "GitHub dispatch succeeded: event=%s repository=%s",
                payload.event_type, self.repository,
            )
            return DispatchSuccess(
                repository=self.repository,
                event_type=payload.event_type,
                http_code=resp.status_code,
                execution_time_ms=elapsed,
            )
        return self._failure(resp, elapsed)

    def _failure(self, resp: httpx.Response, elapsed: float) -> DispatchFailure:
        try:
            body = resp.json()
        except ValueError:
            body = None
        api_message = "Unknown GitHub API error"
        if isinstance(body, dict) and body.get("message"):
            api_message = str(body["message"])

        code = resp.status_code
        if code == 401:
            error = "GitHub API authentication failed - token invalid or expired"
        elif code == 403:
            error = "GitHub API access denied - token lacks required permissions"
        elif code == 404:
            error = f"GitHub repository '{self.repository}' not found or not accessible"
        elif code == 422:
            error = f"GitHub API validation error: {api_message}"
        else:
            error = f"GitHub API error {code}: {api_message}"

        logger.error(
            "%s - HTTP %d - response: %s - %.2fms",
            error, code, resp.text[:_MAX_LOGGED_BODY], elapsed,
        )
        return DispatchFailure(
            kind=FailureKind.HTTP,
            error=error,
            http_code=code,
            github_response=body,
            execution_time_ms=elapsed,
        )


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)
