"""Data models for the webhook endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class InboundRequest:
    """Transport-neutral view of an HTTP request hitting the webhook."""

    method: str
    body: bytes
    client_ip: str | None = None
    user_agent: str | None = None
    idempotency_key: str | None = None


@dataclass
class WebhookResponse:
    """Handler response to render as JSON (or an empty body when ``body`` is None)."""

    status_code: int
    body: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
