"""In-memory duplicate-delivery guard keyed on the ``Idempotency-Key`` header."""

from __future__ import annotations

import time


class IdempotencyGuard:
    """Remembers accepted keys for a sliding window.

    Default: a key is considered a duplicate for 600 seconds after first use.
    State is per process and is lost on restart.
    """

    def __init__(self, window_seconds: int = 600) -> None:
        self._window_seconds = window_seconds
        self._seen: dict[str, float] = {}

    def claim(self, key: str) -> bool:
        """Return True if ``key`` is new within the window and record it."""
        now = time.time()
        cutoff = now - self._window_seconds
        self._seen = {k: t for k, t in self._seen.items() if t > cutoff}

        if key in self._seen:
            return False
        self._seen[key] = now
        return True

    def release(self, key: str) -> None:
        """Forget ``key`` so a failed delivery can be retried."""
        self._seen.pop(key, None)
