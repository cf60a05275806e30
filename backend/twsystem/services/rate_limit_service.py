# Overview: In-process fixed-window rate limiter for the HTTP API.

"""
Rate Limiting Service

WHY: Cap request bursts per client address (general API traffic) and slow
down credential stuffing on the login endpoint.

NOTES:
- Fixed window: the first hit opens a window of `window_seconds`; at most
  `limit` hits are allowed until it closes.
- State is per process. Multiple workers each enforce their own window,
  which is acceptable for the small deployments this backend targets.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from twsystem.time_utils import utcnow


@dataclass(frozen=True)
class RateLimitState:
    allowed: bool
    remaining: int
    reset_at: datetime

    def retry_after_seconds(self, now: datetime | None = None) -> int:
        delta = (self.reset_at - (now or utcnow())).total_seconds()
        return max(int(delta) + 1, 1)


class RateLimiter:
    """Per-identity fixed-window counter guarded by a lock."""

    def __init__(self, *, prefix: str, limit: int, window_seconds: int):
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds
        self._records: dict[str, tuple[int, datetime]] = {}
        self._lock = threading.Lock()

    def _key(self, identity: str | int) -> str:
        return f"rl:{self.prefix}:{identity}"

    def check(self, *, identity: str | int, now: datetime | None = None) -> RateLimitState:
        """
        Atomically mark a hit for the supplied identity and return the resulting status.
        """
        now = now or utcnow()
        key = self._key(identity)

        with self._lock:
            record = self._records.get(key)

            if record is None or record[1] <= now:
                reset_at = now + timedelta(seconds=self.window_seconds)
                self._records[key] = (1, reset_at)
                self._prune(now)
                return RateLimitState(True, max(self.limit - 1, 0), reset_at)

            count, reset_at = record
            if count >= self.limit:
                return RateLimitState(False, 0, reset_at)

            count += 1
            self._records[key] = (count, reset_at)
            return RateLimitState(True, max(self.limit - count, 0), reset_at)

    def reset(self, identity: str | int | None = None) -> None:
        with self._lock:
            if identity is None:
                self._records.clear()
            else:
                self._records.pop(self._key(identity), None)

    def _prune(self, now: datetime) -> None:
        # Drop closed windows so the table does not grow with every client address seen
        expired = [k for k, (_, reset_at) in self._records.items() if reset_at <= now]
        for k in expired:
            del self._records[k]


def build_limiters(config) -> dict[str, RateLimiter]:
    """Construct the limiters once at startup from the application config."""
    window = config["RATE_LIMIT_WINDOW_SECONDS"]
    return {
        "api": RateLimiter(prefix="api", limit=config["RATE_LIMIT_MAX_REQUESTS"], window_seconds=window),
        "auth": RateLimiter(prefix="auth", limit=config["AUTH_RATE_LIMIT_MAX_REQUESTS"], window_seconds=window),
    }
