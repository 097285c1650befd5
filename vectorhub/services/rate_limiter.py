"""Fixed-window request rate limiting.

Counters are keyed by ``<client>:<path>`` and held in one ``cachetools``
TTLCache per route category, whose TTL equals the window length.  An entry
expiring is the window resetting.  State is process-local.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass

import structlog
from cachetools import TTLCache

from vectorhub.config.loader import DEFAULT_RATE_LIMITS
from vectorhub.utils.errors import RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_MAX_TRACKED_CLIENTS = 10000


@dataclass(frozen=True)
class RateLimitRule:
    window_seconds: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_at: float  # epoch seconds

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_at - time.time()))

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }


@dataclass
class _Window:
    count: int
    reset_at: float


def client_identifier(forwarded_for: str | None, real_ip: str | None) -> str:
    """First ``X-Forwarded-For`` hop, else ``X-Real-IP``, else ``localhost``."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if real_ip:
        return real_ip.strip()
    return "localhost"


class RateLimiter:
    """Per-category fixed-window limiter.

    Parameters
    ----------
    limits:
        ``{category: {"window_seconds": int, "max_requests": int}}``, usually
        the ``rate_limits`` section of the loaded config.  Categories missing
        from it use the built-in defaults.
    """

    def __init__(self, limits: dict[str, dict[str, int]] | None = None) -> None:
        merged = {**DEFAULT_RATE_LIMITS, **(limits or {})}
        self._rules = {
            name: RateLimitRule(int(rule["window_seconds"]), int(rule["max_requests"]))
            for name, rule in merged.items()
        }
        self._windows: dict[str, TTLCache[str, _Window]] = {
            name: TTLCache(maxsize=_MAX_TRACKED_CLIENTS, ttl=rule.window_seconds)
            for name, rule in self._rules.items()
        }

    def rule_for(self, category: str) -> RateLimitRule:
        return self._rules.get(category, self._rules["default"])

    def check(self, key: str, category: str = "default") -> RateLimitResult:
        """Count one request for *key* and report whether it is allowed."""
        if category not in self._rules:
            category = "default"
        rule = self._rules[category]
        windows = self._windows[category]
        now = time.time()

        window = windows.get(key)
        if window is None or window.reset_at <= now:
            window = _Window(count=0, reset_at=now + rule.window_seconds)
            windows[key] = window

        if window.count >= rule.max_requests:
            return RateLimitResult(False, 0, rule.max_requests, window.reset_at)

        window.count += 1
        return RateLimitResult(
            True, rule.max_requests - window.count, rule.max_requests, window.reset_at
        )

    def enforce(self, key: str, category: str = "default") -> RateLimitResult:
        """Like :meth:`check` but raise :class:`RateLimitError` when blocked."""
        result = self.check(key, category)
        if not result.allowed:
            logger.warning("rate_limit_exceeded", key=key, category=category)
            raise RateLimitError(
                retry_after=result.retry_after,
                limit=result.limit,
                reset_at=result.reset_at,
            )
        return result
