"""
Fixed-window rate limiting backed by the Django cache.

Counters live in the default cache (Redis in production) so every web
worker shares the same windows. A window is identified by
``now // period``, so a key never needs resetting: the next window simply
uses a new cache key and the old one expires.

Usage:
    from core.rate_limit import RateLimiter

    limiter = RateLimiter.from_rate("payment_verify", "10/min")
    decision = limiter.hit(f"user:{user.id}")
    if not decision.allowed:
        raise RateLimitError(..., details={"retry_after": decision.retry_after})

Rate strings follow DRF's throttle format: "<count>/<sec|min|hour|day>".
Only the first character of the period is significant.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from django.core.cache import cache

logger = logging.getLogger(__name__)

PERIOD_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_rate(rate: str) -> tuple[int, int]:
    """
    Parse "10/min" into (10, 60).

    Raises:
        ValueError: Malformed rate string
    """
    try:
        count, period = rate.split("/")
        return int(count), PERIOD_SECONDS[period.strip()[0].lower()]
    except (ValueError, KeyError, IndexError) as e:
        raise ValueError(f"Invalid rate {rate!r}") from e


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one counted attempt."""

    allowed: bool
    limit: int
    remaining: int
    retry_after: int


class RateLimiter:
    """
    Fixed-window counter keyed by (action, identity).

    Attributes:
        action: Name of the guarded action (part of the cache key)
        limit: Attempts allowed per window
        period: Window length in seconds
    """

    key_prefix = "ratelimit"

    def __init__(self, action: str, limit: int, period: int):
        self.action = action
        self.limit = limit
        self.period = period

    @classmethod
    def from_rate(cls, action: str, rate: str) -> RateLimiter:
        limit, period = parse_rate(rate)
        return cls(action, limit, period)

    def _window(self, now: float) -> tuple[str, int]:
        window_index = int(now // self.period)
        retry_after = self.period - int(now % self.period)
        return f"{self.key_prefix}:{self.action}:{window_index}", retry_after

    def hit(self, identity: str) -> RateLimitDecision:
        """
        Count one attempt for ``identity`` and decide whether it may proceed.

        The first hit in a window creates the counter with ``cache.add`` so
        two concurrent first hits cannot both start at 1.
        """
        now = time.time()
        window_key, retry_after = self._window(now)
        key = f"{window_key}:{identity}"

        if cache.add(key, 1, timeout=self.period):
            count = 1
        else:
            try:
                count = cache.incr(key)
            except ValueError:
                # Key expired between add() and incr()
                cache.set(key, 1, timeout=self.period)
                count = 1

        allowed = count <= self.limit
        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {self.action}",
                extra={
                    "action": self.action,
                    "identity": identity,
                    "count": count,
                    "limit": self.limit,
                },
            )

        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            retry_after=retry_after,
        )

    def reset(self, identity: str) -> None:
        """Forget the current window for ``identity`` (admin/testing)."""
        window_key, _ = self._window(time.time())
        cache.delete(f"{window_key}:{identity}")

    def __repr__(self) -> str:
        return f"RateLimiter(action={self.action!r}, limit={self.limit}, period={self.period})"


def get_rate_limiter(action: str) -> RateLimiter:
    """
    Build the limiter configured for ``action`` in settings.RATE_LIMITS.

    Raises:
        KeyError: No rate configured for the action
    """
    from django.conf import settings

    return RateLimiter.from_rate(action, settings.RATE_LIMITS[action])
