"""
Custom decorators for plain Django views.

Rate limiting for function-based views (fixed window in the Django cache).

DRF views use core.throttling.ActionRateThrottle instead; these decorators
cover function-based views such as gateway redirect callbacks.

Usage:
    from core.decorators import rate_limit

    @rate_limit("khalti_callback")
    def khalti_callback(request, course_id):
        ...
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

from django.http import JsonResponse

from core.helpers import get_client_ip
from core.rate_limit import RateLimiter, get_rate_limiter

logger = logging.getLogger(__name__)


def rate_limit(key: str, limit: int | None = None, period: int | None = None):
    """
    Rate limit decorator for function-based views.

    Uses the authenticated user's ID or client IP as identifier. When
    ``limit``/``period`` are omitted the rate comes from
    settings.RATE_LIMITS[key].

    Args:
        key: Action name for this rate limit
        limit: Maximum number of requests per window
        period: Window length in seconds

    HTTP 429 Response:
        {"error": ..., "error_code": "RATE_LIMIT_EXCEEDED", "retryAfter": n}
        with a Retry-After header.
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(request, *args, **kwargs):
            if limit is not None and period is not None:
                limiter = RateLimiter(key, limit, period)
            else:
                limiter = get_rate_limiter(key)

            if hasattr(request, "user") and request.user.is_authenticated:
                identifier = f"user:{request.user.pk}"
            else:
                identifier = f"ip:{get_client_ip(request)}"

            decision = limiter.hit(identifier)
            if not decision.allowed:
                logger.warning(
                    f"Rate limit exceeded for {key}",
                    extra={"identifier": identifier, "retry_after": decision.retry_after},
                )
                response = JsonResponse(
                    {
                        "error": "Too many requests. Please try again later.",
                        "error_code": "RATE_LIMIT_EXCEEDED",
                        "retryAfter": decision.retry_after,
                    },
                    status=429,
                )
                response["Retry-After"] = str(decision.retry_after)
                return response

            return func(request, *args, **kwargs)

        return wrapper

    return decorator
