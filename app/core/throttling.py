"""
DRF throttle backed by core.rate_limit.RateLimiter.

Views name the guarded action; the rate comes from settings.RATE_LIMITS
so operations can tune it per environment without a deploy.

Usage:
    class VerifyPaymentView(APIView):
        throttle_classes = [ActionRateThrottle]
        rate_limit_action = "payment_verify"
"""

from __future__ import annotations

from rest_framework.throttling import BaseThrottle

from core.helpers import get_client_ip
from core.rate_limit import get_rate_limiter


class ActionRateThrottle(BaseThrottle):
    """
    Fixed-window throttle keyed by (action, user).

    Anonymous callers are keyed by client IP. A view without
    ``rate_limit_action`` is not throttled.
    """

    def __init__(self):
        self.decision = None

    def get_identity(self, request) -> str:
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return f"user:{user.pk}"
        return f"ip:{get_client_ip(request)}"

    def allow_request(self, request, view) -> bool:
        action = getattr(view, "rate_limit_action", None)
        if not action:
            return True

        limiter = get_rate_limiter(action)
        self.decision = limiter.hit(self.get_identity(request))
        return self.decision.allowed

    def wait(self) -> float | None:
        if self.decision is None:
            return None
        return self.decision.retry_after
