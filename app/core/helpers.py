"""
Helper functions for common infrastructure operations.

Domain-agnostic utilities:
- UUID validation (path parameters that accept an id or a slug)
- HTTP request helpers (client IP extraction)

Usage:
    from core.helpers import get_client_ip, validate_uuid

    ip = get_client_ip(request)
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def validate_uuid(value: str) -> bool:
    """
    Check if string is a valid UUID.

    Example:
        validate_uuid("550e8400-e29b-41d4-a716-446655440000")  # True
        validate_uuid("intro-to-django")  # False
    """
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, TypeError):
        return False


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For header for proxy chains and takes the
    first (original client) address.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip
