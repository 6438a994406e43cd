"""
DRF exception handler rendering errors as {"error", "error_code"}.

Registered through REST_FRAMEWORK["EXCEPTION_HANDLER"]. Application errors
that escape a view keep their own status; throttling keeps DRF's
Retry-After header and adds ``retryAfter`` to the body.
"""

from __future__ import annotations

import logging

from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, BaseApplicationError):
        logger.info(
            f"Application error in {context['view'].__class__.__name__}: {exc}",
            extra={"error_code": exc.error_code},
        )
        return Response(exc.to_dict(), status=exc.http_status)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.Throttled):
        response.data = {
            "error": "Too many requests. Please try again later.",
            "error_code": "RATE_LIMIT_EXCEEDED",
            "retryAfter": exc.wait,
        }
    elif isinstance(exc, exceptions.ValidationError):
        response.data = {
            "error": "Invalid request",
            "error_code": "VALIDATION_ERROR",
            "errors": response.data,
        }
    elif isinstance(response.data, dict) and "detail" in response.data:
        response.data = {
            "error": str(response.data["detail"]),
            "error_code": getattr(exc, "default_code", "error").upper(),
        }
    return response
