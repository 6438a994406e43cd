"""
Khalti ePayment adapter (redirect + lookup flow).

Khalti has no Python SDK; the adapter talks to the ePayment REST API with
``requests``. A checkout is initiated server-side, the user pays on
Khalti's page, and the payment is confirmed with a lookup by ``pidx``.

Configuration (via settings):
- KHALTI_SECRET_KEY: Live or sandbox secret key
- KHALTI_BASE_URL: e.g. https://dev.khalti.com/api/v2
- KHALTI_API_TIMEOUT_SECONDS: Request timeout (default: 10)

Usage:
    from enrollments.adapters import KhaltiAdapter

    checkout = KhaltiAdapter.initiate({...})
    result = KhaltiAdapter.lookup(checkout.pidx)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import requests
from django.conf import settings

from enrollments.adapters.gateway import GatewayResult, GatewayStatus
from enrollments.exceptions import PermanentGatewayError, TransientGatewayError
from enrollments.state_machines import PaymentGateway

if TYPE_CHECKING:
    from typing import Any

# Lookup statuses documented by Khalti
KHALTI_STATUS_MAP = {
    "Completed": GatewayStatus.SUCCEEDED,
    "Pending": GatewayStatus.PENDING,
    "Initiated": GatewayStatus.PENDING,
    "Expired": GatewayStatus.FAILED,
    "Refunded": GatewayStatus.FAILED,
    "Partially Refunded": GatewayStatus.FAILED,
    "User canceled": GatewayStatus.CANCELED,
}


@dataclass
class KhaltiCheckout:
    pidx: str
    payment_url: str
    expires_at: str = ""


class KhaltiAdapter:
    """Adapter for the Khalti ePayment API."""

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _post(cls, path: str, payload: dict[str, Any], operation: str) -> dict[str, Any]:
        """
        POST to the ePayment API and return the decoded JSON body.

        Network errors, timeouts, 429 and 5xx are transient; other 4xx are
        permanent unless the body still carries a lookup status.
        """
        secret = settings.KHALTI_SECRET_KEY
        if not secret:
            raise PermanentGatewayError(
                "Khalti is not configured",
                gateway=PaymentGateway.KHALTI,
                error_code="KHALTI_NOT_CONFIGURED",
            )

        logger = cls.get_logger()
        url = f"{settings.KHALTI_BASE_URL.rstrip('/')}/{path}"
        log_context = {"operation": operation, "url": url}
        start_time = time.time()

        try:
            response = requests.post(
                url,
                json=payload,
                headers={"Authorization": f"Key {secret}"},
                timeout=settings.KHALTI_API_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error(
                f"Khalti request failed: {type(e).__name__}",
                extra={**log_context, "duration_ms": (time.time() - start_time) * 1000},
            )
            raise TransientGatewayError(
                "Could not reach Khalti. Please retry.",
                gateway=PaymentGateway.KHALTI,
            ) from e

        log_context.update(
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
        )

        if response.status_code == 429 or response.status_code >= 500:
            logger.warning("Khalti unavailable", extra=log_context)
            raise TransientGatewayError(
                f"Khalti returned HTTP {response.status_code}. Please retry.",
                gateway=PaymentGateway.KHALTI,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.warning("Khalti returned a non-JSON body", extra=log_context)
            raise TransientGatewayError(
                "Invalid response from Khalti. Please retry.",
                gateway=PaymentGateway.KHALTI,
            ) from e

        if not response.ok and not (isinstance(data, dict) and data.get("status") in KHALTI_STATUS_MAP):
            message = "Khalti rejected the request"
            if isinstance(data, dict):
                message = str(data.get("detail") or data.get("error_key") or message)
            logger.warning(f"Khalti error: {message}", extra=log_context)
            raise PermanentGatewayError(
                message,
                gateway=PaymentGateway.KHALTI,
                details={"status_code": response.status_code},
            )

        logger.info("Khalti operation completed", extra=log_context)
        return data

    @classmethod
    def initiate(cls, payload: dict[str, Any]) -> KhaltiCheckout:
        """
        Start a Khalti payment.

        ``payload`` follows the epayment/initiate contract (return_url,
        website_url, amount in paisa, purchase_order_id, ...).

        Raises:
            TransientGatewayError / PermanentGatewayError
        """
        data = cls._post("epayment/initiate/", payload, "initiate")
        pidx = data.get("pidx")
        payment_url = data.get("payment_url")
        if not pidx or not payment_url:
            raise PermanentGatewayError(
                "Invalid response from Khalti",
                gateway=PaymentGateway.KHALTI,
            )
        return KhaltiCheckout(
            pidx=pidx,
            payment_url=payment_url,
            expires_at=data.get("expires_at", ""),
        )

    @classmethod
    def lookup(cls, pidx: str) -> GatewayResult:
        """Look up a payment by pidx and normalise its status."""
        data = cls._post("epayment/lookup/", {"pidx": pidx}, "lookup")
        raw_status = data.get("status", "")
        status = KHALTI_STATUS_MAP.get(raw_status)
        if status is None:
            cls.get_logger().warning(
                f"Unknown Khalti status {raw_status!r}; treating as pending",
                extra={"pidx": pidx},
            )
            status = GatewayStatus.PENDING

        return GatewayResult(
            status=status,
            amount_cents=int(data.get("total_amount") or 0),
            currency="npr",
            raw_status=raw_status,
            transaction_id=data.get("transaction_id") or "",
            raw=data,
        )
