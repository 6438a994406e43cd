"""
Stripe API adapter.

All Stripe calls go through StripeAdapter so timeouts, error translation
and logging are consistent. SDK errors are translated into
TransientGatewayError (connection, API, rate limit) or
PermanentGatewayError (invalid request, authentication, card errors).

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from enrollments.adapters import StripeAdapter

    intent = StripeAdapter.create_payment_intent(
        amount_cents=2000,
        currency="usd",
        metadata={"course_id": str(course.id), "user_id": str(user.id)},
        idempotency_key=f"checkout:{course.id}:{user.id}:{attempt}",
    )
    result = StripeAdapter.verify_payment_intent(intent.id)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import stripe
from django.conf import settings

from enrollments.adapters.gateway import GatewayResult, GatewayStatus
from enrollments.exceptions import PermanentGatewayError, TransientGatewayError
from enrollments.state_machines import PaymentGateway

if TYPE_CHECKING:
    from typing import Any, NoReturn


@dataclass
class PaymentIntentResult:
    """
    Result from Stripe PaymentIntent creation.

    Attributes:
        id: PaymentIntent ID (pi_xxx)
        status: Stripe status (requires_payment_method, succeeded, ...)
        amount_cents: Amount in cents
        currency: Currency code
        client_secret: Secret for client-side confirmation
    """

    id: str
    status: str
    amount_cents: int
    currency: str
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


def map_intent_status(status: str, last_payment_error: Any = None) -> str:
    """
    Map a PaymentIntent status to a GatewayStatus.

    requires_payment_method is the state of a fresh intent and also of an
    intent whose last attempt failed; only the latter is a failure.
    """
    if status == "succeeded":
        return GatewayStatus.SUCCEEDED
    if status == "canceled":
        return GatewayStatus.CANCELED
    if status == "requires_payment_method" and last_payment_error:
        return GatewayStatus.FAILED
    return GatewayStatus.PENDING


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from web workers and Celery.
    """

    @staticmethod
    def _configure_stripe() -> None:
        if not settings.STRIPE_SECRET_KEY:
            raise PermanentGatewayError(
                "Stripe is not configured",
                gateway=PaymentGateway.STRIPE,
                error_code="STRIPE_NOT_CONFIGURED",
            )
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.default_http_client = stripe.RequestsClient(
            timeout=settings.STRIPE_API_TIMEOUT_SECONDS
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Operations
    # =========================================================================

    @classmethod
    def create_payment_intent(
        cls,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
        receipt_email: str | None = None,
    ) -> PaymentIntentResult:
        """
        Create a PaymentIntent for a course checkout.

        Raises:
            TransientGatewayError: Stripe unavailable or rate limited
            PermanentGatewayError: Invalid parameters or configuration
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_payment_intent",
            "amount_cents": amount_cents,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }

        start_time = time.time()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency,
                metadata=metadata,
                receipt_email=receipt_email,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            cls._handle_stripe_error(e, log_context, start_time)

        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "payment_intent_id": intent.id,
                "status": intent.status,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return PaymentIntentResult(
            id=intent.id,
            status=intent.status,
            amount_cents=intent.amount,
            currency=intent.currency,
            client_secret=intent.client_secret,
            metadata=dict(intent.metadata or {}),
        )

    @classmethod
    def verify_payment_intent(cls, payment_intent_id: str) -> GatewayResult:
        """
        Retrieve a PaymentIntent and normalise its status.

        Raises:
            TransientGatewayError: Stripe unavailable or rate limited
            PermanentGatewayError: Unknown intent or bad configuration
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
        }

        start_time = time.time()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            cls._handle_stripe_error(e, log_context, start_time)

        status = map_intent_status(intent.status, getattr(intent, "last_payment_error", None))
        logger.info(
            "Stripe operation completed",
            extra={
                **log_context,
                "raw_status": intent.status,
                "status": status,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return GatewayResult(
            status=status,
            amount_cents=intent.amount,
            currency=intent.currency,
            raw_status=intent.status,
            transaction_id=intent.id,
        )

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            PermanentGatewayError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            raise PermanentGatewayError(
                "Invalid webhook signature",
                gateway=PaymentGateway.STRIPE,
                error_code="INVALID_WEBHOOK_SIGNATURE",
                details={"error": str(e)},
            ) from e
        return event.to_dict()

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: stripe.StripeError,
        log_context: dict[str, Any],
        start_time: float,
    ) -> NoReturn:
        """Translate a Stripe SDK exception into a gateway error."""
        logger = cls.get_logger()
        log_context = {
            **log_context,
            "duration_ms": (time.time() - start_time) * 1000,
            "stripe_code": getattr(error, "code", None),
        }

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise TransientGatewayError(
                "Stripe rate limit exceeded. Please retry.",
                gateway=PaymentGateway.STRIPE,
            ) from error

        if isinstance(error, (stripe.APIConnectionError, stripe.APIError)):
            logger.error("Stripe unavailable", extra=log_context, exc_info=True)
            raise TransientGatewayError(
                "Could not reach Stripe. Please retry.",
                gateway=PaymentGateway.STRIPE,
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical("Stripe authentication failed - check API key", extra=log_context)
            raise PermanentGatewayError(
                "Stripe authentication failed",
                gateway=PaymentGateway.STRIPE,
                error_code="STRIPE_NOT_CONFIGURED",
            ) from error

        if isinstance(error, stripe.CardError):
            logger.warning("Card error from Stripe", extra=log_context)
            raise PermanentGatewayError(
                str(error.user_message or error),
                gateway=PaymentGateway.STRIPE,
                error_code="CARD_DECLINED",
            ) from error

        logger.warning(f"Stripe rejected request: {type(error).__name__}", extra=log_context)
        raise PermanentGatewayError(
            str(getattr(error, "user_message", None) or error),
            gateway=PaymentGateway.STRIPE,
        ) from error
