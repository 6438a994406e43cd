"""
Stripe webhook event handlers.

Handlers are registered per event type and called from
enrollments.tasks.process_webhook_event. A failure result marks the
WebhookEvent failed so retry_failed_webhooks picks it up again.

Usage:
    from enrollments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("payment_intent.processing")
    def handle_processing(webhook_event: WebhookEvent) -> ServiceResult:
        ...
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult

from enrollments.models import PendingEnrollment, WebhookEvent
from enrollments.services.reconciler import EnrollmentSource
from enrollments.services.verification import PaymentVerificationService
from enrollments.state_machines import PaymentGateway, PendingEnrollmentStatus

logger = logging.getLogger(__name__)


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """Unknown event types succeed so Stripe stops redelivering them."""
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    return handler(webhook_event)


def _pending_for(webhook_event: WebhookEvent) -> PendingEnrollment | None:
    payment_intent_id = webhook_event.get_object_id()
    if not payment_intent_id:
        return None
    return (
        PendingEnrollment.objects.select_related("user", "course")
        .filter(gateway=PaymentGateway.STRIPE, gateway_ref=payment_intent_id)
        .first()
    )


@register_handler("payment_intent.succeeded")
def handle_payment_intent_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Commit the enrollment for a succeeded PaymentIntent.

    A missing checkout is reported as failure so the event is retried;
    the webhook can arrive before the checkout row is visible.
    """
    pending = _pending_for(webhook_event)
    if pending is None:
        logger.warning(
            "payment_intent.succeeded for unknown checkout",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_intent_id": webhook_event.get_object_id(),
            },
        )
        return ServiceResult.failure(
            "No checkout found for payment intent",
            error_code="PENDING_ENROLLMENT_NOT_FOUND",
        )

    intent = webhook_event.get_object()
    amount = intent.get("amount_received") or intent.get("amount")
    if amount and amount != pending.gateway_amount:
        logger.error(
            "Webhook amount does not match checkout",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "pending_enrollment_id": str(pending.pk),
                "expected": pending.gateway_amount,
                "received": amount,
            },
        )
        return ServiceResult.success({"status": "amount_mismatch"})

    result = PaymentVerificationService.record_gateway_success(
        pending,
        EnrollmentSource.WEBHOOK,
        transaction_id=intent.get("latest_charge") or "",
    )
    if not result.success and result.error_code in ("ENROLLMENT_EXPIRED", "PAYMENT_FAILED"):
        # Money was taken for a checkout that can no longer complete
        logger.error(
            f"Payment succeeded for a {result.error_code} checkout; needs manual review",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "pending_enrollment_id": str(pending.pk),
                "user_id": pending.user_id,
                "course_id": str(pending.course_id),
            },
        )
        return ServiceResult.success({"status": result.error_code.lower()})

    if result.success:
        return ServiceResult.success({"status": result.data.status})
    return result


def _handle_failure(webhook_event: WebhookEvent, reason: str) -> ServiceResult:
    pending = _pending_for(webhook_event)
    if pending is None or pending.status != PendingEnrollmentStatus.PENDING:
        return ServiceResult.success(None)

    error = webhook_event.get_object().get("last_payment_error") or {}
    message = error.get("message") if isinstance(error, dict) else None
    PaymentVerificationService.record_gateway_failure(pending, message or reason)
    return ServiceResult.success({"status": "failed"})


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    return _handle_failure(webhook_event, "payment_intent.payment_failed")


@register_handler("payment_intent.canceled")
def handle_payment_intent_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    return _handle_failure(webhook_event, "payment_intent.canceled")
