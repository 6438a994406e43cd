"""
Stripe webhook endpoint.

Verifies the signature, stores the event once per Stripe event id and
queues it for processing. Stripe gets its 200 before any enrollment
work runs.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from enrollments.adapters import StripeAdapter
from enrollments.exceptions import PermanentGatewayError
from enrollments.models import WebhookEvent
from enrollments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Returns:
        200: Event accepted (new or duplicate)
        400: Missing/invalid signature or malformed event
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(request.body, signature)
    except PermanentGatewayError as e:
        logger.warning("Webhook signature verification failed", extra={"error": str(e)})
        return HttpResponse("Invalid signature", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "event_type": event_type,
            "event_created": created,
        },
    )

    if webhook_event.is_processed:
        return HttpResponse("Already processed", status=200)

    try:
        from enrollments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # Left PENDING; cleanup_stuck_webhooks moves it to FAILED for retry
        logger.exception(
            "Failed to queue webhook",
            extra={"stripe_event_id": stripe_event_id},
        )

    return HttpResponse("Accepted", status=200)
