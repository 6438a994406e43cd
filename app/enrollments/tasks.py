"""
Celery tasks for the enrollment subsystem.

Tasks:
    process_webhook_event: Run one stored Stripe webhook through its handler
    retry_failed_webhooks: Re-queue failed webhooks (celery-beat)
    cleanup_stuck_webhooks: Reset webhooks stuck in PENDING/PROCESSING (celery-beat)
    dispatch_enrollment_event: Deliver one EnrollmentEvent
    drain_enrollment_events: Deliver everything still pending (celery-beat)
    sweep_pending_enrollments: Expire and re-verify checkouts (celery-beat)

Beat schedules are created by migration enrollments.0002_periodic_tasks.

Usage:
    from enrollments.tasks import process_webhook_event

    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.db import transaction
from django.utils import timezone

from enrollments.models import MAX_WEBHOOK_RETRIES, WebhookEvent
from enrollments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


STUCK_PROCESSING_THRESHOLD_MINUTES = 30
RETRY_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    Raises:
        Exception: Re-raised to trigger Celery retry
    """
    from enrollments.webhooks.handlers import dispatch_webhook

    webhook_event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if webhook_event is None:
        logger.error("WebhookEvent not found", extra={"webhook_event_id": str(webhook_event_id)})
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    log_extra = {
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
        "retry_count": webhook_event.retry_count,
    }

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save()
        logger.exception("Webhook processing failed with exception", extra=log_extra)
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save()
        logger.info("Webhook processed successfully", extra=log_extra)
        return {"status": "processed", "webhook_event_id": str(webhook_event_id)}

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    webhook_event.save()
    logger.warning(
        f"Webhook handler failed: {error_msg}",
        extra={**log_extra, "error_code": result.error_code},
    )
    return {"status": "handler_failed", "webhook_event_id": str(webhook_event_id), "error": error_msg}


@shared_task
def retry_failed_webhooks() -> dict:
    """Re-queue failed webhooks that still have retries left."""
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in failed_webhooks:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue
        queued_count += 1

    logger.info(f"Queued {queued_count} failed webhooks for retry", extra={"queued_count": queued_count})
    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Move webhooks stuck in PENDING or PROCESSING to FAILED.

    Covers a worker that crashed mid-processing and an event whose
    initial enqueue failed.
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status__in=[WebhookEventStatus.PENDING, WebhookEventStatus.PROCESSING],
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
            },
        )

    return {"reset_count": reset_count}


# =============================================================================
# Enrollment Events
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 4},
    acks_late=True,
)
def dispatch_enrollment_event(self, event_id: str) -> dict:
    from enrollments.workers import EnrollmentEventDispatcher

    status = EnrollmentEventDispatcher.deliver(event_id)
    return {"status": status, "enrollment_event_id": str(event_id)}


@shared_task
def drain_enrollment_events(limit: int = 100) -> dict:
    from enrollments.workers import EnrollmentEventDispatcher

    return EnrollmentEventDispatcher.drain_pending(limit)


# =============================================================================
# Pending Enrollment Sweep
# =============================================================================


@shared_task
def sweep_pending_enrollments() -> dict:
    from enrollments.workers import PendingEnrollmentSweeper

    return PendingEnrollmentSweeper.sweep()
