"""
Tests for enrollment Celery tasks.

Tests cover:
- process_webhook_event
- retry_failed_webhooks / cleanup_stuck_webhooks
- dispatch_enrollment_event / drain_enrollment_events
- sweep_pending_enrollments
"""

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from django.utils import timezone

from core.services import ServiceResult
from courses.models import CourseStudent
from enrollments.models import MAX_WEBHOOK_RETRIES, WebhookEvent
from enrollments.state_machines import EnrollmentEventStatus, WebhookEventStatus
from enrollments.tasks import (
    STUCK_PROCESSING_THRESHOLD_MINUTES,
    cleanup_stuck_webhooks,
    dispatch_enrollment_event,
    drain_enrollment_events,
    process_webhook_event,
    retry_failed_webhooks,
    sweep_pending_enrollments,
)
from enrollments.tests.factories import EnrollmentEventFactory, WebhookEventFactory


@pytest.fixture(autouse=True)
def mock_dispatch(mocker):
    return mocker.patch("enrollments.tasks.dispatch_enrollment_event.delay")


def reload(event):
    return WebhookEvent.objects.get(pk=event.pk)


# =============================================================================
# process_webhook_event
# =============================================================================


@pytest.mark.django_db
class TestProcessWebhookEvent:
    def test_success_marks_processed(self):
        event = WebhookEventFactory()

        with patch("enrollments.webhooks.handlers.dispatch_webhook") as mock_handler:
            mock_handler.return_value = ServiceResult.success(None)
            result = process_webhook_event(str(event.id))

        assert result["status"] == "processed"
        stored = reload(event)
        assert stored.status == WebhookEventStatus.PROCESSED
        assert stored.processed_at is not None
        assert stored.retry_count == 1

    def test_skip_already_processed(self):
        event = WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch("enrollments.webhooks.handlers.dispatch_webhook") as mock_handler:
            result = process_webhook_event(str(event.id))

        assert result["status"] == "already_processed"
        mock_handler.assert_not_called()

    def test_not_found(self):
        assert process_webhook_event(str(uuid4()))["status"] == "not_found"

    def test_handler_failure_marks_failed(self):
        event = WebhookEventFactory()

        with patch("enrollments.webhooks.handlers.dispatch_webhook") as mock_handler:
            mock_handler.return_value = ServiceResult.failure(
                "No checkout found for payment intent",
                error_code="PENDING_ENROLLMENT_NOT_FOUND",
            )
            result = process_webhook_event(str(event.id))

        assert result["status"] == "handler_failed"
        stored = reload(event)
        assert stored.status == WebhookEventStatus.FAILED
        assert "No checkout found" in stored.error_message

    def test_exception_marks_failed_and_raises(self):
        event = WebhookEventFactory()

        with patch("enrollments.webhooks.handlers.dispatch_webhook") as mock_handler:
            mock_handler.side_effect = Exception("Database connection lost")

            with pytest.raises(Exception, match="Database connection lost"):
                process_webhook_event(str(event.id))

        stored = reload(event)
        assert stored.status == WebhookEventStatus.FAILED
        assert "Database connection lost" in stored.error_message

    def test_enrolls_through_real_handler(self, pending):
        event = WebhookEventFactory(
            payload={
                "id": "evt_real",
                "type": "payment_intent.succeeded",
                "data": {"object": {"id": pending.gateway_ref, "amount_received": 2000}},
            }
        )

        result = process_webhook_event(str(event.id))

        assert result["status"] == "processed"
        assert CourseStudent.objects.filter(course=pending.course, user=pending.user).exists()


# =============================================================================
# Webhook maintenance
# =============================================================================


@pytest.mark.django_db
class TestRetryFailedWebhooks:
    def test_queues_retryable_events(self):
        retryable = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=MAX_WEBHOOK_RETRIES)
        WebhookEventFactory(status=WebhookEventStatus.PROCESSED)

        with patch("enrollments.tasks.process_webhook_event.delay") as mock_delay:
            result = retry_failed_webhooks()

        assert result == {"queued_count": 1}
        mock_delay.assert_called_once_with(str(retryable.id))

    def test_queue_error_is_skipped(self):
        WebhookEventFactory(status=WebhookEventStatus.FAILED)

        with patch("enrollments.tasks.process_webhook_event.delay", side_effect=ConnectionError("down")):
            result = retry_failed_webhooks()

        assert result == {"queued_count": 0}


@pytest.mark.django_db
class TestCleanupStuckWebhooks:
    def test_resets_old_pending_and_processing(self):
        old = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES + 5)
        stuck_pending = WebhookEventFactory(status=WebhookEventStatus.PENDING)
        stuck_processing = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        fresh = WebhookEventFactory(status=WebhookEventStatus.PROCESSING)
        WebhookEvent.objects.filter(pk__in=[stuck_pending.pk, stuck_processing.pk]).update(updated_at=old)

        result = cleanup_stuck_webhooks()

        assert result == {"reset_count": 2}
        assert reload(stuck_pending).status == WebhookEventStatus.FAILED
        assert reload(stuck_processing).status == WebhookEventStatus.FAILED
        assert reload(fresh).status == WebhookEventStatus.PROCESSING


# =============================================================================
# Enrollment events and sweep
# =============================================================================


@pytest.mark.django_db
class TestEnrollmentEventTasks:
    def test_dispatch_enrollment_event(self, notification_types):
        event = EnrollmentEventFactory()

        result = dispatch_enrollment_event(str(event.id))

        assert result == {"status": EnrollmentEventStatus.DELIVERED, "enrollment_event_id": str(event.id)}

    def test_drain_enrollment_events(self, notification_types):
        EnrollmentEventFactory.create_batch(2)

        assert drain_enrollment_events() == {"delivered": 2, "failed": 0}


@pytest.mark.django_db
class TestSweepTask:
    def test_runs_sweeper(self, mocker):
        stats = {"expired": 0, "verified": 0, "enrolled": 0, "failed": 0, "unresolved": 0}
        sweep = mocker.patch("enrollments.workers.PendingEnrollmentSweeper.sweep", return_value=stats)

        assert sweep_pending_enrollments() == stats
        sweep.assert_called_once_with()
