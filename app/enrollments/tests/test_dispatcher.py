"""
Tests for EnrollmentEventDispatcher.

Tests cover:
- Enrollment events become a notification plus an activity entry
- Redelivery is absorbed by idempotency keys
- Missing notification types are skipped, not retried
- Failed attempts are counted and eventually parked
- Rejection and manual-access variants
- drain_pending
"""

import pytest

from core.services import ServiceResult
from enrollments.models import EnrollmentEvent
from enrollments.state_machines import EnrollmentEventStatus
from enrollments.tests.factories import EnrollmentEventFactory
from enrollments.workers import EnrollmentEventDispatcher
from notifications.models import ActivityLog, ActivityType, Notification


def reset_to_pending(event):
    EnrollmentEvent.objects.filter(pk=event.pk).update(status=EnrollmentEventStatus.PENDING)


@pytest.mark.django_db
class TestDeliver:
    def test_enrollment_creates_notification_and_activity(self, notification_types):
        event = EnrollmentEventFactory()

        status = EnrollmentEventDispatcher.deliver(str(event.id))

        assert status == EnrollmentEventStatus.DELIVERED
        notification = Notification.objects.get(recipient=event.user)
        assert notification.title == f'You enrolled in "{event.course.title}"'
        assert notification.idempotency_key == f"enrollment-event:{event.id}"
        activity = ActivityLog.objects.get(user=event.user)
        assert activity.activity_type == ActivityType.ENROLLMENT
        assert activity.data["paymentMethod"] == "stripe"
        assert activity.data["paymentAmount"] == 2000

        stored = EnrollmentEvent.objects.get(pk=event.pk)
        assert stored.delivered_at is not None

    def test_delivered_event_is_not_sent_again(self, notification_types):
        event = EnrollmentEventFactory()
        EnrollmentEventDispatcher.deliver(str(event.id))

        status = EnrollmentEventDispatcher.deliver(str(event.id))

        assert status == EnrollmentEventStatus.DELIVERED
        assert Notification.objects.count() == 1

    def test_redelivery_after_crash_counts_as_delivered(self, notification_types):
        """A worker that died after writing but before marking delivered."""
        event = EnrollmentEventFactory()
        EnrollmentEventDispatcher.deliver(str(event.id))
        reset_to_pending(event)

        status = EnrollmentEventDispatcher.deliver(str(event.id))

        assert status == EnrollmentEventStatus.DELIVERED
        assert Notification.objects.count() == 1
        assert ActivityLog.objects.count() == 1

    def test_missing_notification_type_is_skipped(self, db):
        event = EnrollmentEventFactory()

        status = EnrollmentEventDispatcher.deliver(str(event.id))

        assert status == EnrollmentEventStatus.DELIVERED
        assert not Notification.objects.exists()
        assert ActivityLog.objects.filter(user=event.user).exists()

    def test_failure_is_recorded_and_raised(self, notification_types, mocker):
        mocker.patch(
            "enrollments.workers.event_dispatcher.NotificationService.create_notification",
            return_value=ServiceResult.failure("Database unavailable", error_code="INTERNAL_ERROR"),
        )
        event = EnrollmentEventFactory()

        with pytest.raises(RuntimeError, match="INTERNAL_ERROR"):
            EnrollmentEventDispatcher.deliver(str(event.id))

        stored = EnrollmentEvent.objects.get(pk=event.pk)
        assert stored.status == EnrollmentEventStatus.PENDING
        assert stored.attempts == 1
        assert "Database unavailable" in stored.last_error

    def test_parked_after_max_attempts(self, notification_types, mocker, settings):
        settings.ENROLLMENT_EVENT_MAX_ATTEMPTS = 2
        mocker.patch(
            "enrollments.workers.event_dispatcher.ActivityService.record",
            side_effect=ConnectionError("activity store down"),
        )
        event = EnrollmentEventFactory(attempts=1)

        with pytest.raises(ConnectionError):
            EnrollmentEventDispatcher.deliver(str(event.id))

        stored = EnrollmentEvent.objects.get(pk=event.pk)
        assert stored.status == EnrollmentEventStatus.FAILED
        assert stored.attempts == 2

    def test_manual_access_variant(self, notification_types):
        event = EnrollmentEventFactory()
        event.payload = {**event.payload, "source": "manual_access", "enrolled_through": "manual_access"}
        event.save()

        EnrollmentEventDispatcher.deliver(str(event.id))

        notification = Notification.objects.get(recipient=event.user)
        assert notification.notification_type.key == "manual_access_granted"
        assert ActivityLog.objects.get(user=event.user).activity_type == ActivityType.MANUAL_ACCESS

    def test_rejection(self, notification_types):
        event = EnrollmentEventFactory(
            event_type="enrollment_request.rejected",
            dedupe_key="enrollment_request.rejected:test",
            payload={"course_title": "Advanced Django", "notes": "Proof of payment missing"},
        )

        EnrollmentEventDispatcher.deliver(str(event.id))

        notification = Notification.objects.get(recipient=event.user)
        assert notification.notification_type.key == "enrollment_request_rejected"
        assert notification.body == "Proof of payment missing"
        activity = ActivityLog.objects.get(user=event.user)
        assert activity.activity_type == ActivityType.ENROLLMENT_REQUEST

    def test_unknown_event(self, db):
        assert EnrollmentEventDispatcher.deliver("00000000-0000-0000-0000-000000000000") == "not_found"


@pytest.mark.django_db
class TestDrainPending:
    def test_delivers_pending_events(self, notification_types):
        EnrollmentEventFactory.create_batch(2)
        EnrollmentEventFactory(status=EnrollmentEventStatus.DELIVERED)

        stats = EnrollmentEventDispatcher.drain_pending()

        assert stats == {"delivered": 2, "failed": 0}
        assert Notification.objects.count() == 2

    def test_failures_stay_pending(self, notification_types, mocker):
        mocker.patch(
            "enrollments.workers.event_dispatcher.NotificationService.create_notification",
            side_effect=ConnectionError("down"),
        )
        EnrollmentEventFactory.create_batch(2)

        stats = EnrollmentEventDispatcher.drain_pending()

        assert stats == {"delivered": 0, "failed": 2}
        assert EnrollmentEvent.objects.filter(status=EnrollmentEventStatus.PENDING).count() == 2

    def test_respects_limit(self, notification_types):
        EnrollmentEventFactory.create_batch(3)

        stats = EnrollmentEventDispatcher.drain_pending(limit=2)

        assert stats["delivered"] == 2
        assert EnrollmentEvent.objects.filter(status=EnrollmentEventStatus.PENDING).count() == 1
