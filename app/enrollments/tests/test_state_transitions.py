"""
Tests for enrollment model state machines and model helpers.

Tests:
- PendingEnrollment transitions and the protected status field
- ManualEnrollmentRequest decisions and the one-open-request constraint
- EnrollmentEvent / WebhookEvent bookkeeping helpers
"""

from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from authentication.tests.factories import AdminUserFactory
from enrollments.models import EnrollmentEvent, PendingEnrollment
from enrollments.state_machines import (
    EnrollmentEventStatus,
    ManualEnrollmentRequestStatus,
    PendingEnrollmentStatus,
    WebhookEventStatus,
)
from enrollments.tests.factories import (
    EnrollmentEventFactory,
    ManualEnrollmentRequestFactory,
    PendingEnrollmentFactory,
    WebhookEventFactory,
)


@pytest.mark.django_db
class TestPendingEnrollmentTransitions:
    def test_complete_sets_completed_at(self):
        """Should move pending -> completed and stamp completed_at."""
        pending = PendingEnrollmentFactory()

        pending.complete()
        pending.save()

        stored = PendingEnrollment.objects.get(pk=pending.pk)
        assert stored.status == PendingEnrollmentStatus.COMPLETED
        assert stored.completed_at is not None

    def test_fail_records_reason(self):
        """Should store the gateway failure reason."""
        pending = PendingEnrollmentFactory()

        pending.fail("card_declined")
        pending.save()

        stored = PendingEnrollment.objects.get(pk=pending.pk)
        assert stored.status == PendingEnrollmentStatus.FAILED
        assert stored.failure_reason == "card_declined"

    @pytest.mark.parametrize(
        "terminal",
        [
            PendingEnrollmentStatus.COMPLETED,
            PendingEnrollmentStatus.FAILED,
            PendingEnrollmentStatus.EXPIRED,
        ],
    )
    def test_terminal_states_are_final(self, terminal):
        """Should refuse every transition out of a terminal state."""
        pending = PendingEnrollmentFactory(status=terminal)

        for transition in (pending.complete, pending.fail, pending.expire):
            with pytest.raises(TransitionNotAllowed):
                transition()

    def test_status_cannot_be_assigned_directly(self):
        """Should reject direct assignment to the protected status field."""
        pending = PendingEnrollmentFactory()

        with pytest.raises(AttributeError):
            pending.status = PendingEnrollmentStatus.COMPLETED

    def test_is_expired_uses_expires_at(self):
        """Should report expiry from the TTL, whatever the stored status."""
        pending = PendingEnrollmentFactory(expires_at=timezone.now() - timedelta(seconds=1))

        assert pending.is_pending
        assert pending.is_expired()
        assert not pending.is_terminal

    def test_gateway_ref_is_unique_per_gateway(self):
        """Should not allow two checkouts for one gateway reference."""
        PendingEnrollmentFactory(gateway="stripe", gateway_ref="pi_dup")

        with pytest.raises(IntegrityError), transaction.atomic():
            PendingEnrollmentFactory(gateway="stripe", gateway_ref="pi_dup")

    def test_same_ref_on_other_gateway_is_allowed(self):
        """Should scope reference uniqueness to the gateway."""
        PendingEnrollmentFactory(gateway="stripe", gateway_ref="shared_ref")
        PendingEnrollmentFactory(gateway="khalti", gateway_ref="shared_ref")

        assert PendingEnrollment.objects.filter(gateway_ref="shared_ref").count() == 2


@pytest.mark.django_db
class TestManualEnrollmentRequestTransitions:
    def test_approve_records_admin(self):
        """Should stamp the approving admin and keep admin notes."""
        request = ManualEnrollmentRequestFactory()
        admin = AdminUserFactory()

        request.approve(admin, "Receipt checked")
        request.save()

        assert request.status == ManualEnrollmentRequestStatus.APPROVED
        assert request.approved_by == admin
        assert request.approved_at is not None
        assert request.admin_notes == "Receipt checked"

    def test_reject_without_notes_keeps_existing_notes(self):
        """Should leave admin_notes alone when no note is given."""
        request = ManualEnrollmentRequestFactory(admin_notes="earlier")

        request.reject(AdminUserFactory())

        assert request.status == ManualEnrollmentRequestStatus.REJECTED
        assert request.admin_notes == "earlier"

    @pytest.mark.parametrize("decision", ["approve", "reject", "cancel"])
    def test_resolved_request_cannot_change_again(self, decision):
        """Should refuse a second decision on an approved request."""
        request = ManualEnrollmentRequestFactory(status=ManualEnrollmentRequestStatus.APPROVED)

        args = () if decision == "cancel" else (AdminUserFactory(),)
        with pytest.raises(TransitionNotAllowed):
            getattr(request, decision)(*args)

    def test_only_one_open_request_per_user_and_course(self):
        """Should reject a second pending request for the same pair."""
        first = ManualEnrollmentRequestFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            ManualEnrollmentRequestFactory(user=first.user, course=first.course)

    def test_resolved_requests_do_not_block_new_ones(self):
        """Should allow a new request once the previous one is resolved."""
        first = ManualEnrollmentRequestFactory(status=ManualEnrollmentRequestStatus.REJECTED)

        second = ManualEnrollmentRequestFactory(user=first.user, course=first.course)

        assert second.status == ManualEnrollmentRequestStatus.PENDING

    def test_has_payment(self):
        """Should treat a request with an amount as payment-backed."""
        assert ManualEnrollmentRequestFactory(amount_cents=2000).has_payment
        assert not ManualEnrollmentRequestFactory(amount_cents=None).has_payment


@pytest.mark.django_db
class TestEnrollmentEventBookkeeping:
    def test_failed_attempt_stays_pending_until_exhausted(self):
        """Should park the event only once attempts reach the maximum."""
        event = EnrollmentEventFactory()

        event.mark_attempt_failed("boom", max_attempts=2)
        assert event.status == EnrollmentEventStatus.PENDING
        assert event.attempts == 1

        event.mark_attempt_failed("boom again", max_attempts=2)
        assert event.status == EnrollmentEventStatus.FAILED
        assert event.last_error == "boom again"

    def test_mark_delivered_clears_error(self):
        event = EnrollmentEventFactory(last_error="old")

        event.mark_delivered()

        assert event.status == EnrollmentEventStatus.DELIVERED
        assert event.delivered_at is not None
        assert event.last_error == ""

    def test_dedupe_key_is_unique(self):
        """Should refuse a second event with the same dedupe key."""
        EnrollmentEventFactory(dedupe_key="enrollment.created:c:u")

        with pytest.raises(IntegrityError), transaction.atomic():
            EnrollmentEventFactory(dedupe_key="enrollment.created:c:u")

    def test_idempotency_key_derives_from_id(self):
        event = EnrollmentEventFactory()

        assert event.idempotency_key == f"enrollment-event:{event.id}"
        assert EnrollmentEvent.objects.get(pk=event.pk).idempotency_key == event.idempotency_key


@pytest.mark.django_db
class TestWebhookEventHelpers:
    def test_processing_counts_attempts(self):
        """Should bump retry_count every time processing starts."""
        event = WebhookEventFactory()

        event.mark_processing()
        event.mark_failed("boom")
        event.mark_processing()

        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 2

    def test_can_retry_only_failed_with_budget(self):
        event = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        assert event.can_retry

        event.retry_count = 5
        assert not event.can_retry

    def test_get_object_id(self):
        """Should read data.object.id from the stored payload."""
        event = WebhookEventFactory(
            payload={"data": {"object": {"id": "pi_123", "amount": 2000}}},
        )

        assert event.get_object_id() == "pi_123"
        assert event.get_object()["amount"] == 2000

    def test_get_object_tolerates_malformed_payload(self):
        event = WebhookEventFactory(payload={"data": "unexpected"})

        assert event.get_object() == {}
        assert event.get_object_id() is None
