"""
EnrollmentEvent: outbound queue of enrollment side effects.

Rows are written in the same transaction as the state change they
describe and drained by enrollments.workers.event_dispatcher. Delivery
failures only affect the row's own status; the enrollment is already
durable by the time the row exists.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from enrollments.state_machines import EnrollmentEventStatus


class EnrollmentEventType(models.TextChoices):
    ENROLLMENT_CREATED = "enrollment.created", "Enrollment created"
    REQUEST_REJECTED = "enrollment_request.rejected", "Enrollment request rejected"


class EnrollmentEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    One notification/activity side effect waiting for delivery.

    Fields:
        dedupe_key: Unique; a retried commit never queues a second event
        payload: Everything the notification templates need
        attempts/last_error: Delivery bookkeeping
    """

    event_type = models.CharField(max_length=50, choices=EnrollmentEventType.choices)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollment_events",
    )

    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.CASCADE,
        related_name="enrollment_events",
    )

    payload = models.JSONField(default=dict, blank=True)

    dedupe_key = models.CharField(max_length=255, unique=True)

    status = models.CharField(
        max_length=20,
        choices=EnrollmentEventStatus.choices,
        default=EnrollmentEventStatus.PENDING,
        db_index=True,
    )

    attempts = models.PositiveSmallIntegerField(default=0)

    last_error = models.TextField(blank=True, default="")

    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Enrollment Event"
        verbose_name_plural = "Enrollment Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="enrollment_event_status_idx"),
        ]

    def __str__(self) -> str:
        return f"EnrollmentEvent({self.event_type}, {self.status})"

    @property
    def idempotency_key(self) -> str:
        return f"enrollment-event:{self.id}"

    def mark_delivered(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = EnrollmentEventStatus.DELIVERED
        self.delivered_at = timezone.now()
        self.last_error = ""

    def mark_attempt_failed(self, error_message: str, max_attempts: int) -> None:
        """
        Record a failed delivery; park the event once attempts run out.

        Note: Does not save - caller must save after calling.
        """
        self.attempts += 1
        self.last_error = error_message
        if self.attempts >= max_attempts:
            self.status = EnrollmentEventStatus.FAILED
