"""
PendingEnrollment model: one row per checkout attempt.

A PendingEnrollment is created when a Stripe PaymentIntent or Khalti
payment is initiated and is the unit the reconciler claims before it
enrolls anyone. (gateway, gateway_ref) is unique, so a gateway reference
can only ever complete one enrollment.

Usage:
    from enrollments.models import PendingEnrollment

    pending = PendingEnrollment.objects.get(gateway="khalti", gateway_ref=pidx)
    if pending.is_expired():
        ...
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from enrollments.state_machines import PaymentGateway, PendingEnrollmentStatus


class PendingEnrollment(UUIDPrimaryKeyMixin, BaseModel):
    """
    In-flight payment attempt for (user, course).

    State Flow:
        PENDING -> COMPLETED (commit succeeded)
        PENDING -> FAILED    (gateway reported a terminal failure)
        PENDING -> EXPIRED   (TTL elapsed; applied lazily)

    Fields:
        gateway/gateway_ref: Stripe PaymentIntent id or Khalti pidx
        amount_cents/currency: Course price at checkout time
        gateway_amount/gateway_currency: What the gateway actually charges
            (Khalti charges NPR paisa)
        expires_at: After this instant the record can never complete
        claimed_at: Completion lease; a claim older than
            ENROLLMENT_CLAIM_LEASE_SECONDS may be taken over

    Note:
        status is a protected FSMField. Transition on a row fetched with
        select_for_update() rather than calling refresh_from_db().
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="pending_enrollments",
    )

    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.CASCADE,
        related_name="pending_enrollments",
    )

    gateway = models.CharField(max_length=20, choices=PaymentGateway.choices)

    gateway_ref = models.CharField(
        max_length=255,
        help_text="Stripe PaymentIntent ID (pi_xxx) or Khalti pidx",
    )

    amount_cents = models.PositiveIntegerField(
        help_text="Course price in smallest unit of currency",
    )

    currency = models.CharField(max_length=3, default="usd")

    gateway_amount = models.PositiveBigIntegerField(
        help_text="Amount charged by the gateway in its own minor unit",
    )

    gateway_currency = models.CharField(max_length=3, default="usd")

    status = FSMField(
        default=PendingEnrollmentStatus.PENDING,
        choices=PendingEnrollmentStatus.choices,
        db_index=True,
        protected=True,
    )

    expires_at = models.DateTimeField(db_index=True)

    claimed_at = models.DateTimeField(null=True, blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)

    failure_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Pending Enrollment"
        verbose_name_plural = "Pending Enrollments"
        constraints = [
            models.UniqueConstraint(
                fields=["gateway", "gateway_ref"],
                name="pending_enrollment_gateway_ref_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "course"], name="pending_user_course_idx"),
            models.Index(fields=["status", "created_at"], name="pending_status_created_idx"),
        ]

    def __str__(self) -> str:
        return f"PendingEnrollment({self.gateway}:{self.gateway_ref}, {self.status})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PendingEnrollmentStatus.PENDING,
        target=PendingEnrollmentStatus.COMPLETED,
    )
    def complete(self):
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=PendingEnrollmentStatus.PENDING,
        target=PendingEnrollmentStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        Gateway reported the payment failed or was canceled.

        Transient gateway errors must never reach this transition.
        """
        self.completed_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=PendingEnrollmentStatus.PENDING,
        target=PendingEnrollmentStatus.EXPIRED,
    )
    def expire(self):
        pass

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_pending(self) -> bool:
        return self.status == PendingEnrollmentStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status != PendingEnrollmentStatus.PENDING

    def is_expired(self, now=None) -> bool:
        """True once the TTL has elapsed, whatever the stored status says."""
        now = now or timezone.now()
        return self.expires_at <= now
