"""
Manual enrollment models.

ManualEnrollmentRequest is the admin-approval queue: a student asks to
join a course (optionally with proof of an off-platform payment) and an
admin approves or rejects it once. ManualAccessGrant records an admin
granting access directly, without a request.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from enrollments.state_machines import ManualEnrollmentRequestStatus


class ManualEnrollmentRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A student's request for admin-approved enrollment.

    State Flow:
        PENDING -> APPROVED | REJECTED  (admin decision, exactly once)
        PENDING -> CANCELLED            (student withdraws)

    Fields:
        amount_cents/payment_method/transaction_id: Off-platform payment
            proof. A request carrying an amount enrolls as manual_payment,
            otherwise as manual_grant.
        approved_by/approved_at: Who resolved it and when (set on
            rejection too)
        notes: Student note on submit, admin note on resolution
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollment_requests",
    )

    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.CASCADE,
        related_name="enrollment_requests",
    )

    status = FSMField(
        default=ManualEnrollmentRequestStatus.PENDING,
        choices=ManualEnrollmentRequestStatus.choices,
        db_index=True,
        protected=True,
    )

    amount_cents = models.PositiveIntegerField(null=True, blank=True)

    payment_method = models.CharField(max_length=30, blank=True, default="")

    transaction_id = models.CharField(max_length=255, blank=True, default="")

    notes = models.TextField(blank=True, default="")

    admin_notes = models.TextField(blank=True, default="")

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="resolved_enrollment_requests",
    )

    approved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Manual Enrollment Request"
        verbose_name_plural = "Manual Enrollment Requests"
        constraints = [
            # One open request per student and course
            models.UniqueConstraint(
                fields=["user", "course"],
                condition=models.Q(status="pending"),
                name="manual_request_one_pending",
            ),
        ]
        indexes = [
            models.Index(fields=["course", "status"], name="manual_req_course_status_idx"),
        ]

    def __str__(self) -> str:
        return f"ManualEnrollmentRequest({self.user_id} -> {self.course_id}, {self.status})"

    @property
    def has_payment(self) -> bool:
        return bool(self.amount_cents)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=ManualEnrollmentRequestStatus.PENDING,
        target=ManualEnrollmentRequestStatus.APPROVED,
    )
    def approve(self, admin, notes: str | None = None):
        self.approved_by = admin
        self.approved_at = timezone.now()
        if notes is not None:
            self.admin_notes = notes

    @transition(
        field=status,
        source=ManualEnrollmentRequestStatus.PENDING,
        target=ManualEnrollmentRequestStatus.REJECTED,
    )
    def reject(self, admin, notes: str | None = None):
        self.approved_by = admin
        self.approved_at = timezone.now()
        if notes is not None:
            self.admin_notes = notes

    @transition(
        field=status,
        source=ManualEnrollmentRequestStatus.PENDING,
        target=ManualEnrollmentRequestStatus.CANCELLED,
    )
    def cancel(self):
        pass


class ManualAccessGrant(UUIDPrimaryKeyMixin, BaseModel):
    """Audit record of an admin granting course access directly."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="manual_access_grants",
    )

    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.CASCADE,
        related_name="manual_access_grants",
    )

    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="issued_access_grants",
    )

    reason = models.TextField(blank=True, default="")

    expires_at = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Manual Access Grant"
        verbose_name_plural = "Manual Access Grants"

    def __str__(self) -> str:
        return f"ManualAccessGrant({self.user_id} -> {self.course_id})"
