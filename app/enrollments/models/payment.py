"""
Payment ledger model.

Append-only record of completed payments. (gateway, gateway_ref) is
unique: a second verification of the same gateway reference can never
record revenue twice.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


class LedgerGateway(models.TextChoices):
    STRIPE = "stripe", "Stripe"
    KHALTI = "khalti", "Khalti"
    MANUAL = "manual", "Manual (admin-verified)"


class Payment(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    One completed payment for a course.

    Fields:
        amount_cents/currency: Course price paid, in course currency
        gateway/gateway_ref: Source of the payment; unique together
        transaction_id: Gateway transaction id when it differs from the
            reference (Khalti transaction_id, manual bank reference)
        pending_enrollment: Checkout attempt this payment completed, if any
        metadata: course_title, user_email, gateway_amount, gateway_currency
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="course_payments",
    )

    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    amount_cents = models.PositiveIntegerField()

    currency = models.CharField(max_length=3, default="usd")

    gateway = models.CharField(max_length=20, choices=LedgerGateway.choices)

    gateway_ref = models.CharField(max_length=255)

    transaction_id = models.CharField(max_length=255, blank=True, default="")

    pending_enrollment = models.OneToOneField(
        "enrollments.PendingEnrollment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        constraints = [
            models.UniqueConstraint(
                fields=["gateway", "gateway_ref"],
                name="payment_gateway_ref_unique",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "created_at"], name="payment_user_created_idx"),
            models.Index(fields=["course", "created_at"], name="payment_course_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment({self.gateway}:{self.gateway_ref}, {self.amount_cents / 100:.2f} {self.currency.upper()})"
