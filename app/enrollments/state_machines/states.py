"""
State enums for enrollment models.

These are Django TextChoices used with django-fsm fields.

State Machines Overview:

PendingEnrollment:
    pending → completed   (successful commit)
    pending → failed      (gateway-reported terminal failure)
    pending → expired     (TTL elapsed, applied lazily on read)
    No transition leaves completed, failed or expired.

ManualEnrollmentRequest:
    pending → approved | rejected | cancelled
    No request re-enters pending.

EnrollmentEvent (outbound queue):
    pending → delivered
    pending → failed (attempts exhausted)
"""

from django.db import models


class PaymentGateway(models.TextChoices):
    """Payment channels a checkout can go through."""

    STRIPE = "stripe", "Stripe"
    KHALTI = "khalti", "Khalti"


class PendingEnrollmentStatus(models.TextChoices):
    """
    States of one checkout attempt.

    Terminal states: COMPLETED, FAILED, EXPIRED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    EXPIRED = "expired", "Expired"


class ManualEnrollmentRequestStatus(models.TextChoices):
    """
    States of an admin-approval request.

    Terminal states: APPROVED, REJECTED, CANCELLED
    """

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"


class EnrollmentEventStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    DELIVERED = "delivered", "Delivered"
    FAILED = "failed", "Failed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "EnrollmentEventStatus",
    "ManualEnrollmentRequestStatus",
    "PaymentGateway",
    "PendingEnrollmentStatus",
    "WebhookEventStatus",
]
