"""
State machine enums for enrollment models.

This module defines the state enums used by enrollment models with django-fsm.
"""

from enrollments.state_machines.states import (
    EnrollmentEventStatus,
    ManualEnrollmentRequestStatus,
    PaymentGateway,
    PendingEnrollmentStatus,
    WebhookEventStatus,
)

__all__ = [
    "EnrollmentEventStatus",
    "ManualEnrollmentRequestStatus",
    "PaymentGateway",
    "PendingEnrollmentStatus",
    "WebhookEventStatus",
]
