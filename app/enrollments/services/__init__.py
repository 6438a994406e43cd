"""
Enrollment service layer.

Services:
    EnrollmentReconciler: Single commit() behind every enrollment producer
    PendingEnrollmentStore: Checkout attempts, claims and transitions
    PaymentVerificationService: Gateway verification -> commit
    CheckoutService: Stripe/Khalti checkout initiation
    EnrollmentService: Free course enrollment
    ManualEnrollmentQueue: Admin-approved enrollment requests
    ManualAccessService: Direct admin grants
"""

from enrollments.services.checkout import CheckoutService, khalti_amount_paisa
from enrollments.services.enrollment import EnrollmentService
from enrollments.services.manual_access import ManualAccessService
from enrollments.services.manual_queue import ManualEnrollmentQueue
from enrollments.services.pending_store import PendingEnrollmentStore
from enrollments.services.reconciler import (
    EnrollmentIntent,
    EnrollmentOutcome,
    EnrollmentReconciler,
    EnrollmentSource,
    OutcomeStatus,
)
from enrollments.services.verification import PaymentVerificationService

__all__ = [
    "CheckoutService",
    "EnrollmentIntent",
    "EnrollmentOutcome",
    "EnrollmentReconciler",
    "EnrollmentService",
    "EnrollmentSource",
    "ManualAccessService",
    "ManualEnrollmentQueue",
    "OutcomeStatus",
    "PaymentVerificationService",
    "PendingEnrollmentStore",
    "khalti_amount_paisa",
]
