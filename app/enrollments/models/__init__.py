"""
Enrollment models.

Models:
    PendingEnrollment: Checkout attempt keyed by (gateway, gateway_ref)
    Payment: Append-only payment ledger
    ManualEnrollmentRequest: Admin-approval queue entry
    ManualAccessGrant: Audit record of a direct admin grant
    EnrollmentEvent: Outbound notification/activity queue
    WebhookEvent: Stored Stripe webhook events
"""

from enrollments.models.enrollment_event import EnrollmentEvent, EnrollmentEventType
from enrollments.models.manual_enrollment import ManualAccessGrant, ManualEnrollmentRequest
from enrollments.models.payment import LedgerGateway, Payment
from enrollments.models.pending_enrollment import PendingEnrollment
from enrollments.models.webhook_event import MAX_WEBHOOK_RETRIES, WebhookEvent

__all__ = [
    "EnrollmentEvent",
    "EnrollmentEventType",
    "LedgerGateway",
    "MAX_WEBHOOK_RETRIES",
    "ManualAccessGrant",
    "ManualEnrollmentRequest",
    "Payment",
    "PendingEnrollment",
    "WebhookEvent",
]
