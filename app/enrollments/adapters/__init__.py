"""
Payment gateway adapters.

All gateway calls go through these adapters so error classification
(transient vs permanent), timeouts and logging are consistent.

Usage:
    from enrollments.adapters import PaymentGatewayAdapter, parse_payment_reference

    reference = parse_payment_reference({"paymentMethod": "khalti", "pidx": pidx})
    result = PaymentGatewayAdapter.verify(reference)
"""

from enrollments.adapters.gateway import (
    GatewayResult,
    GatewayStatus,
    KhaltiReference,
    PaymentGatewayAdapter,
    PaymentReference,
    StripeReference,
    parse_payment_reference,
)
from enrollments.adapters.khalti_adapter import KhaltiAdapter, KhaltiCheckout
from enrollments.adapters.stripe_adapter import (
    PaymentIntentResult,
    StripeAdapter,
    map_intent_status,
)

__all__ = [
    "GatewayResult",
    "GatewayStatus",
    "KhaltiAdapter",
    "KhaltiCheckout",
    "KhaltiReference",
    "PaymentGatewayAdapter",
    "PaymentIntentResult",
    "PaymentReference",
    "StripeAdapter",
    "StripeReference",
    "map_intent_status",
    "parse_payment_reference",
]
