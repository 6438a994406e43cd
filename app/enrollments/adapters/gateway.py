"""
Gateway-neutral payment verification.

A verify request names its payment either by Stripe PaymentIntent id or
by Khalti pidx. The request body is parsed once, at the API boundary,
into a PaymentReference variant; nothing past that point looks at raw
request fields.

Usage:
    from enrollments.adapters import PaymentGatewayAdapter, parse_payment_reference

    reference = parse_payment_reference(request.data)
    result = PaymentGatewayAdapter.verify(reference)
    if result.succeeded:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from core.exceptions import ValidationError

from enrollments.state_machines import PaymentGateway

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment References
# =============================================================================


@dataclass(frozen=True)
class StripeReference:
    payment_intent_id: str

    gateway = PaymentGateway.STRIPE

    @property
    def ref(self) -> str:
        return self.payment_intent_id


@dataclass(frozen=True)
class KhaltiReference:
    pidx: str

    gateway = PaymentGateway.KHALTI

    @property
    def ref(self) -> str:
        return self.pidx


PaymentReference = Union[StripeReference, KhaltiReference]


def parse_payment_reference(data: dict[str, Any]) -> PaymentReference:
    """
    Build the reference variant from ``{paymentMethod, paymentIntentId?, pidx?}``.

    Raises:
        ValidationError: Unknown method, or the id for the method is missing
    """
    method = (data.get("paymentMethod") or "").strip().lower()

    if method == PaymentGateway.STRIPE:
        payment_intent_id = (data.get("paymentIntentId") or "").strip()
        if not payment_intent_id:
            raise ValidationError(
                "paymentIntentId is required for Stripe payments",
                details={"field": "paymentIntentId"},
            )
        return StripeReference(payment_intent_id)

    if method == PaymentGateway.KHALTI:
        pidx = (data.get("pidx") or "").strip()
        if not pidx:
            raise ValidationError(
                "pidx is required for Khalti payments",
                details={"field": "pidx"},
            )
        return KhaltiReference(pidx)

    raise ValidationError(
        "Payment method must be 'stripe' or 'khalti'",
        details={"field": "paymentMethod"},
    )


# =============================================================================
# Verification Result
# =============================================================================


class GatewayStatus:
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass(frozen=True)
class GatewayResult:
    """
    Normalised outcome of a gateway lookup.

    Attributes:
        status: succeeded | pending | failed | canceled
        amount_cents: Amount in the gateway's minor unit
        currency: Gateway currency (lowercase)
        raw_status: Status string exactly as the gateway reported it
        transaction_id: Gateway transaction id, when there is one
    """

    status: str
    amount_cents: int
    currency: str
    raw_status: str = ""
    transaction_id: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status == GatewayStatus.SUCCEEDED

    @property
    def is_terminal_failure(self) -> bool:
        return self.status in (GatewayStatus.FAILED, GatewayStatus.CANCELED)


# =============================================================================
# Dispatcher
# =============================================================================


class PaymentGatewayAdapter:
    """
    Uniform verify() over Stripe and Khalti.

    Raises from verify():
        TransientGatewayError: Try again later; no state may change
        PermanentGatewayError: The reference or configuration is bad
    """

    @classmethod
    def verify(cls, reference: PaymentReference) -> GatewayResult:
        from enrollments.adapters.khalti_adapter import KhaltiAdapter
        from enrollments.adapters.stripe_adapter import StripeAdapter

        if isinstance(reference, StripeReference):
            return StripeAdapter.verify_payment_intent(reference.payment_intent_id)
        if isinstance(reference, KhaltiReference):
            return KhaltiAdapter.lookup(reference.pidx)
        raise TypeError(f"Unsupported payment reference: {reference!r}")

    @staticmethod
    def reference_for(gateway: str, gateway_ref: str) -> PaymentReference:
        """Rebuild the reference for a stored PendingEnrollment."""
        if gateway == PaymentGateway.STRIPE:
            return StripeReference(gateway_ref)
        if gateway == PaymentGateway.KHALTI:
            return KhaltiReference(gateway_ref)
        raise ValueError(f"Unknown gateway: {gateway}")
