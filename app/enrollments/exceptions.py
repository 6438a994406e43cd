"""
Enrollment-specific exceptions.

Every gateway or storage failure that reaches the reconciliation
boundary is mapped to exactly one of these kinds. Only terminal payment
failures, invalid transitions and not-found errors are shown to users;
transient gateway trouble resolves to a "still processing" response.

Exception Hierarchy:
    EnrollmentError (base for the enrollment domain)
    ├── GatewayError - Base for payment gateway failures
    │   ├── TransientGatewayError - Timeout, 5xx, rate limit (retry later)
    │   └── PermanentGatewayError - Bad reference, auth/config (do not retry)
    ├── TerminalGatewayFailure - Gateway says the payment failed (400)
    ├── PaymentNotVerifiedError - Gateway still reports pending (400)
    ├── PendingEnrollmentExpiredError - Checkout past its TTL (400)
    ├── AlreadyEnrolledError - Checkout for a course the user owns (400)
    └── DuplicateRequestRace - Lost a claim race (internal only)

    CourseNotFoundError, PendingEnrollmentNotFoundError,
    ManualEnrollmentRequestNotFoundError (NotFoundError, 404)
    CourseNotAvailableError (PermissionDeniedError, 403)
    InvalidStateTransitionError (ConflictError, reported as 400)

Usage:
    from enrollments.exceptions import TransientGatewayError

    try:
        result = adapter.verify(reference)
    except TransientGatewayError:
        return processing_response()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)

if TYPE_CHECKING:
    from typing import Any


class EnrollmentError(BaseApplicationError):
    """Base exception for the enrollment domain."""

    default_error_code: str = "ENROLLMENT_ERROR"


# =============================================================================
# Gateway Errors
# =============================================================================


class GatewayError(EnrollmentError):
    """
    Base exception for payment gateway calls.

    Attributes:
        gateway: "stripe" or "khalti"
        is_retryable: Whether the same call may succeed later
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        gateway: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        details.setdefault("gateway", gateway)
        super().__init__(message, error_code=error_code, details=details)
        self.gateway = gateway


class TransientGatewayError(GatewayError):
    """
    Gateway unreachable, timed out, rate limited or returned 5xx.

    Never changes PendingEnrollment state.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    default_http_status: int = 503
    is_retryable: bool = True


class PermanentGatewayError(GatewayError):
    """
    Gateway rejected the request itself (unknown reference, bad key).

    Never changes PendingEnrollment state.
    """

    default_error_code: str = "GATEWAY_REQUEST_INVALID"


# =============================================================================
# Verification Outcomes
# =============================================================================


class TerminalGatewayFailure(EnrollmentError):
    """The gateway reports the payment failed or was canceled."""

    default_error_code: str = "PAYMENT_FAILED"


class PaymentNotVerifiedError(EnrollmentError):
    """The gateway has not confirmed the payment yet."""

    default_error_code: str = "PAYMENT_NOT_VERIFIED"


class PendingEnrollmentExpiredError(EnrollmentError):
    """The checkout attempt passed its TTL and can no longer complete."""

    default_error_code: str = "ENROLLMENT_EXPIRED"


class AlreadyEnrolledError(EnrollmentError):
    """Raised by checkout initiation; commit() treats enrollment as success."""

    default_error_code: str = "ALREADY_ENROLLED"


class DuplicateRequestRace(EnrollmentError):
    """
    Another worker holds the completion claim.

    Resolved inside the reconciler; never rendered to a client.
    """

    default_error_code: str = "DUPLICATE_REQUEST_RACE"


# =============================================================================
# Lookup and State Errors
# =============================================================================


class CourseNotFoundError(NotFoundError):
    default_error_code: str = "COURSE_NOT_FOUND"


class PendingEnrollmentNotFoundError(NotFoundError):
    default_error_code: str = "PENDING_ENROLLMENT_NOT_FOUND"


class ManualEnrollmentRequestNotFoundError(NotFoundError):
    default_error_code: str = "ENROLLMENT_REQUEST_NOT_FOUND"


class CourseNotAvailableError(PermissionDeniedError):
    """Course exists but is unpublished."""

    default_error_code: str = "COURSE_NOT_AVAILABLE"


class InvalidStateTransitionError(ConflictError):
    """
    FSM transition not allowed from the current state.

    Example:
        raise InvalidStateTransitionError(
            "Enrollment request is already approved",
            details={"current_state": "approved", "target_state": "approved"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"
    default_http_status: int = 400
