"""
Payment verification: gateway lookup followed by reconciliation.

Services:
    PaymentVerificationService: Verify a checkout and enroll the user

Every path that learns about a payment outcome ends here: the client's
verify call, the Khalti return callback, the Stripe webhook and the
pending sweep. Outcomes:

    succeeded      -> EnrollmentReconciler.commit()
    failed/canceled-> PendingEnrollment marked failed (PAYMENT_FAILED)
    pending        -> PAYMENT_NOT_VERIFIED, record untouched
    transient error-> success with an in_progress outcome, record untouched
    permanent error-> failure, record untouched

Usage:
    from enrollments.services import PaymentVerificationService

    result = PaymentVerificationService.verify_and_enroll(user, course_id, reference)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from courses.services import CourseService
from enrollments.adapters import PaymentGatewayAdapter
from enrollments.exceptions import (
    EnrollmentError,
    PermanentGatewayError,
    TransientGatewayError,
)
from enrollments.models import PendingEnrollment
from enrollments.services.pending_store import PendingEnrollmentStore
from enrollments.services.reconciler import (
    EnrollmentIntent,
    EnrollmentOutcome,
    EnrollmentReconciler,
    EnrollmentSource,
    OutcomeStatus,
)
from enrollments.state_machines import PaymentGateway, PendingEnrollmentStatus

if TYPE_CHECKING:
    from authentication.models import User
    from enrollments.adapters import GatewayResult, PaymentReference


class PaymentVerificationService(BaseService):
    """
    Methods:
        verify_and_enroll: Client-initiated verification for (user, course, reference)
        complete_from_callback: Khalti return redirect (user taken from the record)
        verify_pending: Verify one stored PendingEnrollment
        record_gateway_success / record_gateway_failure: Webhook outcomes
    """

    @classmethod
    def verify_and_enroll(
        cls,
        user: User,
        course_identifier: str,
        reference: PaymentReference,
    ) -> ServiceResult[EnrollmentOutcome]:
        """
        Error codes:
            COURSE_NOT_FOUND, PENDING_ENROLLMENT_NOT_FOUND
            ENROLLMENT_EXPIRED, PAYMENT_FAILED, PAYMENT_NOT_VERIFIED
            PAYMENT_AMOUNT_MISMATCH, GATEWAY_REQUEST_INVALID
        """
        course = CourseService.find_course(course_identifier)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")

        if CourseService.is_enrolled(user, course):
            return ServiceResult.success(
                EnrollmentOutcome(
                    status=OutcomeStatus.ALREADY_ENROLLED,
                    user=user,
                    course=course,
                    progress=CourseService.get_progress(user, course),
                )
            )

        pending = PendingEnrollmentStore.get(reference.gateway, reference.ref)
        if pending is None or pending.user_id != user.pk or pending.course_id != course.id:
            cls.get_logger().warning(
                "Verification for unknown checkout",
                extra={
                    "user_id": user.pk,
                    "course_id": str(course.id),
                    "gateway": reference.gateway,
                    "gateway_ref": reference.ref,
                },
            )
            return ServiceResult.failure(
                "No checkout found for this payment",
                error_code="PENDING_ENROLLMENT_NOT_FOUND",
            )

        return cls.verify_pending(pending, EnrollmentSource.VERIFY)

    @classmethod
    def complete_from_callback(
        cls,
        course_identifier: str,
        pidx: str,
    ) -> ServiceResult[EnrollmentOutcome]:
        """Khalti redirects the browser back without an API token."""
        validation = cls.validate_required(pidx=pidx)
        if validation is not None:
            return validation

        course = CourseService.find_course(course_identifier)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")

        pending = PendingEnrollmentStore.get(PaymentGateway.KHALTI, pidx)
        if pending is None or pending.course_id != course.id:
            return ServiceResult.failure(
                "No checkout found for this payment",
                error_code="PENDING_ENROLLMENT_NOT_FOUND",
            )

        return cls.verify_pending(pending, EnrollmentSource.KHALTI_CALLBACK)

    @classmethod
    def verify_pending(
        cls,
        pending: PendingEnrollment,
        source: str,
    ) -> ServiceResult[EnrollmentOutcome]:
        logger = cls.get_logger()
        log_extra = {
            "pending_enrollment_id": str(pending.pk),
            "user_id": pending.user_id,
            "course_id": str(pending.course_id),
            "gateway": pending.gateway,
            "gateway_ref": pending.gateway_ref,
            "source": source,
        }

        if pending.status == PendingEnrollmentStatus.EXPIRED:
            return ServiceResult.failure(
                "This checkout has expired. Please start a new payment.",
                error_code="ENROLLMENT_EXPIRED",
            )
        if pending.status == PendingEnrollmentStatus.FAILED:
            return ServiceResult.failure(
                "Payment failed. Please try again.",
                error_code="PAYMENT_FAILED",
            )

        reference = PaymentGatewayAdapter.reference_for(pending.gateway, pending.gateway_ref)
        try:
            result = PaymentGatewayAdapter.verify(reference)
        except TransientGatewayError as e:
            logger.warning(f"Gateway unavailable during verification: {e}", extra=log_extra)
            return ServiceResult.success(
                EnrollmentOutcome(
                    status=OutcomeStatus.IN_PROGRESS,
                    user=pending.user,
                    course=pending.course,
                )
            )
        except PermanentGatewayError as e:
            return cls.handle_exception(e, "Payment verification", logging.WARNING)

        if result.succeeded:
            mismatch = cls._check_amount(pending, result)
            if mismatch is not None:
                logger.error("Gateway amount does not match checkout", extra=log_extra)
                return mismatch
            return cls.record_gateway_success(pending, source, result.transaction_id)

        if result.is_terminal_failure:
            return cls.record_gateway_failure(pending, f"gateway status: {result.raw_status}")

        logger.info("Payment not yet confirmed by gateway", extra=log_extra)
        return ServiceResult.failure(
            "Payment has not been completed yet",
            error_code="PAYMENT_NOT_VERIFIED",
            details={"status": result.raw_status},
        )

    @staticmethod
    def _check_amount(
        pending: PendingEnrollment,
        result: GatewayResult,
    ) -> ServiceResult | None:
        if result.amount_cents and result.amount_cents != pending.gateway_amount:
            return ServiceResult.failure(
                "Paid amount does not match the checkout amount",
                error_code="PAYMENT_AMOUNT_MISMATCH",
                details={
                    "expected": pending.gateway_amount,
                    "received": result.amount_cents,
                },
            )
        return None

    @classmethod
    def record_gateway_success(
        cls,
        pending: PendingEnrollment,
        source: str,
        transaction_id: str = "",
    ) -> ServiceResult[EnrollmentOutcome]:
        try:
            outcome = EnrollmentReconciler.commit(
                EnrollmentIntent.for_payment(pending, source, transaction_id)
            )
        except EnrollmentError as e:
            return ServiceResult.from_exception(e)
        return ServiceResult.success(outcome)

    @classmethod
    def record_gateway_failure(
        cls,
        pending: PendingEnrollment,
        reason: str,
    ) -> ServiceResult[EnrollmentOutcome]:
        updated = PendingEnrollmentStore.mark_failed(pending, reason)
        if updated.status == PendingEnrollmentStatus.COMPLETED:
            # The payment completed before the failure report arrived
            return ServiceResult.success(
                EnrollmentOutcome(
                    status=OutcomeStatus.ALREADY_ENROLLED,
                    user=updated.user,
                    course=updated.course,
                    progress=CourseService.get_progress(updated.user, updated.course),
                )
            )
        if updated.status == PendingEnrollmentStatus.PENDING:
            # Another caller holds the completion claim
            return ServiceResult.success(
                EnrollmentOutcome(
                    status=OutcomeStatus.IN_PROGRESS,
                    user=updated.user,
                    course=updated.course,
                )
            )
        return ServiceResult.failure(
            "Payment failed. Please try again.",
            error_code="PAYMENT_FAILED",
        )
