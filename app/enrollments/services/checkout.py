"""
Checkout initiation for paid courses.

Creates the gateway-side payment (Stripe PaymentIntent or Khalti
epayment) and stores the matching PendingEnrollment. No roster, progress
or ledger row is written here; that only happens once the payment is
verified.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService, ServiceResult

from courses.services import CourseService
from enrollments.adapters import KhaltiAdapter, StripeAdapter
from enrollments.exceptions import GatewayError
from enrollments.services.pending_store import PendingEnrollmentStore
from enrollments.state_machines import PaymentGateway

if TYPE_CHECKING:
    from authentication.models import User
    from courses.models import Course


def khalti_amount_paisa(course: Course) -> int:
    """Course price converted to NPR paisa, never below Khalti's minimum."""
    return max(course.price_cents * settings.NPR_EXCHANGE_RATE, settings.KHALTI_MIN_AMOUNT_PAISA)


class CheckoutService(BaseService):
    """
    Methods:
        initiate: Start a Stripe or Khalti checkout for a course
    """

    @classmethod
    def initiate(
        cls,
        user: User,
        course_identifier: str,
        payment_method: str,
        return_url: str = "",
    ) -> ServiceResult[dict]:
        """
        Error codes:
            COURSE_NOT_FOUND: Unknown id or slug
            COURSE_NOT_AVAILABLE: Course is unpublished
            ALREADY_ENROLLED: User is on the roster already
            VALIDATION_ERROR: Unknown payment method
            GATEWAY_UNAVAILABLE / GATEWAY_REQUEST_INVALID: Gateway call failed
        """
        course = CourseService.find_course(course_identifier)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")
        if not course.is_published:
            return ServiceResult.failure(
                "Course is not available for enrollment",
                error_code="COURSE_NOT_AVAILABLE",
            )
        if CourseService.is_enrolled(user, course):
            return ServiceResult.failure(
                "You are already enrolled in this course",
                error_code="ALREADY_ENROLLED",
            )
        if course.is_free:
            return ServiceResult.success(
                {
                    "freeCourse": True,
                    "message": "This course is free. Enroll directly.",
                }
            )

        method = (payment_method or "").strip().lower()
        try:
            if method == PaymentGateway.STRIPE:
                data = cls._initiate_stripe(user, course)
            elif method == PaymentGateway.KHALTI:
                data = cls._initiate_khalti(user, course, return_url)
            else:
                return ServiceResult.failure(
                    "Payment method must be 'stripe' or 'khalti'",
                    error_code="VALIDATION_ERROR",
                    errors={"paymentMethod": ["Unsupported payment method."]},
                )
        except GatewayError as e:
            return cls.handle_exception(e, f"{method} checkout", logging.WARNING)

        return ServiceResult.success(data)

    @classmethod
    def _initiate_stripe(cls, user: User, course: Course) -> dict:
        intent = StripeAdapter.create_payment_intent(
            amount_cents=course.price_cents,
            currency=course.currency,
            metadata={
                "course_id": str(course.id),
                "user_id": str(user.pk),
                "course_title": course.title[:200],
            },
            idempotency_key=f"course-checkout:{course.id}:{user.pk}:{uuid.uuid4()}",
            receipt_email=user.email or None,
        )
        PendingEnrollmentStore.create(
            user=user,
            course=course,
            gateway=PaymentGateway.STRIPE,
            gateway_ref=intent.id,
            amount_cents=course.price_cents,
            currency=course.currency,
            gateway_amount=intent.amount_cents,
            gateway_currency=intent.currency,
        )
        return {
            "success": True,
            "paymentMethod": PaymentGateway.STRIPE,
            "clientSecret": intent.client_secret,
            "paymentIntentId": intent.id,
            "amount": course.price_cents,
            "currency": course.currency,
        }

    @classmethod
    def _initiate_khalti(cls, user: User, course: Course, return_url: str) -> dict:
        amount_paisa = khalti_amount_paisa(course)
        checkout = KhaltiAdapter.initiate(
            {
                "return_url": return_url,
                "website_url": settings.FRONTEND_BASE_URL,
                "amount": amount_paisa,
                "purchase_order_id": f"course-{course.id}-{user.pk}-{uuid.uuid4().hex[:8]}",
                "purchase_order_name": course.title[:64],
                "customer_info": {
                    "name": user.display_name,
                    "email": user.email,
                },
                "amount_breakdown": [{"label": "Course Fee", "amount": amount_paisa}],
                "product_details": [
                    {
                        "identity": str(course.id),
                        "name": course.title[:64],
                        "total_price": amount_paisa,
                        "quantity": 1,
                        "unit_price": amount_paisa,
                    }
                ],
            }
        )
        PendingEnrollmentStore.create(
            user=user,
            course=course,
            gateway=PaymentGateway.KHALTI,
            gateway_ref=checkout.pidx,
            amount_cents=course.price_cents,
            currency=course.currency,
            gateway_amount=amount_paisa,
            gateway_currency="npr",
        )
        return {
            "success": True,
            "paymentMethod": PaymentGateway.KHALTI,
            "paymentUrl": checkout.payment_url,
            "pidx": checkout.pidx,
            "amount": amount_paisa,
            "currency": "npr",
        }
