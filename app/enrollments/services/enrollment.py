"""
Direct enrollment into free courses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from courses.services import CourseService
from enrollments.services.reconciler import (
    EnrollmentIntent,
    EnrollmentOutcome,
    EnrollmentReconciler,
)

if TYPE_CHECKING:
    from authentication.models import User


class EnrollmentService(BaseService):
    @classmethod
    def enroll_free(cls, user: User, course_identifier: str) -> ServiceResult[EnrollmentOutcome]:
        """
        Enroll ``user`` in a published free course.

        Already enrolled users get the existing progress back.

        Error codes:
            COURSE_NOT_FOUND, COURSE_NOT_AVAILABLE, PAYMENT_REQUIRED
        """
        course = CourseService.find_course(course_identifier)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")
        if not course.is_published:
            return ServiceResult.failure(
                "Course is not available for enrollment",
                error_code="COURSE_NOT_AVAILABLE",
            )
        if not course.is_free:
            return ServiceResult.failure(
                "This course requires payment",
                error_code="PAYMENT_REQUIRED",
                details={"price": course.price_cents, "currency": course.currency},
            )

        return ServiceResult.success(EnrollmentReconciler.commit(EnrollmentIntent.for_free(user, course)))
