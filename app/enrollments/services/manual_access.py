"""
Direct admin access grants.

The grant row is an audit record; the enrollment itself is committed
through EnrollmentReconciler in the same transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import transaction

from core.services import BaseService, ServiceResult

from courses.services import CourseService
from enrollments.models import ManualAccessGrant
from enrollments.services.reconciler import EnrollmentIntent, EnrollmentReconciler

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User


class ManualAccessService(BaseService):
    @classmethod
    def grant(
        cls,
        admin: User,
        user_id,
        course_id: str,
        reason: str = "",
        expires_at: datetime | None = None,
    ) -> ServiceResult[ManualAccessGrant]:
        """
        Enroll ``user_id`` in ``course_id`` on an admin's authority.

        Error codes:
            USER_NOT_FOUND, COURSE_NOT_FOUND
            ALREADY_ENROLLED: The user is on the roster already
        """
        user = get_user_model().objects.filter(pk=user_id).first()
        if user is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        course = CourseService.find_course(course_id)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")

        if CourseService.is_enrolled(user, course):
            return ServiceResult.failure(
                "User is already enrolled in this course",
                error_code="ALREADY_ENROLLED",
            )

        with transaction.atomic():
            grant = ManualAccessGrant.objects.create(
                user=user,
                course=course,
                granted_by=admin,
                reason=reason or "",
                expires_at=expires_at,
            )
            EnrollmentReconciler.commit(EnrollmentIntent.for_manual_grant(user, course, admin))

        cls.get_logger().info(
            "Manual access granted",
            extra={
                "grant_id": str(grant.id),
                "user_id": user.pk,
                "course_id": str(course.id),
                "admin_id": admin.pk,
            },
        )
        return ServiceResult.success(grant)
