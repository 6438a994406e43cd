"""
Manual enrollment requests: student submits, admin approves or rejects.

Approval hands the request to the same EnrollmentReconciler.commit() the
payment path uses, inside the transaction that flips the request to
approved. A request leaves ``pending`` exactly once; a second decision on
a resolved request is INVALID_STATE_TRANSITION.

Usage:
    from enrollments.services import ManualEnrollmentQueue

    result = ManualEnrollmentQueue.resolve(request_id, course_id, admin, "approved")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import QuerySet
from django_fsm import can_proceed

from core.helpers import validate_uuid
from core.services import BaseService, ServiceResult

from courses.services import CourseService
from enrollments.exceptions import (
    InvalidStateTransitionError,
    ManualEnrollmentRequestNotFoundError,
)
from enrollments.models import EnrollmentEvent, EnrollmentEventType, ManualEnrollmentRequest
from enrollments.services.reconciler import (
    EnrollmentIntent,
    EnrollmentReconciler,
    schedule_event_dispatch,
)
from enrollments.state_machines import ManualEnrollmentRequestStatus

if TYPE_CHECKING:
    from authentication.models import User
    from courses.models import Course

DECISIONS = {
    ManualEnrollmentRequestStatus.APPROVED: "approve",
    ManualEnrollmentRequestStatus.REJECTED: "reject",
}


class ManualEnrollmentQueue(BaseService):
    """
    Methods:
        submit: Student creates a pending request
        list_for_course / list_for_user: Queue views
        resolve: Admin decision (approved | rejected)
        cancel: Owner withdraws a pending request
    """

    @classmethod
    def submit(
        cls,
        user: User,
        course_identifier: str,
        notes: str = "",
        amount_cents: int | None = None,
        payment_method: str = "",
        transaction_id: str = "",
    ) -> ServiceResult[ManualEnrollmentRequest]:
        """
        Error codes:
            COURSE_NOT_FOUND, COURSE_NOT_AVAILABLE, ALREADY_ENROLLED
            MANUAL_ENROLLMENT_DISABLED: Course accepts no manual requests
            REQUEST_ALREADY_PENDING: User has an open request for the course
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

        has_payment_proof = bool(amount_cents) and not course.is_free
        if not (course.manual_enrollment_enabled or has_payment_proof):
            return ServiceResult.failure(
                "This course does not accept enrollment requests",
                error_code="MANUAL_ENROLLMENT_DISABLED",
            )

        if cls._open_requests(user, course).exists():
            return cls._already_pending()

        try:
            with transaction.atomic():
                request = ManualEnrollmentRequest.objects.create(
                    user=user,
                    course=course,
                    notes=notes or "",
                    amount_cents=amount_cents if has_payment_proof else None,
                    payment_method=payment_method or "",
                    transaction_id=transaction_id or "",
                )
        except IntegrityError:
            return cls._already_pending()

        cls.get_logger().info(
            "Enrollment request submitted",
            extra={
                "enrollment_request_id": str(request.id),
                "user_id": user.pk,
                "course_id": str(course.id),
                "has_payment": request.has_payment,
            },
        )
        return ServiceResult.success(request)

    @staticmethod
    def _open_requests(user: User, course: Course) -> QuerySet:
        return ManualEnrollmentRequest.objects.filter(
            user=user,
            course=course,
            status=ManualEnrollmentRequestStatus.PENDING,
        )

    @staticmethod
    def _already_pending() -> ServiceResult:
        return ServiceResult.failure(
            "You already have a pending request for this course",
            error_code="REQUEST_ALREADY_PENDING",
        )

    @staticmethod
    def list_for_course(course: Course, status: str | None = None) -> QuerySet:
        qs = ManualEnrollmentRequest.objects.filter(course=course).select_related(
            "user", "approved_by"
        )
        if status:
            qs = qs.filter(status=status)
        return qs

    @staticmethod
    def list_for_user(user: User) -> QuerySet:
        return ManualEnrollmentRequest.objects.filter(user=user).select_related("course")

    @classmethod
    def resolve(
        cls,
        request_id: str,
        course_identifier: str,
        admin: User,
        status: str,
        notes: str | None = None,
    ) -> ServiceResult[ManualEnrollmentRequest]:
        """
        Apply an admin decision to a pending request.

        Error codes:
            VALIDATION_ERROR: status is not approved/rejected
            COURSE_NOT_FOUND, ENROLLMENT_REQUEST_NOT_FOUND
            INVALID_STATE_TRANSITION: Request is no longer pending
        """
        transition_name = DECISIONS.get(status)
        if transition_name is None:
            return ServiceResult.failure(
                "Status must be 'approved' or 'rejected'",
                error_code="VALIDATION_ERROR",
                errors={"status": ["Must be 'approved' or 'rejected'."]},
            )

        course = CourseService.find_course(course_identifier)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")

        try:
            with transaction.atomic():
                request = cls._lock_request(request_id, course)
                transition = getattr(request, transition_name)
                if not can_proceed(transition):
                    raise InvalidStateTransitionError(
                        f"Enrollment request is already {request.status}",
                        details={"current_state": request.status, "target_state": status},
                    )
                transition(admin, notes)
                request.save()

                if status == ManualEnrollmentRequestStatus.APPROVED:
                    EnrollmentReconciler.commit(
                        EnrollmentIntent.for_manual_request(request, admin)
                    )
                else:
                    cls._queue_rejection_event(request)
        except (InvalidStateTransitionError, ManualEnrollmentRequestNotFoundError) as e:
            return ServiceResult.from_exception(e)

        cls.get_logger().info(
            f"Enrollment request {status}",
            extra={
                "enrollment_request_id": str(request.id),
                "user_id": request.user_id,
                "course_id": str(course.id),
                "admin_id": admin.pk,
            },
        )
        return ServiceResult.success(request)

    @staticmethod
    def _lock_request(request_id: str, course: Course) -> ManualEnrollmentRequest:
        request = None
        if validate_uuid(request_id):
            request = (
                ManualEnrollmentRequest.objects.select_for_update()
                .filter(id=request_id, course=course)
                .first()
            )
        if request is None:
            raise ManualEnrollmentRequestNotFoundError("Enrollment request not found")
        return request

    @staticmethod
    def _queue_rejection_event(request: ManualEnrollmentRequest) -> None:
        event, created = EnrollmentEvent.objects.get_or_create(
            dedupe_key=f"enrollment-request-rejected:{request.id}",
            defaults={
                "event_type": EnrollmentEventType.REQUEST_REJECTED,
                "user": request.user,
                "course": request.course,
                "payload": {
                    "course_title": request.course.title,
                    "notes": request.admin_notes,
                    "enrollment_request_id": str(request.id),
                },
            },
        )
        if created:
            schedule_event_dispatch(event)

    @classmethod
    def cancel(
        cls,
        course_identifier: str,
        request_id: str,
        user: User,
    ) -> ServiceResult[ManualEnrollmentRequest]:
        """
        Error codes:
            COURSE_NOT_FOUND: Course does not exist
            ENROLLMENT_REQUEST_NOT_FOUND: Unknown id, filed for another course,
                or owned by someone else
            INVALID_STATE_TRANSITION: Request is no longer pending
        """
        course = CourseService.find_course(course_identifier)
        if course is None:
            return ServiceResult.failure("Course not found", error_code="COURSE_NOT_FOUND")

        if not validate_uuid(request_id):
            return ServiceResult.failure(
                "Enrollment request not found",
                error_code="ENROLLMENT_REQUEST_NOT_FOUND",
            )

        with transaction.atomic():
            request = (
                ManualEnrollmentRequest.objects.select_for_update()
                .filter(id=request_id, course=course, user=user)
                .first()
            )
            if request is None:
                return ServiceResult.failure(
                    "Enrollment request not found",
                    error_code="ENROLLMENT_REQUEST_NOT_FOUND",
                )
            if not can_proceed(request.cancel):
                return ServiceResult.failure(
                    f"Enrollment request is already {request.status}",
                    error_code="INVALID_STATE_TRANSITION",
                )
            request.cancel()
            request.save()

        return ServiceResult.success(request)
