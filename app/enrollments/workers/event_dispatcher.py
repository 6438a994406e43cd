"""
Delivers EnrollmentEvent rows to the notification inbox and activity feed.

Delivery is at-least-once. Both collaborators take an idempotency key
derived from the event id, so a redelivered event is reported as
DUPLICATE and counted as delivered.
"""

from __future__ import annotations

from django.conf import settings

from core.services import BaseService, ServiceResult

from enrollments.models import EnrollmentEvent, EnrollmentEventType
from enrollments.services.reconciler import EnrollmentSource
from enrollments.state_machines import EnrollmentEventStatus
from notifications.models import ActivityType
from notifications.services import ActivityService, NotificationService

# Collaborator failures that retrying cannot fix
SKIPPABLE_ERRORS = {"TYPE_NOT_FOUND", "TYPE_INACTIVE"}
DELIVERED_ERRORS = {"DUPLICATE"}


class EnrollmentEventDispatcher(BaseService):
    """
    Methods:
        deliver: Deliver one event (raises on unexpected failure)
        drain_pending: Deliver up to ``limit`` pending events
    """

    @classmethod
    def deliver(cls, event_id: str) -> str:
        """
        Returns the event's status after the attempt.

        Raises:
            Exception: Anything unexpected, after recording the attempt
        """
        event = EnrollmentEvent.objects.select_related("user", "course").filter(id=event_id).first()
        if event is None:
            cls.get_logger().warning(
                "Enrollment event not found",
                extra={"enrollment_event_id": str(event_id)},
            )
            return "not_found"

        if event.status != EnrollmentEventStatus.PENDING:
            return event.status

        try:
            if event.event_type == EnrollmentEventType.REQUEST_REJECTED:
                cls._deliver_rejection(event)
            else:
                cls._deliver_enrollment(event)
        except Exception as e:
            event.mark_attempt_failed(
                f"{type(e).__name__}: {e}",
                settings.ENROLLMENT_EVENT_MAX_ATTEMPTS,
            )
            event.save(update_fields=["attempts", "last_error", "status", "updated_at"])
            cls.get_logger().exception(
                "Enrollment event delivery failed",
                extra={
                    "enrollment_event_id": str(event.id),
                    "attempts": event.attempts,
                },
            )
            raise

        event.mark_delivered()
        event.save(update_fields=["status", "delivered_at", "last_error", "updated_at"])
        cls.get_logger().info(
            "Enrollment event delivered",
            extra={
                "enrollment_event_id": str(event.id),
                "event_type": event.event_type,
                "user_id": event.user_id,
                "course_id": str(event.course_id),
            },
        )
        return event.status

    @classmethod
    def _check(cls, result: ServiceResult, event: EnrollmentEvent, target: str) -> None:
        if result.success or result.error_code in DELIVERED_ERRORS:
            return
        if result.error_code in SKIPPABLE_ERRORS:
            cls.get_logger().warning(
                f"Skipping {target} for enrollment event: {result.error}",
                extra={"enrollment_event_id": str(event.id), "error_code": result.error_code},
            )
            return
        raise RuntimeError(f"{target} failed: [{result.error_code}] {result.error}")

    @classmethod
    def _deliver_enrollment(cls, event: EnrollmentEvent) -> None:
        payload = event.payload
        course = event.course
        manual_access = payload.get("source") == EnrollmentSource.MANUAL_ACCESS

        result = NotificationService.create_notification(
            recipient=event.user,
            type_key="manual_access_granted" if manual_access else "course_enrollment",
            data={
                "course_title": payload.get("course_title", course.title),
                "course_id": str(course.id),
                "course_slug": payload.get("course_slug", course.slug),
            },
            source_object=course,
            idempotency_key=event.idempotency_key,
        )
        cls._check(result, event, "notification")

        result = ActivityService.record(
            user=event.user,
            activity_type=ActivityType.MANUAL_ACCESS if manual_access else ActivityType.ENROLLMENT,
            description=f"Enrolled in {course.title}",
            data={
                "courseTitle": payload.get("course_title", course.title),
                "price": payload.get("price"),
                "paymentMethod": payload.get("payment_method"),
                "paymentAmount": payload.get("payment_amount"),
                "enrolledThrough": payload.get("enrolled_through"),
                "approvedBy": payload.get("approved_by"),
            },
            source_object=course,
            idempotency_key=f"{event.idempotency_key}:activity",
        )
        cls._check(result, event, "activity")

    @classmethod
    def _deliver_rejection(cls, event: EnrollmentEvent) -> None:
        payload = event.payload
        course = event.course

        result = NotificationService.create_notification(
            recipient=event.user,
            type_key="enrollment_request_rejected",
            data={
                "course_title": payload.get("course_title", course.title),
                "notes": payload.get("notes") or "",
            },
            source_object=course,
            idempotency_key=event.idempotency_key,
        )
        cls._check(result, event, "notification")

        result = ActivityService.record(
            user=event.user,
            activity_type=ActivityType.ENROLLMENT_REQUEST,
            description=f"Enrollment request for {course.title} was rejected",
            data={
                "courseTitle": payload.get("course_title", course.title),
                "notes": payload.get("notes") or "",
            },
            source_object=course,
            idempotency_key=f"{event.idempotency_key}:activity",
        )
        cls._check(result, event, "activity")

    @classmethod
    def drain_pending(cls, limit: int = 100) -> dict:
        """Deliver pending events oldest first; failures stay pending for the next run."""
        event_ids = list(
            EnrollmentEvent.objects.filter(status=EnrollmentEventStatus.PENDING)
            .order_by("created_at")
            .values_list("id", flat=True)[:limit]
        )
        delivered = failed = 0
        for event_id in event_ids:
            try:
                status = cls.deliver(str(event_id))
            except Exception:
                failed += 1
                continue
            if status == EnrollmentEventStatus.DELIVERED:
                delivered += 1

        return {"delivered": delivered, "failed": failed}
