"""
Notification service layer.

Services:
    NotificationService: Notification creation and read status management
    ActivityService: Activity feed entries

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Template rendering raises KeyError on missing placeholders
    - An idempotency key that was already used returns DUPLICATE, which
      callers delivering at-least-once treat as success

Usage:
    from notifications.services import ActivityService, NotificationService

    result = NotificationService.create_notification(
        recipient=user,
        type_key="course_enrollment",
        data={"course_title": course.title},
        source_object=course,
        idempotency_key=f"enrollment-event:{event.id}",
    )

    ActivityService.record(
        user=user,
        activity_type=ActivityType.ENROLLMENT,
        description=f"Enrolled in {course.title}",
        source_object=course,
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.contenttypes.models import ContentType
from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult

from notifications.models import ActivityLog, Notification, NotificationType

if TYPE_CHECKING:
    from django.db.models import Model

    from authentication.models import User


def _generic_fk(source_object: Model | None) -> tuple[ContentType | None, str | None]:
    if source_object is None:
        return None, None
    # PK as string supports both UUID and integer PKs
    return ContentType.objects.get_for_model(source_object), str(source_object.pk)


class NotificationService(BaseService):
    """
    Service for notification creation and read state.

    Methods:
        create_notification: Render and store a notification
        mark_as_read: Mark one notification read (owner only)
        mark_all_as_read: Mark all of a user's notifications read
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        type_key: str,
        data: dict | None = None,
        title: str | None = None,
        body: str | None = None,
        actor: User | None = None,
        source_object: Model | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a new notification for a user.

        If title/body are not provided, templates from NotificationType are
        rendered using the data dict. Explicit title/body override templates.

        Error codes:
            TYPE_NOT_FOUND: Notification type key doesn't exist
            TYPE_INACTIVE: Notification type is deactivated
            DUPLICATE: Notification with this idempotency_key already exists

        Raises:
            KeyError: If template placeholder is missing from data
        """
        data = data or {}

        try:
            notification_type = NotificationType.objects.get(key=type_key)
        except NotificationType.DoesNotExist:
            cls.get_logger().warning(f"Notification type not found: {type_key}")
            return ServiceResult.failure(
                f"Notification type not found: {type_key}",
                error_code="TYPE_NOT_FOUND",
            )

        if not notification_type.is_active:
            cls.get_logger().info(
                f"Notification type inactive: {type_key} - skipping creation"
            )
            return ServiceResult.failure(
                f"Notification type is inactive: {type_key}",
                error_code="TYPE_INACTIVE",
            )

        if idempotency_key and Notification.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            cls.get_logger().info(
                f"Duplicate notification prevented: idempotency_key={idempotency_key}"
            )
            return ServiceResult.failure(
                f"Notification with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        rendered_title = title or notification_type.title_template.format(**data)
        rendered_body = body or notification_type.body_template.format(**data)
        content_type, object_id = _generic_fk(source_object)

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    notification_type=notification_type,
                    recipient=recipient,
                    actor=actor,
                    title=rendered_title,
                    body=rendered_body,
                    data=data,
                    content_type=content_type,
                    object_id=object_id,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Lost a race with a concurrent delivery of the same key
            if idempotency_key:
                return ServiceResult.failure(
                    f"Notification with idempotency_key already exists: {idempotency_key}",
                    error_code="DUPLICATE",
                )
            raise

        cls.get_logger().info(
            f"Created notification {notification.id} of type {type_key} "
            f"for user {recipient.id}"
        )
        return ServiceResult.success(notification)

    @classmethod
    def mark_as_read(
        cls,
        notification: Notification,
        user: User,
    ) -> ServiceResult[Notification]:
        """
        Mark a single notification as read (idempotent).

        Error codes:
            NOT_OWNER: User doesn't own the notification
        """
        if notification.recipient_id != user.id:
            cls.get_logger().warning(
                f"User {user.id} attempted to mark notification {notification.id} "
                f"owned by user {notification.recipient_id}"
            )
            return ServiceResult.failure(
                "Cannot mark notification you don't own",
                error_code="NOT_OWNER",
            )

        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])

        return ServiceResult.success(notification)

    @classmethod
    def mark_all_as_read(cls, user: User) -> ServiceResult[int]:
        """Mark all user's unread notifications as read in one query."""
        count = Notification.objects.filter(
            recipient=user,
            is_read=False,
        ).update(is_read=True)

        cls.get_logger().info(
            f"Marked {count} notifications as read for user {user.id}"
        )
        return ServiceResult.success(count)


class ActivityService(BaseService):
    """Service for the append-only activity feed."""

    @classmethod
    def record(
        cls,
        user: User,
        activity_type: str,
        description: str = "",
        data: dict | None = None,
        source_object: Model | None = None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[ActivityLog]:
        """
        Append an activity entry.

        Error codes:
            DUPLICATE: An entry with this idempotency_key already exists
        """
        if idempotency_key and ActivityLog.objects.filter(
            idempotency_key=idempotency_key
        ).exists():
            return ServiceResult.failure(
                f"Activity with idempotency_key already exists: {idempotency_key}",
                error_code="DUPLICATE",
            )

        content_type, object_id = _generic_fk(source_object)

        try:
            with transaction.atomic():
                activity = ActivityLog.objects.create(
                    user=user,
                    activity_type=activity_type,
                    description=description,
                    data=data or {},
                    content_type=content_type,
                    object_id=object_id,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            if idempotency_key:
                return ServiceResult.failure(
                    f"Activity with idempotency_key already exists: {idempotency_key}",
                    error_code="DUPLICATE",
                )
            raise

        cls.get_logger().debug(
            f"Recorded {activity_type} activity for user {user.id}",
            extra={"activity_id": activity.id},
        )
        return ServiceResult.success(activity)
