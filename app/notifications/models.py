"""
Notification and activity models.

This module defines the collaborators the enrollment subsystem reports to:
- NotificationType: Configuration for notification types with templates
- Notification: Individual notifications shown in a user's inbox
- ActivityLog: Append-only feed of user activity (enrollments, grants)

Design Decisions:
    - NotificationType uses integer PK (internal lookup table seeded by migration)
    - Notification and ActivityLog inherit from BaseModel (timestamps, ordering)
    - Actor uses SET_NULL (preserve notification when actor deleted)
    - NotificationType uses PROTECT (prevent deletion with existing notifications)
    - GenericForeignKey links to the source object (course, request, grant)
    - idempotency_key is unique when present, so redelivered enrollment
      events never produce a second notification or activity entry

Usage:
    from notifications.models import Notification, ActivityLog

    unread = Notification.objects.filter(recipient=user, is_read=False)
"""

from __future__ import annotations

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models

from core.models import BaseModel


class NotificationCategory(models.TextChoices):
    """Categories for grouping notification types."""

    TRANSACTIONAL = "transactional", "Transactional"
    COURSE = "course", "Course"
    SYSTEM = "system", "System"


class ActivityType(models.TextChoices):
    """Kinds of entries in the activity feed."""

    ENROLLMENT = "enrollment", "Enrollment"
    ENROLLMENT_REQUEST = "enrollment_request", "Enrollment request"
    MANUAL_ACCESS = "manual_access", "Manual access grant"


class NotificationType(models.Model):
    """
    Lookup table for notification type definitions.

    Fields:
        key: Unique programmatic identifier (e.g., "course_enrollment")
        display_name: Human-readable name for admin/UI display
        title_template: Python format string for notification title
        body_template: Python format string for notification body
        is_active: Whether this notification type is currently enabled
        category: Grouping used by clients to filter the inbox

    Note:
        - Templates use Python str.format() syntax: {placeholder}
        - Missing placeholders raise KeyError during rendering
    """

    key = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique programmatic identifier (e.g., 'course_enrollment')",
    )

    display_name = models.CharField(
        max_length=200,
        help_text="Human-readable name for display",
    )

    title_template = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Python format string template for title",
    )

    body_template = models.TextField(
        blank=True,
        default="",
        help_text="Python format string template for body",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this notification type is currently enabled",
    )

    category = models.CharField(
        max_length=20,
        choices=NotificationCategory.choices,
        default=NotificationCategory.TRANSACTIONAL,
        db_index=True,
        help_text="Category for inbox grouping",
    )

    class Meta:
        db_table = "notifications_notification_type"
        verbose_name = "notification type"
        verbose_name_plural = "notification types"
        ordering = ["key"]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.key})"


class Notification(BaseModel):
    """
    Individual notification record for a user.

    Notifications are immutable once created - title and body are
    fully rendered strings serving as historical records.

    Note:
        - recipient CASCADE: Notifications deleted when user deleted
        - actor SET_NULL: Notification preserved when actor deleted
        - notification_type PROTECT: Cannot delete type with existing notifications
    """

    notification_type = models.ForeignKey(
        NotificationType,
        on_delete=models.PROTECT,
        related_name="notifications",
        help_text="Type of this notification",
    )

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        db_index=True,
        help_text="User receiving this notification",
    )

    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="triggered_notifications",
        help_text="User who triggered this notification (optional)",
    )

    title = models.CharField(
        max_length=500,
        help_text="Fully rendered notification title",
    )

    body = models.TextField(
        blank=True,
        default="",
        help_text="Fully rendered notification body",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary context data (action URL, course id)",
    )

    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        help_text="Content type of source object",
    )

    object_id = models.CharField(
        max_length=36,
        null=True,
        blank=True,
        help_text="ID of source object (supports UUID and integer PKs)",
    )

    source_object = GenericForeignKey("content_type", "object_id")

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"Notification({self.notification_type.key}) -> "
            f"User {self.recipient_id} [{read_status}]"
        )


class ActivityLog(BaseModel):
    """
    Append-only activity feed entry.

    Fields:
        user: Whose activity this is
        activity_type: What happened (see ActivityType)
        description: Rendered one-line summary ("Enrolled in Intro to Django")
        data: Context (course title, amount, payment method, approver)
        content_type/object_id/source_object: Generic FK to the subject
        idempotency_key: Unique when present; redelivery is a no-op
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="activities",
        help_text="User the activity belongs to",
    )

    activity_type = models.CharField(
        max_length=30,
        choices=ActivityType.choices,
        db_index=True,
    )

    description = models.CharField(max_length=500, blank=True, default="")

    data = models.JSONField(default=dict, blank=True)

    content_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    object_id = models.CharField(max_length=36, null=True, blank=True)
    source_object = GenericForeignKey("content_type", "object_id")

    idempotency_key = models.CharField(max_length=255, null=True, blank=True)

    class Meta:
        db_table = "notifications_activity_log"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="activity_user_recent_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="activity_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        return f"ActivityLog({self.activity_type}) user={self.user_id}"
