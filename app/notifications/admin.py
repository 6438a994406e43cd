"""
Django admin configuration for notification models.
"""

from django.contrib import admin

from notifications.models import ActivityLog, Notification, NotificationType


@admin.register(NotificationType)
class NotificationTypeAdmin(admin.ModelAdmin):
    """Management of notification type definitions and templates."""

    list_display = ["key", "display_name", "category", "is_active"]
    list_filter = ["is_active", "category"]
    search_fields = ["key", "display_name"]
    ordering = ["category", "key"]
    fieldsets = (
        (None, {"fields": ("key", "display_name", "category", "is_active")}),
        ("Templates", {"fields": ("title_template", "body_template")}),
    )


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-only view of notifications for debugging and support."""

    list_display = [
        "id",
        "notification_type",
        "recipient",
        "title",
        "is_read",
        "created_at",
    ]
    list_filter = ["is_read", "notification_type", "created_at"]
    search_fields = ["title", "recipient__email", "idempotency_key"]
    ordering = ["-created_at"]
    readonly_fields = [
        "notification_type",
        "recipient",
        "actor",
        "title",
        "body",
        "data",
        "content_type",
        "object_id",
        "idempotency_key",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["recipient", "actor"]


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "activity_type", "description", "created_at"]
    list_filter = ["activity_type", "created_at"]
    search_fields = ["user__email", "description", "idempotency_key"]
    ordering = ["-created_at"]
    readonly_fields = [
        "user",
        "activity_type",
        "description",
        "data",
        "content_type",
        "object_id",
        "idempotency_key",
        "created_at",
        "updated_at",
    ]

    def has_add_permission(self, request):
        return False
