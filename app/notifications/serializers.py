"""
Serializers for notification API.

Serializers:
    NotificationSerializer: Read-only serializer for notification details
    ActivityLogSerializer: Read-only serializer for activity feed entries
    UnreadCountSerializer: Response for unread count endpoint
    MarkAllReadResponseSerializer: Response for mark all read endpoint
"""

from __future__ import annotations

from rest_framework import serializers

from notifications.models import ActivityLog, Notification


class NotificationSerializer(serializers.ModelSerializer):
    """
    Serializer for Notification model.

    Includes type_key from the related NotificationType and the actor's
    display name (None for system notifications or deleted actors).
    """

    type_key = serializers.CharField(source="notification_type.key", read_only=True)
    actor_name = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            "id",
            "type_key",
            "title",
            "body",
            "data",
            "actor_name",
            "is_read",
            "created_at",
        ]
        read_only_fields = fields

    def get_actor_name(self, obj: Notification) -> str | None:
        if obj.actor is None:
            return None
        return obj.actor.display_name


class ActivityLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ActivityLog
        fields = [
            "id",
            "activity_type",
            "description",
            "data",
            "created_at",
        ]
        read_only_fields = fields


class UnreadCountSerializer(serializers.Serializer):
    unread_count = serializers.IntegerField()


class MarkAllReadResponseSerializer(serializers.Serializer):
    marked_count = serializers.IntegerField()
