"""
Tests for notification and activity services.

Test Classes:
    TestNotificationServiceCreate: Tests for create_notification()
    TestNotificationServiceReadState: Tests for mark_as_read()/mark_all_as_read()
    TestActivityServiceRecord: Tests for ActivityService.record()
"""

import pytest

from notifications.tests.factories import NotificationFactory, NotificationTypeFactory


class TestNotificationServiceCreate:
    """Tests for NotificationService.create_notification()."""

    def test_renders_templates(self, db, enrollment_notification_type, user):
        """Should render the title from the data dict."""
        from notifications.services import NotificationService

        result = NotificationService.create_notification(
            recipient=user,
            type_key="course_enrollment",
            data={"course_title": "Intro to Django"},
        )

        assert result.success
        assert result.data.title == 'You enrolled in "Intro to Django"'
        assert result.data.recipient == user

    def test_explicit_title_overrides_template(self, db, enrollment_notification_type, user):
        """Should prefer explicit title and body."""
        from notifications.services import NotificationService

        result = NotificationService.create_notification(
            recipient=user,
            type_key="course_enrollment",
            title="Custom",
            body="Body",
        )

        assert result.data.title == "Custom"
        assert result.data.body == "Body"

    def test_unknown_type(self, db, user):
        """Should fail with TYPE_NOT_FOUND."""
        from notifications.services import NotificationService

        result = NotificationService.create_notification(recipient=user, type_key="nope")

        assert result.error_code == "TYPE_NOT_FOUND"

    def test_inactive_type(self, db, user):
        """Should fail with TYPE_INACTIVE."""
        from notifications.services import NotificationService

        NotificationTypeFactory(key="dormant", is_active=False)

        result = NotificationService.create_notification(recipient=user, type_key="dormant")

        assert result.error_code == "TYPE_INACTIVE"

    def test_missing_placeholder_raises(self, db, enrollment_notification_type, user):
        """Should raise KeyError for missing template data."""
        from notifications.services import NotificationService

        with pytest.raises(KeyError):
            NotificationService.create_notification(
                recipient=user, type_key="course_enrollment", data={}
            )

    def test_idempotency_key_prevents_duplicates(
        self, db, enrollment_notification_type, user
    ):
        """Should return DUPLICATE for a reused key without creating a row."""
        from notifications.models import Notification
        from notifications.services import NotificationService

        kwargs = {
            "recipient": user,
            "type_key": "course_enrollment",
            "data": {"course_title": "Intro"},
            "idempotency_key": "enrollment-event:1",
        }
        first = NotificationService.create_notification(**kwargs)
        second = NotificationService.create_notification(**kwargs)

        assert first.success
        assert second.error_code == "DUPLICATE"
        assert Notification.objects.filter(recipient=user).count() == 1

    def test_links_source_object(self, db, enrollment_notification_type, user, other_user):
        """Should store the generic foreign key to the source object."""
        from notifications.services import NotificationService

        result = NotificationService.create_notification(
            recipient=user,
            type_key="course_enrollment",
            data={"course_title": "Intro"},
            source_object=other_user,
        )

        assert result.data.source_object == other_user


class TestNotificationServiceReadState:
    """Tests for read state management."""

    def test_mark_as_read(self, db, user):
        """Should mark the owner's notification read."""
        from notifications.services import NotificationService

        notification = NotificationFactory(recipient=user)

        result = NotificationService.mark_as_read(notification, user)

        assert result.success
        notification.refresh_from_db()
        assert notification.is_read

    def test_mark_as_read_rejects_other_user(self, db, user, other_user):
        """Should refuse to mark another user's notification."""
        from notifications.services import NotificationService

        notification = NotificationFactory(recipient=other_user)

        result = NotificationService.mark_as_read(notification, user)

        assert result.error_code == "NOT_OWNER"

    def test_mark_all_as_read(self, db, user, other_user):
        """Should only touch the given user's notifications."""
        from notifications.services import NotificationService

        NotificationFactory.create_batch(3, recipient=user)
        NotificationFactory(recipient=other_user)

        result = NotificationService.mark_all_as_read(user)

        assert result.data == 3


class TestActivityServiceRecord:
    """Tests for ActivityService.record()."""

    def test_records_activity(self, db, user, other_user):
        """Should store the entry with its source object."""
        from notifications.services import ActivityService

        result = ActivityService.record(
            user=user,
            activity_type="enrollment",
            description="Enrolled in Intro",
            data={"payment_method": "stripe"},
            source_object=other_user,
        )

        assert result.success
        assert result.data.data == {"payment_method": "stripe"}
        assert result.data.object_id == str(other_user.pk)

    def test_idempotency_key(self, db, user):
        """Should record once per key."""
        from notifications.models import ActivityLog
        from notifications.services import ActivityService

        ActivityService.record(user=user, activity_type="enrollment", idempotency_key="k")
        result = ActivityService.record(
            user=user, activity_type="enrollment", idempotency_key="k"
        )

        assert result.error_code == "DUPLICATE"
        assert ActivityLog.objects.count() == 1
