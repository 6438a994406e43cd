"""
Tests for the notification inbox and activity feed endpoints.
"""

from notifications.tests.factories import ActivityLogFactory, NotificationFactory


class TestNotificationViews:
    """Tests for /api/v1/notifications/."""

    def test_requires_authentication(self, db):
        """Should reject anonymous requests."""
        from rest_framework.test import APIClient

        response = APIClient().get("/api/v1/notifications/")

        assert response.status_code == 401

    def test_lists_only_own_notifications(self, authenticated_client, user, other_user):
        """Should scope the list to the caller."""
        NotificationFactory.create_batch(2, recipient=user)
        NotificationFactory(recipient=other_user)

        response = authenticated_client.get("/api/v1/notifications/")

        assert response.status_code == 200
        assert response.data["count"] == 2

    def test_filter_unread(self, authenticated_client, user):
        """Should filter by is_read."""
        NotificationFactory(recipient=user, is_read=True)
        NotificationFactory(recipient=user, is_read=False)

        response = authenticated_client.get("/api/v1/notifications/?is_read=false")

        assert response.data["count"] == 1

    def test_unread_count(self, authenticated_client, user):
        """Should count unread notifications."""
        NotificationFactory.create_batch(2, recipient=user)

        response = authenticated_client.get("/api/v1/notifications/unread-count/")

        assert response.data == {"unread_count": 2}

    def test_mark_read(self, authenticated_client, user):
        """Should mark one notification read."""
        notification = NotificationFactory(recipient=user)

        response = authenticated_client.post(
            f"/api/v1/notifications/{notification.id}/read/"
        )

        assert response.status_code == 200
        assert response.data["is_read"] is True

    def test_mark_read_other_users_notification_is_404(
        self, authenticated_client, other_user
    ):
        """Should hide other users' notifications."""
        notification = NotificationFactory(recipient=other_user)

        response = authenticated_client.post(
            f"/api/v1/notifications/{notification.id}/read/"
        )

        assert response.status_code == 404

    def test_read_all(self, authenticated_client, user):
        """Should report how many were marked."""
        NotificationFactory.create_batch(3, recipient=user)

        response = authenticated_client.post("/api/v1/notifications/read-all/")

        assert response.data == {"marked_count": 3}


class TestActivityViews:
    """Tests for /api/v1/notifications/activity/."""

    def test_lists_own_activity(self, authenticated_client, user, other_user):
        """Should list only the caller's activity."""
        ActivityLogFactory(user=user, description="Enrolled in Intro")
        ActivityLogFactory(user=other_user)

        response = authenticated_client.get("/api/v1/notifications/activity/")

        assert response.status_code == 200
        assert response.data["count"] == 1
        assert response.data["results"][0]["description"] == "Enrolled in Intro"
