"""
Test configuration and fixtures for notification tests.

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get("/api/v1/notifications/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from notifications.tests.factories import NotificationTypeFactory


@pytest.fixture
def user(db):
    """User receiving notifications."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Another user for ownership tests."""
    return UserFactory()


@pytest.fixture
def enrollment_notification_type(db):
    """The course enrollment type as seeded by migration."""
    return NotificationTypeFactory(
        key="course_enrollment",
        title_template='You enrolled in "{course_title}"',
        body_template="Start learning whenever you are ready.",
    )


@pytest.fixture
def authenticated_client(user):
    """APIClient authenticated as ``user`` via JWT."""
    client = APIClient()
    token = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
    return client
