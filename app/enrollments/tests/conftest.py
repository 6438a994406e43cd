"""
Test configuration and fixtures for enrollment tests.

Gateways are mocked at the adapter boundary (``gateway_verify``) or at
the SDK/HTTP boundary in test_adapters.py.
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import AdminUserFactory, UserFactory
from courses.tests.factories import CourseFactory, PaidCourseFactory
from enrollments.tests.factories import PendingEnrollmentFactory, gateway_result
from notifications.tests.factories import NotificationTypeFactory


def client_for(user):
    client = APIClient()
    token = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
    return client


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def admin_user(db):
    return AdminUserFactory()


@pytest.fixture
def free_course(db):
    return CourseFactory(title="Intro to Django")


@pytest.fixture
def paid_course(db):
    """$20 published course."""
    return PaidCourseFactory(title="Advanced Django", price_cents=2000)


@pytest.fixture
def pending(user, paid_course):
    """Stripe checkout by ``user`` for ``paid_course``."""
    return PendingEnrollmentFactory(user=user, course=paid_course, gateway_ref="pi_test_abc")


@pytest.fixture
def authenticated_client(user):
    return client_for(user)


@pytest.fixture
def admin_client(admin_user):
    return client_for(admin_user)


@pytest.fixture
def notification_types(db):
    """Notification types normally seeded by migration."""
    return [
        NotificationTypeFactory(
            key="course_enrollment",
            title_template='You enrolled in "{course_title}"',
            body_template="Start learning whenever you are ready.",
        ),
        NotificationTypeFactory(
            key="manual_access_granted",
            title_template='You were given access to "{course_title}"',
            body_template="",
        ),
        NotificationTypeFactory(
            key="enrollment_request_rejected",
            title_template='Your request for "{course_title}" was declined',
            body_template="{notes}",
        ),
    ]


@pytest.fixture
def gateway_verify(mocker):
    """Patch PaymentGatewayAdapter.verify; returns a succeeded $20 result by default."""
    return mocker.patch(
        "enrollments.services.verification.PaymentGatewayAdapter.verify",
        return_value=gateway_result(),
    )
