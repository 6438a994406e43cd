"""
Tests for the enrollment API endpoints.

Tests:
- Checkout initiation and payment verification (incl. 202 and 429)
- Khalti browser callback redirects
- Free enrollment and enrollment status
- Student enrollment requests
- Admin request queue, decisions and manual access grants
"""

import pytest
from rest_framework.test import APIClient

from courses.models import Course, CourseStudent, UserProgress
from courses.tests.factories import CourseFactory, CourseStudentFactory
from enrollments.adapters import KhaltiCheckout, PaymentIntentResult
from enrollments.exceptions import TransientGatewayError
from enrollments.models import ManualEnrollmentRequest, Payment, PendingEnrollment
from enrollments.state_machines import ManualEnrollmentRequestStatus, PendingEnrollmentStatus
from enrollments.tests.factories import (
    KhaltiPendingEnrollmentFactory,
    ManualEnrollmentRequestFactory,
    gateway_result,
)

FRONTEND = "http://localhost:3000"


@pytest.fixture(autouse=True)
def mock_dispatch(mocker):
    return mocker.patch("enrollments.tasks.dispatch_enrollment_event.delay")


@pytest.fixture(autouse=True)
def frontend_url(settings):
    settings.FRONTEND_BASE_URL = FRONTEND


def course_url(course, suffix):
    return f"/api/v1/courses/{course.id}/{suffix}"


def admin_url(course, request_id=None):
    base = f"/api/v1/admin/courses/{course.id}/enrollments/"
    return f"{base}{request_id}/" if request_id else base


# =============================================================================
# Checkout
# =============================================================================


@pytest.mark.django_db
class TestInitiatePaymentView:
    def test_stripe_checkout(self, authenticated_client, paid_course, mocker):
        mocker.patch(
            "enrollments.services.checkout.StripeAdapter.create_payment_intent",
            return_value=PaymentIntentResult(
                id="pi_view",
                status="requires_payment_method",
                amount_cents=2000,
                currency="usd",
                client_secret="pi_view_secret",
            ),
        )

        response = authenticated_client.post(
            course_url(paid_course, "payment/initiate/"),
            {"paymentMethod": "stripe"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["clientSecret"] == "pi_view_secret"
        assert response.data["paymentIntentId"] == "pi_view"

    def test_khalti_return_url_points_at_callback(self, authenticated_client, paid_course, mocker):
        initiate = mocker.patch(
            "enrollments.services.checkout.KhaltiAdapter.initiate",
            return_value=KhaltiCheckout(pidx="px_view", payment_url="https://pay.khalti.com/x"),
        )

        response = authenticated_client.post(
            course_url(paid_course, "payment/initiate/"),
            {"paymentMethod": "khalti"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["pidx"] == "px_view"
        return_url = initiate.call_args.args[0]["return_url"]
        assert return_url.endswith(f"/api/v1/courses/{paid_course.id}/payment/khalti/callback/")

    def test_invalid_method(self, authenticated_client, paid_course):
        response = authenticated_client.post(
            course_url(paid_course, "payment/initiate/"),
            {"paymentMethod": "paypal"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert "paymentMethod" in response.data["errors"]

    def test_already_enrolled(self, authenticated_client, user, paid_course):
        CourseStudentFactory(course=paid_course, user=user)

        response = authenticated_client.post(
            course_url(paid_course, "payment/initiate/"),
            {"paymentMethod": "stripe"},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "ALREADY_ENROLLED"

    def test_requires_authentication(self, paid_course):
        response = APIClient().post(
            course_url(paid_course, "payment/initiate/"),
            {"paymentMethod": "stripe"},
            format="json",
        )

        assert response.status_code == 401


# =============================================================================
# Verification
# =============================================================================


@pytest.mark.django_db
class TestVerifyPaymentView:
    def verify(self, client, course, **body):
        return client.post(course_url(course, "payment/verify/"), body, format="json")

    def test_stripe_payment_enrolls(self, authenticated_client, user, paid_course, pending, gateway_verify):
        """$20 Stripe checkout: enrolled, one roster entry, one $20 ledger row."""
        response = self.verify(
            authenticated_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_test_abc"
        )

        assert response.status_code == 200
        assert response.data["success"] is True
        assert response.data["enrolled"] is True
        assert response.data["courseId"] == str(paid_course.id)
        assert response.data["slug"] == paid_course.slug
        assert response.data["progress"]["currentLesson"] == "lesson-1"
        assert response.data["course"]["totalStudents"] == 1
        assert CourseStudent.objects.filter(course=paid_course).count() == 1
        assert Payment.objects.get().amount_cents == 2000

    def test_khalti_resubmission(self, authenticated_client, user, paid_course, gateway_verify):
        """Resubmitted pidx after a reload answers alreadyEnrolled."""
        KhaltiPendingEnrollmentFactory(user=user, course=paid_course, gateway_ref="px_reload")
        gateway_verify.return_value = gateway_result(amount=266000, currency="npr")

        first = self.verify(authenticated_client, paid_course, paymentMethod="khalti", pidx="px_reload")
        second = self.verify(authenticated_client, paid_course, paymentMethod="khalti", pidx="px_reload")

        assert first.data["enrolled"] is True
        assert second.status_code == 200
        assert second.data["alreadyEnrolled"] is True
        assert "course" not in second.data
        assert Course.objects.get(pk=paid_course.pk).total_students == 1

    def test_missing_reference(self, authenticated_client, paid_course):
        response = self.verify(authenticated_client, paid_course, paymentMethod="stripe")

        assert response.status_code == 400
        assert response.data["error_code"] == "VALIDATION_ERROR"
        assert response.data["details"] == {"field": "paymentIntentId"}

    def test_gateway_unavailable_is_processing(self, authenticated_client, paid_course, pending, gateway_verify):
        gateway_verify.side_effect = TransientGatewayError("timeout", gateway="stripe")

        response = self.verify(
            authenticated_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_test_abc"
        )

        assert response.status_code == 202
        assert response.data["processing"] is True
        assert response.data["enrolled"] is False
        assert response.data["retryAfter"] == 5

    def test_payment_failed(self, authenticated_client, paid_course, pending, gateway_verify):
        gateway_verify.return_value = gateway_result(status="failed")

        response = self.verify(
            authenticated_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_test_abc"
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "PAYMENT_FAILED"

    def test_khalti_underpayment_is_rejected(self, authenticated_client, user, paid_course, gateway_verify):
        """Should refuse to enroll when Khalti reports less than the checkout amount."""
        pending = KhaltiPendingEnrollmentFactory(user=user, course=paid_course, gateway_ref="px_short")
        gateway_verify.return_value = gateway_result(amount=1000, currency="npr")

        response = self.verify(authenticated_client, paid_course, paymentMethod="khalti", pidx="px_short")

        assert response.status_code == 400
        assert response.data["error_code"] == "PAYMENT_AMOUNT_MISMATCH"
        assert not CourseStudent.objects.filter(course=paid_course).exists()
        assert not Payment.objects.exists()
        assert Course.objects.get(pk=paid_course.pk).total_students == 0
        stored = PendingEnrollment.objects.get(pk=pending.pk)
        assert stored.status == PendingEnrollmentStatus.PENDING

    def test_unknown_checkout(self, authenticated_client, paid_course, gateway_verify):
        response = self.verify(
            authenticated_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_nope"
        )

        assert response.status_code == 404
        assert response.data["error_code"] == "PENDING_ENROLLMENT_NOT_FOUND"

    def test_unknown_course(self, authenticated_client, gateway_verify):
        response = authenticated_client.post(
            "/api/v1/courses/no-such-course/payment/verify/",
            {"paymentMethod": "stripe", "paymentIntentId": "pi_test_abc"},
            format="json",
        )

        assert response.status_code == 404
        assert response.data["error_code"] == "COURSE_NOT_FOUND"

    def test_rate_limited(self, authenticated_client, paid_course, gateway_verify, settings):
        """Should answer 429 with a retry hint once the window is used up."""
        settings.RATE_LIMITS = {**settings.RATE_LIMITS, "payment_verify": "2/day"}

        responses = [
            self.verify(authenticated_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_x")
            for _ in range(3)
        ]

        assert [r.status_code for r in responses] == [404, 404, 429]
        assert responses[-1].data["error_code"] == "RATE_LIMIT_EXCEEDED"
        assert responses[-1]["Retry-After"]

    def test_rate_limit_is_per_user(self, authenticated_client, admin_client, paid_course, gateway_verify, settings):
        settings.RATE_LIMITS = {**settings.RATE_LIMITS, "payment_verify": "1/day"}

        self.verify(authenticated_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_x")
        response = self.verify(admin_client, paid_course, paymentMethod="stripe", paymentIntentId="pi_x")

        assert response.status_code == 404


@pytest.mark.django_db
class TestKhaltiCallback:
    def test_success_redirects_to_course(self, client, user, paid_course, gateway_verify):
        KhaltiPendingEnrollmentFactory(user=user, course=paid_course, gateway_ref="px_cb")
        gateway_verify.return_value = gateway_result(amount=266000, currency="npr")

        response = client.get(course_url(paid_course, "payment/khalti/callback/"), {"pidx": "px_cb"})

        assert response.status_code == 302
        assert response["Location"] == f"{FRONTEND}/courses/{paid_course.slug}/learn?enrolled=true"
        assert CourseStudent.objects.filter(course=paid_course, user=user).exists()

    def test_failure_redirects_with_code(self, client, user, paid_course, gateway_verify):
        KhaltiPendingEnrollmentFactory(user=user, course=paid_course, gateway_ref="px_fail")
        gateway_verify.return_value = gateway_result(status="canceled", raw_status="User canceled")

        response = client.get(course_url(paid_course, "payment/khalti/callback/"), {"pidx": "px_fail"})

        assert response.status_code == 302
        assert response["Location"] == f"{FRONTEND}/payment/failed?error=PAYMENT_FAILED"

    def test_gateway_unavailable_redirects_as_processing(self, client, user, paid_course, gateway_verify):
        KhaltiPendingEnrollmentFactory(user=user, course=paid_course, gateway_ref="px_slow")
        gateway_verify.side_effect = TransientGatewayError("timeout", gateway="khalti")

        response = client.get(course_url(paid_course, "payment/khalti/callback/"), {"pidx": "px_slow"})

        assert response["Location"] == f"{FRONTEND}/payment/failed?error=PAYMENT_PROCESSING"

    def test_missing_pidx(self, client, paid_course):
        response = client.get(course_url(paid_course, "payment/khalti/callback/"))

        assert response["Location"] == f"{FRONTEND}/payment/failed?error=VALIDATION_ERROR"


# =============================================================================
# Free Enrollment and Status
# =============================================================================


@pytest.mark.django_db
class TestFreeEnrollView:
    def test_enrolls(self, authenticated_client, free_course):
        response = authenticated_client.post(course_url(free_course, "enroll/"))

        assert response.status_code == 200
        assert response.data["enrolled"] is True
        assert response.data["course"]["totalStudents"] == 1

    def test_twice(self, authenticated_client, free_course):
        authenticated_client.post(course_url(free_course, "enroll/"))

        response = authenticated_client.post(course_url(free_course, "enroll/"))

        assert response.status_code == 200
        assert response.data["alreadyEnrolled"] is True

    def test_paid_course(self, authenticated_client, paid_course):
        response = authenticated_client.post(course_url(paid_course, "enroll/"))

        assert response.status_code == 400
        assert response.data["error_code"] == "PAYMENT_REQUIRED"

    def test_unpublished_course(self, authenticated_client):
        course = CourseFactory(is_published=False)

        response = authenticated_client.post(course_url(course, "enroll/"))

        assert response.status_code == 403


@pytest.mark.django_db
class TestEnrollmentStatusView:
    def test_not_enrolled(self, authenticated_client, paid_course):
        response = authenticated_client.get(course_url(paid_course, "enrollment-status/"))

        assert response.data == {"isEnrolled": False, "courseId": str(paid_course.id)}

    def test_enrolled(self, authenticated_client, user, paid_course):
        CourseStudentFactory(course=paid_course, user=user)

        response = authenticated_client.get(f"/api/v1/courses/{paid_course.slug}/enrollment-status/")

        assert response.data["isEnrolled"] is True


# =============================================================================
# Enrollment Requests (student)
# =============================================================================


@pytest.mark.django_db
class TestEnrollmentRequestViews:
    @pytest.fixture
    def manual_course(self, db):
        return CourseFactory(manual_enrollment_enabled=True)

    def test_submit(self, authenticated_client, user, manual_course):
        response = authenticated_client.post(
            course_url(manual_course, "enrollment-requests/"),
            {"notes": "I attend the evening class"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["enrollment"]["status"] == "pending"
        assert response.data["enrollment"]["userId"] == user.pk
        assert response.data["enrollment"]["notes"] == "I attend the evening class"

    def test_submit_twice(self, authenticated_client, manual_course):
        url = course_url(manual_course, "enrollment-requests/")
        authenticated_client.post(url, {}, format="json")

        response = authenticated_client.post(url, {}, format="json")

        assert response.status_code == 400
        assert response.data["error_code"] == "REQUEST_ALREADY_PENDING"

    def test_list_own_requests(self, authenticated_client, user, manual_course):
        ManualEnrollmentRequestFactory(user=user, course=manual_course)
        ManualEnrollmentRequestFactory(course=manual_course)

        response = authenticated_client.get(course_url(manual_course, "enrollment-requests/"))

        assert response.status_code == 200
        assert len(response.data["requests"]) == 1

    def test_cancel(self, authenticated_client, user, manual_course):
        request = ManualEnrollmentRequestFactory(user=user, course=manual_course)

        response = authenticated_client.delete(
            course_url(manual_course, f"enrollment-requests/{request.id}/")
        )

        assert response.status_code == 200
        assert response.data["enrollment"]["status"] == "cancelled"

    def test_cancel_someone_elses_request(self, authenticated_client, manual_course):
        request = ManualEnrollmentRequestFactory(course=manual_course)

        response = authenticated_client.delete(
            course_url(manual_course, f"enrollment-requests/{request.id}/")
        )

        assert response.status_code == 404

    def test_cancel_through_another_course(self, authenticated_client, user, manual_course):
        """Should not cancel a request addressed through a course it was not filed for."""
        request = ManualEnrollmentRequestFactory(user=user, course=manual_course)
        other_course = CourseFactory(manual_enrollment_enabled=True)

        response = authenticated_client.delete(
            course_url(other_course, f"enrollment-requests/{request.id}/")
        )

        assert response.status_code == 404
        assert response.data["error_code"] == "ENROLLMENT_REQUEST_NOT_FOUND"
        stored = ManualEnrollmentRequest.objects.get(pk=request.pk)
        assert stored.status == ManualEnrollmentRequestStatus.PENDING


# =============================================================================
# Administration
# =============================================================================


@pytest.mark.django_db
class TestAdminEnrollmentViews:
    @pytest.fixture
    def manual_course(self, db):
        return CourseFactory(manual_enrollment_enabled=True)

    def test_non_admin_forbidden(self, authenticated_client, manual_course):
        response = authenticated_client.get(admin_url(manual_course))

        assert response.status_code == 403

    def test_list_requests(self, admin_client, manual_course):
        ManualEnrollmentRequestFactory(course=manual_course)
        ManualEnrollmentRequestFactory(
            course=manual_course, status=ManualEnrollmentRequestStatus.APPROVED
        )

        response = admin_client.get(admin_url(manual_course), {"status": "pending"})

        assert response.status_code == 200
        assert response.data["courseId"] == str(manual_course.id)
        assert response.data["count"] == 1

    def test_list_unknown_status(self, admin_client, manual_course):
        response = admin_client.get(admin_url(manual_course), {"status": "bogus"})

        assert response.status_code == 400

    def test_approve_then_approve_again(self, admin_client, admin_user, manual_course):
        """Approve creates enrolled progress and +1 students; re-approving is 400."""
        request = ManualEnrollmentRequestFactory(course=manual_course)

        response = admin_client.patch(
            admin_url(manual_course, request.id),
            {"status": "approved", "notes": "Paid at the front desk"},
            format="json",
        )

        assert response.status_code == 200
        assert response.data["message"] == "Enrollment request approved"
        assert response.data["enrollment"]["status"] == "approved"
        assert response.data["enrollment"]["approvedBy"] == admin_user.pk
        assert UserProgress.objects.get(course=manual_course, user=request.user).enrolled is True
        assert Course.objects.get(pk=manual_course.pk).total_students == 1

        again = admin_client.patch(
            admin_url(manual_course, request.id), {"status": "approved"}, format="json"
        )

        assert again.status_code == 400
        assert again.data["error_code"] == "INVALID_STATE_TRANSITION"
        assert Course.objects.get(pk=manual_course.pk).total_students == 1

    def test_reject(self, admin_client, manual_course):
        request = ManualEnrollmentRequestFactory(course=manual_course)

        response = admin_client.patch(
            admin_url(manual_course, request.id),
            {"status": "rejected", "notes": "No proof of payment"},
            format="json",
        )

        assert response.status_code == 200
        stored = ManualEnrollmentRequest.objects.get(pk=request.pk)
        assert stored.status == ManualEnrollmentRequestStatus.REJECTED
        assert stored.admin_notes == "No proof of payment"
        assert not CourseStudent.objects.filter(course=manual_course).exists()

    def test_invalid_decision(self, admin_client, manual_course):
        request = ManualEnrollmentRequestFactory(course=manual_course)

        response = admin_client.patch(
            admin_url(manual_course, request.id), {"status": "cancelled"}, format="json"
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "VALIDATION_ERROR"

    def test_unknown_request(self, admin_client, manual_course):
        response = admin_client.patch(
            admin_url(manual_course, "not-a-uuid"), {"status": "approved"}, format="json"
        )

        assert response.status_code == 404

    def test_manual_access_grant(self, admin_client, user, paid_course):
        response = admin_client.post(
            "/api/v1/admin/manual-access/",
            {"userId": user.pk, "courseId": str(paid_course.id), "reason": "Instructor guest"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["grant"]["userId"] == user.pk
        assert CourseStudent.objects.filter(course=paid_course, user=user).exists()

    def test_manual_access_already_enrolled(self, admin_client, user, paid_course):
        CourseStudentFactory(course=paid_course, user=user)

        response = admin_client.post(
            "/api/v1/admin/manual-access/",
            {"userId": user.pk, "courseId": str(paid_course.id)},
            format="json",
        )

        assert response.status_code == 400
        assert response.data["error_code"] == "ALREADY_ENROLLED"

    def test_manual_access_requires_admin(self, authenticated_client, user, paid_course):
        response = authenticated_client.post(
            "/api/v1/admin/manual-access/",
            {"userId": user.pk, "courseId": str(paid_course.id)},
            format="json",
        )

        assert response.status_code == 403
