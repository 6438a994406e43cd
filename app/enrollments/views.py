"""
API views for course checkout, verification and enrollment administration.

URL Structure:
    /api/v1/courses/{course}/payment/initiate/            POST
    /api/v1/courses/{course}/payment/verify/              POST
    /api/v1/courses/{course}/payment/khalti/callback/     GET (redirect)
    /api/v1/courses/{course}/enroll/                      POST
    /api/v1/courses/{course}/enrollment-status/           GET
    /api/v1/courses/{course}/enrollment-requests/         GET, POST
    /api/v1/courses/{course}/enrollment-requests/{id}/    DELETE
    /api/v1/admin/courses/{course}/enrollments/           GET
    /api/v1/admin/courses/{course}/enrollments/{id}/      PATCH
    /api/v1/admin/manual-access/                          POST

``{course}`` is a course UUID or slug.

Design Decisions:
    - Views translate HTTP <-> service calls; no business rules here
    - Service error codes map to HTTP status in one table (ERROR_STATUS)
    - A verification that cannot finish yet answers 202 so clients poll
    - Payment endpoints are rate limited per user via ActionRateThrottle
"""

from __future__ import annotations

from urllib.parse import urlencode

from django.conf import settings
from django.shortcuts import redirect
from django.urls import reverse
from django.views.decorators.http import require_GET
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.decorators import rate_limit
from core.exceptions import ValidationError
from core.throttling import ActionRateThrottle

from courses.services import CourseService
from enrollments.adapters import parse_payment_reference
from enrollments.serializers import (
    EnrollmentDecisionSerializer,
    EnrollmentRequestCreateSerializer,
    InitiatePaymentSerializer,
    ManualAccessGrantCreateSerializer,
    ManualAccessGrantSerializer,
    ManualEnrollmentRequestSerializer,
    VerifyPaymentSerializer,
    serialize_outcome,
)
from enrollments.services import (
    CheckoutService,
    EnrollmentService,
    ManualAccessService,
    ManualEnrollmentQueue,
    PaymentVerificationService,
)
from enrollments.state_machines import ManualEnrollmentRequestStatus

PROCESSING_RETRY_AFTER_SECONDS = 5

ERROR_STATUS = {
    "COURSE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PENDING_ENROLLMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ENROLLMENT_REQUEST_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "COURSE_NOT_AVAILABLE": status.HTTP_403_FORBIDDEN,
    "NOT_OWNER": status.HTTP_403_FORBIDDEN,
    "GATEWAY_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(result) -> Response:
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(
        body,
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


def processing_response() -> Response:
    return Response(
        {
            "success": True,
            "enrolled": False,
            "processing": True,
            "message": "Payment is being processed. Please check again shortly.",
            "retryAfter": PROCESSING_RETRY_AFTER_SECONDS,
        },
        status=status.HTTP_202_ACCEPTED,
    )


def invalid_body_response(serializer) -> Response:
    return Response(
        {
            "error": "Invalid request data",
            "error_code": "VALIDATION_ERROR",
            "errors": serializer.errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


# =============================================================================
# Checkout and Verification
# =============================================================================


class InitiatePaymentView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [ActionRateThrottle]
    rate_limit_action = "payment_initiate"

    @extend_schema(
        operation_id="initiate_course_payment",
        summary="Start a course checkout",
        request=InitiatePaymentSerializer,
        responses={
            200: OpenApiResponse(description="Stripe clientSecret or Khalti paymentUrl"),
            400: OpenApiResponse(description="Already enrolled or invalid method"),
            403: OpenApiResponse(description="Course is not published"),
            404: OpenApiResponse(description="Course not found"),
            429: OpenApiResponse(description="Rate limit exceeded"),
        },
        tags=["Enrollments - Payments"],
    )
    def post(self, request, course):
        serializer = InitiatePaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_body_response(serializer)

        return_url = request.build_absolute_uri(
            reverse("enrollments:khalti_callback", kwargs={"course": course})
        )
        result = CheckoutService.initiate(
            user=request.user,
            course_identifier=course,
            payment_method=serializer.validated_data["paymentMethod"],
            return_url=return_url,
        )
        if not result.success:
            return error_response(result)
        return Response(result.data)


class VerifyPaymentView(APIView):
    """
    Verify a checkout with its gateway and enroll the caller.

    POST /api/v1/courses/{course}/payment/verify/
    Body: {"paymentMethod": "stripe", "paymentIntentId": "pi_..."}
       or {"paymentMethod": "khalti", "pidx": "..."}
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [ActionRateThrottle]
    rate_limit_action = "payment_verify"

    @extend_schema(
        operation_id="verify_course_payment",
        summary="Verify payment and enroll",
        request=VerifyPaymentSerializer,
        responses={
            200: OpenApiResponse(description="Enrolled or already enrolled"),
            202: OpenApiResponse(description="Payment still processing; retry later"),
            400: OpenApiResponse(description="Payment failed, expired or not verified"),
            404: OpenApiResponse(description="Course or checkout not found"),
            429: OpenApiResponse(description="Rate limit exceeded"),
        },
        tags=["Enrollments - Payments"],
    )
    def post(self, request, course):
        serializer = VerifyPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_body_response(serializer)

        try:
            reference = parse_payment_reference(serializer.validated_data)
        except ValidationError as e:
            return Response(e.to_dict(), status=status.HTTP_400_BAD_REQUEST)

        result = PaymentVerificationService.verify_and_enroll(request.user, course, reference)
        if not result.success:
            return error_response(result)
        if result.data.in_progress:
            return processing_response()
        return Response(serialize_outcome(result.data))


@require_GET
@rate_limit("khalti_callback")
def khalti_callback(request, course):
    """
    Khalti redirects the browser here after payment.

    Always ends in a redirect to the frontend: the course player on
    success, the payment failure page otherwise.
    """
    pidx = request.GET.get("pidx", "")
    result = PaymentVerificationService.complete_from_callback(course, pidx)

    if result.success and not result.data.in_progress:
        return redirect(
            f"{settings.FRONTEND_BASE_URL}/courses/{result.data.course.slug}/learn?enrolled=true"
        )

    error_code = result.error_code if not result.success else "PAYMENT_PROCESSING"
    return redirect(f"{settings.FRONTEND_BASE_URL}/payment/failed?{urlencode({'error': error_code})}")


# =============================================================================
# Free Enrollment and Status
# =============================================================================


class FreeEnrollView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="enroll_free_course",
        summary="Enroll in a free course",
        request=None,
        responses={
            200: OpenApiResponse(description="Enrolled or already enrolled"),
            400: OpenApiResponse(description="Course requires payment"),
            403: OpenApiResponse(description="Course is not published"),
            404: OpenApiResponse(description="Course not found"),
        },
        tags=["Enrollments"],
    )
    def post(self, request, course):
        result = EnrollmentService.enroll_free(request.user, course)
        if not result.success:
            return error_response(result)
        return Response(serialize_outcome(result.data))


class EnrollmentStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_enrollment_status",
        summary="Check enrollment status",
        responses={200: OpenApiResponse(description="{isEnrolled, courseId}")},
        tags=["Enrollments"],
    )
    def get(self, request, course):
        result = CourseService.get_enrollment_status(request.user, course)
        if not result.success:
            return error_response(result)
        return Response(result.data)


# =============================================================================
# Manual Enrollment Requests (student)
# =============================================================================


class EnrollmentRequestView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_my_enrollment_requests",
        summary="List my enrollment requests for a course",
        responses={200: ManualEnrollmentRequestSerializer(many=True)},
        tags=["Enrollments - Requests"],
    )
    def get(self, request, course):
        course_obj = CourseService.find_course(course)
        if course_obj is None:
            return Response(
                {"error": "Course not found", "error_code": "COURSE_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )
        requests_qs = ManualEnrollmentQueue.list_for_user(request.user).filter(course=course_obj)
        return Response(
            {"requests": ManualEnrollmentRequestSerializer(requests_qs, many=True).data}
        )

    @extend_schema(
        operation_id="create_enrollment_request",
        summary="Request manual enrollment",
        request=EnrollmentRequestCreateSerializer,
        responses={
            201: ManualEnrollmentRequestSerializer,
            400: OpenApiResponse(description="Already enrolled, disabled or already pending"),
        },
        tags=["Enrollments - Requests"],
    )
    def post(self, request, course):
        serializer = EnrollmentRequestCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_body_response(serializer)

        data = serializer.validated_data
        result = ManualEnrollmentQueue.submit(
            user=request.user,
            course_identifier=course,
            notes=data["notes"],
            amount_cents=data.get("amount"),
            payment_method=data["paymentMethod"],
            transaction_id=data["transactionId"],
        )
        if not result.success:
            return error_response(result)
        return Response(
            {
                "success": True,
                "message": "Enrollment request submitted",
                "enrollment": ManualEnrollmentRequestSerializer(result.data).data,
            },
            status=status.HTTP_201_CREATED,
        )


class EnrollmentRequestDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_enrollment_request",
        summary="Cancel my pending enrollment request",
        responses={200: ManualEnrollmentRequestSerializer},
        tags=["Enrollments - Requests"],
    )
    def delete(self, request, course, request_id):
        result = ManualEnrollmentQueue.cancel(course, request_id, request.user)
        if not result.success:
            return error_response(result)
        return Response(
            {
                "success": True,
                "message": "Enrollment request cancelled",
                "enrollment": ManualEnrollmentRequestSerializer(result.data).data,
            }
        )


# =============================================================================
# Administration
# =============================================================================


class AdminCourseEnrollmentsView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_list_enrollment_requests",
        summary="List enrollment requests for a course",
        parameters=[
            OpenApiParameter(
                name="status",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description="Filter by request status",
                required=False,
                enum=ManualEnrollmentRequestStatus.values,
            ),
        ],
        responses={200: ManualEnrollmentRequestSerializer(many=True)},
        tags=["Enrollments - Admin"],
    )
    def get(self, request, course):
        course_obj = CourseService.find_course(course)
        if course_obj is None:
            return Response(
                {"error": "Course not found", "error_code": "COURSE_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        status_filter = request.query_params.get("status")
        if status_filter and status_filter not in ManualEnrollmentRequestStatus.values:
            return Response(
                {"error": f"Unknown status: {status_filter}", "error_code": "VALIDATION_ERROR"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        requests_qs = ManualEnrollmentQueue.list_for_course(course_obj, status_filter)
        return Response(
            {
                "courseId": str(course_obj.id),
                "count": requests_qs.count(),
                "enrollments": ManualEnrollmentRequestSerializer(requests_qs, many=True).data,
            }
        )


class AdminEnrollmentDecisionView(APIView):
    """
    PATCH /api/v1/admin/courses/{course}/enrollments/{request_id}/
    Body: {"status": "approved" | "rejected", "notes": "..."}

    Returns 400 INVALID_STATE_TRANSITION when the request is not pending.
    """

    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_resolve_enrollment_request",
        summary="Approve or reject an enrollment request",
        request=EnrollmentDecisionSerializer,
        responses={
            200: OpenApiResponse(description="Updated enrollment request"),
            400: OpenApiResponse(description="Request is not pending"),
            404: OpenApiResponse(description="Course or request not found"),
        },
        tags=["Enrollments - Admin"],
    )
    def patch(self, request, course, request_id):
        serializer = EnrollmentDecisionSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_body_response(serializer)

        decision = serializer.validated_data["status"]
        result = ManualEnrollmentQueue.resolve(
            request_id=request_id,
            course_identifier=course,
            admin=request.user,
            status=decision,
            notes=serializer.validated_data.get("notes"),
        )
        if not result.success:
            return error_response(result)

        return Response(
            {
                "success": True,
                "message": f"Enrollment request {decision}",
                "enrollment": ManualEnrollmentRequestSerializer(result.data).data,
            }
        )


class ManualAccessGrantView(APIView):
    permission_classes = [IsAdminUser]

    @extend_schema(
        operation_id="admin_grant_manual_access",
        summary="Grant course access without payment",
        request=ManualAccessGrantCreateSerializer,
        responses={
            201: ManualAccessGrantSerializer,
            400: OpenApiResponse(description="User already enrolled"),
            404: OpenApiResponse(description="User or course not found"),
        },
        tags=["Enrollments - Admin"],
    )
    def post(self, request):
        serializer = ManualAccessGrantCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_body_response(serializer)

        data = serializer.validated_data
        result = ManualAccessService.grant(
            admin=request.user,
            user_id=data["userId"],
            course_id=data["courseId"],
            reason=data["reason"],
            expires_at=data.get("expiresAt"),
        )
        if not result.success:
            return error_response(result)
        return Response(
            {
                "success": True,
                "message": "Access granted",
                "grant": ManualAccessGrantSerializer(result.data).data,
            },
            status=status.HTTP_201_CREATED,
        )
