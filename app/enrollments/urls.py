"""
URL configuration for the enrollments app.

All routes are prefixed with /api/v1/ when included in the main URLconf.
``<course>`` accepts a course UUID or slug.
"""

from django.urls import path

from enrollments import views
from enrollments.webhooks.views import stripe_webhook

app_name = "enrollments"

urlpatterns = [
    # Checkout and verification
    path(
        "courses/<str:course>/payment/initiate/",
        views.InitiatePaymentView.as_view(),
        name="payment_initiate",
    ),
    path(
        "courses/<str:course>/payment/verify/",
        views.VerifyPaymentView.as_view(),
        name="payment_verify",
    ),
    path(
        "courses/<str:course>/payment/khalti/callback/",
        views.khalti_callback,
        name="khalti_callback",
    ),
    # Free enrollment and status
    path("courses/<str:course>/enroll/", views.FreeEnrollView.as_view(), name="enroll"),
    path(
        "courses/<str:course>/enrollment-status/",
        views.EnrollmentStatusView.as_view(),
        name="enrollment_status",
    ),
    # Manual enrollment requests
    path(
        "courses/<str:course>/enrollment-requests/",
        views.EnrollmentRequestView.as_view(),
        name="enrollment_requests",
    ),
    path(
        "courses/<str:course>/enrollment-requests/<str:request_id>/",
        views.EnrollmentRequestDetailView.as_view(),
        name="enrollment_request_detail",
    ),
    # Administration
    path(
        "admin/courses/<str:course>/enrollments/",
        views.AdminCourseEnrollmentsView.as_view(),
        name="admin_course_enrollments",
    ),
    path(
        "admin/courses/<str:course>/enrollments/<str:request_id>/",
        views.AdminEnrollmentDecisionView.as_view(),
        name="admin_enrollment_decision",
    ),
    path("admin/manual-access/", views.ManualAccessGrantView.as_view(), name="manual_access"),
    # Webhooks
    path("payments/webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
