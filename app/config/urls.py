"""
URL configuration for the enrollment service.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT token endpoints
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/courses/{course}/      - Learner enrollment endpoints
        payment/initiate/          - Start a Stripe or Khalti checkout (POST)
        payment/verify/            - Verify a payment and enroll (POST)
        payment/khalti/callback/   - Khalti browser redirect target (GET)
        enroll/                    - Enroll in a free course (POST)
        enrollment-status/         - Is the caller enrolled? (GET)
        enrollment-requests/       - Submit/list manual enrollment requests
    /api/v1/admin/                 - Staff enrollment administration
        courses/{course}/enrollments/                 - Request queue (GET)
        courses/{course}/enrollments/{request_id}/    - Approve/reject (PATCH)
        manual-access/             - Grant access without payment (POST)
    /api/v1/payments/webhooks/stripe/ - Stripe webhook endpoint (POST)
    /api/v1/notifications/         - Notification inbox

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    # Authentication (JWT)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Learner-facing enrollment + staff administration
    path("", include("enrollments.urls")),
    # Notifications
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Enrollment Admin"
admin.site.site_title = "Enrollment Admin Portal"
admin.site.index_title = "Courses, payments and enrollments"
