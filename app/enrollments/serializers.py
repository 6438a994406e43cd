"""
Serializers for enrollment API.

Request serializers validate input shape only; business rules live in
the services. Response fields are camelCase to match the web client.

Serializer Hierarchy:
    InitiatePaymentSerializer / VerifyPaymentSerializer: Checkout bodies
    EnrollmentRequestCreateSerializer: Student request body
    EnrollmentDecisionSerializer: Admin PATCH body
    ManualAccessGrantCreateSerializer: Admin grant body

    ManualEnrollmentRequestSerializer: Request record
    ManualAccessGrantSerializer: Grant record
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import serializers

from courses.serializers import CourseSummarySerializer, UserProgressSerializer
from enrollments.models import ManualAccessGrant, ManualEnrollmentRequest
from enrollments.state_machines import PaymentGateway

if TYPE_CHECKING:
    from enrollments.services import EnrollmentOutcome

DECISION_CHOICES = ["approved", "rejected"]


# =============================================================================
# Request Bodies
# =============================================================================


class InitiatePaymentSerializer(serializers.Serializer):
    paymentMethod = serializers.ChoiceField(choices=PaymentGateway.values)


class VerifyPaymentSerializer(serializers.Serializer):
    """
    Either paymentIntentId (Stripe) or pidx (Khalti).

    Which one is required is decided by parse_payment_reference.
    """

    paymentMethod = serializers.CharField()
    paymentIntentId = serializers.CharField(required=False, allow_blank=True)
    pidx = serializers.CharField(required=False, allow_blank=True)


class EnrollmentRequestCreateSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000, default="")
    amount = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    paymentMethod = serializers.CharField(required=False, allow_blank=True, max_length=30, default="")
    transactionId = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class EnrollmentDecisionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DECISION_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ManualAccessGrantCreateSerializer(serializers.Serializer):
    userId = serializers.IntegerField()
    courseId = serializers.CharField()
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    expiresAt = serializers.DateTimeField(required=False, allow_null=True)


# =============================================================================
# Records
# =============================================================================


class ManualEnrollmentRequestSerializer(serializers.ModelSerializer):
    userId = serializers.IntegerField(source="user_id", read_only=True)
    userEmail = serializers.EmailField(source="user.email", read_only=True)
    courseId = serializers.UUIDField(source="course_id", read_only=True)
    amount = serializers.IntegerField(source="amount_cents", read_only=True)
    paymentMethod = serializers.CharField(source="payment_method", read_only=True)
    transactionId = serializers.CharField(source="transaction_id", read_only=True)
    adminNotes = serializers.CharField(source="admin_notes", read_only=True)
    approvedBy = serializers.IntegerField(source="approved_by_id", read_only=True)
    approvedAt = serializers.DateTimeField(source="approved_at", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = ManualEnrollmentRequest
        fields = [
            "id",
            "userId",
            "userEmail",
            "courseId",
            "status",
            "amount",
            "paymentMethod",
            "transactionId",
            "notes",
            "adminNotes",
            "approvedBy",
            "approvedAt",
            "createdAt",
        ]
        read_only_fields = fields


class ManualAccessGrantSerializer(serializers.ModelSerializer):
    userId = serializers.IntegerField(source="user_id", read_only=True)
    courseId = serializers.UUIDField(source="course_id", read_only=True)
    grantedBy = serializers.IntegerField(source="granted_by_id", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = ManualAccessGrant
        fields = ["id", "userId", "courseId", "grantedBy", "reason", "expiresAt", "isActive", "createdAt"]
        read_only_fields = fields


# =============================================================================
# Outcome Rendering
# =============================================================================


def serialize_outcome(outcome: EnrollmentOutcome) -> dict:
    """Render a committed enrollment as the verify/enroll response body."""
    course = outcome.course
    progress = UserProgressSerializer(outcome.progress).data if outcome.progress else None

    if outcome.already_enrolled:
        return {
            "success": True,
            "alreadyEnrolled": True,
            "message": "You are already enrolled in this course",
            "courseId": str(course.id),
            "slug": course.slug,
            "progress": progress,
        }

    course.refresh_from_db(fields=["total_students"])
    return {
        "success": True,
        "enrolled": True,
        "message": "Successfully enrolled in course",
        "courseId": str(course.id),
        "slug": course.slug,
        "progress": progress,
        "course": CourseSummarySerializer(course).data,
    }
