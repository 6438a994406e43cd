"""
Enrollment admin configuration.

The ledger and checkout attempts are read-only: they are written only by
the enrollment services. Manual requests are resolved through the API so
approval runs through the reconciler.
"""

from django.contrib import admin

from enrollments.models import (
    EnrollmentEvent,
    ManualAccessGrant,
    ManualEnrollmentRequest,
    Payment,
    PendingEnrollment,
    WebhookEvent,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(PendingEnrollment)
class PendingEnrollmentAdmin(ReadOnlyAdmin):
    list_display = ["id", "user", "course", "gateway", "gateway_ref", "status", "expires_at", "created_at"]
    list_filter = ["gateway", "status"]
    search_fields = ["gateway_ref", "user__email", "course__title"]
    ordering = ["-created_at"]


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdmin):
    """Ledger view. Rows are append-only."""

    list_display = ["id", "user", "course", "amount_cents", "currency", "gateway", "gateway_ref", "created_at"]
    list_filter = ["gateway", "currency"]
    search_fields = ["gateway_ref", "transaction_id", "user__email", "course__title"]
    ordering = ["-created_at"]


@admin.register(ManualEnrollmentRequest)
class ManualEnrollmentRequestAdmin(ReadOnlyAdmin):
    list_display = ["id", "user", "course", "status", "amount_cents", "approved_by", "created_at"]
    list_filter = ["status"]
    search_fields = ["user__email", "course__title", "transaction_id"]
    ordering = ["-created_at"]


@admin.register(ManualAccessGrant)
class ManualAccessGrantAdmin(ReadOnlyAdmin):
    list_display = ["id", "user", "course", "granted_by", "is_active", "expires_at", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["user__email", "course__title"]


@admin.register(EnrollmentEvent)
class EnrollmentEventAdmin(admin.ModelAdmin):
    list_display = ["id", "event_type", "user", "course", "status", "attempts", "created_at"]
    list_filter = ["event_type", "status"]
    search_fields = ["dedupe_key"]
    readonly_fields = ["id", "event_type", "user", "course", "payload", "dedupe_key", "delivered_at", "created_at"]
    actions = ["requeue"]

    @admin.action(description="Requeue selected events")
    def requeue(self, request, queryset):
        from enrollments.state_machines import EnrollmentEventStatus

        updated = queryset.exclude(status=EnrollmentEventStatus.DELIVERED).update(
            status=EnrollmentEventStatus.PENDING,
            attempts=0,
        )
        self.message_user(request, f"Requeued {updated} events for the next drain.")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ["stripe_event_id", "event_type", "status", "retry_count", "created_at", "processed_at"]
    list_filter = ["status", "event_type"]
    search_fields = ["stripe_event_id"]
    readonly_fields = ["id", "stripe_event_id", "event_type", "payload", "processed_at", "created_at", "updated_at"]
    ordering = ["-created_at"]
