import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models

TIMESTAMPS = [
    ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
    ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
]


def uuid_pk():
    return ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False))


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("courses", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PendingEnrollment",
            fields=[
                *TIMESTAMPS,
                uuid_pk(),
                ("gateway", models.CharField(choices=[("stripe", "Stripe"), ("khalti", "Khalti")], max_length=20)),
                ("gateway_ref", models.CharField(help_text="Stripe PaymentIntent ID (pi_xxx) or Khalti pidx", max_length=255)),
                ("amount_cents", models.PositiveIntegerField(help_text="Course price in smallest unit of currency")),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("gateway_amount", models.PositiveBigIntegerField(help_text="Amount charged by the gateway in its own minor unit")),
                ("gateway_currency", models.CharField(default="usd", max_length=3)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("expires_at", models.DateTimeField(db_index=True)),
                ("claimed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="pending_enrollments", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="pending_enrollments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Pending Enrollment",
                "verbose_name_plural": "Pending Enrollments",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("gateway", "gateway_ref"), name="pending_enrollment_gateway_ref_unique"),
                ],
                "indexes": [
                    models.Index(fields=["user", "course"], name="pending_user_course_idx"),
                    models.Index(fields=["status", "created_at"], name="pending_status_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *TIMESTAMPS,
                ("metadata", models.JSONField(blank=True, default=dict, help_text="Flexible key-value metadata storage")),
                uuid_pk(),
                ("amount_cents", models.PositiveIntegerField()),
                ("currency", models.CharField(default="usd", max_length=3)),
                (
                    "gateway",
                    models.CharField(
                        choices=[("stripe", "Stripe"), ("khalti", "Khalti"), ("manual", "Manual (admin-verified)")],
                        max_length=20,
                    ),
                ),
                ("gateway_ref", models.CharField(max_length=255)),
                ("transaction_id", models.CharField(blank=True, default="", max_length=255)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="courses.course")),
                (
                    "pending_enrollment",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payment",
                        to="enrollments.pendingenrollment",
                    ),
                ),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="course_payments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("gateway", "gateway_ref"), name="payment_gateway_ref_unique"),
                ],
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="payment_user_created_idx"),
                    models.Index(fields=["course", "created_at"], name="payment_course_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ManualEnrollmentRequest",
            fields=[
                *TIMESTAMPS,
                uuid_pk(),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("amount_cents", models.PositiveIntegerField(blank=True, null=True)),
                ("payment_method", models.CharField(blank=True, default="", max_length=30)),
                ("transaction_id", models.CharField(blank=True, default="", max_length=255)),
                ("notes", models.TextField(blank=True, default="")),
                ("admin_notes", models.TextField(blank=True, default="")),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="resolved_enrollment_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollment_requests", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollment_requests", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Manual Enrollment Request",
                "verbose_name_plural": "Manual Enrollment Requests",
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "pending")),
                        fields=("user", "course"),
                        name="manual_request_one_pending",
                    ),
                ],
                "indexes": [
                    models.Index(fields=["course", "status"], name="manual_req_course_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ManualAccessGrant",
            fields=[
                *TIMESTAMPS,
                uuid_pk(),
                ("reason", models.TextField(blank=True, default="")),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="manual_access_grants", to="courses.course")),
                (
                    "granted_by",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="issued_access_grants",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="manual_access_grants", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Manual Access Grant",
                "verbose_name_plural": "Manual Access Grants",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="EnrollmentEvent",
            fields=[
                *TIMESTAMPS,
                uuid_pk(),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("enrollment.created", "Enrollment created"),
                            ("enrollment_request.rejected", "Enrollment request rejected"),
                        ],
                        max_length=50,
                    ),
                ),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("dedupe_key", models.CharField(max_length=255, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("delivered", "Delivered"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("attempts", models.PositiveSmallIntegerField(default=0)),
                ("last_error", models.TextField(blank=True, default="")),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollment_events", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollment_events", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Enrollment Event",
                "verbose_name_plural": "Enrollment Events",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="enrollment_event_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *TIMESTAMPS,
                uuid_pk(),
                ("stripe_event_id", models.CharField(help_text="Stripe Event ID (evt_xxx)", max_length=255, unique=True)),
                ("event_type", models.CharField(db_index=True, max_length=100)),
                ("payload", models.JSONField()),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                ("retry_count", models.PositiveSmallIntegerField(default=0)),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                ],
            },
        ),
    ]
