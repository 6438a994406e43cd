import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="NotificationType",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(db_index=True, help_text="Unique programmatic identifier (e.g., 'course_enrollment')", max_length=100, unique=True)),
                ("display_name", models.CharField(help_text="Human-readable name for display", max_length=200)),
                ("title_template", models.CharField(blank=True, default="", help_text="Python format string template for title", max_length=500)),
                ("body_template", models.TextField(blank=True, default="", help_text="Python format string template for body")),
                ("is_active", models.BooleanField(db_index=True, default=True, help_text="Whether this notification type is currently enabled")),
                (
                    "category",
                    models.CharField(
                        choices=[("transactional", "Transactional"), ("course", "Course"), ("system", "System")],
                        db_index=True,
                        default="transactional",
                        help_text="Category for inbox grouping",
                        max_length=20,
                    ),
                ),
            ],
            options={
                "verbose_name": "notification type",
                "verbose_name_plural": "notification types",
                "db_table": "notifications_notification_type",
                "ordering": ["key"],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("title", models.CharField(help_text="Fully rendered notification title", max_length=500)),
                ("body", models.TextField(blank=True, default="", help_text="Fully rendered notification body")),
                ("data", models.JSONField(blank=True, default=dict, help_text="Arbitrary context data (action URL, course id)")),
                ("object_id", models.CharField(blank=True, help_text="ID of source object (supports UUID and integer PKs)", max_length=36, null=True)),
                ("is_read", models.BooleanField(db_index=True, default=False, help_text="Whether recipient has read this notification")),
                ("idempotency_key", models.CharField(blank=True, help_text="Idempotency key to prevent duplicate notifications", max_length=255, null=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who triggered this notification (optional)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="triggered_notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "content_type",
                    models.ForeignKey(
                        blank=True,
                        help_text="Content type of source object",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="contenttypes.contenttype",
                    ),
                ),
                (
                    "notification_type",
                    models.ForeignKey(
                        help_text="Type of this notification",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="notifications",
                        to="notifications.notificationtype",
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User receiving this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["recipient", "is_read", "-created_at"], name="notif_recipient_unread_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key__isnull", False)),
                        fields=("idempotency_key",),
                        name="notif_idempotency_key_unique",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ActivityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                (
                    "activity_type",
                    models.CharField(
                        choices=[
                            ("enrollment", "Enrollment"),
                            ("enrollment_request", "Enrollment request"),
                            ("manual_access", "Manual access grant"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("description", models.CharField(blank=True, default="", max_length=500)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("object_id", models.CharField(blank=True, max_length=36, null=True)),
                ("idempotency_key", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "content_type",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="contenttypes.contenttype",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User the activity belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="activities",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_activity_log",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "-created_at"], name="activity_user_recent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("idempotency_key__isnull", False)),
                        fields=("idempotency_key",),
                        name="activity_idempotency_key_unique",
                    ),
                ],
            },
        ),
    ]
