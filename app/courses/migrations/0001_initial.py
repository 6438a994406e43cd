import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Course",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("slug", models.SlugField(help_text="URL-safe identifier for this record", max_length=255, unique=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for this record", primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("price_cents", models.PositiveIntegerField(default=0, help_text="Price in smallest currency unit; 0 for free courses")),
                ("currency", models.CharField(default="usd", max_length=3)),
                ("is_published", models.BooleanField(db_index=True, default=False)),
                ("manual_enrollment_enabled", models.BooleanField(default=False, help_text="Allow students to request enrollment for admin approval")),
                ("first_lesson_id", models.CharField(blank=True, default="", max_length=64)),
                ("total_students", models.PositiveIntegerField(default=0, help_text="Number of roster rows (maintained by the enrollment reconciler)")),
                (
                    "instructor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="taught_courses",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "course",
                "verbose_name_plural": "courses",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="CourseStudent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("enrolled_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "enrolled_through",
                    models.CharField(
                        choices=[
                            ("free", "Free"),
                            ("payment", "Payment"),
                            ("manual_payment", "Manual payment"),
                            ("manual_grant", "Manual grant"),
                        ],
                        max_length=20,
                    ),
                ),
                ("payment_amount_cents", models.PositiveIntegerField(blank=True, null=True)),
                ("payment_method", models.CharField(blank=True, default="", max_length=30)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="students", to="courses.course")),
                (
                    "granted_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="Admin who approved or granted access (manual enrollments)",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="granted_enrollments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="course_enrollments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "course student",
                "verbose_name_plural": "course students",
                "ordering": ["-enrolled_at"],
                "constraints": [models.UniqueConstraint(fields=("course", "user"), name="course_student_unique")],
            },
        ),
        migrations.CreateModel(
            name="UserProgress",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created")),
                ("updated_at", models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified")),
                ("enrolled", models.BooleanField(default=True)),
                ("completed_lessons", models.JSONField(blank=True, default=list)),
                ("current_lesson", models.CharField(blank=True, default="", max_length=64)),
                ("progress", models.FloatField(default=0.0, help_text="Fraction of the course completed, 0..1")),
                ("time_spent", models.PositiveIntegerField(default=0, help_text="Seconds")),
                ("last_accessed", models.DateTimeField(default=django.utils.timezone.now)),
                ("completed", models.BooleanField(default=False)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="progress_records", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="course_progress", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "user progress",
                "verbose_name_plural": "user progress",
                "ordering": ["-last_accessed"],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "course"), name="user_progress_unique"),
                    models.CheckConstraint(
                        condition=models.Q(("progress__gte", 0), ("progress__lte", 1)),
                        name="user_progress_fraction",
                    ),
                ],
            },
        ),
    ]
