"""
Course, roster and progress models.

Models:
    Course: Catalogue entry with price and the total_students counter
    CourseStudent: One roster row per (course, user)
    UserProgress: Per (user, course) learning progress

Design Decisions:
    - Course uses a UUID PK and a unique slug; API paths accept either
    - The roster is a table with a (course, user) unique constraint so the
      database rejects a second row for the same student
    - total_students is denormalised for listing pages and changed only
      together with a roster insert, via F() in the same transaction
    - UserProgress is unique on (user, course); a duplicate insert means
      "already created"
    - Lesson content is not modelled; first_lesson_id is an opaque key the
      content service understands

Usage:
    from courses.models import Course, CourseStudent, UserProgress

    CourseStudent.objects.filter(course=course, user=user).exists()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import SlugMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


class EnrolledThrough(models.TextChoices):
    """How a student got onto the roster."""

    FREE = "free", "Free"
    PAYMENT = "payment", "Payment"
    MANUAL_PAYMENT = "manual_payment", "Manual payment"
    MANUAL_GRANT = "manual_grant", "Manual grant"


class Course(UUIDPrimaryKeyMixin, SlugMixin, BaseModel):
    """
    A course that students enroll in.

    Fields:
        title: Display title (slug source)
        price_cents: Price in USD cents; 0 means free
        currency: ISO 4217 code of price_cents
        is_published: Unpublished courses cannot be bought or joined
        manual_enrollment_enabled: Students may request admin approval
        first_lesson_id: Lesson a new student starts on
        total_students: Denormalised roster size
    """

    title = models.CharField(max_length=200)

    description = models.TextField(blank=True, default="")

    instructor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="taught_courses",
    )

    price_cents = models.PositiveIntegerField(
        default=0,
        help_text="Price in smallest currency unit; 0 for free courses",
    )

    currency = models.CharField(max_length=3, default="usd")

    is_published = models.BooleanField(default=False, db_index=True)

    manual_enrollment_enabled = models.BooleanField(
        default=False,
        help_text="Allow students to request enrollment for admin approval",
    )

    first_lesson_id = models.CharField(max_length=64, blank=True, default="")

    total_students = models.PositiveIntegerField(
        default=0,
        help_text="Number of roster rows (maintained by the enrollment reconciler)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "course"
        verbose_name_plural = "courses"

    def __str__(self) -> str:
        return self.title

    def get_slug_source(self) -> str:
        return self.title

    @property
    def is_free(self) -> bool:
        return self.price_cents == 0

    @property
    def price_display(self) -> str:
        return f"{self.price_cents / 100:.2f} {self.currency.upper()}"


class CourseStudent(BaseModel):
    """
    Roster row: ``user`` is enrolled in ``course``.

    Note:
        Created only by EnrollmentReconciler.commit(). The unique
        constraint is what makes concurrent commits for the same pair
        collapse into one row.
    """

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="students",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="course_enrollments",
    )

    enrolled_at = models.DateTimeField(default=timezone.now)

    enrolled_through = models.CharField(
        max_length=20,
        choices=EnrolledThrough.choices,
    )

    payment_amount_cents = models.PositiveIntegerField(null=True, blank=True)

    payment_method = models.CharField(max_length=30, blank=True, default="")

    granted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="granted_enrollments",
        help_text="Admin who approved or granted access (manual enrollments)",
    )

    class Meta:
        ordering = ["-enrolled_at"]
        verbose_name = "course student"
        verbose_name_plural = "course students"
        constraints = [
            models.UniqueConstraint(
                fields=["course", "user"],
                name="course_student_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"CourseStudent(course={self.course_id}, user={self.user_id}, {self.enrolled_through})"


class UserProgress(BaseModel):
    """
    Learning progress of one user in one course.

    Created exactly once, by the reconciler, when the user is first
    enrolled. Progress updates from the learning UI are out of scope here.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="course_progress",
    )

    course = models.ForeignKey(
        Course,
        on_delete=models.CASCADE,
        related_name="progress_records",
    )

    enrolled = models.BooleanField(default=True)

    completed_lessons = models.JSONField(default=list, blank=True)

    current_lesson = models.CharField(max_length=64, blank=True, default="")

    progress = models.FloatField(
        default=0.0,
        help_text="Fraction of the course completed, 0..1",
    )

    time_spent = models.PositiveIntegerField(default=0, help_text="Seconds")

    last_accessed = models.DateTimeField(default=timezone.now)

    completed = models.BooleanField(default=False)

    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-last_accessed"]
        verbose_name = "user progress"
        verbose_name_plural = "user progress"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "course"],
                name="user_progress_unique",
            ),
            models.CheckConstraint(
                condition=models.Q(progress__gte=0) & models.Q(progress__lte=1),
                name="user_progress_fraction",
            ),
        ]

    def __str__(self) -> str:
        return f"UserProgress(user={self.user_id}, course={self.course_id}, {self.progress:.0%})"
