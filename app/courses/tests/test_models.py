"""
Tests for course models.
"""

import pytest
from django.db import IntegrityError, transaction

from authentication.tests.factories import UserFactory
from courses.tests.factories import (
    CourseFactory,
    CourseStudentFactory,
    PaidCourseFactory,
    UserProgressFactory,
)


class TestCourse:
    """Tests for Course."""

    def test_slug_generated_from_title(self, db):
        """Should slugify the title."""
        course = CourseFactory(title="Intro to Django")

        assert course.slug == "intro-to-django"

    def test_duplicate_title_gets_suffix(self, db):
        """Should keep slugs unique."""
        CourseFactory(title="Intro to Django")
        second = CourseFactory(title="Intro to Django")

        assert second.slug == "intro-to-django-1"

    def test_is_free(self, db):
        """Should be free only when price is zero."""
        assert CourseFactory().is_free
        assert not PaidCourseFactory().is_free

    def test_price_display(self, db):
        """Should format cents."""
        assert PaidCourseFactory(price_cents=2000).price_display == "20.00 USD"


class TestCourseStudent:
    """Tests for the roster constraint."""

    def test_one_row_per_student(self, db):
        """Should reject a second roster row for the same pair."""
        row = CourseStudentFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            CourseStudentFactory(course=row.course, user=row.user)

    def test_same_user_in_two_courses(self, db):
        """Should allow one user in several courses."""
        user = UserFactory()
        CourseStudentFactory(user=user)
        CourseStudentFactory(user=user)

        assert user.course_enrollments.count() == 2


class TestUserProgress:
    """Tests for UserProgress."""

    def test_defaults(self, db):
        """Should start enrolled with no progress."""
        progress = UserProgressFactory()

        assert progress.enrolled is True
        assert progress.progress == 0.0
        assert progress.completed_lessons == []
        assert progress.completed is False

    def test_unique_per_user_and_course(self, db):
        """Should reject a duplicate progress record."""
        progress = UserProgressFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            UserProgressFactory(user=progress.user, course=progress.course)
