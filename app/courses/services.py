"""
Read-side course services.

Services:
    CourseService: Course lookup by id or slug, enrollment checks

Usage:
    from courses.services import CourseService

    result = CourseService.get_course("intro-to-django")
    if result.success:
        course = result.data
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.helpers import validate_uuid
from core.services import BaseService, ServiceResult

from courses.models import Course, CourseStudent, UserProgress

if TYPE_CHECKING:
    from authentication.models import User


class CourseService(BaseService):
    """
    Lookups used by enrollment endpoints.

    Methods:
        find_course: Course by UUID or slug, or None
        get_course: Same, wrapped in ServiceResult (COURSE_NOT_FOUND)
        is_enrolled: Whether the user has a roster row
        get_progress: The user's progress record, or None
        get_enrollment_status: {"isEnrolled", "courseId"} payload
    """

    @classmethod
    def find_course(cls, identifier: str) -> Course | None:
        identifier = str(identifier)
        if validate_uuid(identifier):
            course = Course.objects.filter(id=identifier).first()
            if course is not None:
                return course
        return Course.objects.filter(slug=identifier).first()

    @classmethod
    def get_course(cls, identifier: str) -> ServiceResult[Course]:
        course = cls.find_course(identifier)
        if course is None:
            return ServiceResult.failure(
                "Course not found",
                error_code="COURSE_NOT_FOUND",
            )
        return ServiceResult.success(course)

    @staticmethod
    def is_enrolled(user: User, course: Course) -> bool:
        return CourseStudent.objects.filter(course=course, user=user).exists()

    @staticmethod
    def get_progress(user: User, course: Course) -> UserProgress | None:
        return UserProgress.objects.filter(user=user, course=course).first()

    @classmethod
    def get_enrollment_status(cls, user: User, identifier: str) -> ServiceResult[dict]:
        """
        Report whether ``user`` is on the roster of the course.

        Error codes:
            COURSE_NOT_FOUND: No course with that id or slug
        """
        result = cls.get_course(identifier)
        if not result.success:
            return result

        course = result.data
        return ServiceResult.success(
            {
                "isEnrolled": cls.is_enrolled(user, course),
                "courseId": str(course.id),
            }
        )
