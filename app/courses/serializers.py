"""
Serializers for course data embedded in enrollment responses.
"""

from __future__ import annotations

from rest_framework import serializers

from courses.models import Course, UserProgress


class CourseSummarySerializer(serializers.ModelSerializer):
    totalStudents = serializers.IntegerField(source="total_students", read_only=True)

    class Meta:
        model = Course
        fields = ["id", "title", "slug", "totalStudents"]
        read_only_fields = fields


class UserProgressSerializer(serializers.ModelSerializer):
    """Progress record in the camelCase shape the learning UI expects."""

    courseId = serializers.UUIDField(source="course_id", read_only=True)
    completedLessons = serializers.JSONField(source="completed_lessons", read_only=True)
    currentLesson = serializers.CharField(source="current_lesson", read_only=True)
    timeSpent = serializers.IntegerField(source="time_spent", read_only=True)
    lastAccessed = serializers.DateTimeField(source="last_accessed", read_only=True)
    completedAt = serializers.DateTimeField(source="completed_at", read_only=True)

    class Meta:
        model = UserProgress
        fields = [
            "id",
            "courseId",
            "enrolled",
            "completedLessons",
            "currentLesson",
            "progress",
            "completed",
            "completedAt",
            "timeSpent",
            "lastAccessed",
        ]
        read_only_fields = fields
