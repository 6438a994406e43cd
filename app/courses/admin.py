"""
Django admin configuration for course models.

Roster and progress are read-only here: enrollments go through the
enrollment reconciler so the roster and total_students stay in step.
"""

from django.contrib import admin

from courses.models import Course, CourseStudent, UserProgress


class CourseStudentInline(admin.TabularInline):
    model = CourseStudent
    fields = ["user", "enrolled_through", "payment_amount_cents", "payment_method", "enrolled_at"]
    readonly_fields = fields
    extra = 0
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = [
        "title",
        "slug",
        "price_cents",
        "is_published",
        "manual_enrollment_enabled",
        "total_students",
    ]
    list_filter = ["is_published", "manual_enrollment_enabled"]
    search_fields = ["title", "slug"]
    readonly_fields = ["id", "total_students", "created_at", "updated_at"]
    raw_id_fields = ["instructor"]
    inlines = [CourseStudentInline]


@admin.register(CourseStudent)
class CourseStudentAdmin(admin.ModelAdmin):
    """Read-only roster view for support."""

    list_display = ["course", "user", "enrolled_through", "payment_amount_cents", "enrolled_at"]
    list_filter = ["enrolled_through"]
    search_fields = ["course__title", "user__email"]
    ordering = ["-enrolled_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(UserProgress)
class UserProgressAdmin(admin.ModelAdmin):
    list_display = ["user", "course", "progress", "completed", "last_accessed"]
    list_filter = ["completed"]
    search_fields = ["course__title", "user__email"]
    raw_id_fields = ["user", "course"]

    def has_add_permission(self, request):
        return False
