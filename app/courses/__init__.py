"""
Courses app: course catalogue rows, the enrollment roster and per-user progress.

Roster rows (CourseStudent), the Course.total_students counter and
UserProgress records are written only by
enrollments.services.reconciler.EnrollmentReconciler. Everything in this
app is read-side.

Usage:
    from courses.services import CourseService
"""
