"""
Background workers for the enrollment subsystem.

Workers:
    EnrollmentEventDispatcher: Outbound notification/activity delivery
    PendingEnrollmentSweeper: Expiry and re-verification of checkouts

Celery entry points live in enrollments.tasks.
"""

from enrollments.workers.event_dispatcher import EnrollmentEventDispatcher
from enrollments.workers.pending_sweeper import PendingEnrollmentSweeper

__all__ = ["EnrollmentEventDispatcher", "PendingEnrollmentSweeper"]
