"""
Periodic sweep over PendingEnrollment rows.

1. Records past their TTL are marked expired (unless a claim is live).
2. Records still pending after the grace period are re-verified against
   the gateway, so a payment whose client never called verify (closed
   tab, lost response) still ends in an enrollment.
"""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from core.services import BaseService

from enrollments.models import PendingEnrollment
from enrollments.services.pending_store import PendingEnrollmentStore
from enrollments.services.reconciler import EnrollmentSource
from enrollments.services.verification import PaymentVerificationService
from enrollments.state_machines import PendingEnrollmentStatus


class PendingEnrollmentSweeper(BaseService):
    @classmethod
    def sweep(cls, batch_size: int | None = None) -> dict:
        batch_size = batch_size or settings.ENROLLMENT_SWEEP_BATCH_SIZE
        now = timezone.now()
        stats = {"expired": 0, "verified": 0, "enrolled": 0, "failed": 0, "unresolved": 0}

        due = PendingEnrollment.objects.filter(
            status=PendingEnrollmentStatus.PENDING,
            expires_at__lte=now,
        ).order_by("expires_at")[:batch_size]
        for pending in due:
            if PendingEnrollmentStore.expire_if_due(pending).status == PendingEnrollmentStatus.EXPIRED:
                stats["expired"] += 1

        grace_cutoff = now - timedelta(minutes=settings.ENROLLMENT_SWEEP_GRACE_MINUTES)
        stale = (
            PendingEnrollment.objects.filter(
                status=PendingEnrollmentStatus.PENDING,
                expires_at__gt=now,
                created_at__lte=grace_cutoff,
            )
            .select_related("user", "course")
            .order_by("created_at")[:batch_size]
        )
        for pending in stale:
            stats["verified"] += 1
            result = PaymentVerificationService.verify_pending(pending, EnrollmentSource.SWEEP)
            if result.success and not result.data.in_progress:
                stats["enrolled"] += 1
            elif result.error_code == "PAYMENT_FAILED":
                stats["failed"] += 1
            else:
                stats["unresolved"] += 1

        cls.get_logger().info("Pending enrollment sweep finished", extra=stats)
        return stats
