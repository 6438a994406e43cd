"""
PendingEnrollment store: creation, lookup, claiming and transitions.

Claiming uses a single conditional UPDATE on ``claimed_at`` so exactly one
caller wins the right to complete a record. A claim is a lease: if the
winner dies before marking the record completed, another caller may take
over once ENROLLMENT_CLAIM_LEASE_SECONDS have passed. Every reconciler
step after the claim is idempotent, so a takeover converges.

Status transitions happen on a row fetched with select_for_update(); the
status field is protected and is never assigned directly.

Usage:
    from enrollments.services import PendingEnrollmentStore

    pending = PendingEnrollmentStore.get("stripe", "pi_123")
    if PendingEnrollmentStore.claim_for_completion(pending):
        ...
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django_fsm import can_proceed

from core.services import BaseService

from enrollments.models import PendingEnrollment
from enrollments.state_machines import PendingEnrollmentStatus

if TYPE_CHECKING:
    from datetime import datetime

    from authentication.models import User
    from courses.models import Course


class PendingEnrollmentStore(BaseService):
    """
    Methods:
        create: Store a new checkout attempt
        get: Look up by (gateway, ref), applying lazy expiry
        claim_for_completion: Conditional claim; False for race losers
        mark_completed / mark_failed / expire_if_due: FSM transitions
    """

    @staticmethod
    def ttl() -> timedelta:
        return timedelta(minutes=settings.ENROLLMENT_PENDING_TTL_MINUTES)

    @staticmethod
    def lease() -> timedelta:
        return timedelta(seconds=settings.ENROLLMENT_CLAIM_LEASE_SECONDS)

    @classmethod
    def create(
        cls,
        user: User,
        course: Course,
        gateway: str,
        gateway_ref: str,
        amount_cents: int,
        gateway_amount: int,
        currency: str = "usd",
        gateway_currency: str = "usd",
    ) -> PendingEnrollment:
        pending = PendingEnrollment.objects.create(
            user=user,
            course=course,
            gateway=gateway,
            gateway_ref=gateway_ref,
            amount_cents=amount_cents,
            currency=currency,
            gateway_amount=gateway_amount,
            gateway_currency=gateway_currency,
            expires_at=timezone.now() + cls.ttl(),
        )
        cls.get_logger().info(
            "Pending enrollment created",
            extra={
                "pending_enrollment_id": str(pending.id),
                "user_id": user.pk,
                "course_id": str(course.id),
                "gateway": gateway,
                "gateway_ref": gateway_ref,
            },
        )
        return pending

    @classmethod
    def get(cls, gateway: str, gateway_ref: str) -> PendingEnrollment | None:
        """Find the record for a gateway reference, expiring it if its TTL passed."""
        pending = PendingEnrollment.objects.filter(
            gateway=gateway,
            gateway_ref=gateway_ref,
        ).first()
        if pending is None:
            return None
        return cls.expire_if_due(pending)

    @classmethod
    def _has_live_claim(cls, pending: PendingEnrollment, now: datetime) -> bool:
        return pending.claimed_at is not None and pending.claimed_at > now - cls.lease()

    @classmethod
    def claim_for_completion(cls, pending: PendingEnrollment) -> bool:
        """
        Take the completion lease on a pending, unexpired record.

        Returns False when the record is no longer pending, has expired,
        or another caller holds a live claim.
        """
        now = timezone.now()
        claimed = (
            PendingEnrollment.objects.filter(
                pk=pending.pk,
                status=PendingEnrollmentStatus.PENDING,
                expires_at__gt=now,
            )
            .filter(Q(claimed_at__isnull=True) | Q(claimed_at__lte=now - cls.lease()))
            .update(claimed_at=now, updated_at=now)
        )

        cls.get_logger().debug(
            "Claim attempt",
            extra={"pending_enrollment_id": str(pending.pk), "claimed": bool(claimed)},
        )
        if claimed:
            pending.claimed_at = now
        return bool(claimed)

    @classmethod
    def _transition(cls, pending: PendingEnrollment, name: str, *args) -> PendingEnrollment:
        with transaction.atomic():
            locked = PendingEnrollment.objects.select_for_update().get(pk=pending.pk)
            method = getattr(locked, name)
            if can_proceed(method):
                method(*args)
                locked.save()
        return locked

    @classmethod
    def mark_completed(cls, pending: PendingEnrollment) -> PendingEnrollment:
        """Idempotent: an already completed record is returned unchanged."""
        return cls._transition(pending, "complete")

    @classmethod
    def mark_failed(cls, pending: PendingEnrollment, reason: str = "") -> PendingEnrollment:
        """
        Gateway-reported terminal failure. Never call for transient errors.

        A record with a live completion claim is left pending; the
        claimant decides its outcome.
        """
        now = timezone.now()
        with transaction.atomic():
            locked = PendingEnrollment.objects.select_for_update().get(pk=pending.pk)
            if cls._has_live_claim(locked, now):
                cls.get_logger().warning(
                    "Failure report ignored, completion in progress",
                    extra={
                        "pending_enrollment_id": str(locked.pk),
                        "reason": reason,
                    },
                )
                return locked
            if can_proceed(locked.fail):
                locked.fail(reason)
                locked.save()

        cls.get_logger().info(
            "Pending enrollment failed",
            extra={
                "pending_enrollment_id": str(locked.pk),
                "status": locked.status,
                "reason": reason,
            },
        )
        return locked

    @classmethod
    def expire_if_due(cls, pending: PendingEnrollment) -> PendingEnrollment:
        """
        Mark a pending record expired once its TTL has passed.

        A record whose completion is in progress (live claim) is left
        alone; the claimant finishes it.
        """
        now = timezone.now()
        if not pending.is_pending or not pending.is_expired(now):
            return pending

        with transaction.atomic():
            locked = PendingEnrollment.objects.select_for_update().get(pk=pending.pk)
            if (
                locked.is_pending
                and locked.is_expired(now)
                and not cls._has_live_claim(locked, now)
            ):
                locked.expire()
                locked.save()
                cls.get_logger().info(
                    "Pending enrollment expired",
                    extra={
                        "pending_enrollment_id": str(locked.pk),
                        "gateway": locked.gateway,
                        "gateway_ref": locked.gateway_ref,
                    },
                )
        return locked
