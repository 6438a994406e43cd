"""
EnrollmentReconciler: the single entry point that turns an enrollment
intent into roster, progress and ledger rows.

Every producer goes through commit(): gateway verification (client verify,
Khalti callback, Stripe webhook, pending sweep), free enrollment, manual
request approval and manual access grants.

commit() steps, each idempotent on its own:
    1. Fast path: user already on the roster and no checkout left open
       -> already_enrolled
    2. Claim the PendingEnrollment (payment intents only)
    3. Roster row + total_students increment in one savepoint; the
       (course, user) unique constraint turns a concurrent duplicate into
       an IntegrityError, which rolls back the increment with it
    4. UserProgress insert; duplicate means "already created"
    5. Payment ledger insert; (gateway, gateway_ref) is unique
    6. PendingEnrollment -> completed
    7. EnrollmentEvent row (unique dedupe_key), dispatched after commit

A crash between any two steps followed by a retried commit() converges to
the same final state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.db.models import F

from core.services import BaseService

from courses.models import Course, CourseStudent, EnrolledThrough, UserProgress
from enrollments.exceptions import (
    PendingEnrollmentExpiredError,
    TerminalGatewayFailure,
)
from enrollments.models import (
    EnrollmentEvent,
    EnrollmentEventType,
    LedgerGateway,
    Payment,
)
from enrollments.services.pending_store import PendingEnrollmentStore
from enrollments.state_machines import PendingEnrollmentStatus

if TYPE_CHECKING:
    from authentication.models import User
    from enrollments.models import ManualEnrollmentRequest, PendingEnrollment


class EnrollmentSource:
    """Which producer asked for the enrollment (logged and stored on events)."""

    VERIFY = "verify"
    KHALTI_CALLBACK = "khalti_callback"
    WEBHOOK = "webhook"
    SWEEP = "sweep"
    FREE = "free"
    MANUAL_REQUEST = "manual_request"
    MANUAL_ACCESS = "manual_access"


class OutcomeStatus:
    ENROLLED = "enrolled"
    ALREADY_ENROLLED = "already_enrolled"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class EnrollmentIntent:
    """
    Everything commit() needs to know about one enrollment.

    ledger_gateway/ledger_ref are set only when the enrollment is backed
    by a payment; pending only for gateway checkouts.
    """

    user: User
    course: Course
    enrolled_through: str
    source: str
    amount_cents: int | None = None
    currency: str = "usd"
    payment_method: str = ""
    pending: PendingEnrollment | None = None
    ledger_gateway: str | None = None
    ledger_ref: str | None = None
    transaction_id: str = ""
    granted_by: User | None = None

    @classmethod
    def for_payment(
        cls,
        pending: PendingEnrollment,
        source: str,
        transaction_id: str = "",
    ) -> EnrollmentIntent:
        return cls(
            user=pending.user,
            course=pending.course,
            enrolled_through=EnrolledThrough.PAYMENT,
            source=source,
            amount_cents=pending.amount_cents,
            currency=pending.currency,
            payment_method=pending.gateway,
            pending=pending,
            ledger_gateway=pending.gateway,
            ledger_ref=pending.gateway_ref,
            transaction_id=transaction_id,
        )

    @classmethod
    def for_free(cls, user: User, course: Course) -> EnrollmentIntent:
        return cls(
            user=user,
            course=course,
            enrolled_through=EnrolledThrough.FREE,
            source=EnrollmentSource.FREE,
            currency=course.currency,
        )

    @classmethod
    def for_manual_request(
        cls,
        request: ManualEnrollmentRequest,
        admin: User,
    ) -> EnrollmentIntent:
        if request.has_payment:
            return cls(
                user=request.user,
                course=request.course,
                enrolled_through=EnrolledThrough.MANUAL_PAYMENT,
                source=EnrollmentSource.MANUAL_REQUEST,
                amount_cents=request.amount_cents,
                currency=request.course.currency,
                payment_method=request.payment_method or "manual",
                ledger_gateway=LedgerGateway.MANUAL,
                ledger_ref=f"manual-request:{request.id}",
                transaction_id=request.transaction_id,
                granted_by=admin,
            )
        return cls(
            user=request.user,
            course=request.course,
            enrolled_through=EnrolledThrough.MANUAL_GRANT,
            source=EnrollmentSource.MANUAL_REQUEST,
            currency=request.course.currency,
            granted_by=admin,
        )

    @classmethod
    def for_manual_grant(cls, user: User, course: Course, admin: User) -> EnrollmentIntent:
        return cls(
            user=user,
            course=course,
            enrolled_through=EnrolledThrough.MANUAL_GRANT,
            source=EnrollmentSource.MANUAL_ACCESS,
            currency=course.currency,
            granted_by=admin,
        )


@dataclass
class EnrollmentOutcome:
    status: str
    user: User
    course: Course
    progress: UserProgress | None = None
    payment: Payment | None = None

    @property
    def enrolled(self) -> bool:
        return self.status == OutcomeStatus.ENROLLED

    @property
    def already_enrolled(self) -> bool:
        return self.status == OutcomeStatus.ALREADY_ENROLLED

    @property
    def in_progress(self) -> bool:
        return self.status == OutcomeStatus.IN_PROGRESS


def enrollment_event_key(course_id, user_id) -> str:
    return f"enrollment.created:{course_id}:{user_id}"


class EnrollmentReconciler(BaseService):
    """
    Methods:
        commit: Apply an EnrollmentIntent exactly once

    Raises from commit():
        PendingEnrollmentExpiredError: Lost the claim to the TTL
        TerminalGatewayFailure: Pending record already failed
    """

    @classmethod
    def _log_extra(cls, intent: EnrollmentIntent, **extra) -> dict:
        pending = intent.pending
        return {
            "user_id": intent.user.pk,
            "course_id": str(intent.course.id),
            "gateway": pending.gateway if pending else intent.ledger_gateway,
            "gateway_ref": pending.gateway_ref if pending else intent.ledger_ref,
            "pending_enrollment_id": str(pending.pk) if pending else None,
            "source": intent.source,
            **extra,
        }

    @classmethod
    def commit(cls, intent: EnrollmentIntent) -> EnrollmentOutcome:
        logger = cls.get_logger()
        user, course = intent.user, intent.course

        settled = intent.pending is None or not intent.pending.is_pending
        if settled and CourseStudent.objects.filter(course=course, user=user).exists():
            logger.info(
                "Enrollment already committed",
                extra=cls._log_extra(intent, outcome=OutcomeStatus.ALREADY_ENROLLED),
            )
            progress = UserProgress.objects.filter(user=user, course=course).first()
            if progress is None:
                # Earlier commit stopped after the roster insert
                progress = cls._ensure_progress(intent)
            return EnrollmentOutcome(
                status=OutcomeStatus.ALREADY_ENROLLED,
                user=user,
                course=course,
                progress=progress,
                payment=cls._existing_payment(intent),
            )

        if intent.pending is not None and not PendingEnrollmentStore.claim_for_completion(
            intent.pending
        ):
            return cls._resolve_lost_claim(intent)

        created = cls._add_to_roster(intent)
        progress = cls._ensure_progress(intent)
        payment = cls._record_payment(intent)

        if intent.pending is not None:
            completed = PendingEnrollmentStore.mark_completed(intent.pending)
            if completed.status != PendingEnrollmentStatus.COMPLETED:
                logger.error(
                    f"Pending enrollment left {completed.status} after enrollment commit",
                    extra=cls._log_extra(intent),
                )

        cls._queue_event(intent, payment)

        status = OutcomeStatus.ENROLLED if created else OutcomeStatus.ALREADY_ENROLLED
        logger.info(
            "Enrollment committed",
            extra=cls._log_extra(intent, outcome=status),
        )
        return EnrollmentOutcome(
            status=status,
            user=user,
            course=course,
            progress=progress,
            payment=payment,
        )

    @classmethod
    def _resolve_lost_claim(cls, intent: EnrollmentIntent) -> EnrollmentOutcome:
        """
        Another caller owns the pending record, or it is no longer pending.

        Re-read state and report what is already known; never repeat the
        side effects.
        """
        user, course = intent.user, intent.course
        if CourseStudent.objects.filter(course=course, user=user).exists():
            return EnrollmentOutcome(
                status=OutcomeStatus.ALREADY_ENROLLED,
                user=user,
                course=course,
                progress=UserProgress.objects.filter(user=user, course=course).first(),
                payment=cls._existing_payment(intent),
            )

        pending = PendingEnrollmentStore.expire_if_due(intent.pending)
        if pending.status == PendingEnrollmentStatus.EXPIRED:
            cls.get_logger().warning(
                "Payment reported for an expired checkout",
                extra=cls._log_extra(intent, outcome="expired"),
            )
            raise PendingEnrollmentExpiredError(
                "This checkout has expired. Please start a new payment.",
                details={"pending_enrollment_id": str(pending.pk)},
            )
        if pending.status == PendingEnrollmentStatus.FAILED:
            raise TerminalGatewayFailure(
                "Payment failed. Please try again.",
                details={"reason": pending.failure_reason},
            )

        cls.get_logger().info(
            "Completion claimed by another worker",
            extra=cls._log_extra(intent, outcome=OutcomeStatus.IN_PROGRESS),
        )
        return EnrollmentOutcome(status=OutcomeStatus.IN_PROGRESS, user=user, course=course)

    @staticmethod
    def _add_to_roster(intent: EnrollmentIntent) -> bool:
        try:
            with transaction.atomic():
                CourseStudent.objects.create(
                    course=intent.course,
                    user=intent.user,
                    enrolled_through=intent.enrolled_through,
                    payment_amount_cents=intent.amount_cents,
                    payment_method=intent.payment_method,
                    granted_by=intent.granted_by,
                )
                Course.objects.filter(pk=intent.course.pk).update(
                    total_students=F("total_students") + 1
                )
        except IntegrityError:
            return False
        return True

    @staticmethod
    def _ensure_progress(intent: EnrollmentIntent) -> UserProgress:
        user, course = intent.user, intent.course
        try:
            with transaction.atomic():
                return UserProgress.objects.create(
                    user=user,
                    course=course,
                    enrolled=True,
                    current_lesson=course.first_lesson_id,
                )
        except IntegrityError:
            UserProgress.objects.filter(user=user, course=course, enrolled=False).update(
                enrolled=True
            )
            return UserProgress.objects.get(user=user, course=course)

    @staticmethod
    def _existing_payment(intent: EnrollmentIntent) -> Payment | None:
        if intent.ledger_gateway is None:
            return None
        return Payment.objects.filter(
            gateway=intent.ledger_gateway,
            gateway_ref=intent.ledger_ref,
        ).first()

    @classmethod
    def _record_payment(cls, intent: EnrollmentIntent) -> Payment | None:
        if intent.ledger_gateway is None or not intent.amount_cents:
            return None

        pending = intent.pending
        metadata = {
            "course_title": intent.course.title,
            "user_email": intent.user.email,
            "source": intent.source,
        }
        if pending is not None:
            metadata["gateway_amount"] = pending.gateway_amount
            metadata["gateway_currency"] = pending.gateway_currency

        try:
            with transaction.atomic():
                return Payment.objects.create(
                    user=intent.user,
                    course=intent.course,
                    amount_cents=intent.amount_cents,
                    currency=intent.currency,
                    gateway=intent.ledger_gateway,
                    gateway_ref=intent.ledger_ref,
                    transaction_id=intent.transaction_id,
                    pending_enrollment=pending,
                    metadata=metadata,
                )
        except IntegrityError:
            return cls._existing_payment(intent)

    @classmethod
    def _queue_event(cls, intent: EnrollmentIntent, payment: Payment | None) -> None:
        course = intent.course
        event, created = EnrollmentEvent.objects.get_or_create(
            dedupe_key=enrollment_event_key(course.id, intent.user.pk),
            defaults={
                "event_type": EnrollmentEventType.ENROLLMENT_CREATED,
                "user": intent.user,
                "course": course,
                "payload": {
                    "course_title": course.title,
                    "course_slug": course.slug,
                    "price": course.price_cents,
                    "enrolled_through": intent.enrolled_through,
                    "source": intent.source,
                    "payment_method": intent.payment_method,
                    "payment_amount": intent.amount_cents,
                    "payment_id": str(payment.id) if payment else None,
                    "approved_by": intent.granted_by.pk if intent.granted_by else None,
                },
            },
        )
        if created:
            schedule_event_dispatch(event)


def schedule_event_dispatch(event: EnrollmentEvent) -> None:
    """
    Hand the event to the dispatcher once the surrounding transaction commits.

    A failure to enqueue leaves the row pending; the periodic drain
    picks it up.
    """
    from enrollments.tasks import dispatch_enrollment_event

    event_id = str(event.id)

    def _enqueue():
        try:
            dispatch_enrollment_event.delay(event_id)
        except Exception:
            EnrollmentReconciler.get_logger().exception(
                "Failed to enqueue enrollment event",
                extra={"enrollment_event_id": event_id},
            )

    transaction.on_commit(_enqueue)
