"""
Enrollments app configuration.

This app owns the enrollment reconciliation subsystem:
- Checkout attempts (PendingEnrollment) and the Payment ledger
- Stripe and Khalti verification adapters
- Manual enrollment requests and access grants
- Outbound enrollment events and Stripe webhook intake
"""

from django.apps import AppConfig


class EnrollmentsConfig(AppConfig):
    """Configuration for the enrollments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "enrollments"
    verbose_name = "Enrollments"

    def ready(self):
        # Registers webhook handlers
        from enrollments.webhooks import handlers  # noqa: F401
