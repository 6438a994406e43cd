"""
Stripe webhook intake for course payments.

Events are verified, stored idempotently (WebhookEvent) and processed
asynchronously by enrollments.tasks.process_webhook_event.
"""

from enrollments.webhooks.handlers import dispatch_webhook, register_handler
from enrollments.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
