"""
Celery configuration for the enrollment service.

Background work handled here:
- Stripe webhook processing and retries
- Sweeping pending checkouts (expire stale ones, re-verify paid ones)
- Delivering enrollment events to notifications and the activity feed

Redis is both the broker and the result backend. Periodic schedules live in
the database (django-celery-beat) and are seeded by data migrations.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
