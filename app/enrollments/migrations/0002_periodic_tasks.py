"""
Register celery-beat schedules for the enrollment background tasks.

    sweep_pending_enrollments  every 5 minutes
    drain_enrollment_events    every 2 minutes
    retry_failed_webhooks      every 5 minutes
    cleanup_stuck_webhooks     every 15 minutes
"""

from django.db import migrations

PERIODIC_TASKS = [
    (
        "Sweep Pending Enrollments",
        "enrollments.tasks.sweep_pending_enrollments",
        5,
        "Expires checkouts past their TTL and re-verifies stale pending checkouts.",
    ),
    (
        "Drain Enrollment Events",
        "enrollments.tasks.drain_enrollment_events",
        2,
        "Delivers enrollment notifications and activity entries still pending.",
    ),
    (
        "Retry Failed Stripe Webhooks",
        "enrollments.tasks.retry_failed_webhooks",
        5,
        "Re-queues failed webhook events that have retries left.",
    ),
    (
        "Cleanup Stuck Stripe Webhooks",
        "enrollments.tasks.cleanup_stuck_webhooks",
        15,
        "Moves webhook events stuck in pending/processing to failed.",
    ),
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for name, task, minutes, description in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=minutes,
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=name,
            defaults={
                "task": task,
                "interval": schedule,
                "enabled": True,
                "description": description,
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[name for name, *_ in PERIODIC_TASKS]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("enrollments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
