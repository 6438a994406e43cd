from django.db import migrations

NOTIFICATION_TYPES = [
    {
        "key": "course_enrollment",
        "display_name": "Course enrollment",
        "category": "course",
        "title_template": 'You enrolled in "{course_title}"',
        "body_template": "Start learning whenever you are ready.",
    },
    {
        "key": "manual_access_granted",
        "display_name": "Course access granted",
        "category": "course",
        "title_template": 'You were given access to "{course_title}"',
        "body_template": "",
    },
    {
        "key": "enrollment_request_rejected",
        "display_name": "Enrollment request rejected",
        "category": "course",
        "title_template": 'Your enrollment request for "{course_title}" was rejected',
        "body_template": "{notes}",
    },
]


def seed_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    for definition in NOTIFICATION_TYPES:
        key = definition["key"]
        defaults = {k: v for k, v in definition.items() if k != "key"}
        NotificationType.objects.update_or_create(key=key, defaults=defaults)


def remove_types(apps, schema_editor):
    NotificationType = apps.get_model("notifications", "NotificationType")
    NotificationType.objects.filter(
        key__in=[definition["key"] for definition in NOTIFICATION_TYPES]
    ).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_types, remove_types),
    ]
