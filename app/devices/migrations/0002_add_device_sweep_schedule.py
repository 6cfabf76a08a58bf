"""
Add celery-beat schedule for sweeping stale push devices.

Runs once a day at 03:00 UTC and removes legacy registrations, devices
idle past the stale window, and devices deactivated past that window.
"""

from django.db import migrations

TASK_NAME = "Sweep Stale Push Devices"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the device sweep."""
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = CrontabSchedule.objects.get_or_create(
        minute="0",
        hour="3",
        day_of_week="*",
        day_of_month="*",
        month_of_year="*",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "devices.tasks.sweep_stale_devices",
            "crontab": schedule,
            "enabled": True,
            "description": (
                "Removes legacy, idle and long-deactivated push devices, "
                "one transaction per user."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("devices", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
