"""
Add celery-beat schedules for the deferred queue and counter reconciliation.

- Drain the deferred notification queue every 10 seconds
- Reconcile derived notification counters every 60 seconds
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Drain Notification Queue",
        "task": "notifications.tasks.drain_notification_queue",
        "every": 10,
        "description": "Creates notifications pushed onto the deferred Redis queue.",
    },
    {
        "name": "Reconcile Notification Counters",
        "task": "notifications.tasks.reconcile_notification_counters",
        "every": 60,
        "description": (
            "Recomputes sent, delivered and read counters from tracker rows "
            "changed since the last pass."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="seconds",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name__in=[entry["name"] for entry in SCHEDULES]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
