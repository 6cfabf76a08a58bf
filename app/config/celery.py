"""
Celery configuration for the notification service.

Workers run:
- dispatch_notification: push delivery, enqueued after a notification commits
- drain_notification_queue: deferred-queue intake (celery-beat, every 10s)
- reconcile_notification_counters: derived counters (celery-beat, every 60s)
- sweep_stale_devices: device registry cleanup (celery-beat, daily)

Redis is both the message broker and result backend. Schedules live in the
database (django-celery-beat) and are created by data migrations.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info --scheduler django_celery_beat.schedulers:DatabaseScheduler

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up devices.tasks and notifications.tasks
app.autodiscover_tasks()
