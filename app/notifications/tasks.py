"""
Celery tasks for notification delivery.

Tasks:
    dispatch_notification: Deliver one notification to every pending
        recipient (enqueued after the creating transaction commits)
    drain_notification_queue: Create notifications from the deferred
        Redis queue (celery-beat, every 10 seconds)
    reconcile_notification_counters: Recompute derived counters from
        tracker rows (celery-beat, every 60 seconds)

Design:
    - Tasks receive notification ids (UUID strings), never model instances
    - dispatch_notification is idempotent: recipients no longer in "sent"
      are skipped, so a retry never re-sends a delivered notification
    - Store outages are retried with backoff; everything else is recorded
      per recipient by the orchestrator

Usage:
    from notifications.tasks import dispatch_notification

    dispatch_notification.delay(notification_id="uuid-string")
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from celery import shared_task
from django.conf import settings
from django.db import DatabaseError

from core.exceptions import NotFoundError, StoreUnavailable, ValidationError
from notifications.container import get_container

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError, StoreUnavailable),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def dispatch_notification(self, notification_id: str) -> dict | None:
    """
    Push a notification to its recipients' devices.

    Returns:
        Dispatch summary as a dict, or None if the notification is gone

    Raises:
        DatabaseError/StoreUnavailable: On store outages (triggers retry)
    """
    try:
        summary = get_container().orchestrator.dispatch(notification_id)
    except NotFoundError:
        logger.warning(f"Notification {notification_id} not found, skipping dispatch")
        return None
    return asdict(summary)


@shared_task
def drain_notification_queue(batch_size: int | None = None) -> dict:
    """
    Create notifications from the deferred queue.

    Pops at most ``batch_size`` items. A malformed or invalid item is
    logged and dropped; an unreachable queue ends the run. When the store
    is down the claimed item is pushed back and the run ends.

    Returns:
        Counts of created, invalid and requeued items
    """
    container = get_container()
    limit = batch_size or settings.NOTIFICATIONS_QUEUE_BATCH_SIZE
    stats = {"created": 0, "invalid": 0, "requeued": 0}

    for _ in range(limit):
        try:
            payload = container.queue.pop()
        except ValidationError as e:
            stats["invalid"] += 1
            logger.error(f"Dropping malformed queue item: {e}")
            continue
        if payload is None:
            break

        try:
            container.orchestrator.create_notification(
                payload, created_by=str(payload.get("created_by") or "queue")
            )
        except ValidationError as e:
            stats["invalid"] += 1
            logger.error(f"Dropping invalid queued notification: {e} {e.details}")
            continue
        except StoreUnavailable as e:
            container.queue.requeue(payload)
            stats["requeued"] += 1
            logger.error(f"Store unavailable, requeued item and stopping: {e}")
            break
        stats["created"] += 1

    if any(stats.values()):
        logger.info(
            f"Queue drain: {stats['created']} created, {stats['invalid']} invalid, "
            f"{stats['requeued']} requeued"
        )
    return stats


@shared_task
def reconcile_notification_counters(limit: int = 500) -> int:
    """Recompute sent/delivered/read counters of recently changed notifications."""
    return get_container().tracker.reconcile_counters(limit=limit)
