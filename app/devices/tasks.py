"""
Celery tasks for the device registry.

Tasks:
    sweep_stale_devices: Remove legacy, idle and long-deactivated devices
        (scheduled daily by celery-beat, see migration 0002)
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from celery import shared_task

from notifications.container import get_container

logger = logging.getLogger(__name__)


@shared_task
def sweep_stale_devices() -> dict:
    """
    Sweep stale devices from the registry.

    Returns:
        Sweep report as a dict (users_scanned, devices_removed, users_failed)
    """
    report = get_container().registry.sweep()
    if report.users_failed:
        logger.warning(
            f"Device sweep could not clean {report.users_failed} users; "
            "they will be retried on the next run"
        )
    return asdict(report)
