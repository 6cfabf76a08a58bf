"""
Consume cross-service events from Redis pub/sub.

Usage:
    python manage.py consume_events
    python manage.py consume_events --channel ticket-service --channel broadcast
"""

import logging

from django.core.management.base import BaseCommand
from redis.exceptions import RedisError

from notifications.container import get_container
from notifications.events import EventSubscription

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Subscribe to service event channels and create notifications from them."

    def add_arguments(self, parser):
        parser.add_argument(
            "--channel",
            action="append",
            dest="channels",
            help="Channel to subscribe to (repeatable); defaults to NOTIFICATIONS_EVENT_CHANNELS",
        )
        parser.add_argument(
            "--max-events",
            type=int,
            default=0,
            help="Stop after handling this many events (0 = run forever)",
        )

    def handle(self, *args, **options):
        container = get_container()
        channels = options["channels"] or container.event_channels
        max_events = options["max_events"]
        subscription = EventSubscription(channels)

        self.stdout.write(f"Listening on: {', '.join(channels)}")
        handled = 0
        try:
            for event in subscription:
                result = container.router.dispatch(event)
                if not result.success and result.error_code not in (
                    "SKIPPED",
                    "DEDUP_SUPPRESSED",
                ):
                    logger.warning(f"Event {event.event.value} not handled: {result.error}")
                handled += 1
                if max_events and handled >= max_events:
                    break
        except RedisError as e:
            logger.exception(f"Event subscription lost: {e}")
            raise
        except KeyboardInterrupt:
            self.stdout.write("Stopping")
        finally:
            subscription.close()

        self.stdout.write(self.style.SUCCESS(f"Handled {handled} events"))
