"""
Component wiring for the notification service.

Every component is built once, from settings, when the notifications app
is ready, and handed to views, tasks and commands through
get_container(). Components take their configuration as constructor
arguments, so tests build their own instances directly.

Usage:
    from notifications.container import get_container

    container = get_container()
    container.registry.active_tokens("alice")
    container.orchestrator.create_notification(payload)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from django.apps import apps
from django.conf import settings

from devices.registry import DeviceRegistry
from notifications.attendance import AttendanceNotifier
from notifications.cache import FeedCache
from notifications.dedup import DedupGuard
from notifications.directory import DirectoryLookup, load_directory
from notifications.dispatch import Dispatcher, ExpoTransport, WebPushTransport
from notifications.events import EventRouter, EventSubscription
from notifications.queue import NotificationQueue
from notifications.services import NotificationOrchestrator
from notifications.tracker import DeliveryTracker


@dataclass
class NotificationContainer:
    registry: DeviceRegistry
    dispatcher: Dispatcher
    tracker: DeliveryTracker
    cache: FeedCache
    guard: DedupGuard
    queue: NotificationQueue
    directory: DirectoryLookup
    orchestrator: NotificationOrchestrator
    attendance: AttendanceNotifier
    router: EventRouter
    event_channels: list[str]

    def subscription(self) -> EventSubscription:
        return EventSubscription(self.event_channels)


def build_container() -> NotificationContainer:
    """Build every component from Django settings."""
    timeout = settings.NOTIFICATIONS_PUSH_TIMEOUT_SECONDS

    registry = DeviceRegistry(
        stale_after=timedelta(days=settings.NOTIFICATIONS_DEVICE_STALE_DAYS)
    )
    dispatcher = Dispatcher(
        expo=ExpoTransport(
            url=settings.NOTIFICATIONS_EXPO_PUSH_URL,
            access_token=settings.NOTIFICATIONS_EXPO_ACCESS_TOKEN,
            batch_size=settings.NOTIFICATIONS_EXPO_BATCH_SIZE,
            timeout=timeout,
        ),
        web_push=WebPushTransport(
            vapid_private_key=settings.VAPID_PRIVATE_KEY,
            vapid_subject=settings.VAPID_SUBJECT,
            timeout=timeout,
        ),
    )
    tracker = DeliveryTracker()
    cache = FeedCache(ttls=settings.NOTIFICATIONS_CACHE_TTLS)
    guard = DedupGuard()
    directory = load_directory(settings.NOTIFICATIONS_DIRECTORY_CLASS)

    orchestrator = NotificationOrchestrator(
        registry=registry,
        dispatcher=dispatcher,
        tracker=tracker,
        cache=cache,
        default_language=settings.NOTIFICATIONS_DEFAULT_LANGUAGE,
        max_workers=settings.NOTIFICATIONS_DISPATCH_WORKERS,
    )
    attendance = AttendanceNotifier(
        orchestrator=orchestrator,
        guard=guard,
        directory=directory,
        tz=settings.NOTIFICATIONS_LOCAL_TIMEZONE,
        student_window_seconds=settings.NOTIFICATIONS_STUDENT_ATTENDANCE_WINDOW_SECONDS,
    )

    return NotificationContainer(
        registry=registry,
        dispatcher=dispatcher,
        tracker=tracker,
        cache=cache,
        guard=guard,
        queue=NotificationQueue(key=settings.NOTIFICATIONS_QUEUE_KEY),
        directory=directory,
        orchestrator=orchestrator,
        attendance=attendance,
        router=EventRouter(orchestrator, attendance, directory),
        event_channels=list(settings.NOTIFICATIONS_EVENT_CHANNELS),
    )


def get_container() -> NotificationContainer:
    """Return the container built by the notifications app."""
    config = apps.get_app_config("notifications")
    if config.container is None:
        config.container = build_container()
    return config.container
