"""
Notification service layer.

The orchestrator composes the registry, dispatcher, tracker and cache into
the two halves of a notification's life:

    create_notification()   request thread: validate, persist, invalidate,
                            enqueue dispatch after commit
    dispatch()              Celery worker: resolve tokens, fan out, record
                            results per recipient and device

Design Principles:
    - The caller gets success as soon as the notification is durable;
      delivery problems show up only in the delivery-status query
    - Invalid payloads are rejected before any write
    - Channel I/O runs on a bounded thread pool; every database read and
      write stays on the calling thread
    - A failure for one recipient is logged and recorded, never escalated

Usage:
    from notifications.container import get_container

    orchestrator = get_container().orchestrator
    created = orchestrator.create_notification(
        {"title": "Hi", "message": "Hello", "recipients": ["alice"]},
        created_by="ticket-service",
    )
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import TYPE_CHECKING

from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.exceptions import StoreUnavailable, ValidationError
from core.services import BaseService
from notifications.models import DeliveryStatus, Notification, NotificationRecipient
from notifications.serializers import NotificationCreateSerializer

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

    from devices.registry import ActiveToken, DeviceRegistry
    from notifications.cache import FeedCache
    from notifications.dispatch import DeliveryResult, Dispatcher
    from notifications.tracker import DeliveryTracker

NO_TOKENS_REASON = "No push tokens found"

# Epoch values above this are milliseconds
EPOCH_MILLIS_THRESHOLD = 100_000_000_000


def localize(value: Any, language: str = "vi") -> str:
    """
    Render a title or message for a push provider.

    Plain strings pass through. Language maps resolve to ``language``,
    then English, then the first non-empty entry.
    """
    if isinstance(value, dict):
        for key in (language, "en"):
            if value.get(key):
                return str(value[key])
        for text in value.values():
            if text:
                return str(text)
        return ""
    return "" if value is None else str(value)


def parse_event_time(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch (seconds or milliseconds)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=dt_timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = parse_datetime(value.strip())
        except ValueError:
            return None
        if parsed is None:
            return None
        if timezone.is_naive(parsed):
            parsed = timezone.make_aware(parsed, dt_timezone.utc)
        return parsed
    return None


def _enqueue_dispatch(notification_id: str) -> None:
    from notifications.tasks import dispatch_notification

    dispatch_notification.delay(notification_id)


@dataclass(frozen=True)
class CreatedNotification:
    notification_id: str
    recipients: int


@dataclass
class DispatchSummary:
    """What one dispatch run did."""

    notification_id: str
    recipients: int = 0
    delivered: int = 0
    failed: int = 0
    expired_devices: int = 0
    errors: list[str] = field(default_factory=list)


class NotificationOrchestrator(BaseService):
    """
    Creates notifications and fans them out to devices.

    Args:
        registry: Device registry resolving recipients to tokens
        dispatcher: Multi-channel push dispatcher
        tracker: Per-recipient delivery/read state
        cache: Feed cache invalidated for every touched recipient
        default_language: Language used to render localized titles for push
        max_workers: Size of the dispatch thread pool
        enqueue: Called with the notification id once the creating
            transaction commits; defaults to the dispatch Celery task
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        dispatcher: Dispatcher,
        tracker: DeliveryTracker,
        cache: FeedCache,
        default_language: str = "vi",
        max_workers: int = 8,
        enqueue: Callable[[str], None] | None = None,
    ):
        self.registry = registry
        self.dispatcher = dispatcher
        self.tracker = tracker
        self.cache = cache
        self.default_language = default_language
        self.max_workers = max(1, max_workers)
        self.enqueue = enqueue or _enqueue_dispatch
        self.logger = self.get_logger()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def validate(self, payload: Any) -> dict:
        """
        Validate a create payload.

        Raises:
            ValidationError: With field errors in details
        """
        if not isinstance(payload, dict):
            raise ValidationError(
                "Notification payload must be an object",
                error_code="INVALID_NOTIFICATION",
            )
        serializer = NotificationCreateSerializer(data=payload)
        if not serializer.is_valid():
            raise ValidationError(
                "Invalid notification payload",
                error_code="INVALID_NOTIFICATION",
                details=dict(serializer.errors),
            )
        return dict(serializer.validated_data)

    def resolve_event_time(self, data: dict) -> datetime:
        """Event time from data["timestamp"], never later than now."""
        now = timezone.now()
        event_at = parse_event_time(data.get("timestamp"))
        if event_at is None:
            if data.get("timestamp") is not None:
                self.logger.warning(
                    f"Ignoring unparseable event timestamp {data.get('timestamp')!r}"
                )
            return now
        if event_at > now:
            self.logger.warning("Event timestamp is in the future, using current time")
            return now
        return event_at

    def create_notification(self, payload: dict, created_by: str = "") -> CreatedNotification:
        """
        Validate and persist a notification, then schedule its dispatch.

        Raises:
            ValidationError: If the payload is invalid (nothing is written)
            StoreUnavailable: If the notification could not be persisted
        """
        validated = self.validate(payload)
        recipients = validated["recipients"]
        event_at = self.resolve_event_time(validated["data"])

        try:
            with self.atomic():
                notification = Notification.objects.create(
                    title=validated["title"],
                    message=validated["message"],
                    notification_type=validated["type"],
                    priority=validated["priority"],
                    channel=validated["channel"],
                    data=validated["data"],
                    recipients=recipients,
                    total_recipients=len(recipients),
                    created_by=created_by,
                    event_at=event_at,
                )
                self.tracker.create_records(notification, recipients)
        except DatabaseError as e:
            self.logger.exception(f"Failed to persist notification: {e}")
            raise StoreUnavailable(
                "Notification store is unavailable",
                details={"recipients": len(recipients)},
            ) from e

        for recipient_id in recipients:
            self.cache.invalidate(recipient_id)

        notification_id = str(notification.pk)
        transaction.on_commit(lambda: self.enqueue(notification_id))

        self.logger.info(
            f"Created notification {notification_id} "
            f"({notification.notification_type}) for {len(recipients)} recipients"
        )
        return CreatedNotification(notification_id=notification_id, recipients=len(recipients))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def push_payload(self, notification: Notification) -> dict:
        payload = {**(notification.data or {}), "notificationId": str(notification.pk)}
        if isinstance(notification.title, dict) or isinstance(notification.message, dict):
            payload["i18n"] = {"title": notification.title, "message": notification.message}
        return payload

    def dispatch(self, notification_id: Any) -> DispatchSummary:
        """
        Deliver a notification to every recipient still in ``sent``.

        Safe to re-run: recipients already delivered or failed are skipped.

        Raises:
            NotFoundError: If the notification does not exist
        """
        notification = self.tracker.get_notification(notification_id)
        pending = set(
            NotificationRecipient.all_objects.filter(
                notification=notification, delivery_status=DeliveryStatus.SENT
            ).values_list("recipient_id", flat=True)
        )
        recipients = [r for r in notification.recipients if r in pending]
        recipients += sorted(pending.difference(recipients))
        summary = DispatchSummary(str(notification.pk), recipients=len(recipients))
        if not recipients:
            return summary

        title = localize(notification.title, self.default_language)
        body = localize(notification.message, self.default_language)
        payload = self.push_payload(notification)

        devices = {rid: list(self.registry.active_tokens(rid).values()) for rid in recipients}
        outcomes, errors = self._send_all(devices, title, body, payload)

        for recipient_id in recipients:
            try:
                delivered = self._apply(
                    notification.pk,
                    recipient_id,
                    devices[recipient_id],
                    outcomes.get(recipient_id),
                    errors.get(recipient_id),
                    summary,
                )
            except DatabaseError as e:
                self.logger.exception(
                    f"Failed to record delivery of {notification.pk} to {recipient_id}: {e}"
                )
                summary.errors.append(f"{recipient_id}: {e}")
                continue
            if delivered:
                summary.delivered += 1
            else:
                summary.failed += 1

        for recipient_id in recipients:
            self.cache.invalidate(recipient_id)

        self.logger.info(
            f"Dispatched notification {summary.notification_id}: "
            f"{summary.delivered} delivered, {summary.failed} failed, "
            f"{summary.expired_devices} devices expired"
        )
        return summary

    def _send_all(
        self,
        devices: dict[str, list[ActiveToken]],
        title: str,
        body: str,
        payload: dict,
    ) -> tuple[dict[str, list[DeliveryResult]], dict[str, str]]:
        outcomes: dict[str, list[DeliveryResult]] = {}
        errors: dict[str, str] = {}
        work = {rid: tokens for rid, tokens in devices.items() if tokens}
        if not work:
            return outcomes, errors

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(work))) as pool:
            futures = {
                pool.submit(
                    self.dispatcher.send,
                    [device.token for device in tokens],
                    title,
                    body,
                    payload,
                ): rid
                for rid, tokens in work.items()
            }
            for future in as_completed(futures):
                rid = futures[future]
                try:
                    outcomes[rid] = future.result()
                except Exception as e:
                    self.logger.exception(f"Push fan-out to {rid} failed: {e}")
                    errors[rid] = str(e) or e.__class__.__name__
        return outcomes, errors

    def _apply(
        self,
        notification_id: Any,
        recipient_id: str,
        tokens: list[ActiveToken],
        results: list[DeliveryResult] | None,
        error: str | None,
        summary: DispatchSummary,
    ) -> bool:
        if not tokens:
            self.logger.info(f"No push tokens found for {recipient_id}")
            self.tracker.mark_failed(notification_id, recipient_id, NO_TOKENS_REASON)
            return False
        if error is not None or results is None:
            self.tracker.mark_failed(notification_id, recipient_id, error or "Push failed")
            return False

        for device, result in zip(tokens, results):
            self.registry.record_attempt(recipient_id, device.device_id, result.ok)
            if result.expired:
                summary.expired_devices += 1
                self.registry.deactivate(
                    recipient_id, device.device_id, reason=result.error or "Token expired"
                )

        if any(result.ok for result in results):
            self.tracker.mark_delivered(notification_id, recipient_id)
            return True

        reason = next((r.error for r in results if r.error), "Push failed")
        self.tracker.mark_failed(notification_id, recipient_id, reason)
        return False
