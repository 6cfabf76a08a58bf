"""
Cross-service events over Redis pub/sub.

Other services publish JSON messages shaped like

    {"service": "ticket-service", "event": "ticket_created",
     "data": {...}, "timestamp": "2025-01-15T08:00:00Z"}

(some publishers use "type" instead of "event"). EventSubscription turns
the raw pub/sub stream into typed ServiceEvent values; EventRouter maps
every EventType to exactly one handler that builds a notification.

Unknown events and malformed messages are logged and skipped. A handler
error is logged and returned as a failed ServiceResult; it never stops
the consumer loop.

Usage:
    from notifications.container import get_container

    container = get_container()
    for event in container.subscription():
        container.router.dispatch(event)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from core.exceptions import BaseApplicationError, DedupSuppressed, ValidationError
from core.services import BaseService, ServiceResult
from notifications.models import NotificationType, Priority

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from typing import Any

    from notifications.attendance import AttendanceNotifier
    from notifications.directory import DirectoryLookup
    from notifications.services import CreatedNotification, NotificationOrchestrator

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Every event this service reacts to."""

    # ticket-service
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    TICKET_ASSIGNED = "ticket_assigned"
    TICKET_STATUS_CHANGED = "ticket_status_changed"
    TICKET_FEEDBACK = "ticket_feedback"
    MESSAGE_SENT = "message_sent"

    # frappe
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    ROLE_CHANGED = "role_changed"
    DEPARTMENT_CHANGED = "department_changed"

    # broadcast
    SYSTEM_MAINTENANCE = "system_maintenance"
    EMERGENCY_NOTIFICATION = "emergency_notification"
    SERVICE_STATUS = "service_status"

    # attendance-service
    ATTENDANCE_RECORDED = "attendance_recorded"
    STAFF_ATTENDANCE = "staff_attendance"
    STUDENT_ATTENDANCE = "student_attendance"


TICKET_STATUS_MESSAGES = {
    "Processing": "đang được xử lý",
    "Done": "đã hoàn thành",
    "Closed": "đã đóng",
    "Cancelled": "đã bị hủy",
}


@dataclass(frozen=True)
class ServiceEvent:
    channel: str
    service: str
    event: EventType
    data: dict = field(default_factory=dict)
    timestamp: str | None = None


def parse_event(channel: str, raw: Any) -> ServiceEvent:
    """
    Parse one pub/sub message.

    Raises:
        ValidationError: If the message is not JSON, has no event name, or
            names an event this service does not know
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        message = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        raise ValidationError(
            "Event is not valid JSON",
            error_code="INVALID_EVENT",
            details={"channel": channel, "error": str(e)},
        ) from e
    if not isinstance(message, dict):
        raise ValidationError(
            "Event must be a JSON object",
            error_code="INVALID_EVENT",
            details={"channel": channel},
        )

    name = message.get("event") or message.get("type")
    try:
        event_type = EventType(name)
    except ValueError:
        raise ValidationError(
            f"Unknown event {name!r}",
            error_code="UNKNOWN_EVENT",
            details={"channel": channel, "service": message.get("service")},
        )

    data = message.get("data")
    return ServiceEvent(
        channel=channel,
        service=str(message.get("service") or channel),
        event=event_type,
        data=data if isinstance(data, dict) else {},
        timestamp=message.get("timestamp"),
    )


class EventSubscription:
    """
    Iterator of ServiceEvent values from Redis pub/sub channels.

    Args:
        channels: Channels to subscribe to
        alias: django-redis cache alias whose connection is used
    """

    def __init__(self, channels: list[str], alias: str = "default"):
        self.channels = list(channels)
        self.alias = alias
        self._pubsub = None

    def __iter__(self) -> Iterator[ServiceEvent]:
        self._pubsub = get_redis_connection(self.alias).pubsub(
            ignore_subscribe_messages=True
        )
        self._pubsub.subscribe(*self.channels)
        logger.info(f"Subscribed to channels: {', '.join(self.channels)}")
        for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            channel = message.get("channel")
            if isinstance(channel, bytes):
                channel = channel.decode()
            try:
                yield parse_event(channel, message.get("data"))
            except ValidationError as e:
                logger.warning(f"Skipping message on {channel}: {e}")

    def close(self) -> None:
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None


class EventRouter(BaseService):
    """
    Closed dispatch table from EventType to notification builders.

    Args:
        orchestrator: Creates notifications
        attendance: Handles attendance events
        directory: Expands named audiences ("all", "admin")
    """

    def __init__(
        self,
        orchestrator: NotificationOrchestrator,
        attendance: AttendanceNotifier,
        directory: DirectoryLookup,
    ):
        self.orchestrator = orchestrator
        self.attendance = attendance
        self.directory = directory
        self.logger = self.get_logger()
        self.handlers: dict[EventType, Callable[[ServiceEvent], CreatedNotification | None]] = {
            EventType.TICKET_CREATED: self.ticket_created,
            EventType.TICKET_UPDATED: self.ticket_updated,
            EventType.TICKET_ASSIGNED: self.ticket_assigned,
            EventType.TICKET_STATUS_CHANGED: self.ticket_status_changed,
            EventType.TICKET_FEEDBACK: self.ticket_feedback,
            EventType.MESSAGE_SENT: self.message_sent,
            EventType.USER_CREATED: self.user_created,
            EventType.USER_UPDATED: self.user_updated,
            EventType.USER_DELETED: self.user_deleted,
            EventType.ROLE_CHANGED: self.role_changed,
            EventType.DEPARTMENT_CHANGED: self.department_changed,
            EventType.SYSTEM_MAINTENANCE: self.system_maintenance,
            EventType.EMERGENCY_NOTIFICATION: self.emergency_notification,
            EventType.SERVICE_STATUS: self.service_status,
            EventType.ATTENDANCE_RECORDED: self.attendance_recorded,
            EventType.STAFF_ATTENDANCE: self.staff_attendance,
            EventType.STUDENT_ATTENDANCE: self.student_attendance,
        }
        missing = set(EventType) - set(self.handlers)
        if missing:
            raise RuntimeError(f"No handler for events: {sorted(e.value for e in missing)}")

    def dispatch(self, event: ServiceEvent) -> ServiceResult[CreatedNotification]:
        """
        Handle one event.

        Returns:
            Success with the created notification; failure with error_code
            SKIPPED or DEDUP_SUPPRESSED for deliberate no-ops, or the
            error's code when handling failed
        """
        self.logger.info(
            f"Received {event.event.value} from {event.service} on {event.channel}"
        )
        handler = self.handlers[event.event]
        try:
            created = handler(event)
        except DedupSuppressed as e:
            self.logger.info(f"Suppressed {event.event.value}: {e.message}")
            return ServiceResult.from_exception(e)
        except ValidationError as e:
            self.logger.warning(f"Rejected {event.event.value}: {e}")
            return ServiceResult.from_exception(e)
        except BaseApplicationError as e:
            self.logger.error(f"Failed to handle {event.event.value}: {e}")
            return ServiceResult.from_exception(e)

        if created is None:
            return ServiceResult.failure(
                f"{event.event.value} produced no notification", error_code="SKIPPED"
            )
        return ServiceResult.success(created)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def recipients(self, value: Any, default_audience: str | None = None) -> list[str]:
        """Expand a recipients value: a list, a JSON list, or an audience name."""
        if value in (None, "", []) and default_audience:
            value = default_audience
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    value = json.loads(stripped)
                except json.JSONDecodeError:
                    value = [stripped]
            else:
                return list(self.directory.audience(stripped))
        if not isinstance(value, list):
            return []
        return [str(r) for r in value if r not in (None, "")]

    def send(
        self,
        event: ServiceEvent,
        title: Any,
        message: Any,
        recipients: list[str],
        notification_type: str,
        priority: str,
        data: dict,
    ) -> CreatedNotification | None:
        if not recipients:
            self.logger.info(f"No recipients for {event.event.value}, skipping")
            return None
        return self.orchestrator.create_notification(
            {
                "title": title,
                "message": message,
                "recipients": recipients,
                "type": notification_type,
                "priority": priority,
                "data": {**data, "event": event.event.value},
            },
            created_by=event.service,
        )

    # ------------------------------------------------------------------
    # ticket-service
    # ------------------------------------------------------------------

    def ticket_created(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Ticket mới được tạo",
            f"Ticket #{d.get('ticketCode')} đã được tạo bởi {d.get('creatorName')}",
            self.recipients(d.get("adminUsers"), "admin"),
            NotificationType.TICKET,
            Priority.HIGH,
            {
                "ticketId": d.get("ticketId"),
                "ticketCode": d.get("ticketCode"),
                "creatorId": d.get("creatorId"),
            },
        )

    def ticket_updated(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Ticket đã được cập nhật",
            f"Ticket #{d.get('ticketCode')} đã được cập nhật",
            self.recipients(d.get("recipients")),
            NotificationType.TICKET,
            Priority.MEDIUM,
            {
                "ticketId": d.get("ticketId"),
                "ticketCode": d.get("ticketCode"),
                "changes": d.get("changes"),
            },
        )

    def ticket_assigned(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Ticket đã được gán",
            f"Ticket #{d.get('ticketCode')} đã được gán cho {d.get('assignedToName')}",
            self.recipients([d.get("assignedToId")]),
            NotificationType.TICKET,
            Priority.HIGH,
            {
                "ticketId": d.get("ticketId"),
                "ticketCode": d.get("ticketCode"),
                "assignedToId": d.get("assignedToId"),
            },
        )

    def ticket_status_changed(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        new_status = d.get("newStatus")
        status_message = TICKET_STATUS_MESSAGES.get(new_status, new_status)
        return self.send(
            event,
            "Trạng thái ticket đã thay đổi",
            f"Ticket #{d.get('ticketCode')} {status_message}",
            self.recipients(d.get("recipients")),
            NotificationType.TICKET,
            Priority.MEDIUM,
            {
                "ticketId": d.get("ticketId"),
                "ticketCode": d.get("ticketCode"),
                "oldStatus": d.get("oldStatus"),
                "newStatus": new_status,
            },
        )

    def ticket_feedback(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Ticket đã nhận đánh giá",
            f"Ticket #{d.get('ticketCode')} đã được đánh giá {d.get('rating')}/5 sao",
            self.recipients(d.get("recipients")),
            NotificationType.TICKET,
            Priority.MEDIUM,
            {
                "ticketId": d.get("ticketId"),
                "ticketCode": d.get("ticketCode"),
                "rating": d.get("rating"),
                "feedback": d.get("feedback"),
            },
        )

    def message_sent(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Tin nhắn mới trong ticket",
            f"Có tin nhắn mới trong ticket #{d.get('ticketCode')}",
            self.recipients(d.get("recipients")),
            NotificationType.CHAT,
            Priority.LOW,
            {
                "ticketId": d.get("ticketId"),
                "ticketCode": d.get("ticketCode"),
                "messageId": d.get("messageId"),
                "senderId": d.get("senderId"),
            },
        )

    # ------------------------------------------------------------------
    # frappe
    # ------------------------------------------------------------------

    def user_created(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Chào mừng bạn đến với hệ thống",
            f"Chào mừng {d.get('fullName')} đến với hệ thống Wellspring",
            self.recipients([d.get("userId")]),
            NotificationType.SYSTEM,
            Priority.LOW,
            {"userId": d.get("userId"), "fullName": d.get("fullName")},
        )

    def user_updated(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Thông tin tài khoản đã được cập nhật",
            "Thông tin tài khoản của bạn đã được cập nhật",
            self.recipients([d.get("userId")]),
            NotificationType.SYSTEM,
            Priority.LOW,
            {"userId": d.get("userId"), "updatedFields": d.get("updatedFields")},
        )

    def user_deleted(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Người dùng đã bị xóa",
            f"Người dùng {d.get('fullName')} đã bị xóa khỏi hệ thống",
            self.recipients(d.get("adminUsers"), "admin"),
            NotificationType.SYSTEM,
            Priority.MEDIUM,
            {"userId": d.get("userId"), "fullName": d.get("fullName")},
        )

    def role_changed(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Vai trò đã được thay đổi",
            f"Vai trò của bạn đã được thay đổi thành {d.get('newRole')}",
            self.recipients([d.get("userId")]),
            NotificationType.SYSTEM,
            Priority.MEDIUM,
            {
                "userId": d.get("userId"),
                "oldRole": d.get("oldRole"),
                "newRole": d.get("newRole"),
            },
        )

    def department_changed(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Phòng ban đã được thay đổi",
            f"Bạn đã được chuyển đến phòng ban {d.get('newDepartment')}",
            self.recipients([d.get("userId")]),
            NotificationType.SYSTEM,
            Priority.MEDIUM,
            {
                "userId": d.get("userId"),
                "oldDepartment": d.get("oldDepartment"),
                "newDepartment": d.get("newDepartment"),
            },
        )

    # ------------------------------------------------------------------
    # broadcast
    # ------------------------------------------------------------------

    def system_maintenance(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Bảo trì hệ thống",
            d.get("message") or "Hệ thống sẽ bảo trì trong thời gian sắp tới",
            self.recipients(d.get("recipients"), "all"),
            NotificationType.SYSTEM,
            Priority.HIGH,
            {"maintenanceTime": d.get("maintenanceTime"), "duration": d.get("duration")},
        )

    def emergency_notification(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Thông báo khẩn cấp",
            d.get("message"),
            self.recipients(d.get("recipients"), "all"),
            NotificationType.SYSTEM,
            Priority.URGENT,
            {
                "emergencyType": d.get("emergencyType"),
                "actionRequired": d.get("actionRequired"),
            },
        )

    def service_status(self, event: ServiceEvent) -> CreatedNotification | None:
        d = event.data
        return self.send(
            event,
            "Trạng thái dịch vụ",
            f"Dịch vụ {d.get('service')} {d.get('status')}",
            self.recipients(d.get("recipients"), "admin"),
            NotificationType.SYSTEM,
            Priority.MEDIUM,
            {
                "service": d.get("service"),
                "status": d.get("status"),
                "details": d.get("details"),
            },
        )

    # ------------------------------------------------------------------
    # attendance-service
    # ------------------------------------------------------------------

    def attendance_recorded(self, event: ServiceEvent) -> CreatedNotification | None:
        if self.attendance.is_student(event.data):
            return self.attendance.notify_student(event.data)
        return self.attendance.notify_staff(event.data)

    def staff_attendance(self, event: ServiceEvent) -> CreatedNotification | None:
        return self.attendance.notify_staff(event.data)

    def student_attendance(self, event: ServiceEvent) -> CreatedNotification | None:
        return self.attendance.notify_student(event.data)
