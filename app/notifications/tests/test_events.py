"""
Tests for cross-service events.

Test Classes:
    TestParseEvent: Raw pub/sub payloads to ServiceEvent
    TestEventSubscription: Iteration over a mocked pub/sub connection
    TestEventRouter: Dispatch table, recipients and results
"""

import json
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from core.exceptions import ValidationError
from notifications.events import (
    EventSubscription,
    EventType,
    ServiceEvent,
    parse_event,
)
from notifications.models import Notification


def make_event(event_type, data=None, service="ticket-service"):
    return ServiceEvent(
        channel=service,
        service=service,
        event=event_type,
        data=data or {},
    )


class TestParseEvent:
    def test_event_key(self):
        raw = json.dumps(
            {
                "service": "ticket-service",
                "event": "ticket_created",
                "data": {"ticketCode": "T-1"},
                "timestamp": "2025-01-15T08:00:00Z",
            }
        )

        event = parse_event("ticket-service", raw)

        assert event.event is EventType.TICKET_CREATED
        assert event.service == "ticket-service"
        assert event.data == {"ticketCode": "T-1"}
        assert event.timestamp == "2025-01-15T08:00:00Z"

    def test_type_key_and_bytes(self):
        raw = json.dumps({"type": "user_created", "data": {"userId": "alice"}}).encode()

        event = parse_event("frappe", raw)

        assert event.event is EventType.USER_CREATED
        assert event.service == "frappe"

    def test_non_dict_data_becomes_empty(self):
        event = parse_event("x", json.dumps({"event": "service_status", "data": [1]}))

        assert event.data == {}

    def test_unknown_event(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_event("x", json.dumps({"event": "ticket_exploded"}))

        assert exc_info.value.error_code == "UNKNOWN_EVENT"

    def test_missing_event_name(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_event("x", json.dumps({"data": {}}))

        assert exc_info.value.error_code == "UNKNOWN_EVENT"

    def test_invalid_json(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_event("x", "{not json")

        assert exc_info.value.error_code == "INVALID_EVENT"

    def test_non_object(self):
        with pytest.raises(ValidationError):
            parse_event("x", "[1, 2]")


class TestEventSubscription:
    @pytest.fixture
    def pubsub(self, mocker):
        conn = mocker.MagicMock()
        mocker.patch("notifications.events.get_redis_connection", return_value=conn)
        return conn.pubsub.return_value

    def test_yields_parsed_events_and_skips_bad_ones(self, pubsub):
        pubsub.listen.return_value = iter(
            [
                {"type": "subscribe", "channel": b"ticket-service", "data": 1},
                {
                    "type": "message",
                    "channel": b"ticket-service",
                    "data": json.dumps({"event": "ticket_created", "data": {}}).encode(),
                },
                {"type": "message", "channel": b"ticket-service", "data": b"garbage"},
                {
                    "type": "message",
                    "channel": b"frappe",
                    "data": json.dumps({"type": "user_deleted", "data": {}}).encode(),
                },
            ]
        )
        subscription = EventSubscription(["ticket-service", "frappe"])

        events = list(subscription)

        pubsub.subscribe.assert_called_once_with("ticket-service", "frappe")
        assert [e.event for e in events] == [EventType.TICKET_CREATED, EventType.USER_DELETED]
        assert events[1].channel == "frappe"

    def test_close(self, pubsub):
        pubsub.listen.return_value = iter([])
        subscription = EventSubscription(["frappe"])
        list(subscription)

        subscription.close()

        pubsub.close.assert_called_once()

    def test_close_before_iteration_is_noop(self):
        EventSubscription(["frappe"]).close()


class TestEventRouterTable:
    def test_every_event_type_has_a_handler(self, router):
        assert set(router.handlers) == set(EventType)

    def test_recipients_list(self, router):
        assert router.recipients(["alice", None, "", "bob"]) == ["alice", "bob"]

    def test_recipients_json_string(self, router):
        assert router.recipients('["alice", "bob"]') == ["alice", "bob"]

    def test_recipients_audience_name(self, router):
        assert router.recipients("admin") == ["admin01", "admin02"]

    def test_recipients_default_audience(self, router):
        assert router.recipients(None, "all") == ["alice", "bob", "admin01"]

    def test_recipients_garbage(self, router):
        assert router.recipients(42) == []


@pytest.mark.django_db
class TestEventRouter:
    def notification(self, result):
        return Notification.objects.get(pk=result.data.notification_id)

    def test_ticket_created_goes_to_admins(self, router):
        result = router.dispatch(
            make_event(
                EventType.TICKET_CREATED,
                {"ticketId": "1", "ticketCode": "T-001", "creatorName": "An"},
            )
        )

        assert result.success is True
        notification = self.notification(result)
        assert notification.recipients == ["admin01", "admin02"]
        assert notification.message == "Ticket #T-001 đã được tạo bởi An"
        assert notification.priority == "high"
        assert notification.created_by == "ticket-service"
        assert notification.data["event"] == "ticket_created"

    def test_ticket_status_changed_translates_status(self, router):
        result = router.dispatch(
            make_event(
                EventType.TICKET_STATUS_CHANGED,
                {"ticketCode": "T-002", "newStatus": "Done", "recipients": ["alice"]},
            )
        )

        assert self.notification(result).message == "Ticket #T-002 đã hoàn thành"

    def test_ticket_assigned(self, router):
        result = router.dispatch(
            make_event(
                EventType.TICKET_ASSIGNED,
                {"ticketCode": "T-3", "assignedToId": "bob", "assignedToName": "Bob"},
            )
        )

        assert self.notification(result).recipients == ["bob"]

    def test_message_sent_is_chat(self, router):
        result = router.dispatch(
            make_event(EventType.MESSAGE_SENT, {"ticketCode": "T-4", "recipients": ["alice"]})
        )

        notification = self.notification(result)
        assert notification.notification_type == "chat"
        assert notification.priority == "low"

    def test_role_changed(self, router):
        result = router.dispatch(
            make_event(
                EventType.ROLE_CHANGED,
                {"userId": "alice", "newRole": "Manager"},
                service="frappe",
            )
        )

        assert self.notification(result).message == (
            "Vai trò của bạn đã được thay đổi thành Manager"
        )

    def test_emergency_is_urgent_broadcast(self, router):
        result = router.dispatch(
            make_event(
                EventType.EMERGENCY_NOTIFICATION,
                {"message": "Evacuate building B"},
                service="broadcast",
            )
        )

        notification = self.notification(result)
        assert notification.priority == "urgent"
        assert notification.recipients == ["alice", "bob", "admin01"]

    def test_maintenance_default_message(self, router):
        result = router.dispatch(make_event(EventType.SYSTEM_MAINTENANCE, {}, "broadcast"))

        assert self.notification(result).message == (
            "Hệ thống sẽ bảo trì trong thời gian sắp tới"
        )

    def test_no_recipients_is_skipped(self, router):
        result = router.dispatch(make_event(EventType.TICKET_UPDATED, {"ticketCode": "T-5"}))

        assert result.success is False
        assert result.error_code == "SKIPPED"
        assert Notification.objects.count() == 0

    def test_invalid_notification_is_reported(self, router):
        # Emergency without a message cannot be rendered
        result = router.dispatch(make_event(EventType.EMERGENCY_NOTIFICATION, {}, "broadcast"))

        assert result.success is False
        assert result.error_code == "INVALID_NOTIFICATION"

    def test_attendance_recorded_routes_students_to_guardians(self, router):
        at = datetime(2025, 1, 15, 7, 30, tzinfo=ZoneInfo("Asia/Ho_Chi_Minh"))
        result = router.dispatch(
            make_event(
                EventType.ATTENDANCE_RECORDED,
                {"employeeCode": "WS12310116", "timestamp": at.isoformat()},
                service="attendance-service",
            )
        )

        assert self.notification(result).recipients == ["parent01", "parent02"]

    def test_attendance_recorded_routes_staff_to_themselves(self, router):
        at = datetime(2025, 1, 15, 7, 30, tzinfo=ZoneInfo("Asia/Ho_Chi_Minh"))
        result = router.dispatch(
            make_event(
                EventType.ATTENDANCE_RECORDED,
                {"employeeCode": "EMP001", "timestamp": at.isoformat()},
                service="attendance-service",
            )
        )

        assert self.notification(result).recipients == ["EMP001"]

    def test_duplicate_student_tap_is_suppressed(self, router):
        event = make_event(
            EventType.STUDENT_ATTENDANCE,
            {"employeeCode": "WS12310116"},
            service="attendance-service",
        )
        router.dispatch(event)

        result = router.dispatch(event)

        assert result.success is False
        assert result.error_code == "DEDUP_SUPPRESSED"
        assert Notification.objects.count() == 1

    def test_staff_lunch_is_skipped(self, router):
        at = datetime(2025, 1, 15, 12, 15, tzinfo=ZoneInfo("Asia/Ho_Chi_Minh"))
        result = router.dispatch(
            make_event(
                EventType.STAFF_ATTENDANCE,
                {"employeeCode": "EMP001", "timestamp": at.isoformat()},
                service="attendance-service",
            )
        )

        assert result.error_code == "SKIPPED"

