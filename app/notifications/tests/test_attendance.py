"""
Tests for attendance notifications.

Times are given in UTC+7 (Asia/Ho_Chi_Minh), the readers' timezone.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from core.exceptions import DedupSuppressed, StoreUnavailable, ValidationError
from notifications.attendance import (
    DEFAULT_LOCATION,
    format_local_time,
    is_lunch_break,
    localized_location,
    parse_device_location,
    time_window,
)
from notifications.models import Notification

HCM = ZoneInfo("Asia/Ho_Chi_Minh")


def local(hour, minute=0):
    return datetime(2025, 1, 15, hour, minute, tzinfo=HCM)


class TestHelpers:
    @pytest.mark.parametrize(
        "hour, minute, expected",
        [
            (11, 59, "check-in"),
            (12, 0, "lunch"),
            (12, 59, "lunch"),
            (13, 0, "lunch"),
            (13, 1, "check-out"),
            (17, 30, "check-out"),
        ],
    )
    def test_time_window(self, hour, minute, expected):
        assert time_window(local(hour, minute)) == expected

    def test_is_lunch_break(self):
        assert is_lunch_break(local(12, 30)) is True
        assert is_lunch_break(local(8, 0)) is False

    def test_format_local_time(self):
        assert format_local_time(local(7, 5)) == "07:05 15/01"

    def test_parse_device_location_with_action(self):
        assert parse_device_location("Gate 2 - Check In") == ("Gate 2", "Check In")

    def test_parse_device_location_without_action(self):
        assert parse_device_location("Cổng 5") == ("Cổng 5", None)

    def test_parse_device_location_missing(self):
        assert parse_device_location(None) == (DEFAULT_LOCATION, None)

    def test_localized_location_from_english(self):
        assert localized_location("Main Gate") == {"vi": "Cổng chính", "en": "Main Gate"}

    def test_localized_location_from_vietnamese(self):
        assert localized_location("Cổng sau") == {"vi": "Cổng sau", "en": "Back Gate"}

    def test_localized_location_case_insensitive(self):
        assert localized_location("gate 5")["vi"] == "Cổng 5"

    def test_unknown_location_passes_through(self):
        assert localized_location("Library") == {"vi": "Library", "en": "Library"}


@pytest.mark.django_db
class TestStaffAttendance:
    def event(self, hour, minute=0, **overrides):
        data = {
            "employeeCode": "EMP001",
            "employeeName": "Trần Thị Bình",
            "timestamp": local(hour, minute).isoformat(),
            "deviceName": "Main Gate",
        }
        data.update(overrides)
        return data

    def test_first_event_of_day_is_check_in(self, attendance):
        created = attendance.notify_staff(self.event(7, 45))

        notification = Notification.objects.get(pk=created.notification_id)
        assert notification.recipients == ["EMP001"]
        assert notification.notification_type == "attendance"
        assert notification.message["en"] == "Check-in at 07:45 15/01 at Main Gate"
        assert notification.data["isFirstOfDay"] is True
        assert notification.data["timeWindow"] == "check-in"

    def test_later_events_are_faceid_records(self, attendance):
        attendance.notify_staff(self.event(7, 45))

        created = attendance.notify_staff(self.event(17, 10))

        notification = Notification.objects.get(pk=created.notification_id)
        assert notification.message["vi"] == "FaceID ghi nhận lúc 17:10 15/01 tại Main Gate"
        assert notification.data["isFirstOfDay"] is False
        assert notification.data["timeWindow"] == "check-out"

    def test_lunch_break_is_skipped(self, attendance):
        assert attendance.notify_staff(self.event(12, 30)) is None
        assert Notification.objects.count() == 0

    def test_lunch_does_not_consume_first_of_day(self, attendance):
        attendance.notify_staff(self.event(12, 30))

        created = attendance.notify_staff(self.event(13, 5))

        notification = Notification.objects.get(pk=created.notification_id)
        assert notification.data["isFirstOfDay"] is True

    def test_unknown_device(self, attendance):
        created = attendance.notify_staff(self.event(8, deviceName=None))

        notification = Notification.objects.get(pk=created.notification_id)
        assert notification.message["en"].endswith("at Unknown Device")

    def test_missing_employee_code(self, attendance):
        with pytest.raises(ValidationError) as exc_info:
            attendance.notify_staff({"timestamp": local(8).isoformat()})

        assert exc_info.value.error_code == "INVALID_EVENT"

    def test_store_outage_leaves_check_in_unclaimed(self, attendance, mocker):
        mocker.patch.object(
            attendance.orchestrator,
            "create_notification",
            side_effect=StoreUnavailable("Notification store unavailable"),
        )
        with pytest.raises(StoreUnavailable):
            attendance.notify_staff(self.event(7, 45))
        mocker.stopall()

        created = attendance.notify_staff(self.event(7, 50))

        notification = Notification.objects.get(pk=created.notification_id)
        assert notification.message["en"] == "Check-in at 07:50 15/01 at Main Gate"
        assert notification.data["isFirstOfDay"] is True


@pytest.mark.django_db
class TestStudentAttendance:
    def event(self, hour=7, minute=30, **overrides):
        data = {
            "employeeCode": "WS12310116",
            "timestamp": local(hour, minute).isoformat(),
            "deviceName": "Gate 2 - Check In",
        }
        data.update(overrides)
        return data

    def test_notifies_guardians(self, attendance):
        created = attendance.notify_student(self.event())

        notification = Notification.objects.get(pk=created.notification_id)
        assert notification.recipients == ["parent01", "parent02"]
        assert notification.priority == "high"
        assert notification.message == {
            "vi": "Nguyễn Văn An đã qua Cổng 2 vào 07:30 15/01",
            "en": "Nguyễn Văn An passed Gate 2 at 07:30 15/01",
        }
        assert notification.data["student_id"] == "STU-001"
        assert notification.data["action"] == "Check In"
        assert notification.data["location"] == {"vi": "Cổng 2", "en": "Gate 2"}

    def test_second_tap_is_suppressed(self, attendance):
        attendance.notify_student(self.event(7, 30))

        with pytest.raises(DedupSuppressed):
            attendance.notify_student(self.event(7, 31))

        assert Notification.objects.count() == 1

    def test_unknown_student(self, attendance):
        assert attendance.notify_student(self.event(employeeCode="WS000")) is None
        assert Notification.objects.count() == 0

    def test_is_student(self, attendance):
        assert attendance.is_student({"employeeCode": "WS12310116"}) is True
        assert attendance.is_student({"employeeCode": "EMP001"}) is False
