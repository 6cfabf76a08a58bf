"""
Attendance notifications from biometric gate readers.

Staff:
    - Events during lunch (12:00 through 13:00 local) are skipped
    - The first event of the local day says "Check-in", later ones say
      "FaceID recorded" (CalendarDayPolicy). The day marker is released
      again when the check-in notification cannot be stored
    - Sent to the employee

Students:
    - Repeated taps within the window are suppressed (SlidingWindowPolicy,
      raises DedupSuppressed)
    - Sent to every guardian of the student, in Vietnamese and English,
      with the gate name translated

Usage:
    notifier = AttendanceNotifier(orchestrator, DedupGuard(), DirectoryLookup())
    notifier.notify_staff({"employeeCode": "EMP001", "timestamp": "...", "deviceName": "Gate 2"})
"""

from __future__ import annotations

from datetime import datetime, time
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from django.utils import timezone

from core.exceptions import StoreUnavailable, ValidationError
from core.services import BaseService
from notifications.dedup import CalendarDayPolicy, SlidingWindowPolicy
from notifications.models import NotificationType, Priority
from notifications.services import parse_event_time

if TYPE_CHECKING:
    from notifications.dedup import DedupGuard
    from notifications.directory import DirectoryLookup
    from notifications.services import CreatedNotification, NotificationOrchestrator

STAFF_POLICY_NAMESPACE = "staff_attendance"
STUDENT_POLICY_NAMESPACE = "attendance_notif"

DEFAULT_LOCATION = "cổng trường"
UNKNOWN_DEVICE = "Unknown Device"

LOCATION_TRANSLATIONS = {
    "Gate 2": {"vi": "Cổng 2", "en": "Gate 2"},
    "Gate 5": {"vi": "Cổng 5", "en": "Gate 5"},
    "Main Gate": {"vi": "Cổng chính", "en": "Main Gate"},
    "School Entrance": {"vi": "Lối vào trường", "en": "School Entrance"},
    "Front Gate": {"vi": "Cổng trước", "en": "Front Gate"},
    "Back Gate": {"vi": "Cổng sau", "en": "Back Gate"},
    "Cổng 2": {"vi": "Cổng 2", "en": "Gate 2"},
    "Cổng 5": {"vi": "Cổng 5", "en": "Gate 5"},
    "Cổng chính": {"vi": "Cổng chính", "en": "Main Gate"},
    "Lối vào trường": {"vi": "Lối vào trường", "en": "School Entrance"},
    "Cổng trước": {"vi": "Cổng trước", "en": "Front Gate"},
    "Cổng sau": {"vi": "Cổng sau", "en": "Back Gate"},
}


def localized_location(location: str) -> dict[str, str]:
    """Vietnamese and English names of a gate; unknown names pass through."""
    if location in LOCATION_TRANSLATIONS:
        return dict(LOCATION_TRANSLATIONS[location])
    lowered = location.lower()
    for name, translations in LOCATION_TRANSLATIONS.items():
        if name.lower() == lowered:
            return dict(translations)
    return {"vi": location, "en": location}


def parse_device_location(device_name: str | None) -> tuple[str, str | None]:
    """
    Split a reader name into (location, action).

    "Gate 2 - Check In" -> ("Gate 2", "Check In")
    "Cổng 5" -> ("Cổng 5", None)
    """
    if not device_name:
        return DEFAULT_LOCATION, None
    parts = device_name.split(" - ")
    if len(parts) >= 2:
        return parts[0].strip(), parts[1].strip()
    return device_name, None


def is_lunch_break(local_time: datetime) -> bool:
    return local_time.hour == 12 or (local_time.hour == 13 and local_time.minute == 0)


def time_window(local_time: datetime) -> str:
    if is_lunch_break(local_time):
        return "lunch"
    return "check-in" if local_time.time() < time(12) else "check-out"


def format_local_time(local_time: datetime) -> str:
    return local_time.strftime("%H:%M %d/%m")


class AttendanceNotifier(BaseService):
    """
    Turns attendance events into notifications.

    Args:
        orchestrator: Creates the notifications
        guard: Dedup guard for both policies
        directory: Resolves employee and student codes
        tz: Local timezone of the readers
        student_window_seconds: Burst window for student taps
    """

    def __init__(
        self,
        orchestrator: NotificationOrchestrator,
        guard: DedupGuard,
        directory: DirectoryLookup,
        tz: str = "Asia/Ho_Chi_Minh",
        student_window_seconds: int = 300,
    ):
        self.orchestrator = orchestrator
        self.guard = guard
        self.directory = directory
        self.tz = tz
        self.staff_policy = CalendarDayPolicy(STAFF_POLICY_NAMESPACE, tz)
        self.student_policy = SlidingWindowPolicy(
            STUDENT_POLICY_NAMESPACE, student_window_seconds
        )
        self.logger = self.get_logger()

    def _event_time(self, data: dict) -> datetime:
        return parse_event_time(data.get("timestamp")) or timezone.now()

    @staticmethod
    def _code(data: dict) -> str:
        code = str(data.get("employeeCode") or "").strip()
        if not code:
            raise ValidationError(
                "Attendance event has no employeeCode",
                error_code="INVALID_EVENT",
            )
        return code

    def is_student(self, data: dict) -> bool:
        return self.directory.find_student(self._code(data)) is not None

    # ------------------------------------------------------------------
    # Staff
    # ------------------------------------------------------------------

    def notify_staff(self, data: dict) -> CreatedNotification | None:
        """
        Notify an employee of their own attendance record.

        Returns:
            The created notification, or None during lunch
        """
        code = self._code(data)
        at = self._event_time(data)
        local = at.astimezone(ZoneInfo(self.tz))
        window = time_window(local)

        if window == "lunch":
            self.logger.info(f"Skipping lunch break attendance notification for {code}")
            return None

        first_of_day = self.guard.should_proceed(code, self.staff_policy, at)
        user_id = self.directory.resolve_user_id(code)
        device = data.get("deviceName") or UNKNOWN_DEVICE
        when = format_local_time(local)

        if first_of_day:
            message = {
                "vi": f"Check-in lúc {when} tại {device}",
                "en": f"Check-in at {when} at {device}",
            }
        else:
            message = {
                "vi": f"FaceID ghi nhận lúc {when} tại {device}",
                "en": f"FaceID recorded at {when} at {device}",
            }

        payload = {
            "title": {"vi": "Chấm công", "en": "Attendance"},
            "message": message,
            "recipients": [user_id],
            "type": NotificationType.ATTENDANCE,
            "priority": Priority.MEDIUM,
            "data": {
                "employeeCode": code,
                "employeeName": data.get("employeeName"),
                "timestamp": data.get("timestamp") or at.isoformat(),
                "deviceName": data.get("deviceName"),
                "timeWindow": window,
                "isFirstOfDay": first_of_day,
                "type": "staff_attendance",
            },
        }
        try:
            created = self.orchestrator.create_notification(
                payload, created_by="attendance-service"
            )
        except StoreUnavailable:
            # Nothing was stored, so the day's check-in is still unclaimed
            if first_of_day:
                self.guard.release(code, self.staff_policy, at)
            raise
        self.logger.info(
            f"Sent {'check-in' if first_of_day else 'subsequent'} attendance "
            f"notification to {code} (user {user_id})"
        )
        return created

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def notify_student(self, data: dict) -> CreatedNotification | None:
        """
        Notify a student's guardians that the student passed a gate.

        Returns:
            The created notification, or None when the student or their
            guardians are unknown

        Raises:
            DedupSuppressed: If the student tapped within the window
        """
        code = self._code(data)
        at = self._event_time(data)
        self.guard.check(code, self.student_policy, at)

        student = self.directory.find_student(code)
        if student is None:
            self.logger.info(f"No student found with code {code}")
            return None

        recipients = self.directory.guardians(student)
        if not recipients:
            self.logger.info(f"No guardians found for student {student.code}")
            return None

        device_name = data.get("deviceName")
        location, action = parse_device_location(device_name)
        gate = localized_location(location)
        when = format_local_time(at.astimezone(ZoneInfo(self.tz)))

        created = self.orchestrator.create_notification(
            {
                "title": {"vi": "Điểm danh", "en": "Attendance"},
                "message": {
                    "vi": f"{student.name} đã qua {gate['vi']} vào {when}",
                    "en": f"{student.name} passed {gate['en']} at {when}",
                },
                "recipients": recipients,
                "type": NotificationType.ATTENDANCE,
                "priority": Priority.HIGH,
                "data": {
                    "student_id": student.student_id,
                    "studentCode": student.code,
                    "studentName": student.name,
                    "time": when,
                    "location": gate,
                    "action": action,
                    "timestamp": data.get("timestamp") or at.isoformat(),
                    "deviceName": device_name,
                    "checkInTime": data.get("checkInTime"),
                    "checkOutTime": data.get("checkOutTime"),
                    "notificationType": "student_attendance",
                },
            },
            created_by="attendance-service",
        )
        self.logger.info(
            f"Sent student attendance notification for {student.code} "
            f"to {len(recipients)} guardians"
        )
        return created
