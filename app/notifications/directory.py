"""
Directory lookups used by event handlers.

The directory (employee codes, students, guardians, audiences) lives in an
external system. This module defines the interface the notification
service needs and a default implementation that knows nothing beyond the
identity mapping. Deployments point NOTIFICATIONS_DIRECTORY_CLASS at their
own subclass.

Usage:
    from notifications.directory import load_directory

    directory = load_directory("notifications.directory.DirectoryLookup")
    user_id = directory.resolve_user_id("EMP001")
"""

from __future__ import annotations

from dataclasses import dataclass

from django.utils.module_loading import import_string


@dataclass(frozen=True)
class Student:
    """A student known to the directory."""

    student_id: str
    code: str
    name: str


class DirectoryLookup:
    """Identity directory: codes are user ids, nobody else is known."""

    def resolve_user_id(self, employee_code: str) -> str:
        """Map an employee code to the recipient id used by this service."""
        return employee_code

    def find_student(self, student_code: str) -> Student | None:
        return None

    def guardians(self, student: Student) -> list[str]:
        """Recipient ids of a student's guardians."""
        return []

    def audience(self, name: str) -> list[str]:
        """Recipient ids of a named audience such as "all" or "admin"."""
        return []


def load_directory(path: str) -> DirectoryLookup:
    return import_string(path)()
