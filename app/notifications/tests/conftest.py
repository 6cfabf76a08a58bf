"""
Test configuration and fixtures for notification tests.

This module provides:
- Users and authenticated API clients (regular and staff)
- Component fixtures (tracker, cache, guard) built directly, the same way
  the container builds them
- An orchestrator wired to a mocked dispatcher, so dispatch tests control
  every push outcome without network access
- A fake directory for attendance and audience tests

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get("/api/v1/notifications/")
        assert response.status_code == 200
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.tests.factories import UserFactory
from devices.registry import DeviceRegistry
from notifications.attendance import AttendanceNotifier
from notifications.cache import FeedCache
from notifications.dedup import DedupGuard
from notifications.directory import DirectoryLookup, Student
from notifications.dispatch import SUCCESS, DeliveryResult, Dispatcher
from notifications.events import EventRouter
from notifications.services import NotificationOrchestrator
from notifications.tracker import DeliveryTracker


class FakeDirectory(DirectoryLookup):
    """In-memory directory with one student and two audiences."""

    students = {
        "WS12310116": Student(student_id="STU-001", code="WS12310116", name="Nguyễn Văn An"),
    }
    guardian_map = {"WS12310116": ["parent01", "parent02"]}
    audiences = {"admin": ["admin01", "admin02"], "all": ["alice", "bob", "admin01"]}

    def find_student(self, student_code):
        return self.students.get(student_code)

    def guardians(self, student):
        return list(self.guardian_map.get(student.code, []))

    def audience(self, name):
        return list(self.audiences.get(name, []))


def all_succeed(tokens, title, body, payload=None):
    return [
        DeliveryResult(index, token, "expo", SUCCESS) for index, token in enumerate(tokens)
    ]


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Regular user; their username is their recipient id."""
    return UserFactory(username="alice")


@pytest.fixture
def other_user(db):
    return UserFactory(username="bob")


@pytest.fixture
def staff_user(db):
    return UserFactory(username="ops", is_staff=True)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def tracker():
    return DeliveryTracker()


@pytest.fixture
def feed_cache():
    return FeedCache(ttls={"notifications": 300, "unread": 60})


@pytest.fixture
def guard():
    return DedupGuard()


@pytest.fixture
def registry():
    return DeviceRegistry(stale_after=timedelta(days=30))


@pytest.fixture
def dispatcher():
    """Dispatcher double; every token succeeds unless a test overrides it."""
    mock = MagicMock(spec=Dispatcher)
    mock.send.side_effect = all_succeed
    return mock


@pytest.fixture
def enqueue():
    return MagicMock()


@pytest.fixture
def orchestrator(registry, dispatcher, tracker, feed_cache, enqueue):
    return NotificationOrchestrator(
        registry=registry,
        dispatcher=dispatcher,
        tracker=tracker,
        cache=feed_cache,
        default_language="vi",
        max_workers=4,
        enqueue=enqueue,
    )


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def attendance(orchestrator, guard, directory):
    return AttendanceNotifier(
        orchestrator=orchestrator,
        guard=guard,
        directory=directory,
        tz="Asia/Ho_Chi_Minh",
        student_window_seconds=300,
    )


@pytest.fixture
def router(orchestrator, attendance, directory):
    return EventRouter(orchestrator, attendance, directory)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with a JWT for the default user."""
    return _client_for(user)


@pytest.fixture
def staff_client(staff_user):
    return _client_for(staff_user)


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, other_user):
            client = authenticated_client_factory(other_user)
    """
    return _client_for
