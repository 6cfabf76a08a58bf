"""
API tests for notification endpoints.

Tests verify HTTP behavior, serialization, authentication, permissions
and feed cache invalidation.

Test Classes:
    TestNotificationList: GET /api/v1/notifications/
    TestNotificationDetail: GET/DELETE /api/v1/notifications/{id}/
    TestUnreadCount: GET /api/v1/notifications/unread-count/
    TestMarkRead: POST /api/v1/notifications/{id}/read/ and read-all/
    TestDeleteAll: POST /api/v1/notifications/delete-all/
    TestStats: GET /api/v1/notifications/stats/
    TestCreate: POST /api/v1/notifications/ (staff)
    TestDeliveryInspection: delivery-status/ and analytics/ (staff)
"""

import uuid

import pytest
from django.urls import reverse
from rest_framework import status

from notifications.container import get_container
from notifications.models import Notification, NotificationRecipient
from notifications.tests.factories import NotificationFactory, NotificationRecipientFactory


def deliver(recipient_id="alice", **kwargs):
    """A notification with a tracker row for ``recipient_id``."""
    notification = NotificationFactory(recipients=[recipient_id], **kwargs)
    NotificationRecipientFactory(notification=notification, recipient_id=recipient_id)
    return notification


def detail_url(name, notification):
    return reverse(f"notifications:notification-{name}", kwargs={"pk": notification.pk})


class TestNotificationList:
    def test_requires_authentication(self, db, api_client):
        response = api_client.get(reverse("notifications:notification-list"))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_returns_own_feed(self, authenticated_client, user):
        mine = deliver("alice", title={"vi": "Xin chào", "en": "Hello"})
        deliver("bob")

        response = authenticated_client.get(reverse("notifications:notification-list"))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["results"]) == 1
        item = response.data["results"][0]
        assert item["id"] == str(mine.pk)
        assert item["title"] == {"vi": "Xin chào", "en": "Hello"}
        assert item["delivery_status"] == "sent"
        assert item["is_read"] is False
        assert response.data["pagination"]["total"] == 1
        assert response.data["unread_count"] == 1

    def test_pagination_params(self, authenticated_client, user):
        for _ in range(3):
            deliver("alice")

        response = authenticated_client.get(
            reverse("notifications:notification-list"), {"page": 2, "page_size": 2}
        )

        assert len(response.data["results"]) == 1
        assert response.data["pagination"]["page"] == 2
        assert response.data["pagination"]["has_previous"] is True

    def test_feed_is_cached_until_mutation(self, authenticated_client, user):
        first = deliver("alice")
        url = reverse("notifications:notification-list")
        authenticated_client.get(url)

        # Written behind the API's back, so no invalidation happens
        deliver("alice")
        cached = authenticated_client.get(url)

        assert len(cached.data["results"]) == 1
        assert cached.data["unread_count"] == 1

        authenticated_client.post(detail_url("read", first))
        fresh = authenticated_client.get(url)

        assert len(fresh.data["results"]) == 2
        assert fresh.data["unread_count"] == 1

    def test_read_during_feed_load_is_not_cached(self, authenticated_client, user, mocker):
        notification = deliver("alice")
        container = get_container()
        real_feed = container.tracker.feed

        def feed_then_mark_read(*args, **kwargs):
            result = real_feed(*args, **kwargs)
            # Another request marks the row read after the feed was loaded
            container.tracker.mark_read(notification.pk, "alice")
            container.cache.invalidate("alice")
            return result

        mocker.patch.object(container.tracker, "feed", side_effect=feed_then_mark_read)
        url = reverse("notifications:notification-list")

        first = authenticated_client.get(url)
        second = authenticated_client.get(url)

        assert first.data["results"][0]["is_read"] is False
        assert second.data["results"][0]["is_read"] is True


class TestNotificationDetail:
    def test_retrieve_own(self, authenticated_client, user):
        notification = deliver("alice")

        response = authenticated_client.get(detail_url("detail", notification))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(notification.pk)

    def test_retrieve_other_users(self, authenticated_client, user):
        notification = deliver("bob")

        response = authenticated_client.get(detail_url("detail", notification))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "NOTIFICATION_NOT_FOUND"

    def test_delete_hides_from_feed(self, authenticated_client, user):
        notification = deliver("alice")

        response = authenticated_client.delete(detail_url("detail", notification))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        feed = authenticated_client.get(reverse("notifications:notification-list"))
        assert feed.data["results"] == []
        assert NotificationRecipient.all_objects.get(notification=notification).is_deleted

    def test_delete_twice(self, authenticated_client, user):
        notification = deliver("alice")
        authenticated_client.delete(detail_url("detail", notification))

        response = authenticated_client.delete(detail_url("detail", notification))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestUnreadCount:
    def test_unread_count(self, authenticated_client, user):
        deliver("alice")
        deliver("alice")
        NotificationRecipientFactory(recipient_id="alice", is_read=True)

        response = authenticated_client.get(reverse("notifications:notification-unread-count"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"unread_count": 2}


class TestMarkRead:
    def test_mark_read(self, authenticated_client, user):
        notification = deliver("alice")
        count_url = reverse("notifications:notification-unread-count")
        assert authenticated_client.get(count_url).data["unread_count"] == 1

        response = authenticated_client.post(detail_url("read", notification))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["is_read"] is True
        assert response.data["read_at"] is not None
        assert authenticated_client.get(count_url).data["unread_count"] == 0

    def test_mark_read_is_idempotent(self, authenticated_client, user):
        notification = deliver("alice")
        first = authenticated_client.post(detail_url("read", notification))

        second = authenticated_client.post(detail_url("read", notification))

        assert second.status_code == status.HTTP_200_OK
        assert second.data["read_at"] == first.data["read_at"]

    def test_mark_read_unknown(self, authenticated_client, user):
        url = reverse("notifications:notification-read", kwargs={"pk": uuid.uuid4()})

        response = authenticated_client.post(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_read_all(self, authenticated_client, user):
        for _ in range(3):
            deliver("alice")
        deliver("bob")

        response = authenticated_client.post(reverse("notifications:notification-read-all"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"marked_count": 3}
        assert NotificationRecipient.objects.filter(recipient_id="bob", is_read=False).count() == 1


class TestDeleteAll:
    def test_delete_all(self, authenticated_client, user):
        deliver("alice")
        deliver("alice")

        response = authenticated_client.post(reverse("notifications:notification-delete-all"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data == {"deleted_count": 2}
        count = authenticated_client.get(reverse("notifications:notification-unread-count"))
        assert count.data["unread_count"] == 0


class TestStats:
    def test_stats(self, authenticated_client, user):
        deliver("alice")
        NotificationRecipientFactory(recipient_id="alice", is_read=True)

        response = authenticated_client.get(reverse("notifications:notification-stats"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total"] == 2
        assert response.data["read"] == 1
        assert response.data["read_rate"] == 50.0

    def test_invalid_range(self, authenticated_client, user):
        response = authenticated_client.get(
            reverse("notifications:notification-stats"),
            {"start_date": "2025-02-01T00:00:00Z", "end_date": "2025-01-01T00:00:00Z"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestCreate:
    @pytest.fixture
    def body(self):
        return {
            "title": {"vi": "Thông báo", "en": "Notice"},
            "message": "School closes early today",
            "recipients": ["alice", "bob"],
            "type": "system",
            "priority": "high",
        }

    def test_regular_user_forbidden(self, authenticated_client, body):
        response = authenticated_client.post(
            reverse("notifications:notification-list"), body, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert Notification.objects.count() == 0

    def test_staff_creates(self, staff_client, body):
        response = staff_client.post(
            reverse("notifications:notification-list"), body, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["recipients"] == 2
        notification = Notification.objects.get(pk=response.data["notification_id"])
        assert notification.created_by == "ops"
        assert NotificationRecipient.objects.filter(notification=notification).count() == 2

    def test_invalid_payload(self, staff_client, body):
        body["recipients"] = []

        response = staff_client.post(
            reverse("notifications:notification-list"), body, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_NOTIFICATION"
        assert "recipients" in response.data["details"]

    def test_new_notification_shows_in_recipient_feed(
        self, staff_client, authenticated_client, body
    ):
        url = reverse("notifications:notification-list")
        assert authenticated_client.get(url).data["unread_count"] == 0

        staff_client.post(url, body, format="json")

        assert authenticated_client.get(url).data["unread_count"] == 1


class TestDeliveryInspection:
    def test_delivery_status(self, staff_client):
        notification = NotificationFactory(recipients=["alice", "bob"])
        NotificationRecipientFactory(
            notification=notification,
            recipient_id="alice",
            delivery_status="failed",
            failure_reason="No push tokens found",
        )
        NotificationRecipientFactory(notification=notification, recipient_id="bob")

        response = staff_client.get(detail_url("delivery-status", notification))

        assert response.status_code == status.HTTP_200_OK
        recipients = response.data["recipients"]
        assert recipients["alice"]["status"] == "failed"
        assert recipients["alice"]["failure_reason"] == "No push tokens found"
        assert recipients["bob"]["status"] == "sent"

    def test_delivery_status_forbidden_for_users(self, authenticated_client):
        notification = deliver("alice")

        response = authenticated_client.get(detail_url("delivery-status", notification))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_delivery_status_unknown(self, staff_client):
        url = reverse(
            "notifications:notification-delivery-status", kwargs={"pk": uuid.uuid4()}
        )

        assert staff_client.get(url).status_code == status.HTTP_404_NOT_FOUND

    def test_analytics(self, staff_client):
        notification = NotificationFactory(recipients=["alice", "bob"])
        NotificationRecipientFactory(notification=notification, recipient_id="alice", is_read=True)
        NotificationRecipientFactory(notification=notification, recipient_id="bob")

        response = staff_client.get(detail_url("analytics", notification))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total"] == 2
        assert response.data["read_rate"] == 50.0
        assert response.data["delivery_rate"] == 100.0
