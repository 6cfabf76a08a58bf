"""
Tests for notification Celery tasks.

Tasks are called directly (synchronously); the container is replaced
where a test needs to control the queue or the orchestrator.
"""

import pytest

from core.exceptions import NotFoundError, StoreUnavailable, ValidationError
from notifications.models import Notification
from notifications.services import DispatchSummary
from notifications.tasks import (
    dispatch_notification,
    drain_notification_queue,
    reconcile_notification_counters,
)
from notifications.tests.factories import NotificationFactory, NotificationRecipientFactory


@pytest.fixture
def container(mocker):
    container = mocker.MagicMock()
    mocker.patch("notifications.tasks.get_container", return_value=container)
    return container


class TestDispatchNotification:
    def test_returns_summary(self, container):
        container.orchestrator.dispatch.return_value = DispatchSummary(
            "n1", recipients=2, delivered=1, failed=1
        )

        result = dispatch_notification("n1")

        assert result["delivered"] == 1
        assert result["failed"] == 1
        container.orchestrator.dispatch.assert_called_once_with("n1")

    def test_missing_notification(self, container):
        container.orchestrator.dispatch.side_effect = NotFoundError("gone")

        assert dispatch_notification("n1") is None


@pytest.mark.django_db
class TestDrainNotificationQueue:
    def queued(self, title):
        return {"title": title, "message": "queued", "recipients": ["alice"]}

    def test_creates_until_empty(self, container, orchestrator):
        container.orchestrator = orchestrator
        container.queue.pop.side_effect = [self.queued("one"), self.queued("two"), None]

        stats = drain_notification_queue()

        assert stats == {"created": 2, "invalid": 0, "requeued": 0}
        assert set(Notification.objects.values_list("title", flat=True)) == {"one", "two"}

    def test_drops_malformed_and_invalid_items(self, container, orchestrator):
        container.orchestrator = orchestrator
        container.queue.pop.side_effect = [
            ValidationError("bad json", error_code="MALFORMED_QUEUE_ITEM"),
            {"title": "no recipients", "message": "x"},
            self.queued("good"),
            None,
        ]

        stats = drain_notification_queue()

        assert stats == {"created": 1, "invalid": 2, "requeued": 0}

    def test_respects_batch_size(self, container, orchestrator):
        container.orchestrator = orchestrator
        container.queue.pop.side_effect = [self.queued(str(n)) for n in range(5)]

        stats = drain_notification_queue(batch_size=3)

        assert stats["created"] == 3
        assert container.queue.pop.call_count == 3

    def test_store_outage_requeues_and_stops(self, container):
        item = self.queued("one")
        container.queue.pop.side_effect = [item, self.queued("two")]
        container.orchestrator.create_notification.side_effect = StoreUnavailable("down")

        stats = drain_notification_queue()

        assert stats == {"created": 0, "invalid": 0, "requeued": 1}
        container.queue.requeue.assert_called_once_with(item)
        assert container.queue.pop.call_count == 1

    def test_unreachable_queue_ends_run(self, container):
        container.queue.pop.return_value = None

        assert drain_notification_queue() == {"created": 0, "invalid": 0, "requeued": 0}

    def test_created_by_from_payload(self, container):
        container.queue.pop.side_effect = [{**self.queued("x"), "created_by": "erp"}, None]

        drain_notification_queue()

        assert container.orchestrator.create_notification.call_args.kwargs == {
            "created_by": "erp"
        }


@pytest.mark.django_db
class TestReconcileNotificationCounters:
    def test_reconciles(self):
        notification = NotificationFactory(recipients=["alice", "bob"])
        NotificationRecipientFactory(notification=notification, recipient_id="alice", is_read=True)
        NotificationRecipientFactory(notification=notification, recipient_id="bob")

        assert reconcile_notification_counters() == 1

        notification.refresh_from_db()
        assert notification.sent_count == 2
        assert notification.read_count == 1
