"""
Delivery and read tracker.

One NotificationRecipient row per (notification, recipient). Every state
change is a single conditional UPDATE so concurrent workers and API
requests never race on a read-modify-write.

State Flow:
    sent -> delivered
    sent -> failed (terminal)
    read is orthogonal: mark_read works from any delivery status

Counters on Notification are not touched here. They are recomputed by
reconcile_counters(), which the reconcile_notification_counters beat task
runs periodically.

Usage:
    from notifications.tracker import DeliveryTracker

    tracker = DeliveryTracker()
    tracker.create_records(notification, ["alice", "bob"])
    tracker.mark_delivered(notification.id, "alice")
    tracker.unread_count("alice")
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import DatabaseError
from django.db.models import Count, Exists, OuterRef, Q
from django.utils import timezone

from core.exceptions import NotFoundError
from core.helpers import calculate_pagination
from core.services import BaseService
from notifications.models import DeliveryStatus, Notification, NotificationRecipient

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any


def _coerce_uuid(notification_id: Any) -> uuid.UUID:
    if isinstance(notification_id, uuid.UUID):
        return notification_id
    try:
        return uuid.UUID(str(notification_id))
    except (TypeError, ValueError, AttributeError):
        raise NotFoundError(
            "Notification not found",
            error_code="NOTIFICATION_NOT_FOUND",
            details={"notification_id": str(notification_id)},
        )


class DeliveryTracker(BaseService):
    """Per-recipient delivery/read state of notifications."""

    def __init__(self):
        self.logger = self.get_logger()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_records(self, notification: Notification, recipient_ids: list[str]) -> int:
        """
        Create one tracker row per recipient.

        Duplicate recipients, and rows that already exist, are skipped by
        the (notification, recipient_id) unique constraint.

        Returns:
            Number of rows submitted for insertion
        """
        unique_ids = list(dict.fromkeys(recipient_ids))
        rows = [
            NotificationRecipient(notification=notification, recipient_id=recipient_id)
            for recipient_id in unique_ids
        ]
        NotificationRecipient.all_objects.bulk_create(rows, ignore_conflicts=True)
        return len(rows)

    # ------------------------------------------------------------------
    # Delivery transitions
    # ------------------------------------------------------------------

    def mark_delivered(self, notification_id: Any, recipient_id: str) -> bool:
        """Move a row from sent to delivered. No-op from any other status."""
        now = timezone.now()
        updated = NotificationRecipient.all_objects.filter(
            notification_id=notification_id,
            recipient_id=recipient_id,
            delivery_status=DeliveryStatus.SENT,
        ).update(
            delivery_status=DeliveryStatus.DELIVERED,
            delivered_at=now,
            updated_at=now,
        )
        return updated > 0

    def mark_failed(self, notification_id: Any, recipient_id: str, reason: str) -> bool:
        """Move a row from sent to failed, recording why."""
        now = timezone.now()
        updated = NotificationRecipient.all_objects.filter(
            notification_id=notification_id,
            recipient_id=recipient_id,
            delivery_status=DeliveryStatus.SENT,
        ).update(
            delivery_status=DeliveryStatus.FAILED,
            failure_reason=reason,
            updated_at=now,
        )
        return updated > 0

    # ------------------------------------------------------------------
    # Read state
    # ------------------------------------------------------------------

    def mark_read(self, notification_id: Any, recipient_id: str) -> NotificationRecipient:
        """
        Mark one notification read for a recipient.

        Idempotent: read_at is written by the first call only.

        Raises:
            NotFoundError: If the recipient has no visible row for it
        """
        notification_id = _coerce_uuid(notification_id)
        now = timezone.now()
        rows = NotificationRecipient.objects.filter(
            notification_id=notification_id, recipient_id=recipient_id
        )
        rows.filter(is_read=False).update(is_read=True, read_at=now, updated_at=now)

        try:
            return rows.get()
        except NotificationRecipient.DoesNotExist:
            raise NotFoundError(
                "Notification not found",
                error_code="NOTIFICATION_NOT_FOUND",
                details={"notification_id": str(notification_id)},
            )

    def mark_all_read(self, recipient_id: str) -> int:
        now = timezone.now()
        return NotificationRecipient.objects.filter(
            recipient_id=recipient_id, is_read=False
        ).update(is_read=True, read_at=now, updated_at=now)

    def soft_delete(self, notification_id: Any, recipient_id: str) -> None:
        """
        Hide one notification from a recipient's feed.

        Raises:
            NotFoundError: If there is no visible row to delete
        """
        notification_id = _coerce_uuid(notification_id)
        deleted, _ = NotificationRecipient.objects.filter(
            notification_id=notification_id, recipient_id=recipient_id
        ).delete()
        if not deleted:
            raise NotFoundError(
                "Notification not found",
                error_code="NOTIFICATION_NOT_FOUND",
                details={"notification_id": str(notification_id)},
            )

    def soft_delete_all(self, recipient_id: str) -> int:
        deleted, _ = NotificationRecipient.objects.filter(recipient_id=recipient_id).delete()
        return deleted

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def unread_count(self, recipient_id: str) -> int:
        return NotificationRecipient.objects.filter(
            recipient_id=recipient_id, is_read=False
        ).count()

    def feed(self, recipient_id: str, page: int = 1, page_size: int = 20) -> dict:
        """
        Paginated feed of a recipient's visible notifications.

        Undelivered notifications are included; delivery status only
        affects the delivery-status query.

        Returns:
            {"results": [NotificationRecipient, ...], "pagination": {...}}
        """
        rows = (
            NotificationRecipient.objects.filter(recipient_id=recipient_id)
            .select_related("notification")
            .order_by("-notification__created_at", "-id")
        )
        pagination = calculate_pagination(rows.count(), page, page_size)
        start = (pagination["page"] - 1) * page_size
        return {
            "results": list(rows[start : start + page_size]),
            "pagination": pagination,
        }

    def get_record(self, notification_id: Any, recipient_id: str) -> NotificationRecipient:
        """
        Raises:
            NotFoundError: If the recipient has no visible row for it
        """
        notification_id = _coerce_uuid(notification_id)
        try:
            return NotificationRecipient.objects.select_related("notification").get(
                notification_id=notification_id, recipient_id=recipient_id
            )
        except NotificationRecipient.DoesNotExist:
            raise NotFoundError(
                "Notification not found",
                error_code="NOTIFICATION_NOT_FOUND",
                details={"notification_id": str(notification_id)},
            )

    def get_notification(self, notification_id: Any) -> Notification:
        notification_id = _coerce_uuid(notification_id)
        try:
            return Notification.objects.get(pk=notification_id)
        except Notification.DoesNotExist:
            raise NotFoundError(
                "Notification not found",
                error_code="NOTIFICATION_NOT_FOUND",
                details={"notification_id": str(notification_id)},
            )

    def delivery_status(self, notification_id: Any) -> dict[str, dict]:
        """
        Per-recipient delivery state of a notification.

        Soft-deleted rows are included; deletion hides a notification from
        the feed, it does not undo its delivery.

        Raises:
            NotFoundError: If the notification does not exist
        """
        notification = self.get_notification(notification_id)
        rows = NotificationRecipient.all_objects.filter(notification=notification)
        return {
            row.recipient_id: {
                "status": row.delivery_status,
                "delivered_at": row.delivered_at,
                "is_read": row.is_read,
                "read_at": row.read_at,
                "failure_reason": row.failure_reason,
                "is_deleted": row.is_deleted,
            }
            for row in rows
        }

    def delivery_stats(self, notification_id: Any) -> dict[str, int]:
        notification = self.get_notification(notification_id)
        counts = NotificationRecipient.all_objects.filter(
            notification=notification
        ).aggregate(
            total=Count("id"),
            sent=Count("id", filter=Q(delivery_status=DeliveryStatus.SENT)),
            delivered=Count("id", filter=Q(delivery_status=DeliveryStatus.DELIVERED)),
            failed=Count("id", filter=Q(delivery_status=DeliveryStatus.FAILED)),
            read=Count("id", filter=Q(is_read=True)),
        )
        return counts

    def notification_analytics(self, notification_id: Any) -> dict:
        """Delivery and read rates of one notification, in percent."""
        notification = self.get_notification(notification_id)
        stats = self.delivery_stats(notification.pk)
        total = stats["total"]
        reached = total - stats["failed"]
        return {
            "notification_id": str(notification.pk),
            "notification_type": notification.notification_type,
            "created_at": notification.created_at,
            **stats,
            "delivery_rate": round(reached * 100 / total, 2) if total else 0.0,
            "read_rate": round(stats["read"] * 100 / total, 2) if total else 0.0,
        }

    def user_stats(
        self,
        recipient_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict:
        """
        Reading statistics of one recipient over an optional time range.

        The average read delay is measured from notification creation to
        the first read, in seconds.
        """
        rows = NotificationRecipient.objects.filter(recipient_id=recipient_id)
        if start:
            rows = rows.filter(notification__created_at__gte=start)
        if end:
            rows = rows.filter(notification__created_at__lte=end)

        counts = rows.aggregate(
            total=Count("id"),
            read=Count("id", filter=Q(is_read=True)),
            delivered=Count("id", filter=Q(delivery_status=DeliveryStatus.DELIVERED)),
            failed=Count("id", filter=Q(delivery_status=DeliveryStatus.FAILED)),
        )

        delays = [
            (read_at - created_at).total_seconds()
            for read_at, created_at in rows.filter(
                is_read=True, read_at__isnull=False
            ).values_list("read_at", "notification__created_at")
        ]
        total = counts["total"]
        return {
            **counts,
            "unread": total - counts["read"],
            "read_rate": round(counts["read"] * 100 / total, 2) if total else 0.0,
            "avg_read_seconds": round(sum(delays) / len(delays), 2) if delays else None,
        }

    # ------------------------------------------------------------------
    # Counter reconciliation
    # ------------------------------------------------------------------

    def reconcile_counters(self, limit: int = 500) -> int:
        """
        Recompute derived counters of notifications whose rows changed.

        A notification is due when it was never reconciled or when any of
        its tracker rows changed after the last reconciliation. Errors are
        logged; the next pass picks up whatever was missed.

        Returns:
            Number of notifications reconciled
        """
        started_at = timezone.now()
        changed_rows = NotificationRecipient.all_objects.filter(
            notification=OuterRef("pk"),
            updated_at__gte=OuterRef("counters_reconciled_at"),
        )
        due = Notification.objects.filter(
            Q(counters_reconciled_at__isnull=True) | Q(Exists(changed_rows))
        ).order_by("created_at")[:limit]

        reconciled = 0
        try:
            for notification in due:
                counts = NotificationRecipient.all_objects.filter(
                    notification=notification
                ).aggregate(
                    sent=Count("id"),
                    delivered=Count(
                        "id", filter=~Q(delivery_status=DeliveryStatus.FAILED)
                    ),
                    read=Count("id", filter=Q(is_read=True)),
                )
                Notification.objects.filter(pk=notification.pk).update(
                    sent_count=counts["sent"],
                    delivered_count=counts["delivered"],
                    read_count=counts["read"],
                    counters_reconciled_at=started_at,
                    updated_at=started_at,
                )
                reconciled += 1
        except DatabaseError as e:
            self.logger.exception(
                f"Counter reconciliation stopped after {reconciled} notifications: {e}"
            )

        if reconciled:
            self.logger.debug(f"Reconciled counters of {reconciled} notifications")
        return reconciled
