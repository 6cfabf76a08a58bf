"""
Notification and per-recipient tracking models.

This module defines:
- Notification: One logical notification addressed to many recipients
- NotificationRecipient: Delivery/read state of one notification for one
  recipient (the tracker record)

Design Decisions:
    - Notification uses a UUID PK; ids are shared with other services and
      embedded in push payloads
    - Title and message are JSON: either a plain string or a
      language-keyed map such as {"vi": "...", "en": "..."}
    - Aggregate counters on Notification are a derived view, recomputed by
      the reconciliation task from NotificationRecipient rows
    - Exactly one NotificationRecipient per (notification, recipient_id),
      enforced by a unique constraint; rows are soft-deleted only
    - Recipients are addressed by string identifiers, not user FKs

Delivery State Flow:
    SENT -> DELIVERED
    SENT -> FAILED (terminal)
    Read state is tracked separately and may be set from any status.

Usage:
    from notifications.models import Notification, NotificationRecipient

    NotificationRecipient.objects.filter(recipient_id="alice", is_read=False).count()
"""

from __future__ import annotations

from django.db import models

from core.managers import SoftDeleteManager
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel


# =============================================================================
# Enums
# =============================================================================


class NotificationType(models.TextChoices):
    """Category tag of a notification."""

    ATTENDANCE = "attendance", "Attendance"
    TICKET = "ticket", "Ticket"
    CHAT = "chat", "Chat"
    SYSTEM = "system", "System"
    POST = "post", "Post"


class Priority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class Channel(models.TextChoices):
    """Channel hint; push is the only channel dispatched by this service."""

    PUSH = "push", "Push"
    EMAIL = "email", "Email"
    SYSTEM = "system", "System"


class DeliveryStatus(models.TextChoices):
    """
    Delivery status of one notification for one recipient.

    State Flow:
        SENT -> DELIVERED (at least one device accepted the push)
        SENT -> FAILED (no device, or every device rejected it)
    """

    SENT = "sent", "Sent"
    DELIVERED = "delivered", "Delivered"
    FAILED = "failed", "Failed"


# =============================================================================
# Models
# =============================================================================


class Notification(UUIDPrimaryKeyMixin, BaseModel):
    """
    A notification addressed to an ordered list of recipients.

    Immutable after creation except for the aggregate counters, which only
    the reconciliation pass writes.

    Fields:
        title/message: Plain string or language-keyed map
        notification_type: Category tag (attendance, ticket, chat, ...)
        priority: low, medium, high or urgent
        channel: Channel hint supplied by the producer
        data: Free-form payload forwarded to devices
        recipients: Ordered, de-duplicated recipient identifiers
        total_recipients: len(recipients), stored for listing
        sent_count/delivered_count/read_count: Derived counters
        created_by: Identifier of the producing user or service
        event_at: Time of the originating event (never in the future)
        counters_reconciled_at: Last time the counters were recomputed
    """

    title = models.JSONField(
        help_text="Notification title (string or language-keyed map)",
    )

    message = models.JSONField(
        help_text="Notification body (string or language-keyed map)",
    )

    notification_type = models.CharField(
        max_length=20,
        choices=NotificationType.choices,
        default=NotificationType.SYSTEM,
        db_index=True,
        help_text="Category tag",
    )

    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM,
        help_text="Delivery priority",
    )

    channel = models.CharField(
        max_length=10,
        choices=Channel.choices,
        default=Channel.PUSH,
        help_text="Channel hint",
    )

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form payload forwarded with the push",
    )

    recipients = models.JSONField(
        default=list,
        help_text="Ordered list of recipient identifiers",
    )

    total_recipients = models.PositiveIntegerField(
        default=0,
        help_text="Number of recipients",
    )

    sent_count = models.PositiveIntegerField(
        default=0,
        help_text="Tracker records created (derived)",
    )

    delivered_count = models.PositiveIntegerField(
        default=0,
        help_text="Tracker records not failed (derived)",
    )

    read_count = models.PositiveIntegerField(
        default=0,
        help_text="Tracker records read (derived)",
    )

    created_by = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Producer of this notification (user or service)",
    )

    event_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the originating event happened",
    )

    counters_reconciled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the derived counters were last recomputed",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            # Reconciliation scan
            models.Index(
                fields=["counters_reconciled_at"],
                name="notif_reconciled_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"Notification({self.notification_type}, {self.priority}) -> "
            f"{self.total_recipients} recipients"
        )


class NotificationRecipient(SoftDeleteMixin, BaseModel):
    """
    Delivery and read state of one notification for one recipient.

    Transitions are applied with conditional UPDATEs by
    notifications.tracker.DeliveryTracker so concurrent writers never need
    application-level locks.

    Fields:
        notification: The notification
        recipient_id: Recipient identifier
        delivery_status: sent, delivered or failed
        delivered_at: When a device accepted the push
        failure_reason: Why delivery failed
        is_read/read_at: Read flag and first read time
        is_deleted/deleted_at: Soft delete (from SoftDeleteMixin)
    """

    notification = models.ForeignKey(
        Notification,
        on_delete=models.CASCADE,
        related_name="recipient_states",
        help_text="Notification this record tracks",
    )

    recipient_id = models.CharField(
        max_length=255,
        help_text="Identifier of the recipient",
    )

    delivery_status = models.CharField(
        max_length=20,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.SENT,
        db_index=True,
        help_text="Current delivery status",
    )

    delivered_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When delivery was confirmed by a push provider",
    )

    failure_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why delivery failed",
    )

    is_read = models.BooleanField(
        default=False,
        help_text="Whether the recipient has read the notification",
    )

    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the recipient first read the notification",
    )

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        db_table = "notifications_notification_recipient"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["notification", "recipient_id"],
                name="unique_notification_recipient",
            ),
        ]
        indexes = [
            # Unread count and feed
            models.Index(
                fields=["recipient_id", "is_deleted", "is_read"],
                name="notif_recipient_unread_idx",
            ),
            # Reconciliation: rows changed since last pass
            models.Index(
                fields=["notification", "updated_at"],
                name="notif_recipient_changed_idx",
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return (
            f"NotificationRecipient({self.notification_id}) -> "
            f"{self.recipient_id} [{self.delivery_status}, {read_status}]"
        )
