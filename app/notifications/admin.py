"""
Django admin configuration for notification models.

Registers:
- Notification (read-only, with its recipient states inline)
- NotificationRecipient (delivery/read state per recipient)
"""

from django.contrib import admin

from notifications.models import Notification, NotificationRecipient


class NotificationRecipientInline(admin.TabularInline):
    model = NotificationRecipient
    extra = 0
    can_delete = False
    fields = [
        "recipient_id",
        "delivery_status",
        "delivered_at",
        "failure_reason",
        "is_read",
        "read_at",
        "is_deleted",
    ]
    readonly_fields = fields

    def get_queryset(self, request):
        return NotificationRecipient.all_objects.all()


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """
    Admin configuration for Notification.

    Provides read-only view of notifications for debugging and support.
    """

    list_display = [
        "id",
        "notification_type",
        "priority",
        "total_recipients",
        "sent_count",
        "delivered_count",
        "read_count",
        "created_at",
    ]
    list_filter = ["notification_type", "priority", "channel", "created_at"]
    search_fields = ["id", "created_by"]
    ordering = ["-created_at"]
    readonly_fields = [
        "title",
        "message",
        "notification_type",
        "priority",
        "channel",
        "data",
        "recipients",
        "total_recipients",
        "sent_count",
        "delivered_count",
        "read_count",
        "created_by",
        "event_at",
        "counters_reconciled_at",
        "created_at",
        "updated_at",
    ]
    inlines = [NotificationRecipientInline]

    def has_add_permission(self, request):
        """Notifications are created through the API and events."""
        return False


@admin.register(NotificationRecipient)
class NotificationRecipientAdmin(admin.ModelAdmin):
    """
    Admin configuration for NotificationRecipient.

    Shows delivery status for each recipient, including soft-deleted rows.
    """

    list_display = [
        "id",
        "notification",
        "recipient_id",
        "delivery_status",
        "is_read",
        "is_deleted",
        "delivered_at",
        "read_at",
    ]
    list_filter = ["delivery_status", "is_read", "is_deleted"]
    search_fields = ["recipient_id", "notification__id"]
    ordering = ["-created_at"]
    readonly_fields = [
        "notification",
        "recipient_id",
        "delivery_status",
        "delivered_at",
        "failure_reason",
        "is_read",
        "read_at",
        "is_deleted",
        "deleted_at",
        "created_at",
        "updated_at",
    ]
    raw_id_fields = ["notification"]

    def get_queryset(self, request):
        return NotificationRecipient.all_objects.select_related("notification")

    def has_add_permission(self, request):
        """Recipient states are created by the system, not manually."""
        return False

    def has_delete_permission(self, request, obj=None):
        """Recipient states are soft-deleted only."""
        return False
