"""
Serializers for notification API.

This module provides DRF serializers for the notification endpoints and
for validating create payloads coming from the API, the deferred queue
and cross-service events.

Serializers:
    NotificationCreateSerializer: Validate a create-notification payload
    CreatedNotificationSerializer: Response for creation
    NotificationFeedItemSerializer: One entry of a recipient's feed
    FeedResponseSerializer: Feed page with pagination and unread count
    UnreadCountSerializer: Response for unread count endpoint
    MarkAllReadResponseSerializer: Response for mark all read endpoint
    DeleteAllResponseSerializer: Response for delete all endpoint
    RecipientStatusSerializer: Per-recipient delivery status
    NotificationAnalyticsSerializer: Delivery and read rates
    UserStatsQuerySerializer / UserStatsSerializer: Reading statistics

Usage:
    from notifications.serializers import NotificationCreateSerializer

    serializer = NotificationCreateSerializer(data=payload)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

import json

from rest_framework import serializers

from notifications.models import (
    Channel,
    NotificationRecipient,
    NotificationType,
    Priority,
)


class LocalizedTextField(serializers.JSONField):
    """Plain string, or a language-keyed map of non-empty strings."""

    default_error_messages = {
        "invalid_text": "Must be a non-empty string or a map of language to text.",
    }

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if isinstance(value, str):
            if not value.strip():
                self.fail("invalid_text")
            return value
        if (
            isinstance(value, dict)
            and value
            and all(isinstance(k, str) and isinstance(v, str) for k, v in value.items())
            and any(v.strip() for v in value.values())
        ):
            return value
        self.fail("invalid_text")


class RecipientsField(serializers.Field):
    """
    List of recipient ids, or its JSON serialization.

    Duplicates collapse, keeping first-seen order.
    """

    default_error_messages = {
        "invalid": "Recipients must be a list of identifiers.",
        "empty": "At least one recipient is required.",
    }

    def to_internal_value(self, data):
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError:
                self.fail("invalid")
        if not isinstance(data, list):
            self.fail("invalid")

        recipients = []
        for item in data:
            if isinstance(item, bool) or not isinstance(item, (str, int)):
                self.fail("invalid")
            item = str(item).strip()
            if item:
                recipients.append(item)

        recipients = list(dict.fromkeys(recipients))
        if not recipients:
            self.fail("empty")
        return recipients

    def to_representation(self, value):
        return list(value)


class NotificationCreateSerializer(serializers.Serializer):
    """
    Create-notification payload.

    Accepts ``notification_type`` as an alias of ``type``; upstream
    services use both spellings.
    """

    title = LocalizedTextField()
    message = LocalizedTextField()
    recipients = RecipientsField()
    type = serializers.ChoiceField(
        choices=NotificationType.choices,
        default=NotificationType.SYSTEM,
    )
    priority = serializers.ChoiceField(choices=Priority.choices, default=Priority.MEDIUM)
    channel = serializers.ChoiceField(choices=Channel.choices, default=Channel.PUSH)
    data = serializers.DictField(required=False, default=dict)

    def to_internal_value(self, data):
        if hasattr(data, "get") and "type" not in data and "notification_type" in data:
            data = {**data, "type": data["notification_type"]}
        return super().to_internal_value(data)


class CreatedNotificationSerializer(serializers.Serializer):
    notification_id = serializers.UUIDField()
    recipients = serializers.IntegerField()


class NotificationFeedItemSerializer(serializers.ModelSerializer):
    """
    One feed entry: the notification plus this recipient's state.

    Built from a NotificationRecipient with its notification selected.
    """

    id = serializers.UUIDField(source="notification.id", read_only=True)
    title = serializers.JSONField(source="notification.title", read_only=True)
    message = serializers.JSONField(source="notification.message", read_only=True)
    type = serializers.CharField(source="notification.notification_type", read_only=True)
    priority = serializers.CharField(source="notification.priority", read_only=True)
    channel = serializers.CharField(source="notification.channel", read_only=True)
    data = serializers.JSONField(source="notification.data", read_only=True)
    created_at = serializers.DateTimeField(source="notification.created_at", read_only=True)

    class Meta:
        model = NotificationRecipient
        fields = [
            "id",
            "title",
            "message",
            "type",
            "priority",
            "channel",
            "data",
            "created_at",
            "delivery_status",
            "delivered_at",
            "is_read",
            "read_at",
        ]
        read_only_fields = fields


class PaginationSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    page = serializers.IntegerField()
    per_page = serializers.IntegerField()
    total_pages = serializers.IntegerField()
    has_next = serializers.BooleanField()
    has_previous = serializers.BooleanField()
    next_page = serializers.IntegerField(allow_null=True)
    previous_page = serializers.IntegerField(allow_null=True)
    start_index = serializers.IntegerField()
    end_index = serializers.IntegerField()


class FeedResponseSerializer(serializers.Serializer):
    results = NotificationFeedItemSerializer(many=True)
    pagination = PaginationSerializer()
    unread_count = serializers.IntegerField()


class UnreadCountSerializer(serializers.Serializer):
    """
    Response serializer for unread count endpoint.

    Fields:
        unread_count: Integer count of unread notifications
    """

    unread_count = serializers.IntegerField()


class MarkAllReadResponseSerializer(serializers.Serializer):
    """
    Response serializer for mark all read endpoint.

    Fields:
        marked_count: Integer count of notifications marked as read
    """

    marked_count = serializers.IntegerField()


class DeleteAllResponseSerializer(serializers.Serializer):
    deleted_count = serializers.IntegerField()


class RecipientStatusSerializer(serializers.Serializer):
    """Delivery state of one recipient, as returned by delivery-status."""

    status = serializers.ChoiceField(
        choices=["sent", "delivered", "failed"],
    )
    delivered_at = serializers.DateTimeField(allow_null=True)
    is_read = serializers.BooleanField()
    read_at = serializers.DateTimeField(allow_null=True)
    failure_reason = serializers.CharField(allow_blank=True)
    is_deleted = serializers.BooleanField()


class DeliveryStatusResponseSerializer(serializers.Serializer):
    notification_id = serializers.UUIDField()
    recipients = serializers.DictField(child=RecipientStatusSerializer())


class NotificationAnalyticsSerializer(serializers.Serializer):
    notification_id = serializers.UUIDField()
    notification_type = serializers.CharField()
    created_at = serializers.DateTimeField()
    total = serializers.IntegerField()
    sent = serializers.IntegerField()
    delivered = serializers.IntegerField()
    failed = serializers.IntegerField()
    read = serializers.IntegerField()
    delivery_rate = serializers.FloatField()
    read_rate = serializers.FloatField()


class UserStatsQuerySerializer(serializers.Serializer):
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError(
                {"end_date": ["End date must not be before start date."]}
            )
        return attrs


class UserStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    read = serializers.IntegerField()
    unread = serializers.IntegerField()
    delivered = serializers.IntegerField()
    failed = serializers.IntegerField()
    read_rate = serializers.FloatField()
    avg_read_seconds = serializers.FloatField(allow_null=True)
