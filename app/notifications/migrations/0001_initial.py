import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "title",
                    models.JSONField(
                        help_text="Notification title (string or language-keyed map)"
                    ),
                ),
                (
                    "message",
                    models.JSONField(
                        help_text="Notification body (string or language-keyed map)"
                    ),
                ),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("attendance", "Attendance"),
                            ("ticket", "Ticket"),
                            ("chat", "Chat"),
                            ("system", "System"),
                            ("post", "Post"),
                        ],
                        db_index=True,
                        default="system",
                        help_text="Category tag",
                        max_length=20,
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[
                            ("low", "Low"),
                            ("medium", "Medium"),
                            ("high", "High"),
                            ("urgent", "Urgent"),
                        ],
                        default="medium",
                        help_text="Delivery priority",
                        max_length=10,
                    ),
                ),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("push", "Push"),
                            ("email", "Email"),
                            ("system", "System"),
                        ],
                        default="push",
                        help_text="Channel hint",
                        max_length=10,
                    ),
                ),
                (
                    "data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Free-form payload forwarded with the push",
                    ),
                ),
                (
                    "recipients",
                    models.JSONField(
                        default=list,
                        help_text="Ordered list of recipient identifiers",
                    ),
                ),
                (
                    "total_recipients",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of recipients"
                    ),
                ),
                (
                    "sent_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Tracker records created (derived)"
                    ),
                ),
                (
                    "delivered_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Tracker records not failed (derived)"
                    ),
                ),
                (
                    "read_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Tracker records read (derived)"
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Producer of this notification (user or service)",
                        max_length=255,
                    ),
                ),
                (
                    "event_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the originating event happened",
                        null=True,
                    ),
                ),
                (
                    "counters_reconciled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the derived counters were last recomputed",
                        null=True,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="NotificationRecipient",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "is_deleted",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether this record has been soft deleted",
                    ),
                ),
                (
                    "deleted_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp when this record was soft deleted",
                        null=True,
                    ),
                ),
                (
                    "recipient_id",
                    models.CharField(
                        help_text="Identifier of the recipient", max_length=255
                    ),
                ),
                (
                    "delivery_status",
                    models.CharField(
                        choices=[
                            ("sent", "Sent"),
                            ("delivered", "Delivered"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="sent",
                        help_text="Current delivery status",
                        max_length=20,
                    ),
                ),
                (
                    "delivered_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When delivery was confirmed by a push provider",
                        null=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True, default="", help_text="Why delivery failed"
                    ),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the recipient has read the notification",
                    ),
                ),
                (
                    "read_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the recipient first read the notification",
                        null=True,
                    ),
                ),
                (
                    "notification",
                    models.ForeignKey(
                        help_text="Notification this record tracks",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recipient_states",
                        to="notifications.notification",
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification_recipient",
                "ordering": ["-created_at"],
            },
        ),
        migrations.AddIndex(
            model_name="notification",
            index=models.Index(
                fields=["counters_reconciled_at"], name="notif_reconciled_idx"
            ),
        ),
        migrations.AddConstraint(
            model_name="notificationrecipient",
            constraint=models.UniqueConstraint(
                fields=("notification", "recipient_id"),
                name="unique_notification_recipient",
            ),
        ),
        migrations.AddIndex(
            model_name="notificationrecipient",
            index=models.Index(
                fields=["recipient_id", "is_deleted", "is_read"],
                name="notif_recipient_unread_idx",
            ),
        ),
        migrations.AddIndex(
            model_name="notificationrecipient",
            index=models.Index(
                fields=["notification", "updated_at"],
                name="notif_recipient_changed_idx",
            ),
        ),
    ]
