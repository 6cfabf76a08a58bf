from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PushDevice",
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
                    "user_id",
                    models.CharField(
                        db_index=True,
                        help_text="Identifier of the user owning this device",
                        max_length=255,
                    ),
                ),
                (
                    "device_id",
                    models.CharField(
                        help_text="Device identifier, unique per user",
                        max_length=255,
                    ),
                ),
                (
                    "platform",
                    models.CharField(
                        choices=[
                            ("expo", "Expo"),
                            ("web", "Web Push"),
                            ("legacy", "Legacy Expo token"),
                        ],
                        help_text="Push platform used to reach this device",
                        max_length=20,
                    ),
                ),
                (
                    "token",
                    models.TextField(
                        blank=True, default="", help_text="Expo push token"
                    ),
                ),
                (
                    "subscription",
                    models.JSONField(
                        blank=True,
                        help_text="Web Push subscription (endpoint and keys)",
                        null=True,
                    ),
                ),
                (
                    "device_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Human-readable device name",
                        max_length=255,
                    ),
                ),
                (
                    "os",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Operating system",
                        max_length=100,
                    ),
                ),
                (
                    "app_version",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Client application version",
                        max_length=50,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Additional device metadata (browser, language, timezone, ...)",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Whether pushes should be sent to this device",
                    ),
                ),
                (
                    "last_active_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Last registration, ping or successful delivery (null for legacy)",
                        null=True,
                    ),
                ),
                (
                    "deactivated_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the device was deactivated",
                        null=True,
                    ),
                ),
                (
                    "deactivation_reason",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Why the device was deactivated",
                        max_length=255,
                    ),
                ),
                (
                    "success_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of successful deliveries"
                    ),
                ),
                (
                    "failure_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of failed deliveries"
                    ),
                ),
            ],
            options={
                "db_table": "devices_push_device",
                "ordering": ["-last_active_at", "-created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="pushdevice",
            constraint=models.UniqueConstraint(
                fields=("user_id", "device_id"), name="unique_user_device"
            ),
        ),
        migrations.AddIndex(
            model_name="pushdevice",
            index=models.Index(
                fields=["user_id", "is_active"], name="device_user_active_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="pushdevice",
            index=models.Index(
                fields=["platform", "last_active_at"],
                name="device_platform_activity_idx",
            ),
        ),
    ]
