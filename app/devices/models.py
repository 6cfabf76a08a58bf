"""
Push device registry models.

Each row is one device a user can receive push notifications on. Legacy
registrations (a bare Expo token per user) and structured multi-device
registrations share the table; they differ in platform and in whether
``last_active_at`` is tracked.

Design Decisions:
    - Owners are addressed by the string identifier upstream services use,
      not by FK, because recipients may not have local accounts
    - (user_id, device_id) is unique; re-registering overwrites the row
    - Deactivated devices stay until the stale-device sweep removes them
    - Legacy rows keep last_active_at NULL, which marks them for removal
      once clients have migrated to structured registration

Usage:
    from devices.models import PushDevice

    PushDevice.objects.filter(user_id="alice", is_active=True)
"""

from __future__ import annotations

from django.db import models

from core.models import BaseModel


class Platform(models.TextChoices):
    """Delivery platform of a registered device."""

    EXPO = "expo", "Expo"
    WEB = "web", "Web Push"
    LEGACY = "legacy", "Legacy Expo token"


class PushDevice(BaseModel):
    """
    A registered push target for one user.

    Fields:
        user_id: Owner identifier (username shared with upstream services)
        device_id: Client-chosen or generated identifier, unique per user
        platform: expo, web or legacy
        token: Expo push token (empty for web devices)
        subscription: Web Push subscription object (null for Expo devices)
        device_name/os/app_version: Descriptive columns shown to the user
        metadata: os_version, browser, language, timezone, user_agent, is_pwa
        is_active: False once the provider reported the token expired
        last_active_at: Last registration, ping or successful delivery
        deactivated_at/deactivation_reason: When and why it was deactivated
        success_count/failure_count: Delivery attempt counters
    """

    user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Identifier of the user owning this device",
    )

    device_id = models.CharField(
        max_length=255,
        help_text="Device identifier, unique per user",
    )

    platform = models.CharField(
        max_length=20,
        choices=Platform.choices,
        help_text="Push platform used to reach this device",
    )

    token = models.TextField(
        blank=True,
        default="",
        help_text="Expo push token",
    )

    subscription = models.JSONField(
        null=True,
        blank=True,
        help_text="Web Push subscription (endpoint and keys)",
    )

    device_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Human-readable device name",
    )

    os = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Operating system",
    )

    app_version = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Client application version",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional device metadata (browser, language, timezone, ...)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether pushes should be sent to this device",
    )

    last_active_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last registration, ping or successful delivery (null for legacy)",
    )

    deactivated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the device was deactivated",
    )

    deactivation_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Why the device was deactivated",
    )

    success_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of successful deliveries",
    )

    failure_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of failed deliveries",
    )

    class Meta:
        db_table = "devices_push_device"
        ordering = ["-last_active_at", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "device_id"],
                name="unique_user_device",
            ),
        ]
        indexes = [
            # Token resolution during dispatch
            models.Index(
                fields=["user_id", "is_active"],
                name="device_user_active_idx",
            ),
            # Stale device sweep
            models.Index(
                fields=["platform", "last_active_at"],
                name="device_platform_activity_idx",
            ),
        ]

    def __str__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"PushDevice({self.user_id}/{self.device_id}, {self.platform}) [{state}]"

    @property
    def is_legacy(self) -> bool:
        return self.platform == Platform.LEGACY

    @property
    def target(self) -> str | dict | None:
        """Expo token or Web Push subscription the dispatcher sends to."""
        if self.platform == Platform.WEB:
            return self.subscription
        return self.token
