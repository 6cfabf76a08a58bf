"""
Device registry service.

Owns every read and write of PushDevice rows: registration, token
resolution for dispatch, deactivation of expired tokens, and the periodic
sweep of stale devices.

Failure Semantics:
    - register() raises StoreUnavailable when the database write fails;
      the client must know its device is not registered
    - active_tokens() logs and returns an empty mapping; a recipient whose
      devices cannot be read is recorded as failed, not retried forever
    - deactivate() logs and returns False; losing a deactivation only
      means one more failed push later

Usage:
    from devices.registry import DeviceRegistry

    registry = DeviceRegistry(stale_after=timedelta(days=30))
    device_id = registry.register("alice", "expo", "ExponentPushToken[abc]", {})
    tokens = registry.active_tokens("alice")
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db import DatabaseError, transaction
from django.db.models import Case, DateTimeField, F, Q, Value, When
from django.utils import timezone

from core.exceptions import NotFoundError, StoreUnavailable, ValidationError
from core.services import BaseService
from devices.models import Platform, PushDevice
from devices.tokens import LEGACY_DEVICE_ID, LegacyToken, parse_registration

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

UPDATABLE_COLUMNS = ("device_name", "app_version")
UPDATABLE_METADATA = ("language", "timezone")


@dataclass(frozen=True)
class ActiveToken:
    """A deliverable token resolved for one device."""

    device_id: str
    platform: str
    token: str | dict
    metadata: dict = field(default_factory=dict)


@dataclass
class SweepReport:
    users_scanned: int = 0
    devices_removed: int = 0
    users_failed: int = 0


class DeviceRegistry(BaseService):
    """
    Registry of push devices keyed by (user_id, device_id).

    Args:
        stale_after: Idle (or deactivated) period after which structured
            devices are swept
    """

    def __init__(self, stale_after: timedelta = timedelta(days=30)):
        self.stale_after = stale_after
        self.logger = self.get_logger()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        user_id: str,
        platform: str | None,
        token_or_subscription: Any,
        device_info: dict | None = None,
        device_id: str | None = None,
    ) -> str:
        """
        Register (or re-register) a device and return its device id.

        Re-registering an existing (user_id, device_id) overwrites the
        token, reactivates the device and refreshes its activity time.

        Raises:
            ValidationError: If the token or subscription is malformed
            StoreUnavailable: If the database write fails
        """
        parsed = parse_registration(platform, token_or_subscription, device_info)
        now = timezone.now()

        if isinstance(parsed, LegacyToken):
            device_id = device_id or LEGACY_DEVICE_ID
            defaults = {
                "platform": Platform.LEGACY,
                "token": parsed.token,
                "subscription": None,
                "last_active_at": None,
            }
        else:
            device_id = device_id or f"{parsed.platform}_{uuid.uuid4().hex[:16]}"
            info = parsed.device_info
            defaults = {
                "platform": parsed.platform,
                "token": parsed.token,
                "subscription": parsed.subscription,
                "device_name": info.device_name,
                "os": info.os,
                "app_version": info.app_version,
                "metadata": info.metadata(),
                "last_active_at": now,
            }

        defaults.update(
            is_active=True,
            deactivated_at=None,
            deactivation_reason="",
        )

        try:
            _, created = PushDevice.objects.update_or_create(
                user_id=user_id,
                device_id=device_id,
                defaults=defaults,
            )
        except DatabaseError as e:
            self.logger.exception(
                f"Failed to register device {device_id} for user {user_id}: {e}"
            )
            raise StoreUnavailable(
                "Device registry is unavailable",
                details={"user_id": user_id, "device_id": device_id},
            ) from e

        action = "Registered" if created else "Re-registered"
        self.logger.info(
            f"{action} {defaults['platform']} device {device_id} for user {user_id}"
        )
        return device_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def active_tokens(self, user_id: str) -> dict[str, ActiveToken]:
        """
        Return deliverable tokens for a user, keyed by device id.

        Legacy entries count as active. A database failure is logged and
        yields an empty mapping.
        """
        try:
            devices = list(
                PushDevice.objects.filter(user_id=user_id, is_active=True).order_by(
                    "created_at"
                )
            )
        except DatabaseError as e:
            self.logger.exception(f"Failed to load devices for user {user_id}: {e}")
            return {}

        tokens = {}
        for device in devices:
            target = device.target
            if not target:
                self.logger.warning(
                    f"Device {device.device_id} of user {user_id} has no push target"
                )
                continue
            tokens[device.device_id] = ActiveToken(
                device_id=device.device_id,
                platform=device.platform,
                token=target,
                metadata=device.metadata,
            )
        return tokens

    def list_devices(self, user_id: str) -> list[PushDevice]:
        return list(PushDevice.objects.filter(user_id=user_id))

    def get_device(self, user_id: str, device_id: str) -> PushDevice:
        try:
            return PushDevice.objects.get(user_id=user_id, device_id=device_id)
        except PushDevice.DoesNotExist:
            raise NotFoundError(
                "Device not found",
                error_code="DEVICE_NOT_FOUND",
                details={"device_id": device_id},
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_device(self, user_id: str, device_id: str, changes: dict) -> PushDevice:
        """
        Update the user-editable fields of a device.

        Only device_name, app_version, language and timezone may change;
        anything else in ``changes`` is ignored.

        Raises:
            ValidationError: If no updatable field is supplied
            NotFoundError: If the device does not exist
        """
        columns = {k: changes[k] for k in UPDATABLE_COLUMNS if k in changes}
        metadata = {k: changes[k] for k in UPDATABLE_METADATA if k in changes}
        if not columns and not metadata:
            raise ValidationError(
                "No updatable fields supplied",
                error_code="NO_UPDATABLE_FIELDS",
                details={"allowed": [*UPDATABLE_COLUMNS, *UPDATABLE_METADATA]},
            )

        device = self.get_device(user_id, device_id)
        for name, value in columns.items():
            setattr(device, name, value)
        if metadata:
            device.metadata = {**(device.metadata or {}), **metadata}
        device.save(update_fields=[*columns, "metadata", "updated_at"])
        return device

    def touch(self, user_id: str, device_id: str) -> bool:
        """Record client activity; legacy devices keep no activity marker."""
        now = timezone.now()
        updated = (
            PushDevice.objects.filter(user_id=user_id, device_id=device_id)
            .exclude(platform=Platform.LEGACY)
            .update(last_active_at=now, updated_at=now)
        )
        return updated > 0

    def record_attempt(self, user_id: str, device_id: str, success: bool) -> None:
        """Increment the device's delivery counters atomically."""
        now = timezone.now()
        changes: dict[str, Any] = {"updated_at": now}
        if success:
            changes["success_count"] = F("success_count") + 1
            changes["last_active_at"] = Case(
                When(platform=Platform.LEGACY, then=Value(None)),
                default=Value(now),
                output_field=DateTimeField(),
            )
        else:
            changes["failure_count"] = F("failure_count") + 1
        try:
            PushDevice.objects.filter(user_id=user_id, device_id=device_id).update(
                **changes
            )
        except DatabaseError as e:
            self.logger.warning(
                f"Failed to record attempt for device {device_id} of user {user_id}: {e}"
            )

    def deactivate(self, user_id: str, device_id: str, reason: str = "") -> bool:
        """
        Mark a device inactive, keeping its row.

        Idempotent: deactivating an inactive or unknown device is a no-op.

        Returns:
            True if the device went from active to inactive
        """
        now = timezone.now()
        try:
            updated = PushDevice.objects.filter(
                user_id=user_id, device_id=device_id, is_active=True
            ).update(
                is_active=False,
                deactivated_at=now,
                deactivation_reason=reason[:255],
                updated_at=now,
            )
        except DatabaseError as e:
            self.logger.exception(
                f"Failed to deactivate device {device_id} of user {user_id}: {e}"
            )
            return False

        if updated:
            self.logger.info(
                f"Deactivated device {device_id} of user {user_id}: {reason}"
            )
        else:
            self.logger.debug(
                f"Device {device_id} of user {user_id} already inactive or unknown"
            )
        return updated > 0

    def remove(self, user_id: str, device_id: str) -> bool:
        """Physically delete one device. Returns False if it did not exist."""
        deleted, _ = PushDevice.objects.filter(
            user_id=user_id, device_id=device_id
        ).delete()
        if deleted:
            self.logger.info(f"Removed device {device_id} of user {user_id}")
        return deleted > 0

    def remove_all(self, user_id: str) -> int:
        """Delete every device of a user."""
        deleted, _ = PushDevice.objects.filter(user_id=user_id).delete()
        self.logger.info(f"Removed {deleted} devices of user {user_id}")
        return deleted

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def stale_filter(self, now: datetime) -> Q:
        """
        Devices eligible for removal at ``now``.

        - Legacy devices (no activity marker)
        - Structured devices idle longer than ``stale_after``
        - Structured devices deactivated longer ago than ``stale_after``
        """
        cutoff = now - self.stale_after
        structured = ~Q(platform=Platform.LEGACY) & (
            Q(last_active_at__lt=cutoff)
            | Q(last_active_at__isnull=True, created_at__lt=cutoff)
            | Q(is_active=False, deactivated_at__lt=cutoff)
        )
        legacy = Q(platform=Platform.LEGACY, last_active_at__isnull=True)
        return legacy | structured

    def sweep(self, now: datetime | None = None) -> SweepReport:
        """
        Remove stale devices, one transaction per user.

        A failure while cleaning one user is logged and counted; the sweep
        continues with the next user.
        """
        now = now or timezone.now()
        stale = self.stale_filter(now)
        report = SweepReport()

        user_ids = list(
            PushDevice.objects.filter(stale)
            .order_by()
            .values_list("user_id", flat=True)
            .distinct()
        )

        for user_id in user_ids:
            report.users_scanned += 1
            try:
                report.devices_removed += self._sweep_user(user_id, stale)
            except DatabaseError as e:
                report.users_failed += 1
                self.logger.exception(f"Device sweep failed for user {user_id}: {e}")

        self.logger.info(
            f"Device sweep finished: {report.devices_removed} removed across "
            f"{report.users_scanned} users ({report.users_failed} failed)"
        )
        return report

    def _sweep_user(self, user_id: str, stale: Q) -> int:
        with transaction.atomic():
            deleted, _ = PushDevice.objects.filter(user_id=user_id).filter(stale).delete()
        return deleted
