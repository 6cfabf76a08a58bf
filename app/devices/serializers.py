"""
Serializers for the device API.

Serializers:
    DeviceRegistrationSerializer: Register a push device
    DeviceRegistrationResponseSerializer: Response for registration
    DeviceSerializer: Read-only device details
    DeviceUpdateSerializer: Update user-editable device fields
    RemovedCountSerializer: Response for unregister-all
"""

from __future__ import annotations

from rest_framework import serializers

from devices.models import Platform, PushDevice


class DeviceRegistrationSerializer(serializers.Serializer):
    """
    Input for device registration.

    Token format (Expo pattern, subscription endpoint) is checked by the
    registry when the registration is classified; this serializer only
    checks that the platform's required field is present.
    """

    platform = serializers.ChoiceField(
        choices=[Platform.EXPO, Platform.WEB],
        default=Platform.WEB,
    )
    device_token = serializers.CharField(required=False, allow_blank=False)
    subscription = serializers.JSONField(required=False)
    device_id = serializers.CharField(required=False, max_length=255)
    device_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    os = serializers.CharField(required=False, allow_blank=True, max_length=100)
    os_version = serializers.CharField(required=False, allow_blank=True, max_length=50)
    app_version = serializers.CharField(required=False, allow_blank=True, max_length=50)
    browser = serializers.CharField(required=False, allow_blank=True, max_length=100)
    language = serializers.CharField(required=False, default="en", max_length=10)
    timezone = serializers.CharField(required=False, default="UTC", max_length=64)
    user_agent = serializers.CharField(required=False, allow_blank=True)
    is_pwa = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if attrs["platform"] == Platform.WEB and not attrs.get("subscription"):
            raise serializers.ValidationError(
                {"subscription": ["Web push registration requires a subscription."]}
            )
        if attrs["platform"] == Platform.EXPO and not attrs.get("device_token"):
            raise serializers.ValidationError(
                {"device_token": ["Expo registration requires a device token."]}
            )
        return attrs

    def device_info(self) -> dict:
        data = self.validated_data
        fields = (
            "device_name",
            "os",
            "os_version",
            "app_version",
            "browser",
            "language",
            "timezone",
            "user_agent",
            "is_pwa",
        )
        return {name: data[name] for name in fields if name in data}

    def push_target(self):
        data = self.validated_data
        if data["platform"] == Platform.WEB:
            return data["subscription"]
        return data["device_token"]


class DeviceRegistrationResponseSerializer(serializers.Serializer):
    device_id = serializers.CharField()
    platform = serializers.CharField()
    device_name = serializers.CharField(allow_blank=True)


class DeviceSerializer(serializers.ModelSerializer):
    """Read-only representation of a registered device (tokens omitted)."""

    class Meta:
        model = PushDevice
        fields = [
            "device_id",
            "platform",
            "device_name",
            "os",
            "app_version",
            "metadata",
            "is_active",
            "last_active_at",
            "deactivated_at",
            "success_count",
            "failure_count",
            "created_at",
        ]
        read_only_fields = fields


class DeviceUpdateSerializer(serializers.Serializer):
    device_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    app_version = serializers.CharField(required=False, allow_blank=True, max_length=50)
    language = serializers.CharField(required=False, max_length=10)
    timezone = serializers.CharField(required=False, max_length=64)


class RemovedCountSerializer(serializers.Serializer):
    removed_count = serializers.IntegerField()
