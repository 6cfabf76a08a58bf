"""
Factory Boy factories for device models.

Usage:
    from devices.tests.factories import PushDeviceFactory, WebPushDeviceFactory

    PushDeviceFactory(user_id="alice")
    WebPushDeviceFactory(user_id="alice", is_active=False)
    LegacyDeviceFactory(user_id="bob")
"""

import factory
from django.utils import timezone

from devices.models import Platform
from devices.tokens import LEGACY_DEVICE_ID

EXPO_TOKEN = "ExponentPushToken[xxxxxxxxxxxxxxxxxxxxxx]"

WEB_SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA", "auth": "tBHItJI5svbpez7KI4CCXg"},
}


class PushDeviceFactory(factory.django.DjangoModelFactory):
    """
    Factory for an active Expo device.

    Examples:
        device = PushDeviceFactory(user_id="alice")
        device = PushDeviceFactory(token="ExponentPushToken[known]")
    """

    class Meta:
        model = "devices.PushDevice"

    user_id = "alice"
    device_id = factory.Sequence(lambda n: f"expo_device_{n}")
    platform = Platform.EXPO
    token = factory.Sequence(lambda n: f"ExponentPushToken[token-{n}]")
    device_name = "iPhone"
    os = "iOS"
    app_version = "1.0.0"
    metadata = factory.LazyFunction(lambda: {"language": "vi", "timezone": "Asia/Ho_Chi_Minh"})
    is_active = True
    last_active_at = factory.LazyFunction(timezone.now)


class WebPushDeviceFactory(PushDeviceFactory):
    """Factory for a Web Push (PWA) device."""

    device_id = factory.Sequence(lambda n: f"web_device_{n}")
    platform = Platform.WEB
    token = ""
    subscription = factory.Sequence(
        lambda n: {
            "endpoint": f"https://push.example.com/send/{n}",
            "keys": {"p256dh": "BKey", "auth": "secret"},
        }
    )
    device_name = "Chrome on Mac"
    os = "macOS"


class LegacyDeviceFactory(PushDeviceFactory):
    """Factory for a bare legacy Expo token (no activity marker)."""

    device_id = LEGACY_DEVICE_ID
    platform = Platform.LEGACY
    device_name = ""
    os = ""
    app_version = ""
    metadata = factory.LazyFunction(dict)
    last_active_at = None
