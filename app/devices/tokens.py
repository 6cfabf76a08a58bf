"""
Push token shapes and ingestion-time classification.

A device registration arrives either as a bare Expo token (the legacy,
one-token-per-user form) or as a structured registration carrying a
platform, a token or Web Push subscription, and device metadata. The shape
is decided once here, so nothing downstream has to guess.

Usage:
    from devices.tokens import LegacyToken, parse_registration

    parsed = parse_registration("expo", "ExponentPushToken[abc]")
    isinstance(parsed, LegacyToken)  # True, no device metadata supplied

    parsed = parse_registration(
        "web",
        {"endpoint": "https://push.example/1", "keys": {...}},
        {"device_name": "Chrome on Mac"},
    )
    parsed.platform  # "web"
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Union

from core.exceptions import ValidationError

EXPO_TOKEN_PATTERN = re.compile(r"^(ExponentPushToken|ExpoPushToken)\[[^\]]+\]$")

# Legacy registrations predate device ids; they occupy this slot per user
LEGACY_DEVICE_ID = "expo"

PLATFORM_EXPO = "expo"
PLATFORM_WEB = "web"
PLATFORM_LEGACY = "legacy"


def is_expo_token(value: Any) -> bool:
    return isinstance(value, str) and bool(EXPO_TOKEN_PATTERN.match(value))


def parse_subscription(value: Any) -> dict | None:
    """
    Return a Web Push subscription dict, or None if ``value`` is not one.

    Accepts the subscription object itself or its JSON serialization, as
    browsers and older clients send either.
    """
    if isinstance(value, str):
        if not value.lstrip().startswith("{"):
            return None
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if isinstance(value, dict) and value.get("endpoint"):
        return value
    return None


@dataclass(frozen=True)
class DeviceInfo:
    """Descriptive metadata a client sends alongside its token."""

    device_name: str = ""
    os: str = ""
    os_version: str = ""
    app_version: str = ""
    browser: str = ""
    language: str = "en"
    timezone: str = "UTC"
    user_agent: str = ""
    is_pwa: bool = False

    @classmethod
    def from_mapping(cls, data: dict | None) -> DeviceInfo:
        data = data or {}
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        cleaned = {k: v for k, v in known.items() if v is not None}
        return cls(**cleaned)

    def metadata(self) -> dict:
        """Fields stored in the device's JSON metadata column."""
        values = asdict(self)
        for column in ("device_name", "os", "app_version"):
            values.pop(column)
        return values


@dataclass(frozen=True)
class LegacyToken:
    """A bare Expo token registered without device metadata."""

    token: str
    platform: str = PLATFORM_LEGACY


@dataclass(frozen=True)
class StructuredToken:
    """A multi-device registration with platform and metadata."""

    platform: str
    token: str = ""
    subscription: dict | None = None
    device_info: DeviceInfo = field(default_factory=DeviceInfo)

    @property
    def target(self) -> str | dict:
        """What the dispatcher sends to: Expo token or Web Push subscription."""
        return self.subscription if self.platform == PLATFORM_WEB else self.token


RegisteredToken = Union[LegacyToken, StructuredToken]


def parse_registration(
    platform: str | None,
    token_or_subscription: Any,
    device_info: dict | None = None,
) -> RegisteredToken:
    """
    Classify a registration payload into its token variant.

    Rules:
        - A bare Expo token with no device metadata is a LegacyToken
        - Platform ``expo`` requires a well-formed Expo token
        - Platform ``web`` requires a subscription object with an endpoint
        - A missing platform is inferred from the value's shape

    Raises:
        ValidationError: If the value matches no supported shape
    """
    platform = (platform or "").lower() or None

    if platform == PLATFORM_LEGACY or (
        device_info is None and platform in (None, PLATFORM_EXPO)
    ):
        if not is_expo_token(token_or_subscription):
            raise ValidationError(
                "Invalid Expo push token format",
                error_code="INVALID_PUSH_TOKEN",
                details={"platform": platform or PLATFORM_EXPO},
            )
        return LegacyToken(token=token_or_subscription)

    info = DeviceInfo.from_mapping(device_info)

    if platform is None:
        if is_expo_token(token_or_subscription):
            platform = PLATFORM_EXPO
        elif parse_subscription(token_or_subscription) is not None:
            platform = PLATFORM_WEB

    if platform == PLATFORM_EXPO:
        if not is_expo_token(token_or_subscription):
            raise ValidationError(
                "Invalid Expo push token format",
                error_code="INVALID_PUSH_TOKEN",
                details={"platform": PLATFORM_EXPO},
            )
        return StructuredToken(
            platform=PLATFORM_EXPO,
            token=token_or_subscription,
            device_info=info,
        )

    if platform == PLATFORM_WEB:
        subscription = parse_subscription(token_or_subscription)
        if subscription is None:
            raise ValidationError(
                "Web push requires a subscription object with an endpoint",
                error_code="INVALID_SUBSCRIPTION",
                details={"platform": PLATFORM_WEB},
            )
        return StructuredToken(
            platform=PLATFORM_WEB,
            subscription=subscription,
            device_info=info,
        )

    raise ValidationError(
        f"Unsupported push platform: {platform}",
        error_code="UNSUPPORTED_PLATFORM",
        details={"platform": platform},
    )
