"""
Multi-channel push dispatcher.

Fans one notification out to a set of device tokens:

- Expo tokens are chunked (100 per request, the Expo limit) and POSTed to
  the Expo push API with httpx, one batch after another
- Web Push subscriptions are sent one at a time with pywebpush using the
  configured VAPID key
- Anything else is reported as a failure and logged

Error Classification:
    success: provider accepted the message
    expired: provider says the token is gone (Expo DeviceNotRegistered,
        Web Push 404/410); the caller deactivates the device
    failure: anything else, including batch-level errors

The dispatcher never raises for a bad token or a provider outage: send()
returns exactly one DeliveryResult per input token, in input order.

Usage:
    from notifications.dispatch import Dispatcher, ExpoTransport, WebPushTransport

    dispatcher = Dispatcher(ExpoTransport(), WebPushTransport(vapid_private_key="..."))
    results = dispatcher.send(tokens, "Title", "Body", {"notificationId": "..."})
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx
from pywebpush import WebPushException, webpush

from core.exceptions import DeliveryError
from devices.tokens import is_expo_token, parse_subscription

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"
EXPIRED = "expired"

CHANNEL_EXPO = "expo"
CHANNEL_WEB = "web"
CHANNEL_UNKNOWN = "unknown"

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"
EXPO_MAX_BATCH_SIZE = 100

# Web Push statuses meaning the subscription no longer exists
EXPIRED_SUBSCRIPTION_STATUSES = {404, 410}


@dataclass
class DeliveryResult:
    """Outcome of sending to one token."""

    index: int
    token: Any
    channel: str
    status: str
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    @property
    def expired(self) -> bool:
        return self.status == EXPIRED


def classify_token(token: Any) -> tuple[str, Any]:
    """
    Decide which channel a token belongs to.

    Returns:
        (channel, normalized token); Web Push tokens are normalized to the
        subscription dict
    """
    if is_expo_token(token):
        return CHANNEL_EXPO, token
    subscription = parse_subscription(token)
    if subscription is not None:
        return CHANNEL_WEB, subscription
    return CHANNEL_UNKNOWN, token


def _describe(token: Any) -> str:
    text = token if isinstance(token, str) else json.dumps(token, default=str)
    return text[:50]


# =============================================================================
# Transports
# =============================================================================


class ExpoTransport:
    """
    Expo push API client.

    Args:
        url: Expo push endpoint
        access_token: Optional Expo access token (enhanced push security)
        batch_size: Messages per request, capped at the Expo limit
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        url: str = EXPO_PUSH_URL,
        access_token: str = "",
        batch_size: int = EXPO_MAX_BATCH_SIZE,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.access_token = access_token
        self.batch_size = max(1, min(batch_size, EXPO_MAX_BATCH_SIZE))
        self.timeout = timeout
        self.transport = transport

    def headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def send(
        self, tokens: list[str], title: str, body: str, data: dict
    ) -> list[tuple[str, str]]:
        """
        Send to Expo tokens, returning (status, error) per token in order.

        A failed batch marks all of its tokens failed; later batches are
        still sent.
        """
        outcomes: list[tuple[str, str]] = []
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            for start in range(0, len(tokens), self.batch_size):
                batch = tokens[start : start + self.batch_size]
                outcomes.extend(self._send_batch(client, batch, title, body, data))
        return outcomes

    def _post(self, client: httpx.Client, messages: list[dict]) -> list:
        """
        POST one batch and return its tickets.

        Raises:
            DeliveryError: If the request fails or the response is not one
                ticket per message
        """
        try:
            response = client.post(self.url, json=messages, headers=self.headers())
            response.raise_for_status()
            tickets = response.json().get("data")
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"Expo returned {e.response.status_code}",
                error_code="EXPO_HTTP_ERROR",
                is_permanent=e.response.status_code < 500,
            ) from e
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            raise DeliveryError(f"Expo request failed: {e}", error_code="EXPO_UNAVAILABLE") from e

        if not isinstance(tickets, list) or len(tickets) != len(messages):
            raise DeliveryError(
                "Malformed Expo response",
                error_code="EXPO_MALFORMED_RESPONSE",
                details={"expected": len(messages)},
            )
        return tickets

    def _send_batch(
        self,
        client: httpx.Client,
        batch: list[str],
        title: str,
        body: str,
        data: dict,
    ) -> list[tuple[str, str]]:
        messages = [
            {"to": token, "sound": "default", "title": title, "body": body, "data": data}
            for token in batch
        ]
        try:
            tickets = self._post(client, messages)
        except DeliveryError as e:
            logger.error(f"Expo batch of {len(batch)} failed: {e}")
            return [(FAILURE, e.message)] * len(batch)

        logger.info(f"Sent {len(batch)} Expo push notifications")
        return [self._ticket_outcome(ticket) for ticket in tickets]

    @staticmethod
    def _ticket_outcome(ticket: Any) -> tuple[str, str]:
        if not isinstance(ticket, dict):
            return FAILURE, "Malformed Expo ticket"
        if ticket.get("status") == "ok":
            return SUCCESS, ""
        details = ticket.get("details") or {}
        message = ticket.get("message") or details.get("error") or "Expo error"
        if details.get("error") == "DeviceNotRegistered":
            return EXPIRED, message
        return FAILURE, message


class WebPushTransport:
    """
    Web Push sender for PWA subscriptions.

    Args:
        vapid_private_key: VAPID private key; without it messages are sent
            unsigned, which most push services reject
        vapid_subject: Contact URI sent in the VAPID claims
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        vapid_private_key: str = "",
        vapid_subject: str = "mailto:admin@wellspring.edu.vn",
        timeout: float = 10.0,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.timeout = timeout

    def payload(self, title: str, body: str, data: dict) -> str:
        return json.dumps(
            {
                "title": title,
                "body": body,
                "icon": "/icon.png",
                "badge": "/icon.png",
                "data": data or {},
                "timestamp": int(time.time() * 1000),
            },
            default=str,
        )

    def send(self, subscription: dict, title: str, body: str, data: dict) -> tuple[str, str]:
        """Send to one subscription, returning (status, error)."""
        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self.vapid_private_key:
            kwargs["vapid_private_key"] = self.vapid_private_key
            kwargs["vapid_claims"] = {"sub": self.vapid_subject}
        try:
            webpush(
                subscription_info=subscription,
                data=self.payload(title, body, data),
                **kwargs,
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in EXPIRED_SUBSCRIPTION_STATUSES:
                logger.info(f"Web push subscription expired ({status_code})")
                return EXPIRED, f"Subscription expired ({status_code})"
            logger.error(f"Web push failed: {e}")
            return FAILURE, str(e)
        except Exception as e:
            # Transport errors surface from requests/cryptography, not as WebPushException
            logger.error(f"Web push failed: {e}")
            return FAILURE, str(e)
        return SUCCESS, ""


# =============================================================================
# Dispatcher
# =============================================================================


class Dispatcher:
    """Routes tokens to their transport and collects one result per token."""

    def __init__(self, expo: ExpoTransport, web_push: WebPushTransport):
        self.expo = expo
        self.web_push = web_push

    def send(
        self, tokens: list[Any], title: str, body: str, payload: dict | None = None
    ) -> list[DeliveryResult]:
        data = payload or {}
        results: list[DeliveryResult | None] = [None] * len(tokens)
        expo_batch: list[tuple[int, str]] = []

        for index, token in enumerate(tokens):
            channel, normalized = classify_token(token)
            if channel == CHANNEL_EXPO:
                expo_batch.append((index, normalized))
            elif channel == CHANNEL_WEB:
                status, error = self.web_push.send(normalized, title, body, data)
                results[index] = DeliveryResult(index, token, CHANNEL_WEB, status, error)
            else:
                logger.warning(f"Unknown token format: {_describe(token)}...")
                results[index] = DeliveryResult(
                    index, token, CHANNEL_UNKNOWN, FAILURE, "Unrecognized token format"
                )

        if expo_batch:
            outcomes = self.expo.send([t for _, t in expo_batch], title, body, data)
            for (index, token), (status, error) in zip(expo_batch, outcomes):
                results[index] = DeliveryResult(index, token, CHANNEL_EXPO, status, error)

        expo_count = len(expo_batch)
        logger.debug(
            f"Token breakdown: {expo_count} Expo, "
            f"{sum(1 for r in results if r and r.channel == CHANNEL_WEB)} Web Push"
        )
        return [
            result
            if result is not None
            else DeliveryResult(index, tokens[index], CHANNEL_EXPO, FAILURE, "No result")
            for index, result in enumerate(results)
        ]
