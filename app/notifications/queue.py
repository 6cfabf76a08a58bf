"""
Deferred notification queue.

A Redis list of JSON payloads shaped exactly like the create-notification
request body. Producers LPUSH, the drain task RPOPs. RPOP is atomic, so
when several workers poll at once every item is claimed by one of them
only (at-most-once).

Usage:
    from notifications.queue import NotificationQueue

    queue = NotificationQueue()
    queue.push({"title": "Hi", "message": "...", "recipients": ["alice"]})
    payload = queue.pop()
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from django_redis import get_redis_connection
from redis.exceptions import RedisError

from core.exceptions import ValidationError

if TYPE_CHECKING:
    from redis import Redis

logger = logging.getLogger(__name__)

# get_redis_connection raises NotImplementedError for non-Redis cache backends
BACKEND_ERRORS = (RedisError, NotImplementedError, ConnectionError)


class NotificationQueue:
    """
    FIFO queue of create-notification payloads.

    Args:
        key: Redis list key
        alias: django-redis cache alias whose connection is used
    """

    def __init__(self, key: str = "notification_queue", alias: str = "default"):
        self.key = key
        self.alias = alias

    def _get_redis(self) -> Redis:
        return get_redis_connection(self.alias)

    def push(self, payload: dict) -> int:
        """
        Append a payload to the queue.

        Returns:
            Queue length after the push
        """
        return self._get_redis().lpush(self.key, json.dumps(payload, default=str))

    def requeue(self, payload: dict) -> None:
        """Put a payload back at the consuming end of the queue."""
        self._get_redis().rpush(self.key, json.dumps(payload, default=str))

    def pop(self) -> dict | None:
        """
        Claim the oldest payload.

        Returns:
            The payload, or None when the queue is empty or unreachable

        Raises:
            ValidationError: If the claimed item is not a JSON object; the
                item is already removed from the queue
        """
        try:
            raw = self._get_redis().rpop(self.key)
        except BACKEND_ERRORS as e:
            logger.warning(f"Notification queue {self.key} unavailable: {e}")
            return None

        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(
                "Malformed queue item",
                error_code="MALFORMED_QUEUE_ITEM",
                details={"item": raw[:200], "error": str(e)},
            ) from e
        if not isinstance(payload, dict):
            raise ValidationError(
                "Queue item is not an object",
                error_code="MALFORMED_QUEUE_ITEM",
                details={"item": raw[:200]},
            )
        return payload

    def length(self) -> int | None:
        """Number of queued items, or None when the queue is unreachable."""
        try:
            return self._get_redis().llen(self.key)
        except BACKEND_ERRORS as e:
            logger.warning(f"Notification queue {self.key} unavailable: {e}")
            return None
