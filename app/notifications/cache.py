"""
Read-through cache for notification feeds and counts.

Keys are versioned by a per-user generation token:

    cache:generation:user:<uid>                     -> token
    cache:<op>:user:<uid>:<token>:<params>          -> cached value

invalidate() replaces the token, so every key built with the previous
token becomes unreachable at once and simply expires with its TTL. This
needs no key scans and works the same on Redis and LocMemCache.

The cache is never authoritative. Any backend error is logged and
treated as a miss (reads) or a no-op (writes).

Usage:
    from notifications.cache import FeedCache

    feed_cache = FeedCache(ttls={"notifications": 300, "unread": 60})
    page = feed_cache.get_or_set("notifications", "alice", {"page": 1}, build_page)
    feed_cache.invalidate("alice")
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from django.core.cache import caches

from core.exceptions import CacheUnavailable

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTLS = {
    "notifications": 300,
    "unread": 60,
    "detail": 600,
    "analytics": 1800,
}

# Generations outlive every cached value they version
GENERATION_TIMEOUT = 7 * 24 * 3600


class FeedCache:
    """
    Per-user cache with O(1) invalidation.

    Args:
        ttls: Seconds to keep values, per operation name
        alias: Django cache alias to use
    """

    def __init__(self, ttls: dict[str, int] | None = None, alias: str = "default"):
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.alias = alias

    @property
    def backend(self):
        return caches[self.alias]

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def generation_key(user_id: str) -> str:
        return f"cache:generation:user:{user_id}"

    @staticmethod
    def format_params(params: dict | None) -> str:
        if not params:
            return "-"
        return ",".join(f"{key}={params[key]}" for key in sorted(params))

    def make_key(self, op: str, user_id: str, generation: str, params: dict | None) -> str:
        return f"cache:{op}:user:{user_id}:{generation}:{self.format_params(params)}"

    def _call(self, method: str, *args, **kwargs):
        try:
            return getattr(self.backend, method)(*args, **kwargs)
        except Exception as e:
            raise CacheUnavailable(
                f"Cache {method} failed",
                details={"alias": self.alias, "error": str(e)},
            ) from e

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _generation(self, user_id: str) -> str | None:
        """Return the user's generation token, creating one if missing."""
        key = self.generation_key(user_id)
        generation = self._call("get", key)
        if generation is None:
            # add() so concurrent first writers agree on one generation
            self._call("add", key, uuid.uuid4().hex, GENERATION_TIMEOUT)
            generation = self._call("get", key)
        return generation

    def _timeout(self, op: str, ttl: int | None) -> int:
        return ttl if ttl is not None else self.ttls.get(op, DEFAULT_TTLS["notifications"])

    def get(self, op: str, user_id: str, params: dict | None = None) -> Any | None:
        """Return the cached value, or None on a miss."""
        try:
            generation = self._call("get", self.generation_key(user_id))
            if generation is None:
                return None
            return self._call("get", self.make_key(op, user_id, generation, params))
        except CacheUnavailable as e:
            logger.warning(f"Cache read for {op} of user {user_id} degraded to miss: {e}")
            return None

    def set(
        self,
        op: str,
        user_id: str,
        params: dict | None,
        value: Any,
        ttl: int | None = None,
    ) -> None:
        """Store a value under the user's current generation."""
        try:
            generation = self._generation(user_id)
            if generation is None:
                return
            self._call(
                "set",
                self.make_key(op, user_id, generation, params),
                value,
                self._timeout(op, ttl),
            )
        except CacheUnavailable as e:
            logger.warning(f"Cache write for {op} of user {user_id} skipped: {e}")

    def get_or_set(
        self,
        op: str,
        user_id: str,
        params: dict | None,
        loader: Callable[[], Any],
        ttl: int | None = None,
    ) -> Any:
        """
        Return the cached value, or load it and cache the result.

        The generation is captured before ``loader`` runs and the value is
        written under that generation. An invalidate() that lands while the
        loader is reading the database therefore orphans the written key,
        and the next read misses instead of serving the stale value.

        Exceptions raised by ``loader`` propagate; nothing is cached.
        """
        try:
            generation = self._generation(user_id)
        except CacheUnavailable as e:
            logger.warning(f"Cache read for {op} of user {user_id} degraded to miss: {e}")
            return loader()
        if generation is None:
            return loader()

        key = self.make_key(op, user_id, generation, params)
        try:
            value = self._call("get", key)
        except CacheUnavailable as e:
            logger.warning(f"Cache read for {op} of user {user_id} degraded to miss: {e}")
            value = None
        if value is not None:
            return value

        value = loader()
        try:
            self._call("set", key, value, self._timeout(op, ttl))
        except CacheUnavailable as e:
            logger.warning(f"Cache write for {op} of user {user_id} skipped: {e}")
        return value

    def invalidate(self, user_id: str) -> None:
        """Make every cached value of the user unreachable."""
        try:
            self._call(
                "set",
                self.generation_key(user_id),
                uuid.uuid4().hex,
                GENERATION_TIMEOUT,
            )
        except CacheUnavailable as e:
            logger.warning(f"Cache invalidation for user {user_id} failed: {e}")
