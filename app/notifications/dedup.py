"""
Dedup guard for bursty source events.

A biometric reader can fire twice in one second; both reads must produce a
single notification. The guard claims a marker with an atomic
set-if-absent (cache.add, SET NX EX on Redis). Whoever claims it proceeds,
everyone else inside the window is suppressed.

Policies:
    SlidingWindowPolicy: Fixed window starting at the first event
        (student gate taps, 5 minutes)
    CalendarDayPolicy: First event of each local calendar day
        (staff check-in vs. later FaceID records)

Failure Semantics:
    The guard fails open. When the marker store is unreachable the event is
    treated as the first one; a duplicate notification is preferable to a
    lost one.

Usage:
    from notifications.dedup import DedupGuard, SlidingWindowPolicy

    guard = DedupGuard()
    policy = SlidingWindowPolicy("attendance_notif", seconds=300)
    if guard.should_proceed(student_code, policy):
        send()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from django.core.cache import caches
from django.utils import timezone

from core.exceptions import DedupSuppressed

if TYPE_CHECKING:
    from typing import Union

    Window = Union["SlidingWindowPolicy", "CalendarDayPolicy", int, float]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlidingWindowPolicy:
    """Suppress repeats for ``seconds`` after the first event."""

    namespace: str
    seconds: int

    def key(self, source_id: str, at: datetime) -> str:
        return f"{self.namespace}:{source_id}"

    def timeout(self, at: datetime) -> int:
        return max(1, int(self.seconds))


@dataclass(frozen=True)
class CalendarDayPolicy:
    """Let through the first event of each calendar day in ``tz``."""

    namespace: str
    tz: str = "UTC"

    def local(self, at: datetime) -> datetime:
        return at.astimezone(ZoneInfo(self.tz))

    def key(self, source_id: str, at: datetime) -> str:
        return f"{self.namespace}:{source_id}:{self.local(at).date().isoformat()}"

    def timeout(self, at: datetime) -> int:
        """Seconds until the next local midnight."""
        local = self.local(at)
        midnight = datetime.combine(
            local.date() + timedelta(days=1), time.min, tzinfo=local.tzinfo
        )
        return max(1, int((midnight - local).total_seconds()))


class DedupGuard:
    """
    Atomic first-event-wins guard.

    Args:
        alias: Django cache alias holding the markers
    """

    def __init__(self, alias: str = "default"):
        self.alias = alias

    @staticmethod
    def resolve_policy(window: Window) -> SlidingWindowPolicy | CalendarDayPolicy:
        if isinstance(window, (SlidingWindowPolicy, CalendarDayPolicy)):
            return window
        return SlidingWindowPolicy("dedup", int(window))

    def should_proceed(self, source_id: str, window: Window, at: datetime | None = None) -> bool:
        """
        Claim the marker for ``source_id``.

        Args:
            source_id: Identifier of the physical source (student code, ...)
            window: A policy, or a number of seconds for a sliding window
            at: Event time; defaults to now

        Returns:
            True for the first event in the window, False when suppressed
        """
        policy = self.resolve_policy(window)
        at = at or timezone.now()
        key = policy.key(source_id, at)

        try:
            claimed = caches[self.alias].add(
                key, at.isoformat(), timeout=policy.timeout(at)
            )
        except Exception as e:
            logger.warning(f"Dedup store unavailable for {key}, allowing event: {e}")
            return True

        if claimed is None:
            # django-redis with IGNORE_EXCEPTIONS swallows the error
            logger.warning(f"Dedup store returned no answer for {key}, allowing event")
            return True
        return bool(claimed)

    def check(self, source_id: str, window: Window, at: datetime | None = None) -> None:
        """
        Like should_proceed(), but raise when suppressed.

        Raises:
            DedupSuppressed: If an earlier event already claimed the window
        """
        if not self.should_proceed(source_id, window, at):
            policy = self.resolve_policy(window)
            raise DedupSuppressed(
                f"Duplicate event for {source_id} suppressed",
                details={"source_id": source_id, "policy": policy.namespace},
            )

    def release(self, source_id: str, window: Window, at: datetime | None = None) -> None:
        """Drop the marker so the next event in the window proceeds again."""
        policy = self.resolve_policy(window)
        key = policy.key(source_id, at or timezone.now())
        try:
            caches[self.alias].delete(key)
        except Exception as e:
            logger.warning(f"Dedup store unavailable, marker {key} not released: {e}")
