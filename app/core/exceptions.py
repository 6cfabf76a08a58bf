"""
Exception hierarchy for the notification service.

Every domain error carries a machine-readable code and an HTTP status so
views can translate it into a response without knowing the concrete type.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Malformed payloads, rejected before any write
    ├── NotFoundError - Unknown notification, tracker record or device
    ├── StoreUnavailable - Authoritative store failed; escalated to the caller
    ├── CacheUnavailable - Cache backend failed; degrades to a miss
    ├── DeliveryError - Push provider rejected a message
    └── DedupSuppressed - Event collapsed by the dedup window (not a failure)

Usage:
    from core.exceptions import NotFoundError

    try:
        record = tracker.mark_read(notification_id, recipient_id)
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers, etc.)
        http_status: Status used when the error reaches an API response
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Notification not found",
                "error_code": "NOTIFICATION_NOT_FOUND",
                "details": {"notification_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when a payload is rejected.

    Raised before anything is persisted, so a rejected create never leaves
    a partial notification behind.
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """Raised when a notification, tracker record or device does not exist."""

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class StoreUnavailable(BaseApplicationError):
    """
    Raised when the authoritative database cannot complete a write.

    Unlike cache failures this is never swallowed: the caller must learn
    that nothing durable happened.
    """

    default_error_code: str = "STORE_UNAVAILABLE"
    http_status: int = 503


class CacheUnavailable(BaseApplicationError):
    """
    Raised inside the cache layer when the backend fails.

    Callers of FeedCache never see this: it is caught, logged and treated
    as a miss.
    """

    default_error_code: str = "CACHE_UNAVAILABLE"
    http_status: int = 503


class DeliveryError(BaseApplicationError):
    """
    Raised when a push provider rejects a message.

    Attributes:
        is_permanent: True if retrying cannot succeed (expired token,
            invalid credentials). Transient errors (timeouts, 5xx) are
            retried by Celery.
    """

    default_error_code: str = "DELIVERY_FAILED"
    http_status: int = 502

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        is_permanent: bool = False,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.is_permanent = is_permanent


class DedupSuppressed(BaseApplicationError):
    """
    Raised when an event falls inside an active dedup window.

    This is an expected outcome, logged at INFO and never reported as a
    failure.
    """

    default_error_code: str = "DEDUP_SUPPRESSED"
    http_status: int = 200
