"""
Core Application - Infrastructure & Base Classes

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Managers (import from core.managers):
    - SoftDeleteManager: Filter deleted records by default
    - SoftDeleteQuerySet: QuerySet whose delete() is a soft delete

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status
    - ValidationError, NotFoundError, StoreUnavailable, CacheUnavailable,
      DeliveryError, DedupSuppressed

Helpers (import from core.helpers):
    - calculate_pagination: Pagination metadata calculation
    - parse_positive_int: Query parameter coercion
    - user_identifier: Identifier shared with upstream services

Note:
    Django models, model mixins and managers are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

from .exceptions import (
    BaseApplicationError,
    CacheUnavailable,
    DedupSuppressed,
    DeliveryError,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from .helpers import calculate_pagination, parse_positive_int, user_identifier
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "StoreUnavailable",
    "CacheUnavailable",
    "DeliveryError",
    "DedupSuppressed",
    "calculate_pagination",
    "parse_positive_int",
    "user_identifier",
]
