"""
Tests for the application exception hierarchy and ServiceResult.
"""

from core.exceptions import (
    BaseApplicationError,
    CacheUnavailable,
    DedupSuppressed,
    DeliveryError,
    NotFoundError,
    StoreUnavailable,
    ValidationError,
)
from core.services import ServiceResult


class TestBaseApplicationError:
    def test_to_dict_includes_details(self):
        error = NotFoundError(
            "Notification not found",
            error_code="NOTIFICATION_NOT_FOUND",
            details={"notification_id": "abc"},
        )

        assert error.to_dict() == {
            "error": "Notification not found",
            "error_code": "NOTIFICATION_NOT_FOUND",
            "details": {"notification_id": "abc"},
        }

    def test_to_dict_omits_empty_details(self):
        assert "details" not in ValidationError("Bad").to_dict()

    def test_default_error_codes(self):
        assert ValidationError("x").error_code == "VALIDATION_ERROR"
        assert NotFoundError("x").error_code == "NOT_FOUND"
        assert StoreUnavailable("x").error_code == "STORE_UNAVAILABLE"
        assert CacheUnavailable("x").error_code == "CACHE_UNAVAILABLE"
        assert DeliveryError("x").error_code == "DELIVERY_FAILED"
        assert DedupSuppressed("x").error_code == "DEDUP_SUPPRESSED"

    def test_http_status_per_type(self):
        assert ValidationError("x").http_status == 400
        assert NotFoundError("x").http_status == 404
        assert StoreUnavailable("x").http_status == 503

    def test_str_contains_code(self):
        assert str(StoreUnavailable("Down")) == "[STORE_UNAVAILABLE] Down"

    def test_all_errors_share_base(self):
        for cls in (
            ValidationError,
            NotFoundError,
            StoreUnavailable,
            CacheUnavailable,
            DeliveryError,
            DedupSuppressed,
        ):
            assert issubclass(cls, BaseApplicationError)


class TestDeliveryError:
    def test_transient_by_default(self):
        assert DeliveryError("Timeout").is_permanent is False

    def test_permanent_flag(self):
        assert DeliveryError("Bad credentials", is_permanent=True).is_permanent is True


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert bool(result) is True
        assert result.data == {"id": 1}

    def test_failure(self):
        result = ServiceResult.failure("Skipped", error_code="SKIPPED")

        assert bool(result) is False
        assert result.error == "Skipped"
        assert result.error_code == "SKIPPED"
        assert result.data is None

    def test_from_exception_uses_error_code(self):
        result = ServiceResult.from_exception(DedupSuppressed("Duplicate"))

        assert result.success is False
        assert result.error_code == "DEDUP_SUPPRESSED"

    def test_from_exception_falls_back_to_class_name(self):
        result = ServiceResult.from_exception(KeyError("x"))

        assert result.error_code == "KEYERROR"
