"""Tests for the error hierarchy, user notices and configuration."""

from __future__ import annotations

import pytest

from arlink.config import ArlinkConfig
from arlink.errors import (
    RETRYABLE_CODES,
    ArlinkCancelledError,
    ArlinkError,
    ArlinkInsufficientBalanceError,
    ArlinkInvalidInputError,
    ArlinkProcessingError,
    ArlinkStorageError,
    ArlinkTransientError,
    ArlinkUnsupportedMediaError,
    ArlinkUploadFailedError,
    ErrorCode,
    is_retryable,
    user_notice,
)

ALL_ERRORS = [
    (ArlinkInvalidInputError, ErrorCode.INVALID_INPUT),
    (ArlinkUnsupportedMediaError, ErrorCode.UNSUPPORTED_MEDIA),
    (ArlinkProcessingError, ErrorCode.PROCESSING_FAILED),
    (ArlinkTransientError, ErrorCode.TRANSIENT),
    (ArlinkUploadFailedError, ErrorCode.UPLOAD_FAILED),
    (ArlinkInsufficientBalanceError, ErrorCode.INSUFFICIENT_BALANCE),
    (ArlinkStorageError, ErrorCode.STORAGE_ERROR),
]


# =========================================================================
# Errors
# =========================================================================

class TestErrorHierarchy:
    @pytest.mark.parametrize(("cls", "code"), ALL_ERRORS)
    def test_codes(self, cls, code):
        err = cls(message="boom")
        assert isinstance(err, ArlinkError)
        assert err.code == code
        assert err.context == {}
        assert str(err) == "boom"

    def test_cancelled_has_default_message(self):
        err = ArlinkCancelledError()
        assert err.code == ErrorCode.CANCELLED
        assert err.message == "Operation cancelled"

    def test_cause_is_chained(self):
        root = OSError("disk")
        err = ArlinkStorageError(message="write failed", cause=root)
        assert err.cause is root
        assert err.__cause__ is root

    def test_summary_uses_first_line(self):
        err = ArlinkTransientError(message="Timeout\nmore detail")
        assert err.summary() == "TRANSIENT: Timeout"

    def test_repr_includes_context(self):
        err = ArlinkInvalidInputError(message="x", context={"reason": "empty"})
        assert "reason" in repr(err)
        assert repr(err).startswith("ArlinkInvalidInputError(")

    def test_only_transient_is_retryable(self):
        assert RETRYABLE_CODES == frozenset({ErrorCode.TRANSIENT})
        assert is_retryable("TRANSIENT")
        assert not is_retryable(ErrorCode.UPLOAD_FAILED)


class TestUserNotice:
    def test_cancellation_is_info(self):
        notice = user_notice(ArlinkCancelledError())
        assert notice.level == "info"
        assert notice.message == "Operation cancelled"

    def test_upload_failure_offers_retry(self):
        notice = user_notice(ArlinkUploadFailedError(message="Upload failed after 4 attempts"))
        assert notice.level == "error"
        assert notice.action == "Retry"

    def test_insufficient_balance_offers_continue(self):
        err = ArlinkInsufficientBalanceError(
            message="low", context={"balance": "0.1", "required": "0.5"},
        )
        notice = user_notice(err)
        assert notice.level == "warning"
        assert "0.1 AR" in notice.message and "0.5 AR" in notice.message
        assert notice.action == "Continue"

    def test_unsupported_media(self):
        notice = user_notice(ArlinkUnsupportedMediaError(message="video"))
        assert "no videos or animated images" in notice.message

    def test_other_errors_use_summary(self):
        notice = user_notice(ArlinkProcessingError(message="Corrupt image"))
        assert notice.message == "PROCESSING_FAILED: Corrupt image"

    def test_foreign_exception(self):
        notice = user_notice(RuntimeError("oops"))
        assert notice.level == "error"
        assert "oops" in notice.message


# =========================================================================
# Configuration
# =========================================================================

class TestConfig:
    def test_defaults(self):
        cfg = ArlinkConfig()
        assert cfg.gateway_url == "https://arweave.net"
        assert cfg.image_quality == 90
        assert (cfg.image_max_width, cfg.image_max_height) == (1876, 1251)
        assert cfg.retry_count == 3
        assert cfg.retry_delay == 1.0
        assert cfg.retry_backoff == 1.5
        assert cfg.enable_metadata_tags is False
        assert cfg.preserve_processed_images is False
        assert cfg.check_balance_before_upload is True
        assert cfg.staleness_hours == 24.0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"image_quality": 0},
            {"image_quality": 101},
            {"image_max_width": 0},
            {"retry_count": -1},
            {"retry_delay": -0.1},
            {"retry_backoff": 0.5},
            {"retry_max_delay": -1},
            {"timeout_seconds": 0},
            {"bytes_per_native_unit": 0},
            {"staleness_hours": 0},
            {"poll_interval_seconds": 0},
        ],
    )
    def test_rejects_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ArlinkConfig(**kwargs)

    def test_rejects_plain_http_for_remote_gateway(self):
        with pytest.raises(ValueError, match="insecure HTTP"):
            ArlinkConfig(gateway_url="http://arweave.net")

    def test_allows_plain_http_for_localhost(self):
        assert ArlinkConfig(gateway_url="http://localhost:1984").gateway_url.endswith("1984")

    def test_custom_tag_pairs(self):
        cfg = ArlinkConfig(custom_tags=["A:1", " B : two ", "broken", "C:", "D:x:y"])
        assert cfg.custom_tag_pairs() == [("A", "1"), ("B", "two"), ("D", "x:y")]

    def test_from_mapping_ignores_unknown_keys(self):
        cfg = ArlinkConfig.from_mapping(
            {"image_quality": 75, "someFutureSetting": True}, retry_count=1,
        )
        assert cfg.image_quality == 75
        assert cfg.retry_count == 1
