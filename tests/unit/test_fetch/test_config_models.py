"""Unit tests for fetch configuration and result models."""

import pytest
from pydantic import ValidationError

from src.features.fetch.config import (
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    FetchConfig,
)
from src.features.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES
from src.features.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    RetryPolicy,
)


class TestFetchConfig:
    """Tests for FetchConfig."""

    def test_defaults(self) -> None:
        """Test default request settings."""
        config = FetchConfig()

        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.timeout_seconds == float(DEFAULT_TIMEOUT_SECONDS)
        assert config.max_response_size_bytes == DEFAULT_MAX_RESPONSE_SIZE_BYTES
        assert config.retry_policy == RetryPolicy()

    def test_full_page_fits_default_limit(self) -> None:
        """Test that a 1000-item listing page stays under the size limit."""
        assert DEFAULT_MAX_RESPONSE_SIZE_BYTES > 2 * 1024 * 1024

    @pytest.mark.parametrize(
        "options",
        [
            {"max_response_size_bytes": 100},
            {"max_response_size_bytes": 500 * 1024 * 1024},
            {"timeout_seconds": 0.5},
            {"user_agent": ""},
            {"proxy": "http://127.0.0.1:3128"},
        ],
    )
    def test_invalid_options(self, options: dict[str, object]) -> None:
        """Test that out-of-range or unknown options are rejected."""
        with pytest.raises(ValidationError):
            FetchConfig(**options)  # type: ignore[arg-type]


class TestFetchResult:
    """Tests for FetchResult."""

    def test_success_on_2xx(self) -> None:
        """Test that a 2xx response without error is a success."""
        result = FetchResult(
            status_code=200,
            final_url="https://example.com/listing",
            body_bytes=b'{"scratchpads": []}',
        )

        assert result.is_success is True
        assert result.body_size == 19
        assert result.attempts == 1

    def test_size_error_is_not_success(self) -> None:
        """Test that an oversized body is reported as a failure."""
        result = FetchResult(
            status_code=200,
            final_url="https://example.com/listing",
            error=FetchError(
                error_class=FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                message="Response too large",
            ),
        )

        assert result.is_success is False
        assert result.body_size == 0

    def test_no_response(self) -> None:
        """Test a result for a request that never got a response."""
        result = FetchResult(
            status_code=0,
            final_url="https://example.com/listing",
            attempts=4,
            error=FetchError(
                error_class=FetchErrorClass.CONNECTION_ERROR,
                message="Connection refused",
            ),
        )

        assert result.is_success is False
        assert result.attempts == 4

    def test_cancelled_is_not_retryable(self) -> None:
        """Test that a cancelled fetch is never retried."""
        error = FetchError(error_class=FetchErrorClass.CANCELLED, message="stopping")

        assert RetryPolicy().should_retry(error, attempt=0) is False
