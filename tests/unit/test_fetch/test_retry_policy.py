"""Unit tests for retry policy decisions."""

import pytest
from pydantic import ValidationError

from src.features.fetch.models import FetchError, FetchErrorClass, RetryPolicy


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.max_retries == 3
        assert policy.base_delay_ms == 1000
        assert policy.max_delay_ms == 30000
        assert policy.exponential_base == 2.0
        assert policy.jitter_factor == 0.1

    def test_rejects_out_of_range_retries(self) -> None:
        """Test that max_retries is bounded."""
        with pytest.raises(ValidationError):
            RetryPolicy(max_retries=11)


class TestShouldRetry:
    """Tests for retry decision logic."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create a standard retry policy."""
        return RetryPolicy(max_retries=3)

    @pytest.mark.parametrize(
        "error_class",
        [
            FetchErrorClass.NETWORK_TIMEOUT,
            FetchErrorClass.CONNECTION_ERROR,
            FetchErrorClass.HTTP_5XX,
            FetchErrorClass.RATE_LIMITED,
        ],
    )
    def test_transient_errors_retried(
        self, policy: RetryPolicy, error_class: FetchErrorClass
    ) -> None:
        """Test that transient error classes are retried until the limit."""
        error = FetchError(error_class=error_class, message="transient")

        assert policy.should_retry(error, attempt=0) is True
        assert policy.should_retry(error, attempt=2) is True
        assert policy.should_retry(error, attempt=3) is False  # Max reached

    @pytest.mark.parametrize(
        "error_class",
        [
            FetchErrorClass.HTTP_4XX,
            FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
            FetchErrorClass.CANCELLED,
            FetchErrorClass.UNKNOWN,
        ],
    )
    def test_permanent_errors_not_retried(
        self, policy: RetryPolicy, error_class: FetchErrorClass
    ) -> None:
        """Test that permanent error classes are never retried."""
        error = FetchError(error_class=error_class, message="permanent")

        assert policy.should_retry(error, attempt=0) is False

    def test_zero_max_retries(self) -> None:
        """Test policy with zero max retries."""
        policy = RetryPolicy(max_retries=0)
        error = FetchError(
            error_class=FetchErrorClass.HTTP_5XX,
            message="Server Error",
            status_code=500,
        )

        assert policy.should_retry(error, attempt=0) is False


class TestGetDelayMs:
    """Tests for retry delay calculation."""

    def test_exponential_backoff(self) -> None:
        """Test that delays increase exponentially."""
        policy = RetryPolicy(
            base_delay_ms=1000,
            exponential_base=2.0,
            jitter_factor=0.0,  # No jitter for deterministic test
        )

        assert policy.get_delay_ms(0) == 1000
        assert policy.get_delay_ms(1) == 2000
        assert policy.get_delay_ms(2) == 4000

    def test_max_delay_cap(self) -> None:
        """Test that delay is capped at max_delay_ms."""
        policy = RetryPolicy(
            base_delay_ms=1000,
            max_delay_ms=5000,
            jitter_factor=0.0,
        )

        assert policy.get_delay_ms(3) == 5000
        assert policy.get_delay_ms(10) == 5000

    def test_jitter_bounded(self) -> None:
        """Test that jitter stays within the jitter factor."""
        policy = RetryPolicy(base_delay_ms=1000, jitter_factor=0.1)

        for _ in range(10):
            assert 1000 <= policy.get_delay_ms(0) <= 1100

    def test_retry_after_stretches_delay(self) -> None:
        """Test that a Retry-After longer than the backoff is honored."""
        policy = RetryPolicy(base_delay_ms=1000, jitter_factor=0.0)
        error = FetchError(
            error_class=FetchErrorClass.RATE_LIMITED,
            message="Rate limited",
            retry_after=5,
        )

        assert policy.delay_for(error, attempt=0) == 5000

    def test_retry_after_capped(self) -> None:
        """Test that Retry-After is capped at one minute."""
        policy = RetryPolicy(base_delay_ms=1000, jitter_factor=0.0)
        error = FetchError(
            error_class=FetchErrorClass.RATE_LIMITED,
            message="Rate limited",
            retry_after=3600,
        )

        assert policy.delay_for(error, attempt=0) == 60_000


class TestFromStatus:
    """Tests for status code classification."""

    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [
            (400, FetchErrorClass.HTTP_4XX),
            (404, FetchErrorClass.HTTP_4XX),
            (429, FetchErrorClass.RATE_LIMITED),
            (500, FetchErrorClass.HTTP_5XX),
            (503, FetchErrorClass.HTTP_5XX),
            (304, FetchErrorClass.UNKNOWN),
        ],
    )
    def test_error_statuses(self, status_code: int, expected: FetchErrorClass) -> None:
        """Test that non-2xx statuses map to error classes."""
        error = FetchError.from_status(status_code)

        assert error is not None
        assert error.error_class == expected
        assert error.status_code == status_code

    def test_success_is_not_an_error(self) -> None:
        """Test that 2xx statuses are not errors."""
        assert FetchError.from_status(200) is None

    def test_retry_after_kept_for_rate_limit_only(self) -> None:
        """Test that Retry-After is attached only to 429 errors."""
        limited = FetchError.from_status(429, retry_after=7)
        failed = FetchError.from_status(503, retry_after=7)

        assert limited is not None
        assert limited.retry_after == 7
        assert failed is not None
        assert failed.retry_after is None
