"""HTTP client for the listing endpoint with bounded retries."""

import threading
import time
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from io import BytesIO
from types import TracebackType

import httpx
import structlog

from src.features.fetch.config import FetchConfig
from src.features.fetch.constants import DEFAULT_CHUNK_SIZE
from src.features.fetch.metrics import FetchMetrics
from src.features.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)


logger = structlog.get_logger()


class HttpFetcher:
    """HTTP client with retries and failure isolation.

    Failures never raise; they are returned as a FetchResult carrying a
    FetchError so the caller decides what a failed page means. Backoff sleeps
    wait on ``stop_event`` and give up as soon as it is set.
    """

    def __init__(
        self,
        config: FetchConfig,
        run_id: str,
        stop_event: threading.Event | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            config: Fetch configuration.
            run_id: Unique run identifier for logging.
            stop_event: Event that aborts pending retries when set.
            transport: Optional httpx transport (used by tests).
        """
        self._config = config
        self._run_id = run_id
        self._stop_event = stop_event or threading.Event()
        self._metrics = FetchMetrics.get_instance()
        self._client = httpx.Client(
            timeout=config.timeout_seconds,
            follow_redirects=True,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/json",
                "Accept-Encoding": "gzip, deflate",
            },
            transport=transport,
        )
        self._log = logger.bind(component="fetch", run_id=run_id)

    def __enter__(self) -> "HttpFetcher":
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, closing the connection pool."""
        self.close()

    def close(self) -> None:
        """Close the underlying connection pool."""
        self._client.close()

    def fetch(self, url: str, params: dict[str, str | int] | None = None) -> FetchResult:
        """Fetch a URL with retry support.

        Args:
            url: The URL to fetch.
            params: Query parameters.

        Returns:
            FetchResult with status and body, or an error.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(url=url, cursor=(params or {}).get("cursor"))

        result = self._execute_with_retry(url, params or {}, log)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)

        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            attempts=result.attempts,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )

        return result

    def _execute_with_retry(
        self,
        url: str,
        params: dict[str, str | int],
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        """Execute request with retry logic.

        Args:
            url: URL to fetch.
            params: Query parameters.
            log: Bound logger.

        Returns:
            FetchResult from the last attempt.
        """
        policy = self._config.retry_policy
        attempt = 0
        result = self._execute_single(url, params, attempt)

        while result.error is not None and policy.should_retry(result.error, attempt):
            delay_ms = policy.delay_for(result.error, attempt)
            if result.error.retry_after:
                log.info(
                    "rate_limited", retry_after=result.error.retry_after, attempt=attempt
                )

            attempt += 1
            self._metrics.record_retry()
            log.debug(
                "retry_attempt",
                attempt=attempt,
                delay_ms=delay_ms,
                max_retries=policy.max_retries,
                error_class=result.error.error_class.value,
            )

            if self._stop_event.wait(delay_ms / 1000.0):
                log.info("retry_abandoned", attempt=attempt)
                result = self._failure(
                    url,
                    FetchError(
                        error_class=FetchErrorClass.CANCELLED,
                        message="Retry abandoned: run is stopping",
                    ),
                    attempts=attempt,
                )
                break

            result = self._execute_single(url, params, attempt)

        if result.error is not None:
            self._metrics.record_failure(result.error.error_class)
        return result

    def _execute_single(
        self,
        url: str,
        params: dict[str, str | int],
        attempt: int,
    ) -> FetchResult:
        """Execute a single HTTP request.

        Args:
            url: URL to fetch.
            params: Query parameters.
            attempt: Current attempt number (0-indexed).

        Returns:
            FetchResult from the request.
        """
        attempts = attempt + 1
        try:
            with self._client.stream("GET", url, params=params) as response:
                content_length = response.headers.get("content-length")
                if content_length and int(content_length) > self._config.max_response_size_bytes:
                    return self._failure(
                        url,
                        FetchError(
                            error_class=FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                            message=(
                                f"Response size {content_length} exceeds limit "
                                f"{self._config.max_response_size_bytes}"
                            ),
                            status_code=response.status_code,
                        ),
                        attempts=attempts,
                        status_code=response.status_code,
                    )

                body = self._read_body_with_limit(response)
                self._metrics.record_request(response.status_code, len(body))

                return FetchResult(
                    status_code=response.status_code,
                    final_url=str(response.url),
                    body_bytes=body,
                    attempts=attempts,
                    error=FetchError.from_status(
                        response.status_code,
                        retry_after=self._parse_retry_after(
                            response.headers.get("retry-after")
                        ),
                    ),
                )

        except ResponseSizeExceededError as e:
            return self._failure(
                url,
                FetchError(
                    error_class=FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                    message=str(e),
                ),
                attempts=attempts,
            )

        except httpx.TimeoutException as e:
            return self._failure(
                url,
                FetchError(
                    error_class=FetchErrorClass.NETWORK_TIMEOUT,
                    message=f"Request timed out: {e}",
                ),
                attempts=attempts,
            )

        except (httpx.ConnectError, httpx.RemoteProtocolError) as e:
            return self._failure(
                url,
                FetchError(
                    error_class=FetchErrorClass.CONNECTION_ERROR,
                    message=f"Connection failed: {e}",
                ),
                attempts=attempts,
            )

        except httpx.HTTPError as e:
            return self._failure(
                url,
                FetchError(
                    error_class=FetchErrorClass.UNKNOWN,
                    message=f"Unexpected error: {e}",
                ),
                attempts=attempts,
            )

    @staticmethod
    def _failure(
        url: str,
        error: FetchError,
        attempts: int,
        status_code: int = 0,
    ) -> FetchResult:
        """Build a FetchResult for a failed request."""
        return FetchResult(
            status_code=status_code,
            final_url=url,
            body_bytes=b"",
            attempts=max(attempts, 1),
            error=error,
        )

    def _read_body_with_limit(self, response: httpx.Response) -> bytes:
        """Read response body with size limit.

        Args:
            response: Streaming HTTP response.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        buffer = BytesIO()
        total_read = 0
        max_size = self._config.max_response_size_bytes

        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                raise ResponseSizeExceededError(max_size, total_read)
            buffer.write(chunk)

        return buffer.getvalue()

    def _parse_retry_after(self, value: str | None) -> int | None:
        """Parse Retry-After header value.

        Args:
            value: Header value (seconds or HTTP date).

        Returns:
            Seconds to wait, or None if not parseable.
        """
        if not value:
            return None

        try:
            return int(value)
        except ValueError:
            pass

        try:
            dt = parsedate_to_datetime(value)
            delta = dt - datetime.now(UTC)
            return max(0, int(delta.total_seconds()))
        except (ValueError, TypeError):
            pass

        return None
