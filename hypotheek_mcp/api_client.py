"""ApiClient: HTTP calls to the mortgage calculation backend.

Every request carries ``Authorization: Bearer <REPLIT_API_KEY>`` and, when
given, ``X-Correlation-ID``.  ``post()`` and ``get()`` share one retry
loop:

* each attempt is bounded by its own ``asyncio`` timeout (reported as 408)
* POST attempts run inside ``CircuitBreaker.execute``; GET attempts do not
* failures with no status, 408, 429 or 5xx are retried with exponential
  backoff and jitter; any other 4xx stops immediately
* breaker rejections (``CircuitOpenError``, status 503) consume a retry
  slot like any other transient failure

After the last attempt the failure is mapped to an ``APIError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from hypotheek_mcp.core.config import Settings
from hypotheek_mcp.core.errors import APIError, BackendRequestError, CircuitOpenError, ErrorCode
from hypotheek_mcp.core.logging import CorrelationAdapter
from hypotheek_mcp.monitoring.metrics import MetricsRegistry, record_api_call, record_circuit_breaker_failure
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker
from hypotheek_mcp.resilience.retry import (
    DEFAULT_RETRY_CONFIG,
    RetryConfig,
    calculate_retry_delay,
    is_retryable_status,
)

logger = logging.getLogger(__name__)

# Backend 429s carry no usable Retry-After; callers are told to wait a minute
BACKEND_RATE_LIMIT_RETRY_AFTER_MS = 60_000

# Bound on the health-check HEAD probe
PING_TIMEOUT_SECONDS = 5.0

# ── Data classes ────────────────────────────────────────────────────────


@dataclass
class ApiResponse:
    """Successful backend response.

    Attributes:
        data:        Parsed JSON body (raw text if the body is not JSON).
        status_code: HTTP status code.
        headers:     Response headers as a plain dict.
        duration_ms: Time spent on the successful attempt.
    """

    data: Any
    status_code: int
    headers: dict[str, str]
    duration_ms: float


@dataclass
class PingResult:
    status_code: int
    latency_ms: float

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


# ── Client ──────────────────────────────────────────────────────────────


class ApiClient:
    """Retrying, breaker-protected HTTP client for the calculation backend.

    Args:
        settings: Supplies the API key, endpoints and default call options.
        breaker:  Circuit breaker that POST attempts run through.
        client:   Pooled ``httpx.AsyncClient``; created on demand if omitted.
                  Tests inject one built on ``httpx.MockTransport``.
        metrics:  Optional registry for API call metrics.
        retry_config: Backoff parameters.
        sleep:    Awaitable delay function (seconds); replaced in tests.
    """

    def __init__(
        self,
        settings: Settings,
        breaker: CircuitBreaker,
        client: httpx.AsyncClient | None = None,
        metrics: MetricsRegistry | None = None,
        retry_config: RetryConfig = DEFAULT_RETRY_CONFIG,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.breaker = breaker
        self._client = client
        self._metrics = metrics
        self._retry_config = retry_config
        self._sleep = sleep

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _headers(self, correlation_id: str | None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.settings.REPLIT_API_KEY}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    # ── Public API ──────────────────────────────────────────────────

    async def post(
        self,
        url: str,
        payload: Any,
        *,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        enable_retry: bool | None = None,
        correlation_id: str | None = None,
    ) -> ApiResponse:
        """POST *payload* as JSON; each attempt goes through the breaker.

        Raises:
            APIError: After retries are exhausted or on a non-retryable
                failure.  ``CircuitOpenError`` if the final attempt was
                rejected by the breaker.
        """
        return await self._request(
            "POST",
            url,
            payload,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            enable_retry=enable_retry,
            correlation_id=correlation_id,
        )

    async def get(
        self,
        url: str,
        *,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        enable_retry: bool | None = None,
        correlation_id: str | None = None,
    ) -> ApiResponse:
        """GET *url*; same retry policy as ``post`` but no breaker."""
        return await self._request(
            "GET",
            url,
            None,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            enable_retry=enable_retry,
            correlation_id=correlation_id,
        )

    async def ping(self) -> PingResult:
        """HEAD the rates endpoint once, bounded to 5 seconds.

        Not retried and not routed through the breaker, so health checks
        never change breaker state.  Transport errors propagate.
        """
        started = time.monotonic()
        response = await asyncio.wait_for(
            self._get_client().head(
                self.settings.rentes_url,
                headers={"Authorization": f"Bearer {self.settings.REPLIT_API_KEY}"},
            ),
            timeout=PING_TIMEOUT_SECONDS,
        )
        return PingResult(
            status_code=response.status_code,
            latency_ms=round((time.monotonic() - started) * 1000, 2),
        )

    async def close(self) -> None:
        """Close the pooled httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── Retry loop ──────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        url: str,
        payload: Any,
        *,
        timeout_ms: int | None,
        max_retries: int | None,
        enable_retry: bool | None,
        correlation_id: str | None,
    ) -> ApiResponse:
        timeout_ms = timeout_ms if timeout_ms is not None else self.settings.API_TIMEOUT_MS
        max_retries = max_retries if max_retries is not None else self.settings.MAX_RETRIES
        enable_retry = enable_retry if enable_retry is not None else self.settings.ENABLE_RETRY
        attempts = max_retries + 1 if enable_retry else 1

        log = CorrelationAdapter(logger, correlation_id)
        headers = self._headers(correlation_id)
        started = time.monotonic()
        last_error: BackendRequestError | CircuitOpenError | None = None

        for attempt in range(attempts):
            log.debug("%s %s (attempt %d/%d)", method, url, attempt + 1, attempts)
            try:
                if method == "POST":
                    response = await self.breaker.execute(
                        lambda: self._send(method, url, payload, headers, timeout_ms)
                    )
                else:
                    response = await self._send(method, url, payload, headers, timeout_ms)
            except CircuitOpenError as exc:
                last_error = exc
            except BackendRequestError as exc:
                last_error = exc
                if method == "POST" and self._metrics is not None:
                    record_circuit_breaker_failure(self._metrics)
            else:
                log.info("%s %s succeeded (%d, %.0fms)", method, url, response.status_code, response.duration_ms)
                self._record(started, success=True, status_code=response.status_code)
                return response

            if not is_retryable_status(last_error.status_code) or attempt == attempts - 1:
                break

            delay_ms = calculate_retry_delay(attempt, self._retry_config)
            log.warning(
                "%s %s failed: %s (attempt %d/%d), retrying in %dms",
                method,
                url,
                last_error,
                attempt + 1,
                attempts,
                delay_ms,
            )
            await self._sleep(delay_ms / 1000)

        log.error("%s %s failed after %d attempt(s): %s", method, url, attempt + 1, last_error)
        self._record(started, success=False, status_code=last_error.status_code)
        raise self._map_to_api_error(last_error, timeout_ms)

    async def _send(
        self,
        method: str,
        url: str,
        payload: Any,
        headers: dict[str, str],
        timeout_ms: int,
    ) -> ApiResponse:
        """Issue one HTTP request; any failure becomes ``BackendRequestError``."""
        started = time.monotonic()
        timeout = timeout_ms / 1000
        try:
            response = await asyncio.wait_for(
                self._get_client().request(
                    method,
                    url,
                    json=payload if method == "POST" else None,
                    headers=headers,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise BackendRequestError(f"Request timeout after {timeout_ms}ms", status_code=408) from None
        except httpx.HTTPError as exc:
            raise BackendRequestError(f"Network error: {exc}") from exc

        duration_ms = round((time.monotonic() - started) * 1000, 2)
        if not response.is_success:
            raise BackendRequestError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return ApiResponse(
            data=_parse_body(response),
            status_code=response.status_code,
            headers=dict(response.headers),
            duration_ms=duration_ms,
        )

    def _record(self, started: float, success: bool, status_code: int | None) -> None:
        if self._metrics is not None:
            record_api_call(self._metrics, time.monotonic() - started, success=success, status_code=status_code)

    @staticmethod
    def _map_to_api_error(error: BackendRequestError | CircuitOpenError, timeout_ms: int) -> APIError:
        """Translate the last attempt's failure into the public error taxonomy."""
        if isinstance(error, CircuitOpenError):
            return error

        status = error.status_code
        message = str(error)
        # Case-sensitive: a 504 "Gateway Timeout" body stays an API_ERROR with its own status.
        if error.kind == "timeout" or "timeout" in message:
            return APIError(
                ErrorCode.API_TIMEOUT,
                f"API request timed out after {timeout_ms}ms",
                status_code=408,
                details={"timeout_ms": timeout_ms},
            )
        if status == 429:
            return APIError(
                ErrorCode.API_RATE_LIMIT,
                "Calculation backend rate limit exceeded. Please try again later.",
                status_code=429,
                retry_after_ms=BACKEND_RATE_LIMIT_RETRY_AFTER_MS,
            )
        return APIError(
            ErrorCode.API_ERROR,
            f"API request failed: {message}",
            status_code=status,
            details={"kind": error.kind},
        )


def _parse_body(response: httpx.Response) -> Any:
    """Parse a JSON body, falling back to the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text
