"""Tests for ApiClient retry, timeout and breaker integration.

Every test drives an ``httpx.MockTransport``; retries never sleep.
"""

import asyncio
import json

import httpx
import pytest

from hypotheek_mcp.api_client import ApiClient
from hypotheek_mcp.core.errors import APIError, CircuitOpenError, ErrorCode
from hypotheek_mcp.monitoring.metrics import API_ERRORS, API_REQUESTS, MetricsRegistry, initialize_metrics
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

URL = "http://backend.test/berekenen/maximaal"


class Recorder:
    """Transport handler that replays a scripted list of responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return httpx.Response(outcome, json={"status": outcome})
        return outcome


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_client(settings, clock, sleeps):
    def _make(handler, threshold: int = 5, metrics: MetricsRegistry | None = None) -> ApiClient:
        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=threshold), clock=clock)
        return ApiClient(
            settings,
            breaker,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            metrics=metrics,
            sleep=fake_sleep,
        )

    return _make


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Requests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestRequests:
    async def test_post_sends_auth_and_json(self, make_client):
        handler = Recorder(httpx.Response(200, json={"resultaat": []}))
        client = make_client(handler)

        response = await client.post(URL, {"a": 1}, correlation_id="sess-1")

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Bearer sk-test-123"
        assert request.headers["X-Correlation-ID"] == "sess-1"
        assert json.loads(request.content) == {"a": 1}
        assert response.data == {"resultaat": []}
        assert response.status_code == 200
        assert response.duration_ms >= 0

    async def test_no_correlation_header_without_id(self, make_client):
        handler = Recorder(200)
        await make_client(handler).post(URL, {})
        assert "X-Correlation-ID" not in handler.requests[0].headers

    async def test_non_json_body_returned_as_text(self, make_client):
        client = make_client(Recorder(httpx.Response(200, text="plain")))
        assert (await client.get(URL)).data == "plain"

    async def test_close_releases_client(self, make_client):
        client = make_client(Recorder(200))
        await client.close()
        assert client._client is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Retry loop
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestRetry:
    async def test_recovers_after_two_503s(self, make_client, sleeps):
        handler = Recorder(503, 503, httpx.Response(200, json={"ok": True}))
        response = await make_client(handler).post(URL, {}, max_retries=2)

        assert response.data == {"ok": True}
        assert len(handler.requests) == 3
        assert len(sleeps) == 2
        assert 0.9 <= sleeps[0] <= 1.1
        assert 1.8 <= sleeps[1] <= 2.2

    async def test_client_error_is_not_retried(self, make_client, sleeps):
        handler = Recorder(400)
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).post(URL, {}, max_retries=3)

        assert len(handler.requests) == 1
        assert sleeps == []
        assert exc_info.value.code == ErrorCode.API_ERROR
        assert exc_info.value.status_code == 400

    async def test_retry_disabled_means_one_attempt(self, make_client):
        handler = Recorder(503)
        with pytest.raises(APIError):
            await make_client(handler).post(URL, {}, enable_retry=False, max_retries=5)
        assert len(handler.requests) == 1

    async def test_exhausted_5xx_maps_to_api_error(self, make_client):
        handler = Recorder(500)
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).post(URL, {}, max_retries=2)
        assert len(handler.requests) == 3
        assert exc_info.value.code == ErrorCode.API_ERROR
        assert exc_info.value.status_code == 500
        assert exc_info.value.details == {"kind": "http"}

    async def test_backend_429_maps_to_rate_limit(self, make_client):
        handler = Recorder(429)
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).post(URL, {}, max_retries=1)
        assert len(handler.requests) == 2
        assert exc_info.value.code == ErrorCode.API_RATE_LIMIT
        assert exc_info.value.retry_after_ms == 60_000

    async def test_network_error_retried(self, make_client):
        handler = Recorder(httpx.ConnectError("refused"), 200)
        response = await make_client(handler).get(URL, max_retries=1)
        assert response.status_code == 200
        assert len(handler.requests) == 2

    async def test_network_error_exhausted(self, make_client):
        handler = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).get(URL, max_retries=1)
        assert exc_info.value.code == ErrorCode.API_ERROR
        assert exc_info.value.status_code is None
        assert exc_info.value.details == {"kind": "network"}

    async def test_transport_timeout_maps_to_api_timeout(self, make_client):
        handler = Recorder(httpx.ReadTimeout("slow"))
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).post(URL, {}, max_retries=0, timeout_ms=7_000)
        assert exc_info.value.code == ErrorCode.API_TIMEOUT
        assert exc_info.value.details == {"timeout_ms": 7_000}

    async def test_per_attempt_timeout(self, settings, clock):
        class SlowTransport(httpx.AsyncBaseTransport):
            async def handle_async_request(self, request):
                await asyncio.sleep(1)
                return httpx.Response(200)

        client = ApiClient(
            settings,
            CircuitBreaker(clock=clock),
            client=httpx.AsyncClient(transport=SlowTransport()),
        )
        with pytest.raises(APIError) as exc_info:
            await client.get(URL, timeout_ms=10, enable_retry=False)
        assert exc_info.value.code == ErrorCode.API_TIMEOUT
        assert exc_info.value.status_code == 408

    async def test_backend_408_is_retried(self, make_client, sleeps):
        handler = Recorder(408, httpx.Response(200, json={"ok": True}))
        response = await make_client(handler).post(URL, {}, max_retries=1)

        assert response.data == {"ok": True}
        assert len(handler.requests) == 2
        assert len(sleeps) == 1

    @pytest.mark.parametrize("status", [404, 422])
    async def test_other_client_errors_get_one_attempt(self, make_client, sleeps, status):
        handler = Recorder(status)
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).post(URL, {}, max_retries=3)

        assert len(handler.requests) == 1
        assert sleeps == []
        assert exc_info.value.status_code == status

    async def test_gateway_timeout_body_keeps_504(self, make_client):
        handler = Recorder(httpx.Response(504, text="Gateway Timeout"))
        with pytest.raises(APIError) as exc_info:
            await make_client(handler).post(URL, {}, max_retries=0)

        assert exc_info.value.code == ErrorCode.API_ERROR
        assert exc_info.value.status_code == 504
        assert exc_info.value.details == {"kind": "http"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Breaker integration
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestBreakerIntegration:
    async def test_breaker_opens_then_fails_fast(self, make_client):
        handler = Recorder(503)
        client = make_client(handler, threshold=2)

        with pytest.raises(APIError):
            await client.post(URL, {}, enable_retry=False)
        with pytest.raises(APIError):
            await client.post(URL, {}, enable_retry=False)
        assert client.breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError) as exc_info:
            await client.post(URL, {}, enable_retry=False)
        assert len(handler.requests) == 2
        assert exc_info.value.status_code == 503

    async def test_breaker_rejections_consume_retry_slots(self, make_client, sleeps):
        handler = Recorder(503)
        client = make_client(handler, threshold=1)

        with pytest.raises(CircuitOpenError):
            await client.post(URL, {}, max_retries=2)

        assert len(handler.requests) == 1
        assert len(sleeps) == 2

    async def test_get_bypasses_breaker(self, make_client):
        handler = Recorder(503)
        client = make_client(handler, threshold=1)

        with pytest.raises(APIError):
            await client.get(URL, enable_retry=False)
        assert client.breaker.state == CircuitState.CLOSED
        assert client.breaker.stats().total_requests == 0

    async def test_ping_bypasses_breaker(self, make_client):
        handler = Recorder(httpx.Response(204))
        client = make_client(handler, threshold=1)
        client.breaker.force_open()

        ping = await client.ping()

        assert ping.ok
        assert handler.requests[0].method == "HEAD"
        assert handler.requests[0].url.path == "/rentes"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Metrics
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestMetrics:
    async def test_records_success_and_failure(self, make_client):
        metrics = MetricsRegistry()
        initialize_metrics(metrics)
        client = make_client(Recorder(200, 404), metrics=metrics)

        await client.post(URL, {})
        with pytest.raises(APIError):
            await client.post(URL, {})

        assert metrics.sample_value(f"{API_REQUESTS}", {"status": "success"}) == 1
        assert metrics.sample_value(f"{API_REQUESTS}", {"status": "error"}) == 1
        assert metrics.sample_value(f"{API_ERRORS}", {"status_code": "404"}) == 1
