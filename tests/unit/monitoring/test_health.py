"""Tests for HealthChecker component checks and the overall verdict."""

from unittest.mock import AsyncMock

import httpx
import pytest

from hypotheek_mcp.api_client import PingResult
from hypotheek_mcp.core.config import TEST_API_KEY, Settings
from hypotheek_mcp.monitoring.health import HealthChecker, HealthStatus
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitState
from hypotheek_mcp.security.rate_limiter import RateLimiter


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(clock=clock)


@pytest.fixture
def limiter(clock) -> RateLimiter:
    return RateLimiter(10, clock=clock)


@pytest.fixture
def api_client():
    client = AsyncMock()
    client.ping.return_value = PingResult(status_code=200, latency_ms=12.5)
    return client


@pytest.fixture
def checker(settings, breaker, limiter, api_client, clock) -> HealthChecker:
    return HealthChecker(settings, breaker, limiter, api_client, clock=clock)


class TestOverall:
    async def test_all_healthy(self, checker, clock):
        clock.advance(12)
        result = await checker.check()
        assert result.status == HealthStatus.HEALTHY
        assert result.http_status == 200
        assert result.uptime == 12
        assert result.version == "4.0.0"
        assert set(result.checks) == {"api", "circuit_breaker", "rate_limiter", "configuration"}

    async def test_degraded_still_serves(self, checker, api_client):
        api_client.ping.return_value = PingResult(status_code=500, latency_ms=3)
        result = await checker.check()
        assert result.status == HealthStatus.DEGRADED
        assert result.http_status == 200

    async def test_worst_component_wins(self, checker, breaker, api_client):
        api_client.ping.return_value = PingResult(status_code=500, latency_ms=3)
        breaker.force_open()
        result = await checker.check()
        assert result.status == HealthStatus.UNHEALTHY
        assert result.http_status == 503


class TestApiCheck:
    async def test_unreachable_is_unhealthy(self, checker, api_client):
        api_client.ping.side_effect = httpx.ConnectError("refused")
        health = await checker.check_api()
        assert health.status == HealthStatus.UNHEALTHY
        assert health.details["error"] == "refused"

    async def test_healthy_reports_latency(self, checker):
        health = await checker.check_api()
        assert health.details["response_time_ms"] == 12.5


class TestBreakerCheck:
    def test_open_is_unhealthy_with_retry_hint(self, checker, breaker, clock):
        breaker.force_open()
        clock.advance(10)
        health = checker.check_circuit_breaker()
        assert health.status == HealthStatus.UNHEALTHY
        assert health.details["retry_in_seconds"] == 20.0
        assert not checker.is_ready()

    def test_half_open_is_degraded(self, checker, breaker):
        breaker._state = CircuitState.HALF_OPEN
        assert checker.check_circuit_breaker().status == HealthStatus.DEGRADED
        assert checker.is_ready()

    def test_check_does_not_change_state(self, checker, breaker, clock):
        breaker.force_open()
        clock.advance(60)
        checker.check_circuit_breaker()
        assert breaker.state == CircuitState.OPEN


class TestRateLimiterCheck:
    def test_idle_limiter_is_healthy(self, checker):
        health = checker.check_rate_limiter()
        assert health.status == HealthStatus.HEALTHY
        assert health.details["total_sessions"] == 0

    def test_heavy_load_is_degraded(self, checker, limiter):
        for _ in range(10):
            limiter.check_limit("busy")
        health = checker.check_rate_limiter()
        assert health.status == HealthStatus.DEGRADED
        assert health.details["utilization_pct"] == 100


class TestConfigurationCheck:
    def test_placeholder_key_is_unhealthy(self, breaker, limiter, api_client):
        settings = Settings(REPLIT_API_KEY=TEST_API_KEY, ENVIRONMENT="test")
        health = HealthChecker(settings, breaker, limiter, api_client).check_configuration()
        assert health.status == HealthStatus.UNHEALTHY
        assert "API key not configured" in health.details["issues"]

    def test_missing_url_is_unhealthy(self, breaker, limiter, api_client):
        settings = Settings(REPLIT_API_KEY="k", REPLIT_API_URL_BASE="")
        health = HealthChecker(settings, breaker, limiter, api_client).check_configuration()
        assert health.details["issues"] == ["API URL not configured"]

    def test_configured_is_healthy(self, checker):
        assert checker.check_configuration().status == HealthStatus.HEALTHY

    def test_is_alive(self, checker):
        assert checker.is_alive()
