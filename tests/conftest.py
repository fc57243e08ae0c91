"""Shared fixtures for the hypotheek MCP test suite.

``ENVIRONMENT=test`` is set before any settings load so ``Settings()``
works without a real ``REPLIT_API_KEY``.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import Callable  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from hypotheek_mcp.core.config import Settings  # noqa: E402
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig  # noqa: E402
from hypotheek_mcp.security.rate_limiter import RateLimiter  # noqa: E402
from hypotheek_mcp.services import Services  # noqa: E402

BASE_URL = "http://backend.test"


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        REPLIT_API_KEY="sk-test-123",
        REPLIT_API_URL_BASE=BASE_URL,
        ENVIRONMENT="test",
        API_TIMEOUT_MS=5_000,
        MAX_RETRIES=2,
        RATE_LIMIT_PER_SESSION=3,
    )


@pytest.fixture
def make_services(settings, clock) -> Callable[..., Services]:
    """Build a ``Services`` container whose HTTP calls go to *handler*.

    Retries never sleep: the API client's delay function is replaced.
    """

    def _make(handler: Callable[[httpx.Request], httpx.Response], **overrides) -> Services:
        config = overrides.pop("breaker_config", CircuitBreakerConfig(failure_threshold=5))
        services = Services.create(
            overrides.pop("settings", settings),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            breaker=CircuitBreaker(config, clock=clock),
            limiter=RateLimiter(overrides.pop("limit", 3), clock=clock),
        )

        async def _no_sleep(_seconds: float) -> None:
            return None

        services.api_client._sleep = _no_sleep
        return services

    return _make
