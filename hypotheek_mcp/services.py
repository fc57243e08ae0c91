"""Service container.

One ``Services`` instance is built at startup and handed to every tool
handler and HTTP route, so the breaker, limiter and HTTP pool are shared
without module-level singletons.  Tests build their own with fake clocks
and an ``httpx.MockTransport`` client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from hypotheek_mcp.api_client import ApiClient
from hypotheek_mcp.core.config import Settings
from hypotheek_mcp.monitoring.health import HealthChecker
from hypotheek_mcp.monitoring.metrics import MetricsCollector, MetricsRegistry, initialize_metrics
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from hypotheek_mcp.security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    breaker: CircuitBreaker
    limiter: RateLimiter
    api_client: ApiClient
    metrics: MetricsRegistry
    collector: MetricsCollector
    health: HealthChecker

    @classmethod
    def create(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        breaker: CircuitBreaker | None = None,
        limiter: RateLimiter | None = None,
    ) -> "Services":
        """Wire the default component graph from *settings*.

        Args:
            settings:    Loaded configuration.
            http_client: Optional pre-built client (tests inject a mock transport).
            breaker:     Optional breaker (tests pass one with a fake clock).
            limiter:     Optional limiter (tests pass one with a fake clock).
        """
        breaker = breaker or CircuitBreaker(CircuitBreakerConfig())
        limiter = limiter or RateLimiter(settings.RATE_LIMIT_PER_SESSION)

        metrics = MetricsRegistry()
        initialize_metrics(metrics)

        api_client = ApiClient(settings, breaker, client=http_client, metrics=metrics)
        return cls(
            settings=settings,
            breaker=breaker,
            limiter=limiter,
            api_client=api_client,
            metrics=metrics,
            collector=MetricsCollector(metrics, breaker, limiter),
            health=HealthChecker(settings, breaker, limiter, api_client),
        )

    def start(self) -> None:
        """Start background work (the limiter's stale-session sweep)."""
        self.limiter.start()
        logger.info(
            "Services started (rate_limit=%d/min, timeout=%dms, retries=%s)",
            self.settings.RATE_LIMIT_PER_SESSION,
            self.settings.API_TIMEOUT_MS,
            self.settings.MAX_RETRIES if self.settings.ENABLE_RETRY else "off",
        )

    async def aclose(self) -> None:
        """Stop background work and release the HTTP pool."""
        await self.limiter.stop()
        await self.api_client.close()
        logger.info("Services stopped")
