"""Health checks for load balancers and operators.

``HealthChecker.check()`` combines four component verdicts into one:

* ``api``             live HEAD probe of the backend (5s bound)
* ``circuit_breaker`` OPEN is unhealthy, HALF_OPEN is degraded
* ``rate_limiter``    degraded above 90% utilisation of live sessions
* ``configuration``   unhealthy without a real API key or base URL

The overall status is the worst component status.  Checks only read
breaker and limiter state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, Field

from hypotheek_mcp.api_client import ApiClient
from hypotheek_mcp.core.config import TEST_API_KEY, Settings
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitState
from hypotheek_mcp.security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Rate limiter utilisation (percent) above which the component is degraded
RATE_LIMIT_DEGRADED_PCT = 90


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


class ComponentHealth(BaseModel):
    status: HealthStatus
    message: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthCheckResult(BaseModel):
    """Response body for ``GET /health``."""

    status: HealthStatus
    timestamp: str
    uptime: int
    version: str
    checks: dict[str, ComponentHealth]

    @property
    def http_status(self) -> int:
        """200 while serving (healthy or degraded), 503 when unhealthy."""
        return 503 if self.status == HealthStatus.UNHEALTHY else 200


class HealthChecker:
    """Point-in-time health verdict over the backend and local guards.

    Args:
        settings:   Service configuration (version, key, base URL).
        breaker:    Circuit breaker protecting the backend.
        limiter:    Per-session rate limiter.
        api_client: Client used for the live backend probe.
        clock:      Monotonic time source for uptime.
    """

    def __init__(
        self,
        settings: Settings,
        breaker: CircuitBreaker,
        limiter: RateLimiter,
        api_client: ApiClient,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self._breaker = breaker
        self._limiter = limiter
        self._api_client = api_client
        self._clock = clock
        self._start = clock()

    async def check(self) -> HealthCheckResult:
        checks = {
            "api": await self.check_api(),
            "circuit_breaker": self.check_circuit_breaker(),
            "rate_limiter": self.check_rate_limiter(),
            "configuration": self.check_configuration(),
        }
        overall = max((c.status for c in checks.values()), key=_SEVERITY.__getitem__)

        result = HealthCheckResult(
            status=overall,
            timestamp=datetime.now(timezone.utc).isoformat(),
            uptime=int(self._clock() - self._start),
            version=self.settings.SERVICE_VERSION,
            checks=checks,
        )
        logger.debug("Health check completed (status=%s, uptime=%ds)", overall.value, result.uptime)
        return result

    def is_ready(self) -> bool:
        """Ready to take traffic unless the breaker is OPEN."""
        return self._breaker.state != CircuitState.OPEN

    def is_alive(self) -> bool:
        return True

    # ── Components ──────────────────────────────────────────────────

    async def check_api(self) -> ComponentHealth:
        try:
            ping = await self._api_client.ping()
        except (httpx.HTTPError, asyncio.TimeoutError, OSError) as exc:
            logger.warning("Health probe failed: %s", exc)
            return ComponentHealth(
                status=HealthStatus.UNHEALTHY,
                message="API unreachable",
                details={"error": str(exc) or type(exc).__name__},
            )

        if ping.ok:
            return ComponentHealth(
                status=HealthStatus.HEALTHY,
                message="API accessible",
                details={"url": self.settings.REPLIT_API_URL_BASE, "response_time_ms": ping.latency_ms},
            )
        return ComponentHealth(
            status=HealthStatus.DEGRADED,
            message=f"API returned {ping.status_code}",
            details={"status_code": ping.status_code},
        )

    def check_circuit_breaker(self) -> ComponentHealth:
        stats = self._breaker.stats()

        if stats.state == CircuitState.OPEN:
            details: dict[str, Any] = {"state": stats.state.value, "failures": stats.failures}
            remaining = self._breaker.seconds_until_retry()
            if remaining is not None:
                details["retry_in_seconds"] = round(remaining, 1)
            return ComponentHealth(status=HealthStatus.UNHEALTHY, message="Circuit breaker is OPEN", details=details)

        if stats.state == CircuitState.HALF_OPEN:
            return ComponentHealth(
                status=HealthStatus.DEGRADED,
                message="Circuit breaker is HALF_OPEN (testing)",
                details={"state": stats.state.value, "failures": stats.failures},
            )

        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Circuit breaker operational",
            details={"state": stats.state.value, "failures": stats.failures, "successes": stats.successes},
        )

    def check_rate_limiter(self) -> ComponentHealth:
        stats = self._limiter.get_total_stats()
        capacity = stats.total_sessions * stats.limit
        utilization_pct = stats.total_requests / capacity * 100 if capacity else 0.0

        if utilization_pct > RATE_LIMIT_DEGRADED_PCT:
            return ComponentHealth(
                status=HealthStatus.DEGRADED,
                message="Rate limiter under heavy load",
                details={
                    "total_sessions": stats.total_sessions,
                    "total_requests": stats.total_requests,
                    "utilization_pct": round(utilization_pct),
                },
            )
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Rate limiter operational",
            details={
                "total_sessions": stats.total_sessions,
                "total_requests": stats.total_requests,
                "limit_per_session": stats.limit,
            },
        )

    def check_configuration(self) -> ComponentHealth:
        issues = []
        if not self.settings.REPLIT_API_KEY or self.settings.REPLIT_API_KEY == TEST_API_KEY:
            issues.append("API key not configured")
        if not self.settings.REPLIT_API_URL_BASE:
            issues.append("API URL not configured")

        if issues:
            return ComponentHealth(
                status=HealthStatus.UNHEALTHY,
                message="Configuration issues detected",
                details={"issues": issues},
            )
        return ComponentHealth(
            status=HealthStatus.HEALTHY,
            message="Configuration valid",
            details={"environment": self.settings.ENVIRONMENT, "api_url": self.settings.REPLIT_API_URL_BASE},
        )
