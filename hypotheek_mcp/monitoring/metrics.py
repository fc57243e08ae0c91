"""Prometheus metrics for the hypotheek MCP server.

``MetricsRegistry`` wraps a private ``prometheus_client.CollectorRegistry``
so several instances (one per app, one per test) never collide on the
global default registry.  Metrics are addressed by name; updating an
unregistered metric, or one of a different type, logs a warning and is
otherwise ignored.

``MetricsCollector`` samples breaker and limiter state into gauges at
scrape time; counters and histograms are fed by the ``record_*`` helpers
from the tool and API layers.

Example:
    >>> registry = MetricsRegistry()
    >>> initialize_metrics(registry)
    >>> record_tool_call(registry, "bereken_hypotheek_starter", 0.42, success=True)
    >>> print(registry.export())
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Gauge, Histogram, generate_latest

if TYPE_CHECKING:
    from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker
    from hypotheek_mcp.security.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

PROMETHEUS_CONTENT_TYPE = CONTENT_TYPE_LATEST


class MetricsType(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


_METRIC_CLASSES: dict[MetricsType, type] = {
    MetricsType.COUNTER: Counter,
    MetricsType.GAUGE: Gauge,
    MetricsType.HISTOGRAM: Histogram,
}


class MetricsRegistry:
    """Named Prometheus metrics backed by a private collector registry.

    Args:
        clock: Monotonic time source used for the uptime in ``export_json``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._start = clock()
        self.registry = CollectorRegistry()
        self._metrics: dict[str, tuple[MetricsType, Any, str]] = {}

    # ── Registration ────────────────────────────────────────────────

    def register(
        self,
        name: str,
        metric_type: MetricsType,
        help_text: str,
        labelnames: Sequence[str] = (),
    ) -> None:
        """Register *name*; registering an existing name is a no-op."""
        if name in self._metrics:
            return
        metric_cls = _METRIC_CLASSES[metric_type]
        metric = metric_cls(name, help_text, labelnames=list(labelnames), registry=self.registry)
        self._metrics[name] = (metric_type, metric, help_text)

    def get(self, name: str) -> Any | None:
        """Return the underlying ``prometheus_client`` metric, if registered."""
        entry = self._metrics.get(name)
        return entry[1] if entry else None

    def names(self) -> list[str]:
        return list(self._metrics)

    def clear(self) -> None:
        """Drop every metric (tests)."""
        self.registry = CollectorRegistry()
        self._metrics.clear()

    # ── Updates ─────────────────────────────────────────────────────

    def increment_counter(self, name: str, value: float = 1, labels: dict[str, str] | None = None) -> None:
        metric = self._lookup(name, MetricsType.COUNTER)
        if metric is not None:
            _with_labels(metric, labels).inc(value)

    def set_gauge(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        metric = self._lookup(name, MetricsType.GAUGE)
        if metric is not None:
            _with_labels(metric, labels).set(value)

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        metric = self._lookup(name, MetricsType.HISTOGRAM)
        if metric is not None:
            _with_labels(metric, labels).observe(value)

    def _lookup(self, name: str, expected: MetricsType) -> Any | None:
        entry = self._metrics.get(name)
        if entry is None or entry[0] != expected:
            logger.warning("%s not found or wrong type: %s", expected.value.capitalize(), name)
            return None
        return entry[1]

    # ── Reading ─────────────────────────────────────────────────────

    def sample_value(self, sample_name: str, labels: dict[str, str] | None = None) -> float | None:
        """Current value of one exposed sample (e.g. ``foo_total`` or ``foo_count``)."""
        return self.registry.get_sample_value(sample_name, labels or {})

    @property
    def uptime_seconds(self) -> int:
        return int(self._clock() - self._start)

    def export(self) -> str:
        """Prometheus text exposition format."""
        return generate_latest(self.registry).decode("utf-8")

    def export_json(self) -> dict[str, Any]:
        """Structured snapshot: timestamp, uptime and per-metric samples."""
        metrics: dict[str, Any] = {}
        for name, (metric_type, metric, help_text) in self._metrics.items():
            values = []
            for family in metric.collect():
                for sample in family.samples:
                    if sample.name.endswith("_created"):
                        continue
                    values.append({"name": sample.name, "labels": dict(sample.labels), "value": sample.value})
            metrics[name] = {
                "type": metric_type.value,
                "help": help_text,
                "values": values,
            }
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": self.uptime_seconds,
            "metrics": metrics,
        }


def _with_labels(metric: Any, labels: dict[str, str] | None) -> Any:
    return metric.labels(**labels) if labels else metric


# ── Standard metrics ────────────────────────────────────────────────

TOOL_CALLS = "hypotheek_tool_calls_total"
TOOL_DURATION = "hypotheek_tool_duration_seconds"
TOOL_ERRORS = "hypotheek_tool_errors_total"
API_REQUESTS = "hypotheek_api_requests_total"
API_DURATION = "hypotheek_api_duration_seconds"
API_ERRORS = "hypotheek_api_errors_total"
CIRCUIT_BREAKER_STATE = "hypotheek_circuit_breaker_state"
CIRCUIT_BREAKER_FAILURES = "hypotheek_circuit_breaker_failures_total"
RATE_LIMIT_HITS = "hypotheek_rate_limit_hits_total"
ACTIVE_SESSIONS = "hypotheek_active_sessions"
VALIDATION_ERRORS = "hypotheek_validation_errors_total"
PROCESS_UPTIME = "hypotheek_process_uptime_seconds"


def initialize_metrics(registry: MetricsRegistry) -> None:
    """Register the standard ``hypotheek_*`` metrics."""
    # Tool calls
    registry.register(TOOL_CALLS, MetricsType.COUNTER, "Total number of tool calls by tool name", ["tool", "status"])
    registry.register(TOOL_DURATION, MetricsType.HISTOGRAM, "Duration of tool calls in seconds", ["tool"])
    registry.register(
        TOOL_ERRORS, MetricsType.COUNTER, "Total number of tool call errors by error code", ["tool", "error_code"]
    )

    # Backend API
    registry.register(
        API_REQUESTS, MetricsType.COUNTER, "Total number of API requests to the calculation backend", ["status"]
    )
    registry.register(API_DURATION, MetricsType.HISTOGRAM, "Duration of API requests in seconds")
    registry.register(API_ERRORS, MetricsType.COUNTER, "Total number of API errors by status code", ["status_code"])

    # Circuit breaker
    registry.register(
        CIRCUIT_BREAKER_STATE, MetricsType.GAUGE, "Circuit breaker state (0=CLOSED, 1=HALF_OPEN, 2=OPEN)"
    )
    registry.register(CIRCUIT_BREAKER_FAILURES, MetricsType.COUNTER, "Total number of circuit breaker failures")

    # Rate limiter
    registry.register(RATE_LIMIT_HITS, MetricsType.COUNTER, "Total number of rate limit hits")
    registry.register(ACTIVE_SESSIONS, MetricsType.GAUGE, "Number of active sessions")

    # Validation
    registry.register(
        VALIDATION_ERRORS, MetricsType.COUNTER, "Total number of validation errors by error code", ["error_code"]
    )

    # Process
    registry.register(PROCESS_UPTIME, MetricsType.GAUGE, "Process uptime in seconds")

    logger.info("Prometheus metrics initialized (%d metrics)", len(registry.names()))


# ── Recording helpers ───────────────────────────────────────────────


def record_tool_call(
    registry: MetricsRegistry,
    tool: str,
    duration_seconds: float,
    success: bool,
    error_code: str | None = None,
) -> None:
    registry.increment_counter(TOOL_CALLS, labels={"tool": tool, "status": "success" if success else "error"})
    registry.observe_histogram(TOOL_DURATION, duration_seconds, labels={"tool": tool})
    if not success:
        registry.increment_counter(TOOL_ERRORS, labels={"tool": tool, "error_code": error_code or "UNKNOWN_ERROR"})


def record_api_call(
    registry: MetricsRegistry,
    duration_seconds: float,
    success: bool,
    status_code: int | None = None,
) -> None:
    registry.increment_counter(API_REQUESTS, labels={"status": "success" if success else "error"})
    registry.observe_histogram(API_DURATION, duration_seconds)
    if not success:
        registry.increment_counter(API_ERRORS, labels={"status_code": str(status_code) if status_code else "none"})


def record_circuit_breaker_failure(registry: MetricsRegistry) -> None:
    registry.increment_counter(CIRCUIT_BREAKER_FAILURES)


def record_rate_limit_hit(registry: MetricsRegistry) -> None:
    registry.increment_counter(RATE_LIMIT_HITS)


def record_validation_error(registry: MetricsRegistry, error_code: str) -> None:
    registry.increment_counter(VALIDATION_ERRORS, labels={"error_code": error_code})


# ── Scrape-time collector ───────────────────────────────────────────

_STATE_VALUES = {"CLOSED": 0, "HALF_OPEN": 1, "OPEN": 2}


class MetricsCollector:
    """Copy breaker, limiter and process state into gauges.

    Reads only; never changes breaker or limiter state.
    """

    def __init__(
        self,
        registry: MetricsRegistry,
        breaker: CircuitBreaker,
        limiter: RateLimiter,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self._breaker = breaker
        self._limiter = limiter
        self._clock = clock
        self._start = clock()

    def collect(self) -> None:
        self.registry.set_gauge(CIRCUIT_BREAKER_STATE, _STATE_VALUES[self._breaker.state.value])
        self.registry.set_gauge(ACTIVE_SESSIONS, self._limiter.get_total_stats().total_sessions)
        self.registry.set_gauge(PROCESS_UPTIME, int(self._clock() - self._start))
