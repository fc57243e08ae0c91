"""Async circuit breaker for the calculation backend.

Implements the three-state circuit breaker with a sliding failure window:

    CLOSED    →  (failure_threshold failures within monitoring_period)  →  OPEN
    OPEN      →  (timeout elapsed, checked lazily on the next call)     →  HALF_OPEN
    HALF_OPEN →  (success_threshold consecutive successes)              →  CLOSED
    HALF_OPEN →  (any failure)                                          →  OPEN

A single success while CLOSED clears the whole failure window.  There is
no background timer: the OPEN → HALF_OPEN transition happens when a call
arrives after ``next_attempt_at``.

State mutations never ``await``, so under a single event loop each
transition runs to completion before another task can observe it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from hypotheek_mcp.core.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Tuning for a ``CircuitBreaker``.

    Attributes:
        failure_threshold:  Failures inside the window that trip the breaker.
        success_threshold:  Consecutive HALF_OPEN successes needed to close.
        timeout:            Seconds the breaker stays OPEN before probing.
        monitoring_period:  Length of the sliding failure window in seconds.
    """

    failure_threshold: int = 5
    success_threshold: int = 2
    timeout: float = 30.0
    monitoring_period: float = 60.0


@dataclass(frozen=True)
class CircuitBreakerStats:
    """Read-only view of breaker state for health and metrics reporting."""

    state: CircuitState
    failures: int
    successes: int
    last_failure_time: float | None
    next_attempt_at: float | None
    total_requests: int
    total_failures: int
    total_successes: int

    def as_dict(self) -> dict:
        return {
            "state": self.state.value,
            "failures": self.failures,
            "successes": self.successes,
            "last_failure_time": self.last_failure_time,
            "next_attempt_at": self.next_attempt_at,
            "total_requests": self.total_requests,
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
        }


class CircuitBreaker:
    """Circuit breaker guarding a single downstream dependency.

    Args:
        config: Thresholds and timings; defaults to ``CircuitBreakerConfig()``.
        clock:  Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._successes = 0
        self._failure_timestamps: list[float] = []
        self._last_failure_time: float | None = None
        self._next_attempt_at: float | None = None

        # Metrics
        self.total_requests = 0
        self.total_failures = 0
        self.total_successes = 0

        logger.info(
            "Circuit breaker initialized (failure_threshold=%d, success_threshold=%d, timeout=%.1fs)",
            self.config.failure_threshold,
            self.config.success_threshold,
            self.config.timeout,
        )

    # ── Public properties ────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        """Stored state; OPEN → HALF_OPEN only happens inside ``execute``."""
        return self._state

    @property
    def next_attempt_at(self) -> float | None:
        return self._next_attempt_at

    def seconds_until_retry(self) -> float | None:
        """Seconds left before an OPEN breaker lets a probe through."""
        if self._state != CircuitState.OPEN or self._next_attempt_at is None:
            return None
        return max(0.0, self._next_attempt_at - self._clock())

    # ── Core call wrapper ────────────────────────────────────────────

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run *fn* under breaker protection.

        Raises:
            CircuitOpenError: The breaker is OPEN and its timeout has not
                elapsed; *fn* is not invoked.

        Any exception raised by *fn* is recorded as a failure and re-raised
        unchanged.
        """
        self.total_requests += 1

        if self._state == CircuitState.OPEN:
            now = self._clock()
            if self._next_attempt_at is not None and now < self._next_attempt_at:
                remaining = self._next_attempt_at - now
                logger.warning("Circuit breaker is OPEN - request blocked (%.1fs remaining)", remaining)
                raise CircuitOpenError(remaining)
            self._to_half_open()

        try:
            result = await fn()
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def stats(self) -> CircuitBreakerStats:
        """Return a snapshot; the failure count only includes the live window."""
        return CircuitBreakerStats(
            state=self._state,
            failures=len(self._live_failures()),
            successes=self._successes,
            last_failure_time=self._last_failure_time,
            next_attempt_at=self._next_attempt_at,
            total_requests=self.total_requests,
            total_failures=self.total_failures,
            total_successes=self.total_successes,
        )

    def reset(self) -> None:
        """Force-reset to CLOSED and forget all failures."""
        logger.info("Circuit breaker: manual reset")
        self._state = CircuitState.CLOSED
        self._successes = 0
        self._failure_timestamps = []
        self._last_failure_time = None
        self._next_attempt_at = None

    def force_open(self) -> None:
        """Trip the breaker immediately (maintenance)."""
        logger.warning("Circuit breaker: forced OPEN")
        self._to_open()

    # ── Outcome bookkeeping ──────────────────────────────────────────

    def _on_success(self) -> None:
        self.total_successes += 1
        self._failure_timestamps = []

        if self._state == CircuitState.HALF_OPEN:
            self._successes += 1
            logger.info(
                "Circuit breaker: success in HALF_OPEN state (%d/%d)",
                self._successes,
                self.config.success_threshold,
            )
            if self._successes >= self.config.success_threshold:
                self._to_closed()

    def _on_failure(self) -> None:
        now = self._clock()
        self.total_failures += 1
        self._last_failure_time = now
        self._failure_timestamps.append(now)
        self._failure_timestamps = self._live_failures()

        logger.warning(
            "Circuit breaker: failure recorded (state=%s, failures_in_window=%d, threshold=%d)",
            self._state.value,
            len(self._failure_timestamps),
            self.config.failure_threshold,
        )

        if self._state == CircuitState.HALF_OPEN:
            self._to_open()
        elif self._state == CircuitState.CLOSED:
            if len(self._failure_timestamps) >= self.config.failure_threshold:
                self._to_open()

    def _live_failures(self) -> list[float]:
        cutoff = self._clock() - self.config.monitoring_period
        return [t for t in self._failure_timestamps if t > cutoff]

    # ── Transitions ──────────────────────────────────────────────────

    def _to_closed(self) -> None:
        logger.info(
            "Circuit breaker: CLOSED (previous=%s, total_failures=%d, total_successes=%d)",
            self._state.value,
            self.total_failures,
            self.total_successes,
        )
        self._state = CircuitState.CLOSED
        self._successes = 0
        self._failure_timestamps = []
        self._next_attempt_at = None

    def _to_open(self) -> None:
        self._next_attempt_at = self._clock() + self.config.timeout
        logger.error(
            "Circuit breaker: OPEN - blocking requests for %.1fs (previous=%s)",
            self.config.timeout,
            self._state.value,
        )
        self._state = CircuitState.OPEN
        self._successes = 0

    def _to_half_open(self) -> None:
        logger.info("Circuit breaker: HALF_OPEN - probing backend (previous=%s)", self._state.value)
        self._state = CircuitState.HALF_OPEN
        self._failure_timestamps = []
        self._successes = 0
