"""Tests for the circuit breaker state machine.

Covers:
- CLOSED → OPEN once the sliding window holds failure_threshold failures
- OPEN fails fast without invoking the operation
- Lazy OPEN → HALF_OPEN once the timeout has elapsed
- HALF_OPEN → CLOSED after success_threshold successes, → OPEN on a failure
- Lifetime counters and stats snapshots
"""

from unittest.mock import AsyncMock

import pytest

from hypotheek_mcp.core.errors import CircuitOpenError
from hypotheek_mcp.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState


class Boom(Exception):
    pass


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=3, success_threshold=2, timeout=30.0, monitoring_period=60.0),
        clock=clock,
    )


async def _fail(breaker: CircuitBreaker, times: int = 1) -> None:
    for _ in range(times):
        with pytest.raises(Boom):
            await breaker.execute(AsyncMock(side_effect=Boom()))


async def _succeed(breaker: CircuitBreaker, value: str = "ok") -> str:
    return await breaker.execute(AsyncMock(return_value=value))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CLOSED
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestClosedState:
    async def test_initial_state_is_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats().failures == 0

    async def test_returns_operation_result(self, breaker):
        assert await _succeed(breaker, "resultaat") == "resultaat"

    async def test_reraises_operation_error_unchanged(self, breaker):
        error = Boom("original")
        with pytest.raises(Boom) as exc_info:
            await breaker.execute(AsyncMock(side_effect=error))
        assert exc_info.value is error

    async def test_stays_closed_below_threshold(self, breaker):
        await _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats().failures == 2

    async def test_opens_at_threshold(self, breaker):
        await _fail(breaker, 3)
        assert breaker.state == CircuitState.OPEN

    async def test_success_clears_failure_window(self, breaker):
        await _fail(breaker, 2)
        await _succeed(breaker)
        await _fail(breaker, 2)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats().failures == 2

    async def test_failures_outside_window_do_not_count(self, breaker, clock):
        await _fail(breaker, 2)
        clock.advance(61)
        await _fail(breaker)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats().failures == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# OPEN / HALF_OPEN
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestOpenState:
    async def test_fails_fast_without_invoking(self, breaker, clock):
        await _fail(breaker, 3)
        clock.advance(10)
        operation = AsyncMock(return_value="never")

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(operation)

        operation.assert_not_awaited()
        assert exc_info.value.status_code == 503
        assert exc_info.value.retry_after_ms == 20_000

    async def test_next_attempt_fixed_on_entry(self, breaker, clock):
        await _fail(breaker, 3)
        opened_until = breaker.next_attempt_at
        clock.advance(5)
        with pytest.raises(CircuitOpenError):
            await _succeed(breaker)
        assert breaker.next_attempt_at == opened_until

    async def test_state_stays_open_until_a_call_arrives(self, breaker, clock):
        await _fail(breaker, 3)
        clock.advance(31)
        assert breaker.state == CircuitState.OPEN
        assert breaker.seconds_until_retry() == 0.0

    async def test_call_after_timeout_probes(self, breaker, clock):
        await _fail(breaker, 3)
        clock.advance(30)
        assert await _succeed(breaker) == "ok"
        assert breaker.state == CircuitState.HALF_OPEN


class TestHalfOpenState:
    async def _half_open(self, breaker, clock):
        await _fail(breaker, 3)
        clock.advance(30)

    async def test_closes_after_success_threshold(self, breaker, clock):
        await self._half_open(breaker, clock)
        await _succeed(breaker)
        await _succeed(breaker)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.next_attempt_at is None

    async def test_single_failure_reopens(self, breaker, clock):
        await self._half_open(breaker, clock)
        await _succeed(breaker)
        await _fail(breaker)
        assert breaker.state == CircuitState.OPEN
        assert breaker.next_attempt_at == clock() + 30.0

    async def test_probe_failure_reopens_immediately(self, breaker, clock):
        await self._half_open(breaker, clock)
        await _fail(breaker)
        assert breaker.state == CircuitState.OPEN


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Counters & maintenance
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestCountersAndMaintenance:
    async def test_lifetime_counters_survive_transitions(self, breaker, clock):
        await _fail(breaker, 3)
        with pytest.raises(CircuitOpenError):
            await _succeed(breaker)
        clock.advance(30)
        await _succeed(breaker)
        await _succeed(breaker)

        stats = breaker.stats()
        assert stats.total_requests == 6
        assert stats.total_failures == 3
        assert stats.total_successes == 2
        assert stats.state == CircuitState.CLOSED

    async def test_stats_as_dict(self, breaker, clock):
        await _fail(breaker)
        data = breaker.stats().as_dict()
        assert data["state"] == "CLOSED"
        assert data["failures"] == 1
        assert data["last_failure_time"] == clock()

    async def test_reset_closes(self, breaker):
        await _fail(breaker, 3)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats().failures == 0

    async def test_force_open(self, breaker, clock):
        breaker.force_open()
        assert breaker.state == CircuitState.OPEN
        assert breaker.seconds_until_retry() == 30.0

    async def test_seconds_until_retry_none_when_closed(self, breaker):
        assert breaker.seconds_until_retry() is None
