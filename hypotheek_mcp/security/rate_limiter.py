"""Per-session sliding-window rate limiter.

Each session id gets its own list of request timestamps.  On every check
timestamps older than the 60-second window are dropped, so a session may
make at most ``limit`` requests inside any rolling window.  A periodic
sweep (every 5 minutes) evicts sessions whose first request is older than
two windows; ``check_limit`` never depends on it.

State is process-local and mutated without awaiting, so concurrent tasks
on one event loop never see a half-updated entry.  Two tasks may still
both pass a check before either reaches the backend; the guard is
best-effort, not a hard quota.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from hypotheek_mcp.core.errors import RateLimitExceededError

_logger = logging.getLogger("hypotheek_mcp.security")

# Window duration in seconds (1 minute)
WINDOW_SECONDS: float = 60.0

# Stale-session sweep interval in seconds (5 minutes)
CLEANUP_INTERVAL_SECONDS: float = 5 * 60.0

DEFAULT_SESSION_ID = "default"


@dataclass
class _SessionEntry:
    first_request_at: float
    requests: list[float] = field(default_factory=list)


@dataclass(frozen=True)
class RateLimitInfo:
    """Outcome of a rate-limit check.

    Attributes:
        allowed:     Whether this request fits in the window.
        current:     Requests counted in the window (including this one if allowed).
        limit:       Configured requests per window.
        reset_at:    Clock time (seconds) at which a slot frees up.
        retry_after: Seconds to wait; only set when denied.
    """

    allowed: bool
    current: int
    limit: int
    reset_at: float
    retry_after: float | None = None


@dataclass(frozen=True)
class RateLimiterTotals:
    total_sessions: int
    total_requests: int
    limit: int


class RateLimiter:
    """Sliding-window request quota per session.

    Args:
        limit: Requests allowed per session per ``WINDOW_SECONDS``.
        clock: Monotonic time source in seconds (injectable for tests).
        window_seconds: Window length; defaults to one minute.
        cleanup_interval: Seconds between stale-session sweeps.
    """

    def __init__(
        self,
        limit: int,
        clock: Callable[[], float] = time.monotonic,
        window_seconds: float = WINDOW_SECONDS,
        cleanup_interval: float = CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._sessions: dict[str, _SessionEntry] = {}
        self._cleanup_task: asyncio.Task | None = None

    # ── Checks ──────────────────────────────────────────────────────

    def check_limit(self, session_id: str) -> RateLimitInfo:
        """Count this request against *session_id* if it fits in the window."""
        now = self._clock()

        entry = self._sessions.get(session_id)
        if entry is None:
            entry = _SessionEntry(first_request_at=now)
            self._sessions[session_id] = entry

        entry.requests = [t for t in entry.requests if now - t < self.window_seconds]
        current = len(entry.requests)

        if current < self.limit:
            entry.requests.append(now)
            _logger.debug("Rate limit check passed for %s (%d/%d)", session_id, current + 1, self.limit)
            return RateLimitInfo(
                allowed=True,
                current=current + 1,
                limit=self.limit,
                reset_at=now + self.window_seconds,
            )

        reset_at = min(entry.requests) + self.window_seconds
        retry_after = reset_at - now
        _logger.warning(
            "Rate limit exceeded for %s (%d/%d), retry after %.1fs",
            session_id,
            current,
            self.limit,
            retry_after,
        )
        return RateLimitInfo(
            allowed=False,
            current=current,
            limit=self.limit,
            reset_at=reset_at,
            retry_after=retry_after,
        )

    def enforce(self, session_id: str) -> RateLimitInfo:
        """Like ``check_limit`` but raise when the request is not allowed.

        Raises:
            RateLimitExceededError: The session has used its quota.
        """
        info = self.check_limit(session_id)
        if not info.allowed:
            raise RateLimitExceededError(info.limit, info.retry_after or 0.0)
        return info

    # ── Introspection ───────────────────────────────────────────────

    def get_stats(self, session_id: str) -> RateLimitInfo | None:
        """Current standing of *session_id* without counting a request."""
        entry = self._sessions.get(session_id)
        if entry is None:
            return None

        now = self._clock()
        live = self._live_count(entry, now)
        return RateLimitInfo(
            allowed=live < self.limit,
            current=live,
            limit=self.limit,
            reset_at=now + self.window_seconds,
        )

    def get_total_stats(self) -> RateLimiterTotals:
        now = self._clock()
        return RateLimiterTotals(
            total_sessions=len(self._sessions),
            total_requests=sum(self._live_count(entry, now) for entry in self._sessions.values()),
            limit=self.limit,
        )

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def reset(self, session_id: str | None = None) -> None:
        """Forget one session, or all of them."""
        if session_id is not None:
            self._sessions.pop(session_id, None)
            _logger.debug("Rate limit reset for session %s", session_id)
        else:
            self._sessions.clear()
            _logger.debug("All rate limits reset")

    def _live_count(self, entry: _SessionEntry, now: float) -> int:
        return sum(1 for t in entry.requests if now - t < self.window_seconds)

    # ── Stale-session sweep ─────────────────────────────────────────

    def cleanup(self) -> int:
        """Evict sessions first seen more than two windows ago; return the count."""
        stale_threshold = self._clock() - self.window_seconds * 2
        stale = [sid for sid, entry in self._sessions.items() if entry.first_request_at < stale_threshold]
        for sid in stale:
            del self._sessions[sid]

        if stale:
            _logger.debug("Cleaned up %d stale rate limit entries (%d remaining)", len(stale), len(self._sessions))
        return len(stale)

    def start(self) -> None:
        """Start the periodic sweep on the running event loop (idempotent)."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())
        _logger.debug("Rate limiter cleanup started (interval=%.0fs)", self.cleanup_interval)

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        _logger.debug("Rate limiter cleanup stopped")

    @property
    def is_running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.cleanup()


def enforce_rate_limit(limiter: RateLimiter, session_id: str | None = None) -> RateLimitInfo:
    """Enforce the quota for *session_id*, falling back to ``"default"``."""
    return limiter.enforce(session_id or DEFAULT_SESSION_ID)
