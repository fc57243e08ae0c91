"""Retry policy for backend calls: exponential backoff with jitter."""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters (milliseconds)."""

    initial_delay_ms: int = 1_000
    max_delay_ms: int = 10_000
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.1


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_retry_delay(attempt: int, config: RetryConfig = DEFAULT_RETRY_CONFIG) -> int:
    """Return the delay in ms before retrying after 0-based *attempt*.

    ``min(initial * multiplier**attempt, max)`` jittered uniformly by up to
    ±``jitter_factor`` of itself, floored to an integer.
    """
    base_delay = min(
        config.initial_delay_ms * config.backoff_multiplier**attempt,
        config.max_delay_ms,
    )
    jitter = base_delay * config.jitter_factor * random.uniform(-1.0, 1.0)
    return int(base_delay + jitter)


def is_retryable_status(status_code: int | None) -> bool:
    """Network errors (no status), 408, 429 and 5xx are retryable."""
    if status_code is None:
        return True
    return status_code in (408, 429) or status_code >= 500
