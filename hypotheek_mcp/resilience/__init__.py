"""Resilience patterns for backend calls: circuit breaker and retry.

The circuit breaker protects the single calculation backend; retry with
exponential backoff lives in the API client, layered outside the breaker.
"""

from hypotheek_mcp.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerStats,
    CircuitState,
)
from hypotheek_mcp.resilience.retry import RetryConfig, calculate_retry_delay, is_retryable_status

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerStats",
    "CircuitState",
    "RetryConfig",
    "calculate_retry_delay",
    "is_retryable_status",
]
