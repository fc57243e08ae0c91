"""Structured errors for the hypotheek MCP server.

Exception hierarchy shared by the resilience layer, the API client and
the tool handlers, plus the ``StructuredError`` model returned to MCP
clients.  Every failure carries a machine-readable ``code``, a message
and, where a retry makes sense, ``retry_after_ms``.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from hypotheek_mcp.security.input_validators import format_validation_errors


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    API_ERROR = "API_ERROR"
    API_TIMEOUT = "API_TIMEOUT"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


def seconds_to_ms(seconds: float) -> int:
    """Convert a (possibly fractional) delay in seconds to whole milliseconds."""
    return max(0, math.ceil(seconds * 1000))


class HypotheekMCPError(Exception):
    """Base exception for all hypotheek MCP server errors."""


class APIError(HypotheekMCPError):
    """A failed call to the calculation backend, after retries.

    Attributes:
        code:           ``ErrorCode`` classifying the failure.
        status_code:    HTTP status (or equivalent) when one is known.
        retry_after_ms: Suggested wait before retrying, if any.
        details:        Extra context (e.g. the configured timeout).
    """

    _RETRYABLE_CODES = frozenset({ErrorCode.API_ERROR, ErrorCode.API_TIMEOUT, ErrorCode.API_RATE_LIMIT})

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.retry_after_ms = retry_after_ms
        self.details = details or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.code in self._RETRYABLE_CODES

    def to_structured(self, correlation_id: str | None = None) -> "StructuredError":
        details = dict(self.details)
        if self.status_code is not None:
            details["status_code"] = self.status_code
        return StructuredError(
            code=self.code.value,
            message=self.message,
            retry_after_ms=self.retry_after_ms,
            correlation_id=correlation_id,
            details=details or None,
        )


class CircuitOpenError(APIError):
    """Raised when the circuit breaker rejects a call without trying it.

    Carries HTTP-equivalent status 503 so the retry loop treats it like
    any other transient backend failure.
    """

    def __init__(self, retry_after: float) -> None:
        self.retry_after = max(0.0, retry_after)
        super().__init__(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Service temporarily unavailable (circuit breaker open)",
            status_code=503,
            retry_after_ms=seconds_to_ms(self.retry_after),
        )

    @property
    def is_retryable(self) -> bool:
        return True


class RateLimitExceededError(APIError):
    """Raised when a session exceeds its local per-window request quota."""

    def __init__(self, limit: int, retry_after: float) -> None:
        self.limit = limit
        self.retry_after = max(0.0, retry_after)
        super().__init__(
            ErrorCode.API_RATE_LIMIT,
            f"Rate limit exceeded. Maximum {limit} requests per minute allowed.",
            status_code=429,
            retry_after_ms=seconds_to_ms(self.retry_after),
        )


class BackendRequestError(HypotheekMCPError):
    """A single failed HTTP attempt against the backend.

    ``status_code`` is ``None`` for network-level failures (no response),
    408 for attempts aborted by the client-side timeout, and the response
    status otherwise.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def kind(self) -> str:
        if self.status_code is None:
            return "network"
        if self.status_code == 408:
            return "timeout"
        return "http"


class StructuredError(BaseModel):
    """Error payload returned to MCP clients; never contains stack traces."""

    code: str
    message: str
    retry_after_ms: int | None = None
    correlation_id: str | None = None
    field: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def from_exception(cls, exc: Exception, correlation_id: str | None = None) -> "StructuredError":
        """Create from an exception, mapping to machine-readable codes.

        Unhandled exceptions are reported generically.
        """
        if isinstance(exc, APIError):
            return exc.to_structured(correlation_id)
        if isinstance(exc, PydanticValidationError):
            first = exc.errors()[0] if exc.errors() else {}
            loc = ".".join(str(part) for part in first.get("loc", ()))
            return cls(
                code=ErrorCode.INVALID_INPUT.value,
                message=first.get("msg", "Invalid input"),
                correlation_id=correlation_id,
                field=loc or None,
                details={"error_count": exc.error_count(), "errors": format_validation_errors(exc)},
            )
        if isinstance(exc, HypotheekMCPError):
            return cls(
                code=ErrorCode.UNKNOWN_ERROR.value,
                message=str(exc),
                correlation_id=correlation_id,
            )
        return cls(
            code=ErrorCode.UNKNOWN_ERROR.value,
            message="An internal error occurred",
            correlation_id=correlation_id,
        )
