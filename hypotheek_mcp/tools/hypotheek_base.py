"""Shared plumbing for the mortgage tool handlers.

Every handler follows the same pipeline::

    validate (Pydantic) → rate limit (per session) → backend call → format

``tool_call()`` wraps that pipeline: it times the call, records tool
metrics and turns any failure into a ``ToolError`` whose text is the JSON
of a ``StructuredError``.  The payload builders map validated inputs onto
the backend's request shapes.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastmcp.exceptions import ToolError
from pydantic import ValidationError as PydanticValidationError

from hypotheek_mcp.core.errors import HypotheekMCPError, RateLimitExceededError, StructuredError
from hypotheek_mcp.core.logging import CorrelationAdapter
from hypotheek_mcp.models.schemas import AanvragerInput, BestaandeHypotheek, NieuweWoning, OpzetStarterInput
from hypotheek_mcp.monitoring.metrics import record_rate_limit_hit, record_tool_call, record_validation_error
from hypotheek_mcp.security.rate_limiter import enforce_rate_limit

if TYPE_CHECKING:
    from hypotheek_mcp.services import Services

logger = logging.getLogger(__name__)


# ── Call wrapper ────────────────────────────────────────────────────────


@asynccontextmanager
async def tool_call(services: Services, tool_name: str, session_id: str | None = None) -> AsyncIterator[CorrelationAdapter]:
    """Time a tool call, record metrics and convert failures to ``ToolError``.

    Yields a logger adapter tagged with *session_id* as correlation id.
    """
    log = CorrelationAdapter(logger, session_id)
    started = time.monotonic()
    try:
        yield log
    except Exception as exc:
        structured = StructuredError.from_exception(exc, correlation_id=session_id)
        if isinstance(exc, PydanticValidationError):
            record_validation_error(services.metrics, structured.code)
            log.warning("%s: validation failed on %s: %s", tool_name, structured.field, structured.message)
        elif isinstance(exc, HypotheekMCPError):
            log.warning("%s failed: %s %s", tool_name, structured.code, structured.message)
        else:
            log.exception("%s: unexpected error", tool_name)
        record_tool_call(
            services.metrics,
            tool_name,
            time.monotonic() - started,
            success=False,
            error_code=structured.code,
        )
        raise ToolError(json.dumps(structured.model_dump(exclude_none=True), indent=2)) from exc

    record_tool_call(services.metrics, tool_name, time.monotonic() - started, success=True)


async def call_backend(
    services: Services,
    url: str,
    payload: dict[str, Any] | None = None,
    *,
    session_id: str | None = None,
    method: str = "POST",
) -> Any:
    """Enforce the session quota, then call the backend and return its data.

    Raises:
        RateLimitExceededError: The session is over its quota; no request
            is sent.
        APIError: The backend call failed after retries.
    """
    try:
        enforce_rate_limit(services.limiter, session_id)
    except RateLimitExceededError:
        record_rate_limit_hit(services.metrics)
        raise

    if method == "GET":
        response = await services.api_client.get(url, correlation_id=session_id)
    else:
        response = await services.api_client.post(url, payload, correlation_id=session_id)
    return response.data


# ── Payload builders ────────────────────────────────────────────────────


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def aanvragers_payload(validated: AanvragerInput) -> dict[str, Any]:
    """Applicant block for the maximum-mortgage endpoint."""
    return {
        "inkomen_aanvrager": validated.inkomen_aanvrager,
        "geboortedatum_aanvrager": _iso(validated.geboortedatum_aanvrager),
        "heeft_partner": validated.heeft_partner,
        "inkomen_partner": validated.inkomen_partner,
        "geboortedatum_partner": _iso(validated.geboortedatum_partner),
        "verplichtingen_pm": validated.verplichtingen_pm,
    }


def opzet_aanvrager_payload(validated: OpzetStarterInput) -> dict[str, Any]:
    """Applicant block for the set-up endpoint (includes own funds)."""
    return {
        "inkomen_aanvrager": validated.inkomen_aanvrager,
        "geboortedatum_aanvrager": _iso(validated.geboortedatum_aanvrager),
        "heeft_partner": validated.heeft_partner,
        "inkomen_partner": validated.inkomen_partner or 0,
        "geboortedatum_partner": _iso(validated.geboortedatum_partner),
        "verplichtingen_pm": validated.verplichtingen_pm,
        "eigen_vermogen": validated.eigen_vermogen,
    }


def bestaande_hypotheek_payload(waarde_huidige_woning: float, hypotheek: BestaandeHypotheek) -> dict[str, Any]:
    return {
        "waarde_huidige_woning": waarde_huidige_woning,
        "leningdelen": [deel.model_dump(mode="json") for deel in hypotheek.leningdelen],
    }


def nieuwe_woning_payload(woning: NieuweWoning) -> dict[str, Any]:
    return woning.model_dump(mode="json")


def with_session(payload: dict[str, Any], session_id: str | None) -> dict[str, Any]:
    """Forward the session id to the backend when one was given."""
    if session_id:
        payload["session_id"] = session_id
    return payload
