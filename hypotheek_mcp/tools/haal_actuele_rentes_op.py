"""haal_actuele_rentes_op tool handler.

Fetches the backend's current mortgage interest rates.  A GET: retried
like the calculation calls, but not routed through the circuit breaker.
"""

from hypotheek_mcp.formatting import format_rentes_response
from hypotheek_mcp.models.schemas import ActueleRentesInput
from hypotheek_mcp.services import Services
from hypotheek_mcp.tools.hypotheek_base import call_backend, tool_call

TOOL_NAME = "haal_actuele_rentes_op"


def create_handler(services: Services):
    """Return an async handler with a typed signature for FastMCP schema generation."""

    async def haal_actuele_rentes_op(session_id: str | None = None) -> str:
        """Fetch current mortgage interest rates per fixed-rate period."""
        async with tool_call(services, TOOL_NAME, session_id) as log:
            validated = ActueleRentesInput(session_id=session_id)
            log.info("%s: fetching current rates", TOOL_NAME)
            data = await call_backend(
                services,
                services.settings.rentes_url,
                session_id=validated.session_id,
                method="GET",
            )
            return format_rentes_response(data)

    return haal_actuele_rentes_op
