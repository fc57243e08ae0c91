"""FastMCP server.

Creates a FastMCP server instance with the seven mortgage tools
registered from the ``ToolRegistry``.  Each tool handler validates input
via its Pydantic model, enforces the session rate limit, calls the
calculation backend and formats the result.
"""

from collections.abc import Callable
from typing import Any

from fastmcp import FastMCP

from hypotheek_mcp.services import Services
from hypotheek_mcp.tool_registry import ToolRegistry
from hypotheek_mcp.tools import (
    bereken_hypotheek_doorstromer,
    bereken_hypotheek_starter,
    bereken_hypotheek_uitgebreid,
    haal_actuele_rentes_op,
    opzet_hypotheek_doorstromer,
    opzet_hypotheek_starter,
    opzet_hypotheek_uitgebreid,
)

SERVER_NAME = "hypotheek-berekening-server"

# ── Handler factory mapping ────────────────────────────────────────────

_HANDLER_FACTORIES: dict[str, Callable[..., Any]] = {
    "bereken_hypotheek_starter": bereken_hypotheek_starter.create_handler,
    "bereken_hypotheek_doorstromer": bereken_hypotheek_doorstromer.create_handler,
    "bereken_hypotheek_uitgebreid": bereken_hypotheek_uitgebreid.create_handler,
    "opzet_hypotheek_starter": opzet_hypotheek_starter.create_handler,
    "opzet_hypotheek_doorstromer": opzet_hypotheek_doorstromer.create_handler,
    "opzet_hypotheek_uitgebreid": opzet_hypotheek_uitgebreid.create_handler,
    "haal_actuele_rentes_op": haal_actuele_rentes_op.create_handler,
}


# ── Server factory ─────────────────────────────────────────────────────


def create_mcp_server(registry: ToolRegistry, services: Services) -> FastMCP:
    """Create a FastMCP server with all tools from the registry.

    Each tool is registered with its YAML-defined description and a
    handler that performs: validate → rate limit → backend call → format.

    Args:
        registry: Loaded ``ToolRegistry`` (from YAML config).
        services: Shared breaker, limiter, API client and metrics.

    Returns:
        A configured ``FastMCP`` instance ready for SSE/HTTP transport.
    """
    mcp = FastMCP(name=SERVER_NAME)

    for tool_def in registry.list_all():
        factory = _HANDLER_FACTORIES.get(tool_def.name)
        if factory is None:
            raise ValueError(
                f"No handler factory for tool '{tool_def.name}'. Available: {sorted(_HANDLER_FACTORIES.keys())}"
            )
        handler = factory(services)
        mcp.tool(
            name=tool_def.name,
            description=tool_def.description,
            tags=set(tool_def.tags),
        )(handler)

    return mcp
