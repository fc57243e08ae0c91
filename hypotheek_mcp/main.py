"""FastAPI application entrypoint.

Provides the FastAPI app with health and metrics endpoints, request-ID
middleware, and the FastMCP SSE/HTTP server mounted at ``/mcp``.

``create_app()`` wires one ``Services`` container per app; the lifespan
starts the rate limiter's cleanup sweep and releases the HTTP pool on
shutdown.  Run with ``uvicorn hypotheek_mcp.main:app``.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal

from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from hypotheek_mcp.core.config import Settings
from hypotheek_mcp.core.logging import configure_logging
from hypotheek_mcp.monitoring.metrics import PROMETHEUS_CONTENT_TYPE
from hypotheek_mcp.server import create_mcp_server
from hypotheek_mcp.services import Services
from hypotheek_mcp.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_TOOLS_CONFIG = Path(__file__).parent.parent / "config" / "tools.yaml"


def create_app(
    settings: Settings | None = None,
    services: Services | None = None,
    tools_config: str | Path = DEFAULT_TOOLS_CONFIG,
) -> FastAPI:
    """Build the HTTP app around a ``Services`` container.

    Args:
        settings:     Configuration; loaded from the environment when omitted.
        services:     Pre-built container (tests inject fakes); built from
                      *settings* when omitted.
        tools_config: Path to the tool definitions YAML.
    """
    settings = settings or (services.settings if services else Settings())
    configure_logging(settings.LOG_LEVEL)
    services = services or Services.create(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services.start()
        try:
            yield
        finally:
            await services.aclose()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.services = services

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next) -> Response:
        """Assign or preserve a unique request ID on every request."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # ── Health & metrics ────────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Full component check; 503 when any component is unhealthy."""
        result = await services.health.check()
        return JSONResponse(result.model_dump(mode="json"), status_code=result.http_status)

    @app.get("/health/ready")
    async def ready() -> JSONResponse:
        if services.health.is_ready():
            return JSONResponse({"ready": True})
        return JSONResponse({"ready": False, "reason": "circuit breaker open"}, status_code=503)

    @app.get("/health/live")
    async def live() -> dict[str, bool]:
        return {"alive": services.health.is_alive()}

    @app.get("/metrics")
    async def metrics(format: Literal["prometheus", "json"] = "prometheus") -> Response:
        """Prometheus text exposition, or a JSON snapshot with ``?format=json``."""
        services.collector.collect()
        if format == "json":
            return JSONResponse(services.metrics.export_json())
        return Response(content=services.metrics.export(), media_type=PROMETHEUS_CONTENT_TYPE)

    # ── MCP Protocol Server ─────────────────────────────────────────

    registry = ToolRegistry(tools_config)
    mcp_server = create_mcp_server(registry, services)
    app.state.mcp_server = mcp_server
    app.mount("/mcp", mcp_server.http_app(transport="sse"))
    logger.info("MCP server mounted at /mcp with %d tools", registry.tool_count)

    return app


app = create_app()
