"""FastAPI application for the agent gateway.

Wires together:
  - Protocol endpoint (/mcp) backed by an explicit session registry
  - Chat streaming endpoint backed by the shared engine coordinator
  - Operational endpoints (/health, /status)
  - OpenTelemetry setup and CORS middleware
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from agent_gateway.configs.settings import Settings, settings as default_settings
from agent_gateway.logger import quiet_noisy_loggers, setup_logging
from agent_gateway.observability.telemetry import (
    configure_opentelemetry,
    shutdown_opentelemetry,
)
from agent_gateway.protocol.registry import SessionRegistry
from agent_gateway.protocol.tool_server import ToolServer
from agent_gateway.server.routes.chat import router as chat_router
from agent_gateway.server.routes.health import router as health_router
from agent_gateway.server.routes.mcp import router as mcp_router
from agent_gateway.server.schemas import IdentityState
from agent_gateway.server.services.engine_service import EngineCoordinator, engine_factory
from agent_gateway.tools.builtin_tools import CalculatorTool, GetCurrentTimeTool

logger = logging.getLogger(__name__)


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings: Settings = app.state.settings

    # ---------- STARTUP ----------
    setup_logging(level=settings.LOG_LEVEL, service_name=settings.SERVICE_NAME)
    configure_opentelemetry(
        service_name=settings.SERVICE_NAME,
        otlp_trace_endpoint=settings.OTLP_TRACE_ENDPOINT,
        service_version=settings.APP_VERSION,
    )
    quiet_noisy_loggers()
    logger.info(f"MCP endpoint available at {settings.SERVER_URL.rstrip('/')}/mcp")
    logger.info(f"Chat stream endpoint available at {settings.SERVER_URL.rstrip('/')}/api/chat/stream")

    yield

    # ---------- SHUTDOWN ----------
    await app.state.registry.close_all()
    await app.state.coordinator.shutdown()
    shutdown_opentelemetry()


# ── App factory ──────────────────────────────────────────────────────────────

def create_app(
    settings: Optional[Settings] = None,
    *,
    coordinator: Optional[EngineCoordinator] = None,
    tool_server: Optional[ToolServer] = None,
    registry: Optional[SessionRegistry] = None,
    identity: Optional[IdentityState] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    Shared state lives on ``app.state`` and is built here, not in the
    lifespan, so every collaborator can be swapped in tests.
    """
    settings = settings or default_settings
    app = FastAPI(
        title="Agent Gateway",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    # an empty registry or tool server is falsy, so compare against None
    if tool_server is None:
        tool_server = ToolServer([CalculatorTool(), GetCurrentTimeTool()])
    if registry is None:
        registry = SessionRegistry(
            tool_server,
            server_name=settings.APP_NAME,
            server_version=settings.APP_VERSION,
        )
    if coordinator is None:
        coordinator = EngineCoordinator(
            engine_factory(settings),
            init_timeout=settings.ENGINE_INIT_TIMEOUT,
        )
    if identity is None:
        identity = IdentityState.from_settings(settings)

    app.state.tool_server = tool_server
    app.state.registry = registry
    app.state.coordinator = coordinator
    app.state.identity = identity

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["mcp-session-id"],
    )

    app.include_router(mcp_router)
    app.include_router(chat_router)
    app.include_router(health_router)

    FastAPIInstrumentor.instrument_app(app)

    return app


# ── Module-level app (for `uvicorn agent_gateway.server.app:app`) ────────────

app = create_app()
