"""Operational endpoints.

GET /health: liveness plus a summary of the gateway's moving parts
GET /status: what the credential boundary reports
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from agent_gateway.server.schemas import HealthOut, IdentityState, StatusOut
from agent_gateway.streaming.events import utc_timestamp

router = APIRouter(tags=["infra"])


@router.get("/health", response_model=HealthOut)
async def health(request: Request) -> HealthOut:
    state = request.app.state
    identity: IdentityState = state.identity
    return HealthOut(
        timestamp=utc_timestamp(),
        version=state.settings.APP_VERSION,
        services={
            "mcp": "running",
            "engine": "ready" if state.coordinator.is_ready else "idle",
            "auth": "authenticated" if identity.authenticated else "not_authenticated",
        },
        user=identity.identity,
        activeConnections=len(state.registry),
    )


@router.get("/status", response_model=StatusOut)
async def status(request: Request) -> StatusOut:
    identity: IdentityState = request.app.state.identity
    return StatusOut(
        authenticated=identity.authenticated,
        userEmail=identity.identity,
        method=identity.method,
    )
