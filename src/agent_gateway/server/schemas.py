"""Pydantic request/response schemas for the gateway API."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel

from agent_gateway.configs.settings import Settings


# ── Chat ─────────────────────────────────────────────────────────────────────

class ChatStreamRequest(BaseModel):
    """POST /api/chat/stream: one conversational turn.

    ``message`` is optional at the schema level so a missing message gets the
    same 400 answer as an empty one.
    """
    message: Optional[str] = None
    sessionId: Optional[str] = None


# ── Identity / operational ──────────────────────────────────────────────────

class IdentityState(BaseModel):
    """Result of the credential boundary: who, if anyone, is signed in."""
    authenticated: bool = False
    identity: Optional[str] = None
    method: str = "cli"

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityState":
        return cls(authenticated=settings.AUTHENTICATED, identity=settings.USER_EMAIL)


class HealthOut(BaseModel):
    status: str = "ok"
    timestamp: str
    version: str
    services: Dict[str, str]
    user: Optional[str] = None
    activeConnections: int


class StatusOut(BaseModel):
    authenticated: bool
    userEmail: Optional[str] = None
    method: str
