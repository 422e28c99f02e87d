"""Session registry for the protocol endpoint.

Maps an opaque session id to the live transport serving it. The registry is
an explicit object owned by the application (``app.state.registry``), built
at startup and drained at shutdown.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from agent_gateway.exceptions import InvalidRequestError, SessionNotFoundError
from agent_gateway.observability import global_metrics
from agent_gateway.protocol.jsonrpc import is_initialize_request
from agent_gateway.protocol.tool_server import ToolServer
from agent_gateway.protocol.transport import ProtocolTransport

logger = logging.getLogger("agent_gateway.protocol.registry")


@dataclass
class Session:
    id: str
    transport: ProtocolTransport
    created_at: float = field(default_factory=time.time)


class SessionRegistry:
    """Id → transport map guarded by a single ``asyncio.Lock``.

    Transports are registered by themselves once their ``initialize`` request
    succeeds, so a half-initialised transport is never visible to ``lookup``.
    """

    def __init__(self, tool_server: ToolServer, server_name: str = "agent-gateway", server_version: str = "1.0.0"):
        self.tool_server = tool_server
        self.server_name = server_name
        self.server_version = server_version
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    def new_transport(self) -> ProtocolTransport:
        return ProtocolTransport(
            registry=self,
            tool_server=self.tool_server,
            server_info={"name": self.server_name, "version": self.server_version},
        )

    async def create(self, init_request: Dict[str, Any]) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        """Build a transport and let it handle the initialisation request.

        Returns:
            ``(session_id, response)``; ``session_id`` is ``None`` when the
            transport rejected the request and was never registered.

        Raises:
            InvalidRequestError: If ``init_request`` is not an ``initialize`` request
        """
        if not is_initialize_request(init_request):
            raise InvalidRequestError()
        transport = self.new_transport()
        response = await transport.handle(init_request)
        return transport.session_id, response

    async def resolve(self, session_id: Optional[str], message: Any) -> ProtocolTransport:
        """Pick the transport for an inbound request.

        Known id → its transport. No id and an ``initialize`` request → a
        fresh, not yet registered transport. Anything else is rejected.

        Raises:
            SessionNotFoundError: If ``session_id`` is not registered
            InvalidRequestError: If no id was supplied for a non-initialize request
        """
        if session_id:
            return await self.lookup(session_id)
        if is_initialize_request(message):
            return self.new_transport()
        raise InvalidRequestError()

    async def register(self, session_id: str, transport: ProtocolTransport) -> None:
        async with self._lock:
            if session_id in self._sessions:
                raise ValueError(f"Session id {session_id} is already registered")
            self._sessions[session_id] = Session(id=session_id, transport=transport)
        global_metrics.increment_counter("sessions_created")
        logger.info(f"Session initialized with ID: {session_id}")

    async def lookup(self, session_id: str) -> ProtocolTransport:
        async with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session.transport

    async def remove(self, session_id: str) -> bool:
        """Forget a session. Removing an unknown id is a no-op."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        global_metrics.increment_counter("sessions_closed")
        logger.info(f"Transport closed for session {session_id}, removing from registry")
        return True

    async def close_all(self) -> None:
        """Close every live transport; each unregisters itself."""
        async with self._lock:
            transports = [s.transport for s in self._sessions.values()]
        for transport in transports:
            await transport.close()
        logger.info(f"Closed {len(transports)} protocol sessions")

    def sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
