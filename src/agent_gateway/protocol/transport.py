"""Per-session protocol transport.

One ``ProtocolTransport`` serves one session. It validates JSON-RPC requests,
tracks the session lifecycle and forwards tool requests to the shared
``ToolServer``. Requests for the same session are handled strictly one at a
time in arrival order.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from agent_gateway.exceptions import JsonRpcError, SessionClosedError, ToolNotFoundError
from agent_gateway.observability import global_tracer
from agent_gateway.protocol.jsonrpc import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    JsonRpcRequest,
    error_response,
    parse_message,
    request_id_of,
    success_response,
)
from agent_gateway.protocol.tool_server import ToolServer

if TYPE_CHECKING:
    from agent_gateway.protocol.registry import SessionRegistry

logger = logging.getLogger("agent_gateway.protocol.transport")

LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")


class TransportState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


class ProtocolTransport:
    """State machine ``UNINITIALIZED → INITIALIZED → CLOSED``.

    ``CLOSED`` is terminal. Entering it unregisters the session exactly once.
    """

    def __init__(
        self,
        registry: "SessionRegistry",
        tool_server: ToolServer,
        server_info: Optional[Dict[str, str]] = None,
    ):
        self.registry = registry
        self.tool_server = tool_server
        self.server_info = server_info or {"name": "agent-gateway", "version": "1.0.0"}
        self.session_id: Optional[str] = None
        self.protocol_version: Optional[str] = None
        self.client_info: Dict[str, Any] = {}
        self.state = TransportState.UNINITIALIZED
        self.created_at = time.time()
        self._lock = asyncio.Lock()

    @property
    def is_closed(self) -> bool:
        return self.state is TransportState.CLOSED

    async def handle(self, message: Any) -> Optional[Dict[str, Any]]:
        """Handle one inbound JSON-RPC message.

        Returns:
            The response object, or ``None`` for notifications.

        Raises:
            SessionClosedError: If the transport has already closed
        """
        async with self._lock:
            if self.is_closed:
                raise SessionClosedError(self.session_id or "<uninitialized>")

            try:
                request = parse_message(message)
            except JsonRpcError as e:
                return error_response(request_id_of(message), e)

            try:
                with global_tracer.start_span("mcp_request", {"method": request.method}):
                    result = await self._dispatch(request)
            except JsonRpcError as e:
                if request.is_notification:
                    logger.warning(f"Dropped notification {request.method}: {e.message}")
                    return None
                return error_response(request.id, e)
            except Exception:
                logger.exception(f"Unrecoverable error handling {request.method}, closing session {self.session_id}")
                await self._close_locked()
                raise

            if request.is_notification:
                return None
            return success_response(request.id, result)

    async def close(self) -> None:
        """Close the transport. Safe to call more than once."""
        async with self._lock:
            await self._close_locked()

    async def _close_locked(self) -> None:
        if self.is_closed:
            return
        self.state = TransportState.CLOSED
        if self.session_id is not None:
            await self.registry.remove(self.session_id)

    # ── Dispatch ─────────────────────────────────────────────────────────────

    async def _dispatch(self, request: JsonRpcRequest) -> Optional[Dict[str, Any]]:
        if request.method == "initialize":
            return await self._initialize(request)

        if self.state is not TransportState.INITIALIZED:
            raise JsonRpcError(INVALID_REQUEST, "Bad Request: Server not initialized")

        if request.method == "notifications/initialized":
            return None
        if request.method.startswith("notifications/"):
            logger.debug(f"Ignoring notification {request.method}")
            return None
        if request.method == "ping":
            return {}
        if request.method == "tools/list":
            return {"tools": self.tool_server.list_tools()}
        if request.method == "tools/call":
            return await self._call_tool(request)

        raise JsonRpcError(METHOD_NOT_FOUND, "Method not found", data=request.method)

    async def _initialize(self, request: JsonRpcRequest) -> Dict[str, Any]:
        if self.state is TransportState.INITIALIZED:
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: Server already initialized")
        if request.is_notification:
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: initialize must be a request")

        requested = request.arguments.get("protocolVersion")
        if requested is not None and not isinstance(requested, str):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params", data="protocolVersion must be a string")
        self.protocol_version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        self.client_info = request.arguments.get("clientInfo") or {}

        session_id = str(uuid.uuid4())
        await self.registry.register(session_id, self)
        self.session_id = session_id
        self.state = TransportState.INITIALIZED

        return {
            "protocolVersion": self.protocol_version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": self.server_info,
        }

    async def _call_tool(self, request: JsonRpcRequest) -> Dict[str, Any]:
        name = request.arguments.get("name")
        arguments = request.arguments.get("arguments") or {}
        if not isinstance(name, str) or not name:
            raise JsonRpcError(INVALID_PARAMS, "Invalid params", data="'name' must be a non-empty string")
        if not isinstance(arguments, dict):
            raise JsonRpcError(INVALID_PARAMS, "Invalid params", data="'arguments' must be an object")

        try:
            result = await self.tool_server.call_tool(name, arguments)
        except ToolNotFoundError as e:
            raise JsonRpcError(INVALID_PARAMS, e.message, data={"tool": name})
        return result.to_mcp_format()

    def __repr__(self) -> str:
        return f"<ProtocolTransport(session_id={self.session_id!r}, state={self.state.value})>"
