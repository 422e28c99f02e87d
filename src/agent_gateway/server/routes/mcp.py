"""Protocol endpoint (MCP streamable HTTP, JSON responses only).

POST   /mcp: JSON-RPC request or notification; session chosen by header
DELETE /mcp: close the session named by the header
GET    /mcp: not offered; no server-initiated stream
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from agent_gateway.exceptions import InvalidRequestError, JsonRpcError
from agent_gateway.protocol.jsonrpc import (
    INTERNAL_ERROR,
    PARSE_ERROR,
    error_response,
    request_id_of,
)
from agent_gateway.protocol.registry import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mcp"])

SESSION_HEADER = "mcp-session-id"


def _get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _bad_request(error: JsonRpcError) -> JSONResponse:
    return JSONResponse(error_response(None, error), status_code=400)


@router.post("/mcp")
async def mcp_post(request: Request) -> Response:
    registry = _get_registry(request)
    session_id = request.headers.get(SESSION_HEADER)

    try:
        message = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return _bad_request(JsonRpcError(PARSE_ERROR, "Parse error", data=str(e)))

    try:
        transport = await registry.resolve(session_id, message)
        response = await transport.handle(message)
    except JsonRpcError as e:
        logger.warning(f"Rejected MCP request (session={session_id}): {e.message}")
        return _bad_request(e)
    except Exception as e:
        logger.exception("Error handling MCP request")
        return JSONResponse(
            {
                "jsonrpc": "2.0",
                "id": request_id_of(message),
                "error": {"code": INTERNAL_ERROR, "message": "Internal error", "data": str(e)},
            },
            status_code=500,
        )

    headers = {SESSION_HEADER: transport.session_id} if transport.session_id else {}
    if response is None:
        return Response(status_code=202, headers=headers)
    return JSONResponse(response, headers=headers)


@router.delete("/mcp")
async def mcp_delete(request: Request) -> Response:
    registry = _get_registry(request)
    session_id = request.headers.get(SESSION_HEADER)
    if not session_id:
        return _bad_request(InvalidRequestError())

    try:
        transport = await registry.lookup(session_id)
    except JsonRpcError as e:
        return _bad_request(e)

    await transport.close()
    return Response(status_code=200)


@router.get("/mcp")
async def mcp_get() -> Response:
    return Response(status_code=405, headers={"Allow": "POST, DELETE"})
