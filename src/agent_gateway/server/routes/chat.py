"""Chat streaming endpoint.

POST /api/chat/stream: send a message, receive the answer as a live event
feed of cumulative snapshots (``connected``, ``chunk``…, ``complete``/``error``).
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from agent_gateway.exceptions import GatewayError
from agent_gateway.observability import global_metrics
from agent_gateway.server.schemas import ChatStreamRequest
from agent_gateway.server.services.engine_service import EngineCoordinator
from agent_gateway.streaming.codec import encode
from agent_gateway.streaming.events import ChunkEvent, CompleteEvent, ConnectedEvent, ErrorEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def new_thread_id() -> str:
    """``session-<epoch ms>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"session-{int(time.time() * 1000)}-{suffix}"


async def chat_event_stream(
    coordinator: EngineCoordinator,
    thread_id: str,
    message: str,
) -> AsyncIterator[str]:
    """Frame one turn as SSE text, one frame per yield.

    Once the first frame is out the HTTP status is committed, so every
    failure from here on is reported as a final ``error`` event.
    """
    yield encode(ConnectedEvent(sessionId=thread_id))

    final = ""
    snapshots = coordinator.stream_invoke(thread_id, message)
    try:
        async for snapshot in snapshots:
            final = snapshot
            yield encode(ChunkEvent(content=snapshot))
    except GatewayError as e:
        global_metrics.increment_counter("stream_failures", tags={"error": type(e).__name__})
        logger.error(f"Chat stream failed for {thread_id}: {e.message}")
        yield encode(ErrorEvent(error=e.message))
        return
    except Exception as e:
        global_metrics.increment_counter("stream_failures", tags={"error": type(e).__name__})
        logger.exception(f"Unexpected error in chat stream for {thread_id}")
        yield encode(ErrorEvent(error=str(e) or type(e).__name__))
        return
    finally:
        await snapshots.aclose()

    yield encode(CompleteEvent(content=final, sessionId=thread_id))
    logger.info(f"Chat stream complete for {thread_id}")


@router.post("/api/chat/stream")
async def chat_stream(body: ChatStreamRequest, request: Request):
    """Stream the engine's answer to ``message`` on thread ``sessionId``.

    Flow:
      1. Reject a missing/empty message before any stream opens
      2. Use ``sessionId`` as the thread id, or mint a new one
      3. Stream ``connected``, one ``chunk`` per snapshot, then ``complete``
    """
    if not body.message:
        return JSONResponse({"error": "Message is required"}, status_code=400)

    coordinator: EngineCoordinator = request.app.state.coordinator
    thread_id = body.sessionId or new_thread_id()
    global_metrics.increment_counter("chat_streams")
    logger.info(f"Chat stream started for {thread_id}")

    return StreamingResponse(
        content=chat_event_stream(coordinator, thread_id, body.message),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )
