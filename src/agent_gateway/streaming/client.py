"""Consumer for the chat event feed."""
from __future__ import annotations

import logging
from typing import AsyncIterator, Optional

import httpx

from agent_gateway.exceptions import GatewayError, StreamFailure
from agent_gateway.streaming.codec import DecodedItem, SSEDecoder
from agent_gateway.streaming.events import (
    ChunkEvent,
    CompleteEvent,
    ConnectedEvent,
    ErrorEvent,
    ParseErrorEvent,
)

logger = logging.getLogger("agent_gateway.streaming.client")

CHAT_STREAM_PATH = "/api/chat/stream"


class ChatStreamClient:
    """Posts chat turns and yields the decoded event feed.

    The client keeps the conversation going across turns: the thread id
    announced by the server in ``connected``/``complete`` is sent back as
    ``sessionId`` on the next turn.

    Example:
        ```python
        async with ChatStreamClient("http://localhost:3001") as chat:
            async for event in chat.stream("list unread"):
                if event.type == "chunk":
                    render(event.content)
        ```

    Leaving the ``async for`` early closes the HTTP response, which the
    server observes as a client abort.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        *,
        session_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: float = 10.0,
    ):
        self.session_id = session_id
        # only a turn's first chunk can be an echo of the user's message
        self._awaiting_first_chunk = False
        self._owns_client = client is None
        # the feed stays open for as long as the turn runs
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(connect_timeout, read=None),
        )

    async def stream(self, message: str) -> AsyncIterator[DecodedItem]:
        """Send one turn and yield its events as they arrive.

        ``ParseErrorEvent`` items are yielded too so callers can surface
        them; they never end the feed.

        Raises:
            GatewayError: If the server rejects the request before streaming
        """
        payload = {"message": message}
        if self.session_id:
            payload["sessionId"] = self.session_id

        decoder = SSEDecoder()
        self._awaiting_first_chunk = True
        async with self._client.stream(
            "POST",
            CHAT_STREAM_PATH,
            json=payload,
            headers={"Accept": "text/event-stream"},
        ) as response:
            if response.status_code != 200:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise GatewayError(
                    f"Chat request failed with HTTP {response.status_code}",
                    {"status_code": response.status_code, "body": body},
                )

            async for raw in response.aiter_bytes():
                for event in decoder.feed(raw):
                    if self._accept(event, message):
                        yield event
            for event in decoder.flush():
                if self._accept(event, message):
                    yield event

    def _accept(self, event: DecodedItem, message: str) -> bool:
        if isinstance(event, (ConnectedEvent, CompleteEvent)):
            self.session_id = event.sessionId
        elif isinstance(event, ChunkEvent):
            first, self._awaiting_first_chunk = self._awaiting_first_chunk, False
            if first and event.content.strip() == message.strip():
                # some servers replay the user's own message as the first snapshot
                return False
        elif isinstance(event, ParseErrorEvent):
            logger.warning(f"Malformed frame in chat feed: {event.error}")
        return True

    async def send(self, message: str) -> str:
        """Run one turn to completion and return the final answer.

        Raises:
            StreamFailure: If the feed ends with an ``error`` event or without ``complete``
        """
        stream = self.stream(message)
        try:
            async for event in stream:
                if isinstance(event, CompleteEvent):
                    return event.content
                if isinstance(event, ErrorEvent):
                    raise StreamFailure(event.error)
        finally:
            await stream.aclose()
        raise StreamFailure("Chat feed ended without a complete event")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ChatStreamClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
