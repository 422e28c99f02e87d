"""Typed events of the chat event feed.

Every feed is ``connected``, zero or more ``chunk``, then exactly one of
``complete`` or ``error``. A ``chunk`` carries the whole answer so far, not a
delta; consumers replace what they display with each one.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConnectedEvent(BaseModel):
    type: Literal["connected"] = "connected"
    sessionId: str


class ChunkEvent(BaseModel):
    type: Literal["chunk"] = "chunk"
    content: str
    timestamp: str = Field(default_factory=utc_timestamp)


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    content: str
    sessionId: str
    timestamp: str = Field(default_factory=utc_timestamp)


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Annotated[
    Union[ConnectedEvent, ChunkEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


class ParseErrorEvent(BaseModel):
    """Decoder-side diagnostic for a frame that could not be parsed. Never sent."""
    type: Literal["parse_error"] = "parse_error"
    raw: str
    error: str


TERMINAL_TYPES = frozenset({"complete", "error"})
