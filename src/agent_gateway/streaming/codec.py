"""Server-Sent Events framing for the chat event feed.

A frame is ``data: <compact json>`` followed by a blank line. ``encode`` and
``decode`` are pure; ``SSEDecoder`` reassembles frames from arbitrarily split
network reads.
"""
from __future__ import annotations

import codecs
import json
import logging
from typing import List, Optional, Union

from pydantic import ValidationError

from agent_gateway.exceptions import DecodeError
from agent_gateway.streaming.events import ParseErrorEvent, StreamEvent, stream_event_adapter

logger = logging.getLogger("agent_gateway.streaming.codec")

DecodedItem = Union[StreamEvent, ParseErrorEvent]


def encode(event: StreamEvent) -> str:
    """Frame one event. Same event, same bytes."""
    return f"data: {event.model_dump_json()}\n\n"


def _data_of(frame: str) -> Optional[str]:
    """Join the ``data`` fields of one frame; ``None`` if it has none."""
    data_lines = []
    for line in frame.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        if not line or line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name != "data":
            # event/id/retry fields carry nothing for this feed
            continue
        data_lines.append(value[1:] if value.startswith(" ") else value)
    if not data_lines:
        return None
    return "\n".join(data_lines)


def decode(frame: str) -> StreamEvent:
    """Parse one frame back into its event.

    Raises:
        DecodeError: If the frame has no data, is not JSON, or is not a known event
    """
    data = _data_of(frame)
    if data is None:
        raise DecodeError("Frame has no data field", raw=frame)

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in frame: {e.msg}", raw=frame) from e

    if not isinstance(payload, dict):
        raise DecodeError("Frame payload is not an object", raw=frame)

    try:
        return stream_event_adapter.validate_python(payload)
    except ValidationError as e:
        if e.errors()[0]["type"] in ("union_tag_invalid", "union_tag_not_found"):
            raise DecodeError(f"Unknown event type: {payload.get('type')!r}", raw=frame) from e
        raise DecodeError(f"Invalid {payload['type']} event: {e.error_count()} validation error(s)", raw=frame) from e


class SSEDecoder:
    """Incremental frame decoder.

    Feed it network reads in any split; it returns the events completed by
    each read. Malformed frames become ``ParseErrorEvent`` and decoding
    carries on with the next frame.
    """

    def __init__(self):
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: Union[bytes, str]) -> List[DecodedItem]:
        if isinstance(data, bytes):
            data = self._utf8.decode(data)
        self._buffer += data

        # a trailing CR may be the first half of a CRLF still in flight
        hold_cr = self._buffer.endswith("\r")
        text = self._buffer[:-1] if hold_cr else self._buffer
        text = text.replace("\r\n", "\n").replace("\r", "\n")

        frames = text.split("\n\n")
        self._buffer = frames.pop() + ("\r" if hold_cr else "")
        return [item for item in map(self._decode_frame, frames) if item is not None]

    def flush(self) -> List[DecodedItem]:
        """Decode whatever is left once the stream has ended."""
        rest = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        item = self._decode_frame(rest)
        return [item] if item is not None else []

    @staticmethod
    def _decode_frame(frame: str) -> Optional[DecodedItem]:
        if _data_of(frame) is None:
            # blank or comment-only (keep-alive) frame
            return None
        try:
            return decode(frame)
        except DecodeError as e:
            logger.warning(f"Skipping malformed event frame: {e.message}")
            return ParseErrorEvent(raw=frame, error=e.message)
