from .events import (
    ConnectedEvent,
    ChunkEvent,
    CompleteEvent,
    ErrorEvent,
    ParseErrorEvent,
    StreamEvent,
    utc_timestamp,
)
from .codec import encode, decode, SSEDecoder
from .client import ChatStreamClient

__all__ = [
    "ConnectedEvent",
    "ChunkEvent",
    "CompleteEvent",
    "ErrorEvent",
    "ParseErrorEvent",
    "StreamEvent",
    "utc_timestamp",
    "encode",
    "decode",
    "SSEDecoder",
    "ChatStreamClient",
]
