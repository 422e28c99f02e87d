from .jsonrpc import JsonRpcRequest, parse_message, is_initialize_request
from .tool_server import ToolServer
from .transport import ProtocolTransport, TransportState
from .registry import Session, SessionRegistry

__all__ = [
    "JsonRpcRequest",
    "parse_message",
    "is_initialize_request",
    "ToolServer",
    "ProtocolTransport",
    "TransportState",
    "Session",
    "SessionRegistry",
]
