"""JSON-RPC 2.0 message shapes used by the protocol endpoint."""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from agent_gateway.exceptions import JsonRpcError

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000

RequestId = Union[str, int]


class JsonRpcRequest(BaseModel):
    """A request or notification. Notifications carry no ``id`` member."""
    model_config = ConfigDict(extra="allow")

    jsonrpc: Literal["2.0"]
    method: str
    id: Optional[RequestId] = None
    params: Optional[Dict[str, Any]] = None

    @field_validator("id", mode="before")
    def _reject_bool_id(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("id must be a string or an integer")
        return v

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set

    @property
    def arguments(self) -> Dict[str, Any]:
        return self.params or {}


def parse_message(payload: Any) -> JsonRpcRequest:
    """Validate a decoded JSON body as a single JSON-RPC request.

    Raises:
        JsonRpcError: ``-32600`` when the payload is not a request object
    """
    if not isinstance(payload, dict):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request", data="Expected a single JSON-RPC object")
    if "method" not in payload and ("result" in payload or "error" in payload):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request", data="Responses are not accepted by this server")
    try:
        return JsonRpcRequest.model_validate(payload)
    except ValidationError as e:
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request", data=str(e.errors(include_url=False)))


def is_initialize_request(payload: Any) -> bool:
    return (
        isinstance(payload, dict)
        and payload.get("method") == "initialize"
        and "id" in payload
    )


def request_id_of(payload: Any) -> Optional[RequestId]:
    """Best-effort id extraction for error responses to unparseable requests."""
    if isinstance(payload, dict):
        value = payload.get("id")
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return value
    return None


def success_response(request_id: Optional[RequestId], result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: Optional[RequestId], error: JsonRpcError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "error": error.to_error(), "id": request_id}
