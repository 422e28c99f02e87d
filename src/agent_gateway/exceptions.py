class GatewayError(Exception):
    """Base exception for all errors raised by the gateway."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class ConfigurationError(GatewayError):
    """Raised when there is a configuration issue (e.g. missing API keys)."""
    pass

# -- Protocol / session layer ------------------------------------------------

class JsonRpcError(GatewayError):
    """A protocol error that maps onto a JSON-RPC error object."""
    def __init__(self, code: int, message: str, data=None, details: dict = None):
        super().__init__(message, details)
        self.code = code
        self.data = data

    def to_error(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

class InvalidRequestError(JsonRpcError):
    """Raised for a malformed or ambiguous session bootstrap."""
    def __init__(self, message: str = "Bad Request: No valid session ID provided", data=None):
        super().__init__(-32000, message, data)

class SessionNotFoundError(JsonRpcError):
    """Raised when a session id is not known to the registry."""
    def __init__(self, session_id: str):
        super().__init__(-32000, "Bad Request: No valid session ID provided", details={"session_id": session_id})
        self.session_id = session_id

class SessionClosedError(JsonRpcError):
    """Raised when a request reaches a transport that has already closed."""
    def __init__(self, session_id: str):
        super().__init__(-32000, f"Session {session_id} is closed", details={"session_id": session_id})
        self.session_id = session_id

# -- Engine / streaming ------------------------------------------------------

class EngineInitError(GatewayError):
    """Raised when the shared execution engine could not be constructed."""
    pass

class StreamFailure(GatewayError):
    """Raised when a conversational turn fails after streaming has begun."""
    pass

class DecodeError(GatewayError):
    """Raised when an event frame cannot be parsed."""
    def __init__(self, message: str, raw: str = ""):
        super().__init__(message, {"raw": raw})
        self.raw = raw

# -- Collaborators -----------------------------------------------------------

class ModelProviderError(GatewayError):
    """Raised when the LLM provider fails (e.g. API error, rate limit)."""
    pass

class ToolError(GatewayError):
    """Base class for tool-related errors."""
    def __init__(self, message: str, tool_name: str, details: dict = None):
        super().__init__(message, details)
        self.tool_name = tool_name

class ToolNotFoundError(ToolError):
    """Raised when a requested tool is not found."""
    pass

class ToolExecutionError(ToolError):
    """Raised when a tool fails to execute."""
    pass
