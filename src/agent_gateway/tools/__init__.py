from .base_tool import BaseTool, Tool, ToolResult
from .builtin_tools import CalculatorTool, GetCurrentTimeTool
from .mcp_client import MCPClient
from .mcp_tool import MCPTool

__all__ = [
    "BaseTool",
    "Tool",
    "ToolResult",
    "CalculatorTool",
    "GetCurrentTimeTool",
    "MCPClient",
    "MCPTool",
]
