"""Tools exposed over the protocol endpoint."""
import logging
from typing import Any, Dict, Iterable, List, Optional

from agent_gateway.exceptions import ToolNotFoundError
from agent_gateway.tools.base_tool import BaseTool, ToolResult

logger = logging.getLogger("agent_gateway.protocol.tool_server")


class ToolServer:
    """Registry of ``BaseTool`` instances served to protocol sessions.

    Shared by every session; tools must therefore be safe to call
    concurrently from different sessions.
    """

    def __init__(self, tools: Optional[Iterable[BaseTool]] = None):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools or []:
            self.add_tool(tool)

    def add_tool(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.get_mcp_schema() for tool in self._tools.values()]

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Failures inside the tool are reported as an error result, not raised,
        so the calling model can see and react to them.

        Raises:
            ToolNotFoundError: If no tool is registered under ``name``
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Unknown tool: {name}", tool_name=name)

        try:
            return await tool.execute(**arguments)
        except TypeError as e:
            logger.warning(f"Bad arguments for tool '{name}': {e}")
            return ToolResult.text(f"Invalid arguments for tool '{name}': {e}", is_error=True)
        except Exception as e:
            logger.exception(f"Tool '{name}' failed")
            return ToolResult.text(f"Tool '{name}' failed: {e}", is_error=True)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
