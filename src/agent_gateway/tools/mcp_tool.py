"""MCP tool adapter that wraps MCP server tools as BaseTool instances."""
from typing import Any

from .base_tool import BaseTool, ToolResult
from .mcp_client import MCPClient


class MCPTool(BaseTool):
    """Adapter that wraps an MCP server tool as a BaseTool.

    Bridges tools discovered on the gateway's own protocol endpoint (or any
    other MCP server) into the engine's tool interface.

    Example:
        ```python
        mcp_client = MCPClient()
        await mcp_client.connect(settings.MCP_SERVER_URL)

        tools = await MCPTool.from_mcp_client(mcp_client)
        agent = ReActAgent(model_client=client, tools=tools, ...)
        ```
    """

    def __init__(
        self,
        client: MCPClient,
        name: str,
        description: str,
        input_schema: dict[str, Any]
    ):
        super().__init__(name=name, description=description, input_schema=input_schema)
        self.client = client

    async def execute(self, **kwargs) -> ToolResult:
        """Execute the MCP tool with given parameters.

        Raises:
            RuntimeError: If the MCP client is not connected
        """
        if not self.client.is_connected:
            raise RuntimeError(f"MCP client not connected for tool '{self.name}'")

        try:
            result = await self.client.call_tool(self.name, kwargs)
        except RuntimeError as e:
            return ToolResult.text(f"Tool execution failed: {e}", is_error=True)

        content = []
        for item in getattr(result, "content", None) or []:
            if getattr(item, "type", None) == "text":
                content.append({"type": "text", "text": item.text})
            elif hasattr(item, "model_dump"):
                content.append(item.model_dump(mode="json", exclude_none=True))
            elif isinstance(item, dict):
                content.append(item)
            else:
                content.append({"type": "text", "text": str(item)})

        return ToolResult(content=content, isError=bool(getattr(result, "isError", False)))

    @classmethod
    async def from_mcp_client(cls, client: MCPClient) -> list["MCPTool"]:
        """Create MCPTool instances for all tools from an MCP server.

        Raises:
            RuntimeError: If client is not connected
        """
        if not client.is_connected:
            raise RuntimeError("MCP client must be connected before creating tools")

        tools_list = await client.list_tools()
        return [
            cls(
                client=client,
                name=tool["name"],
                description=tool["description"],
                input_schema=tool["inputSchema"]
            )
            for tool in tools_list
        ]
