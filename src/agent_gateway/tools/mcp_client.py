"""MCP (Model Context Protocol) client for connecting to MCP servers."""
import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Optional, Literal

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

logger = logging.getLogger("agent_gateway.tools.mcp_client")

TransportType = Literal["streamable_http", "sse"]


class MCPClient:
    """Client for connecting to and interacting with a remote MCP server.

    The transport and session context managers are owned by a single
    background task for the whole life of the connection. The SDK's
    transports are built on anyio task groups, which must be entered and
    exited from the same task; the connection is opened from whichever
    request first needs the engine but closed from application shutdown.

    Example:
        ```python
        client = MCPClient()
        await client.connect("http://localhost:3001/mcp")

        tools = await client.list_tools()
        result = await client.call_tool("calculator", {"expression": "2 + 2"})

        await client.disconnect()
        ```
    """

    def __init__(self):
        self.session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None
        self._connected = False
        self._transport_type: Optional[TransportType] = None

    async def connect(
        self,
        url: str,
        transport: TransportType = "streamable_http",
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Connect to an MCP server over HTTP.

        Args:
            url: Endpoint URL (e.g. "http://localhost:3001/mcp")
            transport: "streamable_http" (default) or "sse"
            headers: Optional HTTP headers for authentication, etc.

        Raises:
            RuntimeError: If already connected
            ConnectionError: If the server cannot be reached or refuses to initialize
        """
        if self._connected:
            raise RuntimeError("Already connected to an MCP server")

        if transport == "sse":
            open_transport = lambda: sse_client(url, headers=headers)
        else:
            open_transport = lambda: streamablehttp_client(url, headers=headers)

        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        self._stop = asyncio.Event()
        self._runner = asyncio.create_task(
            self._hold_connection(open_transport, ready),
            name=f"mcp-client:{url}",
        )

        try:
            await ready
        except asyncio.CancelledError:
            # abandoned mid-handshake; the runner must not outlive this call
            self._stop.set()
            self._runner.cancel()
            await asyncio.gather(self._runner, return_exceptions=True)
            self._runner = None
            raise
        except Exception as e:
            await self._runner
            self._runner = None
            raise ConnectionError(f"Failed to connect to MCP server at {url}: {e}") from e

        self._connected = True
        self._transport_type = transport
        logger.info(f"Connected to MCP server at {url} ({transport})")

    async def _hold_connection(
        self,
        open_transport: Callable[[], AbstractAsyncContextManager],
        ready: asyncio.Future,
    ) -> None:
        try:
            async with open_transport() as streams:
                # streamable HTTP yields (read, write, get_session_id); SSE yields (read, write)
                read_stream, write_stream = streams[0], streams[1]
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    self.session = session
                    if not ready.done():
                        ready.set_result(None)
                    await self._stop.wait()
        except BaseException as e:
            if not ready.done():
                ready.set_exception(e if isinstance(e, Exception) else ConnectionError(str(e)))
            elif not isinstance(e, asyncio.CancelledError):
                logger.warning(f"MCP connection ended with error: {e}")
            if isinstance(e, asyncio.CancelledError):
                raise
        finally:
            self.session = None
            self._connected = False

    async def disconnect(self) -> None:
        """Disconnect from the MCP server."""
        if self._stop is not None:
            self._stop.set()
        if self._runner is not None:
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
        self.session = None
        self._runner = None
        self._stop = None
        self._connected = False
        self._transport_type = None

    @property
    def is_connected(self) -> bool:
        """Check if connected to an MCP server."""
        return self._connected and self.session is not None

    @property
    def transport_type(self) -> Optional[TransportType]:
        return self._transport_type

    async def list_tools(self) -> list[dict[str, Any]]:
        """List all available tools from the MCP server.

        Returns:
            List of tool definitions with name, description, and input schema

        Raises:
            RuntimeError: If not connected to a server
        """
        if not self.is_connected:
            raise RuntimeError("Not connected to an MCP server")

        try:
            response = await self.session.list_tools()
            return [
                {
                    "name": tool.name,
                    "description": tool.description or "",
                    "inputSchema": tool.inputSchema
                }
                for tool in response.tools
            ]
        except Exception as e:
            raise RuntimeError(f"Failed to list tools: {e}") from e

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any]
    ) -> Any:
        """Execute a tool on the MCP server.

        Returns:
            The SDK's ``CallToolResult``

        Raises:
            RuntimeError: If not connected or tool execution fails
        """
        if not self.is_connected:
            raise RuntimeError("Not connected to an MCP server")

        try:
            return await self.session.call_tool(name, arguments)
        except Exception as e:
            raise RuntimeError(f"Tool execution failed for '{name}': {e}") from e

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
