"""Example: Talking to the gateway's protocol endpoint with the MCP client.

Start the gateway first (``agent-gateway`` or ``python -m agent_gateway.main``),
then run this script. It opens a session on /mcp, lists the served tools and
calls one of them.
"""
import asyncio

from agent_gateway.tools import MCPClient, MCPTool


async def main():
    print("🚀 MCP Tools Example\n")

    mcp_client = MCPClient()
    try:
        print("🌐 Connecting to http://localhost:3001/mcp ...")
        await mcp_client.connect("http://localhost:3001/mcp")
        print(f"✅ Connected via {mcp_client.transport_type} transport\n")

        tools = await MCPTool.from_mcp_client(mcp_client)
        print(f"✅ Found {len(tools)} tools:")
        for tool in tools:
            print(f"   - {tool.name}: {tool.description}")
        print()

        calculator = next((t for t in tools if t.name == "calculator"), None)
        if calculator:
            result = await calculator.execute(expression="(2 + 3) * 7")
            print(f"🧮 calculator → {result.content[0]['text']}")

    except ConnectionError as e:
        print(f"❌ Connection error: {e}")
        print("\n💡 Make sure the gateway is running on port 3001")

    finally:
        await mcp_client.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
