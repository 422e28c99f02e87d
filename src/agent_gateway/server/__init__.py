"""Agent gateway HTTP server.

FastAPI server with:
- MCP protocol endpoint with per-session transports
- One shared, lazily constructed execution engine
- SSE chat streaming of cumulative answer snapshots
"""
