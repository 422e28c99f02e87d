"""Example: Consuming the chat event feed.

Each ``chunk`` carries the whole answer so far, so the display is replaced,
not appended to. The second turn reuses the thread id the server announced.
Requires a running gateway with OPENAI_API_KEY configured.
"""
import asyncio

from agent_gateway.streaming import ChatStreamClient


async def ask(chat: ChatStreamClient, message: str) -> None:
    print(f"\n👤 {message}")
    async for event in chat.stream(message):
        if event.type == "connected":
            print(f"🔗 thread {event.sessionId}")
        elif event.type == "chunk":
            print(f"\r🤖 {event.content}", end="", flush=True)
        elif event.type == "complete":
            print("\n✅ done")
        elif event.type == "error":
            print(f"\n❌ {event.error}")
        elif event.type == "parse_error":
            print(f"\n⚠️  skipped malformed frame: {event.error}")


async def main():
    async with ChatStreamClient("http://localhost:3001") as chat:
        await ask(chat, "What time is it in UTC?")
        await ask(chat, "And what is 17 * 23?")


if __name__ == "__main__":
    asyncio.run(main())
