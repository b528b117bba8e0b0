import asyncio
import json
from typing import Any, AsyncIterator, Dict

from fastapi import Request


def format_sse_event(event_type: str, data: Dict[str, Any]) -> str:
    payload = json.dumps({"type": event_type, **data}, ensure_ascii=False)
    return f"data: {payload}\n\n"


async def sse_stream(events: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[str]:
    async for event in events:
        event = dict(event)
        yield format_sse_event(event.pop("type"), event)


async def watch_disconnect(request: Request, cancel_event: asyncio.Event, interval: float = 0.5) -> None:
    """Set `cancel_event` once the client has gone away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(interval)
