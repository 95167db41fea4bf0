"""
Server-Sent Events transport.

An execution writes into an ``EventChannel``; the HTTP response drains the
channel and frames each event as ``data: <json>\\n\\n``. The stream ends
when the producer finishes; there is no end-of-stream frame.

If the client goes away, the channel is closed and the producer's next
emit raises ``SinkClosedError``, which the engine treats as a stop signal.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import structlog

from agentoffice.application.engine import EventSink, SinkClosedError
from agentoffice.core.domain.events import OfficeEvent

logger = structlog.get_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Producers still running after their consumer disconnected
_background: set[asyncio.Task] = set()


def format_sse(event: OfficeEvent) -> str:
    return f"data: {json.dumps(event.to_dict(), default=str)}\n\n"


class EventChannel:
    """Single-consumer queue between an execution and its HTTP response."""

    def __init__(self):
        self._queue: asyncio.Queue[Optional[OfficeEvent]] = asyncio.Queue()
        self.closed = False

    async def send(self, event: OfficeEvent) -> None:
        if self.closed:
            raise SinkClosedError("Event stream consumer disconnected")
        self._queue.put_nowait(event)

    def finish(self) -> None:
        """Mark the end of the producer's output."""
        self._queue.put_nowait(None)

    def close(self) -> None:
        """Reject further events; called when the consumer leaves."""
        self.closed = True

    async def __aiter__(self) -> AsyncIterator[OfficeEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


async def stream_events(
    producer: Callable[[EventSink], Awaitable[Any]],
) -> AsyncIterator[str]:
    """
    Run ``producer`` with a channel-backed sink and yield SSE frames.

    The producer runs as its own task so a slow or departed consumer never
    blocks it mid-step.
    """
    channel = EventChannel()

    async def produce() -> None:
        try:
            await producer(channel.send)
        finally:
            channel.finish()

    task = asyncio.create_task(produce())
    completed = False
    try:
        async for event in channel:
            yield format_sse(event)
        completed = True
    finally:
        channel.close()
        if not completed and not task.done():
            logger.info("stream.consumer_disconnected")
            _background.add(task)
            task.add_done_callback(_background.discard)
