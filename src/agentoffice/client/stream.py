"""
Client Reconstruction Layer - Stream Consumer

Consumes the mission event stream over HTTP and yields ``OfficeEvent``
values. A connection that drops before a terminal event is retried by
re-submitting the mission, up to ``max_reconnect_attempts`` times with a
fixed delay; after that ``StreamConnectionError`` is raised.
"""

import asyncio
import json
import uuid
from typing import AsyncIterator, Optional

import httpx
import structlog

from agentoffice.client.state import OfficeState
from agentoffice.core.domain.events import OfficeEvent
from agentoffice.core.domain.models import ExecutionMode

logger = structlog.get_logger()

DEFAULT_RECONNECT_ATTEMPTS = 3
DEFAULT_RECONNECT_DELAY = 2.0


class StreamConnectionError(ConnectionError):
    """The event stream could not be (re)established."""


class MissionRejectedError(StreamConnectionError):
    """The server refused the request (4xx); retrying would not help."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Mission rejected ({status_code}): {message}")
        self.status_code = status_code


def parse_sse_line(line: str) -> Optional[OfficeEvent]:
    """Decode one ``data:`` line; other lines and malformed payloads yield None."""
    if not line.startswith("data:"):
        return None
    payload = line[len("data:"):].strip()
    if not payload:
        return None
    try:
        return OfficeEvent.from_dict(json.loads(payload))
    except ValueError as e:
        logger.warning("client.event_unparseable", error=str(e))
        return None


class MissionStreamClient:
    """Reconnecting consumer of ``/api/claude-team``."""

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        max_reconnect_attempts: int = DEFAULT_RECONNECT_ATTEMPTS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_delay = reconnect_delay
        self._client = http_client
        self.logger = logger.bind(component="mission_stream_client")

    async def stream_mission(
        self,
        mission: str,
        mode: ExecutionMode | str = ExecutionMode.SIMULATION,
        mission_id: Optional[str] = None,
    ) -> AsyncIterator[OfficeEvent]:
        """
        Yield the events of one mission execution until its terminal event.

        Raises:
            MissionRejectedError: The server answered with a 4xx status
            StreamConnectionError: Reconnection attempts are exhausted
        """
        mode_value = getattr(mode, "value", mode)
        mission_id = mission_id or f"mission-{uuid.uuid4().hex[:12]}"
        params = {"mission": mission, "mode": mode_value, "missionId": mission_id}

        attempts = 0
        while True:
            try:
                async for event in self._stream_once(params):
                    yield event
                    if event.is_terminal:
                        return
                failure = "stream closed before mission finished"
            except MissionRejectedError:
                raise
            except httpx.HTTPError as e:
                failure = str(e) or type(e).__name__

            if attempts >= self.max_reconnect_attempts:
                self.logger.error("client.connection_failed", attempts=attempts, error=failure)
                raise StreamConnectionError(
                    f"Connection failed after {attempts} reconnect attempts: {failure}"
                )
            attempts += 1
            self.logger.warning(
                "client.reconnecting",
                attempt=attempts,
                max_attempts=self.max_reconnect_attempts,
                error=failure,
            )
            await asyncio.sleep(self.reconnect_delay)

    async def run_mission(
        self,
        mission: str,
        mode: ExecutionMode | str = ExecutionMode.SIMULATION,
        state: Optional[OfficeState] = None,
        mission_id: Optional[str] = None,
    ) -> OfficeState:
        """Execute a mission remotely and fold its events into ``state``."""
        state = state or OfficeState()
        mission_id = mission_id or f"mission-{uuid.uuid4().hex[:12]}"
        state.start_mission(mission_id, mission)
        async for event in self.stream_mission(mission, mode, mission_id):
            state.apply(event)
        return state

    async def _stream_once(self, params: dict) -> AsyncIterator[OfficeEvent]:
        client = self._client or httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))
        try:
            async with client.stream("GET", f"{self.base_url}/api/claude-team", params=params) as response:
                if 400 <= response.status_code < 500:
                    body = await response.aread()
                    raise MissionRejectedError(response.status_code, _error_message(body))
                response.raise_for_status()
                async for line in response.aiter_lines():
                    event = parse_sse_line(line)
                    if event is not None:
                        yield event
        finally:
            if self._client is None:
                await client.aclose()


def _error_message(body: bytes) -> str:
    try:
        return str(json.loads(body).get("error", body.decode("utf-8", errors="replace")))
    except (ValueError, AttributeError):
        return body.decode("utf-8", errors="replace")
