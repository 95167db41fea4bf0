"""
Unit tests for the SSE transport.

Disconnects are simulated by closing the frame generator after a few frames,
the way the ASGI server does when the client goes away.
"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from agentoffice.api import streaming
from agentoffice.api.streaming import EventChannel, format_sse, stream_events
from agentoffice.application.engine import (
    MissionExecutionEngine,
    SimulationTimings,
    SinkClosedError,
)
from agentoffice.core.domain.events import EventType, team_log
from agentoffice.core.domain.models import LogType
from agentoffice.infrastructure.cache.mission_cache import MissionCache
from agentoffice.infrastructure.llm.model_client import ModelClient
from agentoffice.infrastructure.monitoring.usage_tracker import UsageTracker
from agentoffice.infrastructure.team.team_adapter import TeamAdapter


def parse_frame(frame: str) -> dict:
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


async def drain_background():
    pending = list(streaming._background)
    if pending:
        await asyncio.wait(pending, timeout=2)


@pytest.fixture
def engine(tmp_path):
    return MissionExecutionEngine(
        cache=MissionCache(),
        tracker=UsageTracker(stats_file=tmp_path / "usage.json"),
        model_client=MagicMock(spec=ModelClient),
        team_adapter=TeamAdapter(cli_path="team-tool", shutdown_grace=0.1),
        timings=SimulationTimings(scale=0.05),
    )


class TestFormatSse:
    """Frame encoding."""

    def test_frame(self):
        frame = format_sse(team_log(LogType.SYSTEM, "hello"))

        payload = parse_frame(frame)
        assert payload["type"] == "team_log"
        assert payload["data"] == {"type": "SYSTEM", "content": "hello"}
        assert "timestamp" in payload


class TestEventChannel:
    """Producer side of the stream."""

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self):
        channel = EventChannel()
        channel.close()

        with pytest.raises(SinkClosedError):
            await channel.send(team_log(LogType.SYSTEM, "late"))

    @pytest.mark.asyncio
    async def test_iteration_ends_at_finish(self):
        channel = EventChannel()
        await channel.send(team_log(LogType.SYSTEM, "one"))
        channel.finish()

        events = [event async for event in channel]
        assert [e.data["content"] for e in events] == ["one"]


class TestStreamEvents:
    """Frame generator and consumer disconnects."""

    @pytest.mark.asyncio
    async def test_completed_stream_has_only_data_frames(self, engine):
        engine.timings = SimulationTimings(scale=0)

        async def producer(emit):
            await engine.execute("Build X", "simulation", "m-1", emit)

        frames = [frame async for frame in stream_events(producer)]

        payloads = [parse_frame(frame) for frame in frames]
        assert payloads[-1]["type"] == EventType.MISSION_COMPLETE.value
        assert sum(p["type"] == EventType.MISSION_COMPLETE.value for p in payloads) == 1

    @pytest.mark.asyncio
    async def test_disconnect_stops_producer(self):
        sent = []
        stopped = asyncio.Event()

        async def producer(emit):
            try:
                for i in range(100):
                    await emit(team_log(LogType.SYSTEM, f"line {i}"))
                    sent.append(i)
                    await asyncio.sleep(0.01)
            except SinkClosedError:
                stopped.set()

        frames = stream_events(producer)
        received = [await frames.__anext__(), await frames.__anext__()]
        await frames.aclose()

        await asyncio.wait_for(stopped.wait(), timeout=2)
        await drain_background()
        assert [parse_frame(f)["data"]["content"] for f in received] == ["line 0", "line 1"]
        assert len(sent) < 100

    @pytest.mark.asyncio
    async def test_disconnect_mid_mission_leaves_run_unfinished(self, engine):
        runs = []

        async def producer(emit):
            runs.append(await engine.execute("Build X", "simulation", "m-1", emit))

        frames = stream_events(producer)
        first = parse_frame(await frames.__anext__())
        await frames.aclose()

        await drain_background()
        assert first["data"]["content"] == "[MISSION START] Build X"
        assert len(runs) == 1
        assert runs[0].finished is False
        assert runs[0].emitted < 13
