"""
Unit tests for TeamAdapter.

The external team tool is never started: ``_run_command`` is patched and
monitor output is fed through ``asyncio.StreamReader`` objects.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from agentoffice.infrastructure.team.team_adapter import (
    CommandResult,
    TeamAdapter,
    TeamEventType,
    TeamNotFoundError,
    TeamProcess,
    parse_output_line,
    team_name_for,
)


@pytest.fixture
def adapter():
    return TeamAdapter(cli_path="team-tool", command_timeout=5, shutdown_grace=0.1)


def stream_of(*lines: str) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for line in lines:
        reader.feed_data(f"{line}\n".encode())
    reader.feed_eof()
    return reader


class TestTeamNameFor:
    """Team names derived from mission ids."""

    def test_stable(self):
        assert team_name_for("mission-42") == team_name_for("mission-42")
        assert team_name_for("mission-42").startswith("team-")

    def test_shared_prefix_gives_distinct_names(self):
        assert team_name_for("mission-aaaaaaaaaaaa") != team_name_for("mission-bbbbbbbbbbbb")


class TestParseOutputLine:
    """Monitor output classification."""

    def test_json_with_data(self):
        event = parse_output_line(
            '{"type": "agent_message", "data": {"agentId": "leo", "message": "hi"}}', "t"
        )
        assert event.type is TeamEventType.AGENT_MESSAGE
        assert event.data == {"agentId": "leo", "message": "hi"}

    def test_json_without_data_uses_remaining_fields(self):
        event = parse_output_line('{"type": "TASK_UPDATED", "taskId": "3", "status": "done"}', "t")
        assert event.type is TeamEventType.TASK_UPDATED
        assert event.data == {"taskId": "3", "status": "done"}

    def test_json_with_unknown_type_is_dropped(self):
        assert parse_output_line('{"type": "heartbeat"}', "t") is None

    def test_json_array_is_dropped(self):
        assert parse_output_line("[1, 2]", "t") is None

    def test_agent_message_line(self):
        event = parse_output_line("[LEO] Working on the API", "t")
        assert event.type is TeamEventType.AGENT_MESSAGE
        assert event.data == {"agentId": "leo", "message": "Working on the API"}

    def test_task_line(self):
        event = parse_output_line("Task #4: Completed", "t")
        assert event.data == {"taskId": "4", "status": "completed"}

    def test_agent_status_line(self):
        event = parse_output_line("Agent Momo: working", "t")
        assert event.type is TeamEventType.AGENT_STATUS
        assert event.data == {"agentId": "momo", "status": "working"}

    def test_team_created_line(self):
        event = parse_output_line("Team 'team-abc' created", "t")
        assert event.type is TeamEventType.TEAM_CREATED
        assert event.data == {"teamName": "team-abc"}

    def test_other_line_is_stdout(self):
        event = parse_output_line("compiling...", "t")
        assert event.type is TeamEventType.STDOUT
        assert event.data == {"message": "compiling..."}
        assert event.raw_output == "compiling..."

    def test_blank_line(self):
        assert parse_output_line("   \n", "t") is None


class TestCommands:
    """Team and task commands."""

    @pytest.mark.asyncio
    async def test_create_team_publishes_event(self, adapter):
        queue = adapter.subscribe("team-1")
        with patch.object(
            adapter, "_run_command", AsyncMock(return_value=CommandResult(success=True))
        ) as run_command:
            result = await adapter.create_team("team-1", ["leo", "momo"])

        assert result.success is True
        assert run_command.await_args.args[0] == [
            "team", "create", "team-1", "--agents", "leo,momo", "--max-agents", "5",
        ]
        event = queue.get_nowait()
        assert event.type is TeamEventType.TEAM_CREATED
        assert adapter.get_team_status("team-1").status == "running"

    @pytest.mark.asyncio
    async def test_duplicate_team_fails(self, adapter):
        with patch.object(
            adapter, "_run_command", AsyncMock(return_value=CommandResult(success=True))
        ):
            await adapter.create_team("team-1", ["leo"])
            result = await adapter.create_team("team-1", ["leo"])

        assert result.success is False
        assert "already exists" in result.error

    @pytest.mark.asyncio
    async def test_failed_create_releases_name(self, adapter):
        with patch.object(
            adapter,
            "_run_command",
            AsyncMock(return_value=CommandResult(success=False, error="boom")),
        ):
            result = await adapter.create_team("team-1", ["leo"])

        assert result.success is False
        assert result.error == "boom"
        assert adapter.active_teams() == []
        assert adapter.get_team_status("team-1") is None

    @pytest.mark.asyncio
    async def test_create_task(self, adapter):
        queue = adapter.subscribe("team-1")
        with patch.object(
            adapter, "_run_command", AsyncMock(return_value=CommandResult(success=True))
        ) as run_command:
            await adapter.create_team("team-1", ["leo"])
            await adapter.create_task("team-1", "API", "Build the API", active_form="Building")

        args = run_command.await_args.args[0]
        assert args[:4] == ["team", "team-1", "task", "create"]
        assert args[-2:] == ["--active-form", "Building"]
        queue.get_nowait()
        task_event = queue.get_nowait()
        assert task_event.type is TeamEventType.TASK_CREATED
        assert task_event.data == {"subject": "API"}

    @pytest.mark.asyncio
    async def test_unknown_team(self, adapter):
        with pytest.raises(TeamNotFoundError):
            await adapter.create_task("ghost", "s", "d")
        with pytest.raises(TeamNotFoundError):
            await adapter.send_message("ghost", "leo", "hi")
        with pytest.raises(TeamNotFoundError):
            await adapter.shutdown_team("ghost")

    @pytest.mark.asyncio
    async def test_missing_binary_reports_failure(self):
        adapter = TeamAdapter(cli_path="/nonexistent/team-tool")
        result = await adapter.create_team("team-1", ["leo"])
        assert result.success is False
        assert "Failed to start" in result.error


class TestMonitoring:
    """Output streaming and shutdown."""

    @pytest.mark.asyncio
    async def test_stdout_and_stderr_are_published(self, adapter):
        team = TeamProcess(name="team-1", agents=["leo"])
        adapter._teams["team-1"] = team
        queue = adapter.subscribe("team-1")

        await adapter._read_stdout(team, stream_of("[ALEX] Looks good", "", "Task #1: done"))
        await adapter._read_stderr(team, stream_of("warning: slow"))

        events = [queue.get_nowait() for _ in range(3)]
        assert [e.type for e in events] == [
            TeamEventType.AGENT_MESSAGE,
            TeamEventType.TASK_UPDATED,
            TeamEventType.STDERR,
        ]
        assert events[2].data == {"message": "warning: slow"}

    @pytest.mark.asyncio
    async def test_team_error_marks_status(self, adapter):
        team = TeamProcess(name="team-1", agents=["leo"], status="running")
        adapter._teams["team-1"] = team

        await adapter._read_stdout(team, stream_of('{"type": "TEAM_ERROR", "error": "crashed"}'))

        assert adapter.get_team_status("team-1").status == "error"

    @pytest.mark.asyncio
    async def test_shutdown_closes_subscribers(self, adapter):
        with patch.object(
            adapter, "_run_command", AsyncMock(return_value=CommandResult(success=True))
        ):
            await adapter.create_team("team-1", ["leo"])
        queue = adapter.subscribe("team-1")

        await adapter.shutdown_team("team-1")

        assert queue.get_nowait() is None
        assert adapter.active_teams() == []

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, adapter):
        with patch.object(
            adapter, "_run_command", AsyncMock(return_value=CommandResult(success=True))
        ):
            queue = adapter.subscribe("team-1")
            adapter.unsubscribe("team-1", queue)
            await adapter.create_team("team-1", ["leo"])

        assert queue.empty()
