"""Unit tests for the chat responder and request validation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from agentoffice.application.chat import (
    ChatResponder,
    ChatValidationError,
    generate_reply,
    validate_chat_request,
)
from agentoffice.core.domain.events import EventType
from agentoffice.infrastructure.team.team_adapter import CommandResult, TeamAdapter, team_name_for


class TestValidation:
    """User-facing validation messages."""

    def test_valid(self):
        validate_chat_request("m-1", "leo", "hello")

    @pytest.mark.parametrize(
        "mission_id, agent_id, message, error",
        [
            ("", "leo", "hi", "Mission ID is required"),
            (None, "leo", "hi", "Mission ID is required"),
            ("m-1", "boss", "hi", "Valid agent ID required (leo, momo, or alex)"),
            ("m-1", None, "hi", "Valid agent ID required (leo, momo, or alex)"),
            ("m-1", "alex", "   ", "Message content is required"),
        ],
    )
    def test_invalid(self, mission_id, agent_id, message, error):
        with pytest.raises(ChatValidationError) as exc_info:
            validate_chat_request(mission_id, agent_id, message)
        assert str(exc_info.value) == error


class TestGenerateReply:
    """Keyword-driven persona replies."""

    def test_leo_bug(self):
        assert generate_reply("leo", "There is a BUG in login").startswith("Let me check the stack trace")

    def test_momo_plan(self):
        assert "structured plan" in generate_reply("momo", "Can you make a roadmap?")

    def test_alex_first_rule_wins(self):
        reply = generate_reply("alex", "please review the test coverage")
        assert reply.startswith("From a testing perspective")

    def test_fallback(self):
        assert generate_reply("alex", "hello there").startswith("I'll validate this")


class TestChatResponder:
    """Stream shape of one exchange."""

    @pytest.mark.asyncio
    async def test_exchange(self):
        events = []

        async def sink(event):
            events.append(event)

        await ChatResponder(delay=0).respond("m-1", "momo", "what is the priority?", sink)

        assert [e.type for e in events] == [
            EventType.CHAT_MESSAGE,
            EventType.CHAT_MESSAGE,
            EventType.COMPLETE,
        ]
        user, reply = events[0].data, events[1].data
        assert (user["from"], user["to"], user["message"]) == ("user", "momo", "what is the priority?")
        assert (reply["from"], reply["to"]) == ("momo", "user")
        assert reply["missionId"] == "m-1"
        assert user["messageId"] != reply["messageId"]
        assert events[2].data == {"success": True}

    @pytest.mark.asyncio
    async def test_forwards_to_running_team(self):
        adapter = MagicMock(spec=TeamAdapter)
        adapter.active_teams.return_value = [team_name_for("mission-42")]
        adapter.send_message = AsyncMock(return_value=CommandResult(success=True))

        async def sink(event):
            pass

        await ChatResponder(team_adapter=adapter, delay=0).respond(
            "mission-42", "leo", "status?", sink
        )

        adapter.send_message.assert_awaited_once_with(team_name_for("mission-42"), "leo", "status?", "message")

    @pytest.mark.asyncio
    async def test_team_failure_becomes_error_event(self):
        adapter = MagicMock(spec=TeamAdapter)
        adapter.active_teams.return_value = [team_name_for("m-1")]
        adapter.send_message = AsyncMock(side_effect=RuntimeError("pipe closed"))
        events = []

        async def sink(event):
            events.append(event)

        await ChatResponder(team_adapter=adapter, delay=0).respond("m-1", "leo", "hi", sink)

        assert [e.type for e in events] == [EventType.CHAT_MESSAGE, EventType.ERROR]
        assert events[1].data == {"error": "pipe closed", "missionId": "m-1"}
