"""
Application Layer - Chat Responder

Answers a user's direct message to one roster agent. The reply is picked
from persona-specific keyword rules after a short "thinking" pause. When a
live team is running for the mission, the user's message is also delivered
to that team through the adapter.

Stream shape: user ``chat_message``, agent ``chat_message``, ``complete``
(or a single ``error`` instead of the reply on failure).
"""

import asyncio
import time
from typing import Optional

import structlog

from agentoffice.application.engine import EventSink, SinkClosedError
from agentoffice.core.domain.events import chat_complete, chat_message, error_event
from agentoffice.core.prompts.agent_personas import TEAM_AGENT_IDS
from agentoffice.infrastructure.team.team_adapter import TeamAdapter, team_name_for

logger = structlog.get_logger()


class ChatValidationError(ValueError):
    pass


# (keywords, reply) rules checked in order; the last entry is the fallback
_REPLIES: dict[str, list[tuple[tuple[str, ...], str]]] = {
    "leo": [
        (
            ("how", "implement"),
            "I'll implement this with TypeScript and React best practices. Need to break it "
            "down into components and ensure type safety. Should take about 30 minutes.",
        ),
        (
            ("error", "bug"),
            "Let me check the stack trace. Usually it's a TypeScript type mismatch or missing "
            "dependency. I'll debug and fix it.",
        ),
        (
            ("explain", "why"),
            "The code works this way because we're following React patterns. It's cleaner "
            "and more maintainable than alternatives.",
        ),
        (
            (),
            "Got it. I'll handle the implementation. Will coordinate with MOMO if I need "
            "clarification on requirements.",
        ),
    ],
    "momo": [
        (
            ("plan", "roadmap"),
            "Let me create a structured plan:\n\n1. Define requirements\n2. Break into phases\n"
            "3. Identify dependencies\n4. Create timeline\n\n"
            "I'll have a detailed roadmap ready shortly.",
        ),
        (
            ("priority", "order"),
            "Based on dependencies and impact, here's my suggested priority:\n\n"
            "1. Critical infrastructure setup\n2. Core features\n3. Nice-to-have enhancements\n\n"
            "We should tackle them in this sequence.",
        ),
        (
            ("risk", "concern"),
            "I've identified potential risks:\n\n- Timeline constraints\n- Technical complexity\n"
            "- Resource availability\n\nI recommend we create a mitigation plan for each.",
        ),
        (
            (),
            "I'll analyze this from a planning perspective and create a detailed breakdown. "
            "Let me coordinate with LEO and ALEX to ensure alignment.",
        ),
    ],
    "alex": [
        (
            ("test", "quality"),
            "From a testing perspective, we need:\n\n- Unit tests for core logic\n"
            "- Integration tests for API\n- E2E tests for user flows\n\n"
            "I'll create a comprehensive test strategy.",
        ),
        (
            ("review", "analyze"),
            "I've analyzed the approach. Here's my assessment:\n\n"
            "Strengths: Clean architecture, good type safety\n"
            "Concerns: Edge case handling, performance optimization\n\n"
            "Recommendations to follow.",
        ),
        (
            ("performance", "optimize"),
            "Performance analysis shows potential bottlenecks:\n\n1. Unnecessary re-renders\n"
            "2. Large bundle size\n3. API call frequency\n\nI suggest profiling and optimization.",
        ),
        (
            (),
            "I'll validate this from a quality assurance perspective. Need to ensure it meets "
            "best practices and doesn't introduce risks.",
        ),
    ],
}


def validate_chat_request(mission_id: Optional[str], agent_id: Optional[str], message: Optional[str]) -> None:
    """
    Raises:
        ChatValidationError: With the user-facing reason for the first invalid field
    """
    if not mission_id or not mission_id.strip():
        raise ChatValidationError("Mission ID is required")
    if agent_id not in TEAM_AGENT_IDS:
        raise ChatValidationError("Valid agent ID required (leo, momo, or alex)")
    if not message or not message.strip():
        raise ChatValidationError("Message content is required")


def generate_reply(agent_id: str, message: str) -> str:
    """Persona reply for a user message, chosen by keyword."""
    text = message.lower()
    for keywords, reply in _REPLIES[agent_id]:
        if not keywords or any(keyword in text for keyword in keywords):
            return reply
    return _REPLIES[agent_id][-1][1]


def _message_id(suffix: str) -> str:
    return f"msg-{int(time.time() * 1000)}-{suffix}"


class ChatResponder:
    """Produces the event stream of one chat exchange."""

    def __init__(self, team_adapter: Optional[TeamAdapter] = None, delay: float = 0.8):
        self.team_adapter = team_adapter
        self.delay = delay
        self.logger = logger.bind(component="chat_responder")

    async def respond(self, mission_id: str, agent_id: str, message: str, emit: EventSink) -> None:
        try:
            await emit(chat_message(_message_id("user"), mission_id, "user", agent_id, message))
            try:
                await self._forward_to_team(mission_id, agent_id, message)
                if self.delay > 0:
                    await asyncio.sleep(self.delay)
                reply = generate_reply(agent_id, message)
            except Exception as e:
                self.logger.error("chat.reply_failed", mission_id=mission_id, error=str(e))
                await emit(error_event(str(e), mission_id))
                return
            await emit(chat_message(_message_id(agent_id), mission_id, agent_id, "user", reply))
            await emit(chat_complete(True))
        except SinkClosedError:
            self.logger.info("chat.consumer_disconnected", mission_id=mission_id)

    async def _forward_to_team(self, mission_id: str, agent_id: str, message: str) -> None:
        if self.team_adapter is None:
            return
        team_name = team_name_for(mission_id)
        if team_name not in self.team_adapter.active_teams():
            return
        result = await self.team_adapter.send_message(team_name, agent_id, message, "message")
        if not result.success:
            self.logger.warning("chat.team_delivery_failed", team=team_name, error=result.error)
