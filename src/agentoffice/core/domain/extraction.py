"""
Agent Text Extraction

Pure functions that scan one agent message for structured content:
- deliverables:   [DELIVERABLE:<type>:<title>]<content>[/DELIVERABLE]
- collaborations: another roster agent addressed by name
- user prompts:   [USER_PROMPT]<question>[/USER_PROMPT]

Each function returns ``None`` when nothing matches and never raises.

Single-match policy: a message yields at most one deliverable (the first
block) and at most one collaboration (the first addressed agent in roster
order). Further blocks or mentions in the same message are ignored.
"""

import re
import time
import uuid

import structlog

from agentoffice.core.domain.events import now_iso
from agentoffice.core.domain.models import (
    AgentCollaboration,
    CollaborationType,
    Deliverable,
    DeliverableType,
    UserPromptRequest,
)
from agentoffice.core.prompts.agent_personas import AGENT_PERSONAS, TEAM_AGENT_IDS

logger = structlog.get_logger()

DELIVERABLE_PATTERN = re.compile(r"\[DELIVERABLE:(\w+):([^\]]+)\]([\s\S]*?)\[/DELIVERABLE\]")
USER_PROMPT_PATTERN = re.compile(r"\[USER_PROMPT\]([\s\S]*?)\[/USER_PROMPT\]")

# Checked in order; the first language with a matching marker wins
_LANGUAGE_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("typescript", ("interface ", "import type", ": string", ": number", ": boolean", "React.FC")),
    ("python", ("def ", "self.", "elif ", "import os", "print(", "__init__")),
    ("javascript", ("const ", "let ", "function ", "=>", "require(", "module.exports")),
)


def _new_deliverable_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def detect_language(content: str) -> str:
    """Guess the language of a code block by keyword presence; ``text`` if unknown."""
    for language, markers in _LANGUAGE_MARKERS:
        if any(marker in content for marker in markers):
            return language
    return "text"


def extract_deliverable(message: str, agent_id: str, mission_id: str) -> Deliverable | None:
    """Parse the first deliverable block of a message."""
    if not message:
        return None
    match = DELIVERABLE_PATTERN.search(message)
    if not match:
        return None

    raw_type, title, content = match.groups()
    try:
        deliverable_type = DeliverableType(raw_type)
    except ValueError:
        logger.warning("extraction.invalid_deliverable_type", type=raw_type, agent_id=agent_id)
        return None

    content = content.strip()
    metadata: dict = {}
    if deliverable_type is DeliverableType.CODE:
        metadata["language"] = detect_language(content)

    return Deliverable(
        id=_new_deliverable_id(),
        mission_id=mission_id,
        agent_id=agent_id,
        type=deliverable_type,
        title=title.strip(),
        content=content,
        metadata=metadata,
    )


def _classify_collaboration(message: str) -> CollaborationType:
    message = message.lower()
    if "?" in message:
        return CollaborationType.QUESTION
    if "approve" in message or "agree" in message:
        return CollaborationType.APPROVAL
    if "propose" in message or "suggest" in message:
        return CollaborationType.PROPOSAL
    if "handoff" in message or "your turn" in message:
        return CollaborationType.HANDOFF
    return CollaborationType.ANSWER


def _mention_pattern(name: str) -> re.Pattern:
    escaped = re.escape(name)
    return re.compile(rf"(@{escaped}|{escaped}[,:]|Hey {escaped}|{escaped} -)", re.IGNORECASE)


_MENTION_PATTERNS = {
    agent_id: _mention_pattern(AGENT_PERSONAS[agent_id].name) for agent_id in TEAM_AGENT_IDS
}


def extract_collaboration(message: str, from_agent_id: str) -> AgentCollaboration | None:
    """Detect the first other roster agent addressed in a message."""
    if not message:
        return None
    for agent_id in TEAM_AGENT_IDS:
        if agent_id == from_agent_id:
            continue
        if _MENTION_PATTERNS[agent_id].search(message):
            return AgentCollaboration(
                from_agent_id=from_agent_id,
                to_agent_id=agent_id,
                message=message.strip(),
                collaboration_type=_classify_collaboration(message),
                timestamp=now_iso(),
            )
    return None


def extract_user_prompt(message: str, agent_id: str) -> UserPromptRequest | None:
    """Parse the first user-prompt block of a message."""
    if not message:
        return None
    match = USER_PROMPT_PATTERN.search(message)
    if not match:
        return None
    return UserPromptRequest(agent_id=agent_id, question=match.group(1).strip())
