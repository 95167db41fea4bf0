"""
Domain Events for Mission Execution

Every execution produces an ordered stream of ``OfficeEvent`` values. An
event is a tagged union keyed by ``type``; the payload in ``data`` uses the
camelCase keys the dashboard consumes, so events serialize unchanged onto
the wire and into the mission cache.

Ordering contract:
- events of one execution reach the consumer in emission order
- ``mission_complete`` or a terminal ``error`` is always the last event
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from agentoffice.core.domain.models import (
    AgentCollaboration,
    AgentStatus,
    Deliverable,
    LogType,
    TaskProgress,
    UserPromptRequest,
    Zone,
)


class EventType(str, Enum):
    """Canonical event variants."""

    AGENT_STATUS = "agent_status"
    AGENT_MESSAGE = "agent_message"
    TEAM_LOG = "team_log"
    MISSION_COMPLETE = "mission_complete"
    ERROR = "error"
    AGENT_COLLABORATION = "agent_collaboration"
    TASK_PROGRESS = "task_progress"
    MISSION_DELIVERABLE = "mission_deliverable"
    USER_PROMPT_REQUIRED = "user_prompt_required"
    CHAT_MESSAGE = "chat_message"
    # Chat streams only; marks the end of a chat exchange
    COMPLETE = "complete"


TERMINAL_EVENT_TYPES = frozenset({EventType.MISSION_COMPLETE, EventType.ERROR})


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class OfficeEvent:
    """
    One typed, timestamped unit of an execution's output stream.

    Attributes:
        type: Event variant
        data: Variant-specific payload (camelCase keys)
        timestamp: ISO-8601 emission time
    """

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=now_iso)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def with_timestamp(self, timestamp: str) -> "OfficeEvent":
        return replace(self, timestamp=timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "OfficeEvent":
        """
        Rebuild an event from its wire form.

        Raises:
            ValueError: If the type is unknown or the shape is malformed
        """
        if not isinstance(raw, dict):
            raise ValueError(f"Event must be a mapping, got {type(raw).__name__}")
        data = raw.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("Event data must be a mapping")
        timestamp = raw.get("timestamp") or now_iso()
        return cls(type=EventType(raw.get("type")), data=dict(data), timestamp=str(timestamp))


# ---------------------------------------------------------------------------
# Event constructors
# ---------------------------------------------------------------------------


def agent_status(
    agent_id: str,
    status: AgentStatus,
    zone: Zone | None = None,
    x: float | None = None,
    y: float | None = None,
    stress_level: int | None = None,
) -> OfficeEvent:
    data: dict[str, Any] = {"agentId": agent_id, "status": AgentStatus(status).value}
    if zone is not None:
        data["zone"] = Zone(zone).value
    if x is not None and y is not None:
        data["x"] = x
        data["y"] = y
    if stress_level is not None:
        data["stressLevel"] = stress_level
    return OfficeEvent(EventType.AGENT_STATUS, data)


def agent_message(
    agent_id: str,
    message: str,
    target_agent_id: str | None = None,
    message_type: str = "internal",
) -> OfficeEvent:
    data: dict[str, Any] = {
        "agentId": agent_id,
        "message": message,
        "messageType": message_type,
    }
    if target_agent_id:
        data["targetAgentId"] = target_agent_id
    return OfficeEvent(EventType.AGENT_MESSAGE, data)


def team_log(log_type: LogType, content: str, agent_id: str | None = None) -> OfficeEvent:
    data: dict[str, Any] = {"type": LogType(log_type).value, "content": content}
    if agent_id:
        data["agentId"] = agent_id
    return OfficeEvent(EventType.TEAM_LOG, data)


def mission_complete(
    mission_id: str,
    message: str,
    success: bool = True,
    results: dict[str, Any] | None = None,
) -> OfficeEvent:
    data: dict[str, Any] = {"missionId": mission_id, "success": success, "message": message}
    if results is not None:
        data["results"] = results
    return OfficeEvent(EventType.MISSION_COMPLETE, data)


def error_event(error: str, mission_id: str | None = None, code: str | None = None) -> OfficeEvent:
    data: dict[str, Any] = {"error": error}
    if mission_id:
        data["missionId"] = mission_id
    if code:
        data["code"] = code
    return OfficeEvent(EventType.ERROR, data)


def collaboration_event(collaboration: AgentCollaboration) -> OfficeEvent:
    return OfficeEvent(EventType.AGENT_COLLABORATION, collaboration.to_payload())


def task_progress_event(progress: TaskProgress) -> OfficeEvent:
    return OfficeEvent(EventType.TASK_PROGRESS, progress.to_payload())


def deliverable_event(deliverable: Deliverable) -> OfficeEvent:
    return OfficeEvent(EventType.MISSION_DELIVERABLE, deliverable.to_payload())


def user_prompt_event(request: UserPromptRequest) -> OfficeEvent:
    return OfficeEvent(EventType.USER_PROMPT_REQUIRED, request.to_payload())


def chat_message(
    message_id: str,
    mission_id: str,
    sender: str,
    recipient: str,
    message: str,
) -> OfficeEvent:
    timestamp = now_iso()
    return OfficeEvent(
        EventType.CHAT_MESSAGE,
        {
            "messageId": message_id,
            "missionId": mission_id,
            "from": sender,
            "to": recipient,
            "message": message,
            "timestamp": timestamp,
        },
        timestamp=timestamp,
    )


def chat_complete(success: bool = True) -> OfficeEvent:
    return OfficeEvent(EventType.COMPLETE, {"success": success})
