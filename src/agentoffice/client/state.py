"""
Client Reconstruction Layer - View State

Folds the event stream of a mission execution into local view state: agent
cards, the terminal log, deliverables, collaborations, task progress and
pending user prompts. ``OfficeState.apply`` is the only mutator, so the same
sequence of events always rebuilds the same state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from agentoffice.core.domain.events import EventType, OfficeEvent
from agentoffice.core.domain.models import (
    Agent,
    AgentStatus,
    LogType,
    Mission,
    MissionStatus,
    Zone,
)
from agentoffice.core.prompts.agent_personas import AGENT_PERSONAS

logger = structlog.get_logger()


@dataclass
class LogEntry:
    type: LogType
    content: str
    agent_id: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass
class OfficeState:
    """Everything the dashboard shows, rebuilt from events."""

    agents: dict[str, Agent] = field(
        default_factory=lambda: {pid: p.create_agent() for pid, p in AGENT_PERSONAS.items()}
    )
    missions: dict[str, Mission] = field(default_factory=dict)
    current_mission_id: Optional[str] = None
    logs: list[LogEntry] = field(default_factory=list)
    deliverables: list[dict[str, Any]] = field(default_factory=list)
    collaborations: list[dict[str, Any]] = field(default_factory=list)
    task_progress: dict[str, dict[str, Any]] = field(default_factory=dict)
    user_prompts: list[dict[str, Any]] = field(default_factory=list)
    chat_messages: list[dict[str, Any]] = field(default_factory=list)
    cache_status: Optional[str] = None  # hit | miss
    error: Optional[str] = None
    processing: bool = False

    def start_mission(self, mission_id: str, content: str) -> Mission:
        mission = Mission(id=mission_id, content=content)
        self.missions[mission_id] = mission
        self.current_mission_id = mission_id
        self.cache_status = None
        self.error = None
        self.processing = True
        return mission

    @property
    def current_mission(self) -> Optional[Mission]:
        if self.current_mission_id is None:
            return None
        return self.missions.get(self.current_mission_id)

    def apply(self, event: OfficeEvent) -> None:
        handler = self._handlers().get(event.type)
        if handler is None:
            logger.debug("client.event_ignored", type=event.type.value)
            return
        handler(event)

    def _handlers(self) -> dict[EventType, Callable[[OfficeEvent], None]]:
        return {
            EventType.AGENT_STATUS: self._on_agent_status,
            EventType.AGENT_MESSAGE: self._on_agent_message,
            EventType.TEAM_LOG: self._on_team_log,
            EventType.MISSION_COMPLETE: self._on_mission_complete,
            EventType.ERROR: self._on_error,
            EventType.AGENT_COLLABORATION: self._on_collaboration,
            EventType.MISSION_DELIVERABLE: self._on_deliverable,
            EventType.TASK_PROGRESS: self._on_task_progress,
            EventType.USER_PROMPT_REQUIRED: self._on_user_prompt,
            EventType.CHAT_MESSAGE: self._on_chat_message,
        }

    def _log(self, log_type: LogType, content: str, event: OfficeEvent, agent_id: Optional[str] = None) -> None:
        self.logs.append(LogEntry(log_type, content, agent_id, event.timestamp))

    def _on_agent_status(self, event: OfficeEvent) -> None:
        data = event.data
        agent = self.agents.get(data.get("agentId", ""))
        if agent is None:
            logger.debug("client.unknown_agent", agent_id=data.get("agentId"))
            return

        agent.status = AgentStatus(data["status"])
        if data.get("zone"):
            agent.zone = Zone(data["zone"])
        if data.get("x") is not None and data.get("y") is not None:
            agent.x, agent.y = data["x"], data["y"]
        if data.get("stressLevel") is not None:
            agent.stress_level = data["stressLevel"]

        if agent.status is not AgentStatus.IDLE:
            self._assign(agent.id)

    def _assign(self, agent_id: str) -> None:
        mission = self.current_mission
        if mission is None or mission.status is MissionStatus.COMPLETED:
            return
        if mission.status is MissionStatus.PENDING:
            mission.status = MissionStatus.PROCESSING
        # Set semantics: an agent is listed once however often it works
        if agent_id not in mission.assigned_agents:
            mission.assigned_agents.append(agent_id)

    def _on_agent_message(self, event: OfficeEvent) -> None:
        agent_id, message = event.data.get("agentId"), event.data.get("message")
        if agent_id and message:
            self._log(LogType.AGENT, message, event, agent_id)

    def _on_team_log(self, event: OfficeEvent) -> None:
        content = event.data.get("content", "")
        self._log(LogType(event.data.get("type", LogType.SYSTEM.value)), content, event, event.data.get("agentId"))
        if "[HYBRID MODE]" in content:
            if "Cache hit" in content:
                self.cache_status = "hit"
            elif "Cache miss" in content:
                self.cache_status = "miss"

    def _on_mission_complete(self, event: OfficeEvent) -> None:
        mission = self.missions.get(event.data.get("missionId", "")) or self.current_mission
        if mission is not None and mission.status is not MissionStatus.COMPLETED:
            mission.status = MissionStatus.COMPLETED
            mission.completed_at = datetime.now()
        self._log(LogType.COMPLETE, event.data.get("message", ""), event)
        self.processing = False

    def _on_error(self, event: OfficeEvent) -> None:
        self.error = event.data.get("error") or event.data.get("message") or "Unknown error occurred"
        self._log(LogType.SYSTEM, f"Error: {self.error}", event)
        self.processing = False

    def _on_collaboration(self, event: OfficeEvent) -> None:
        data = event.data
        self.collaborations.append(dict(data))
        self._log(
            LogType.COLLAB,
            f"{data['fromAgentId'].upper()} -> {data['toAgentId'].upper()}: {data['message']}",
            event,
        )

    def _on_deliverable(self, event: OfficeEvent) -> None:
        data = event.data
        self.deliverables.append(dict(data))
        mission = self.missions.get(data.get("missionId", ""))
        if mission is not None:
            mission.deliverables.append(data["deliverableId"])
        self._log(
            LogType.SYSTEM,
            f"{data['agentId'].upper()} created {data['type']}: {data['title']}",
            event,
        )

    def _on_task_progress(self, event: OfficeEvent) -> None:
        # Upsert by task id, keeping first-seen order
        self.task_progress[event.data["taskId"]] = dict(event.data)

    def _on_user_prompt(self, event: OfficeEvent) -> None:
        data = event.data
        self.user_prompts.append(dict(data))
        self._log(LogType.SYSTEM, f"{data['agentId'].upper()} needs input: {data['question']}", event)

    def _on_chat_message(self, event: OfficeEvent) -> None:
        self.chat_messages.append(dict(event.data))
