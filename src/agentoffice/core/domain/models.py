"""
Core Domain Models

This module defines the entities shared by the execution engine, the
transport and the client reconstruction layer:
- Agent: one member of the fixed office roster
- Mission: a user-submitted task and its lifecycle
- Deliverable, AgentCollaboration, TaskProgress, UserPromptRequest:
  structured records extracted from agent free text
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ExecutionMode(str, Enum):
    """Strategy used to execute a mission."""

    SIMULATION = "simulation"
    HYBRID = "hybrid"
    REAL = "real"

    @classmethod
    def parse(cls, value: str) -> "ExecutionMode":
        """Parse a mode name, accepting the legacy ``sim`` alias."""
        normalized = (value or "").strip().lower()
        if normalized == "sim":
            return cls.SIMULATION
        return cls(normalized)


class AgentStatus(str, Enum):
    """Visible activity of an agent."""

    IDLE = "IDLE"
    MOVING = "MOVING"
    WORKING = "WORKING"
    COMMUNICATING = "COMMUNICATING"
    RESTING = "RESTING"
    MANAGING = "MANAGING"


class Zone(str, Enum):
    """Office area an agent occupies."""

    WORK = "work"
    MEETING = "meeting"
    LOUNGE = "lounge"
    OFFICE = "office"


class MissionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


class LogType(str, Enum):
    """Category of a terminal-style team log entry."""

    SYSTEM = "SYSTEM"
    MISSION = "MISSION"
    COLLAB = "COLLAB"
    COMPLETE = "COMPLETE"
    AGENT = "AGENT"


class DeliverableType(str, Enum):
    CODE = "code"
    DOCUMENT = "document"
    ANALYSIS = "analysis"
    PLAN = "plan"


class CollaborationType(str, Enum):
    QUESTION = "question"
    ANSWER = "answer"
    PROPOSAL = "proposal"
    APPROVAL = "approval"
    HANDOFF = "handoff"


@dataclass
class Agent:
    """
    One member of the office roster.

    Status and zone are independent fields here; the engine sequences them
    through ``AgentStateMachine`` while the client only mirrors events.

    Attributes:
        id: Roster identifier (leo, momo, alex, boss)
        name: Display name
        role: Role label shown on the agent card
        zone: Current office zone
        x: Horizontal position (visualization only)
        y: Vertical position (visualization only)
        status: Current activity
        color: Presentation color
        stress_level: Optional stress gauge (0-100)
        is_manager: True for the manager persona
    """

    id: str
    name: str
    role: str
    zone: Zone
    x: float
    y: float
    status: AgentStatus = AgentStatus.IDLE
    color: str = "#ffffff"
    stress_level: int | None = None
    is_manager: bool = False


@dataclass
class Mission:
    """
    A user-submitted mission tracked by the client layer.

    Attributes:
        id: Opaque mission identifier
        content: Free-text mission description
        status: pending -> processing -> completed
        assigned_agents: Agents that worked on the mission, in first-seen order
        created_at: Submission time
        completed_at: Completion time, stamped exactly once
        deliverables: Identifiers of deliverables produced for the mission
    """

    id: str
    content: str
    status: MissionStatus = MissionStatus.PENDING
    assigned_agents: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    deliverables: list[str] = field(default_factory=list)


@dataclass
class Deliverable:
    """A concrete artifact (code, document, analysis, plan) produced by an agent."""

    id: str
    mission_id: str
    agent_id: str
    type: DeliverableType
    title: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "deliverableId": self.id,
            "missionId": self.mission_id,
            "agentId": self.agent_id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "metadata": dict(self.metadata),
        }


@dataclass
class AgentCollaboration:
    """One agent addressing another inside a message."""

    from_agent_id: str
    to_agent_id: str
    message: str
    collaboration_type: CollaborationType
    timestamp: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "fromAgentId": self.from_agent_id,
            "toAgentId": self.to_agent_id,
            "message": self.message,
            "collaborationType": self.collaboration_type.value,
            "timestamp": self.timestamp,
        }


@dataclass
class TaskProgress:
    """Progress report for a single task."""

    task_id: str
    task_name: str
    agent_id: str
    progress: int
    status: str  # started | in_progress | completed | blocked
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "taskId": self.task_id,
            "taskName": self.task_name,
            "agentId": self.agent_id,
            "progress": self.progress,
            "status": self.status,
        }
        if self.message is not None:
            payload["message"] = self.message
        return payload


@dataclass
class UserPromptRequest:
    """An agent asking the user for input."""

    agent_id: str
    question: str
    requires_response: bool = True
    context: str | None = None
    options: list[str] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "agentId": self.agent_id,
            "question": self.question,
            "requiresResponse": self.requires_response,
        }
        if self.context is not None:
            payload["context"] = self.context
        if self.options:
            payload["options"] = list(self.options)
        return payload


@dataclass
class MissionAnalysis:
    """
    Structured reply of the model's mission analysis.

    Attributes:
        analysis: Short description of what needs to be done
        tasks: Concrete tasks derived from the mission
        agent_assignments: Suggested action per roster agent (leo, momo, alex)
        from_model: False when the reply could not be parsed and defaults were used
    """

    analysis: str
    tasks: list[str]
    agent_assignments: dict[str, str]
    from_model: bool = True
