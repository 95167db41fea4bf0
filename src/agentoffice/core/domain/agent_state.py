"""
Agent State Machine

Status and zone changes of roster agents are driven through named commands
instead of ad-hoc status writes, so an impossible combination (for example
talking outside the meeting room) fails loudly in the engine and in tests.

Commands and their effect:

    move_to(zone)   any          -> MOVING, zone = target
    arrive_at(zone) MOVING       -> IDLE at zone
    begin_work()    not MANAGING -> WORKING in the work zone
    start_talking() zone=meeting -> COMMUNICATING
    rest()          any          -> RESTING in the lounge
    manage()        manager only -> MANAGING in the office
    finish()        any          -> IDLE (zone unchanged)

Every command returns the ``agent_status`` event describing the new state.
"""

from agentoffice.core.domain.events import OfficeEvent, agent_status
from agentoffice.core.domain.models import AgentStatus, Zone
from agentoffice.core.prompts.agent_personas import AgentPersona, get_agent_persona


class InvalidTransitionError(ValueError):
    """Raised when a command is not allowed from the agent's current state."""

    def __init__(self, agent_id: str, command: str, status: AgentStatus, zone: Zone):
        super().__init__(
            f"Agent '{agent_id}' cannot {command} while {status.value} in zone '{zone.value}'"
        )
        self.agent_id = agent_id
        self.command = command
        self.status = status
        self.zone = zone


class AgentStateMachine:
    """Tracks one agent's status and zone for the duration of an execution."""

    def __init__(self, persona: AgentPersona):
        self.persona = persona
        self.status = AgentStatus.IDLE
        self.zone = persona.home_zone

    @property
    def agent_id(self) -> str:
        return self.persona.id

    def move_to(self, zone: Zone) -> OfficeEvent:
        return self._transition(AgentStatus.MOVING, Zone(zone))

    def arrive_at(self, zone: Zone) -> OfficeEvent:
        if self.status is not AgentStatus.MOVING:
            self._reject("arrive")
        return self._transition(AgentStatus.IDLE, Zone(zone))

    def begin_work(self) -> OfficeEvent:
        if self.status is AgentStatus.MANAGING:
            self._reject("begin work")
        return self._transition(AgentStatus.WORKING, Zone.WORK)

    def start_talking(self) -> OfficeEvent:
        if self.zone is not Zone.MEETING:
            self._reject("start talking")
        return self._transition(AgentStatus.COMMUNICATING, Zone.MEETING)

    def rest(self) -> OfficeEvent:
        return self._transition(AgentStatus.RESTING, Zone.LOUNGE)

    def manage(self) -> OfficeEvent:
        if not self.persona.is_manager:
            self._reject("manage")
        return self._transition(AgentStatus.MANAGING, Zone.OFFICE)

    def finish(self) -> OfficeEvent:
        self.status = AgentStatus.IDLE
        # Zone is left out: finishing does not move the agent
        return agent_status(self.agent_id, AgentStatus.IDLE)

    def _transition(self, status: AgentStatus, zone: Zone) -> OfficeEvent:
        self.status = status
        self.zone = zone
        return agent_status(self.agent_id, status, zone)

    def _reject(self, command: str) -> None:
        raise InvalidTransitionError(self.agent_id, command, self.status, self.zone)


class TeamRoster:
    """State machines for the agents taking part in one execution."""

    def __init__(self, agent_ids: tuple[str, ...] | list[str]):
        self._machines = {
            agent_id: AgentStateMachine(get_agent_persona(agent_id)) for agent_id in agent_ids
        }

    def __getitem__(self, agent_id: str) -> AgentStateMachine:
        return self._machines[agent_id]

    def __iter__(self):
        return iter(self._machines.values())

    @property
    def agent_ids(self) -> list[str]:
        return list(self._machines)

    def finish_all(self) -> list[OfficeEvent]:
        return [machine.finish() for machine in self._machines.values()]
