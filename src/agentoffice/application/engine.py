"""
Application Layer - Mission Execution Engine

Runs one mission in one of three modes and hands every produced event to an
async sink, in order:

- simulation: a fixed local script of status changes, messages and logs
- hybrid:     replay a cached session on a hit; on a miss ask the model for
              an analysis, drive the script with it (or fall back to the
              plain simulation) and cache the captured sequence
- real:       start an external agent team, forward its parsed output and
              wait for it to finish (soft timeout), then tear it down

Every run ends with exactly one terminal event (``mission_complete`` or
``error``). Emission goes through an ``ExecutionRun``, which serializes
writers with a lock and drops anything emitted after the terminal event.
A sink raising ``SinkClosedError`` means the consumer left: the run stops
emitting and goes straight to cleanup.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog

from agentoffice.core.domain.agent_state import TeamRoster
from agentoffice.core.domain.events import (
    EventType,
    OfficeEvent,
    agent_message,
    agent_status,
    collaboration_event,
    deliverable_event,
    error_event,
    mission_complete,
    task_progress_event,
    team_log,
    user_prompt_event,
)
from agentoffice.core.domain.extraction import (
    extract_collaboration,
    extract_deliverable,
    extract_user_prompt,
)
from agentoffice.core.domain.models import (
    AgentStatus,
    ExecutionMode,
    LogType,
    MissionAnalysis,
    TaskProgress,
    Zone,
)
from agentoffice.core.prompts.agent_personas import TEAM_AGENT_IDS
from agentoffice.core.prompts.mission_prompts import TEAM_TASK_TEMPLATES
from agentoffice.infrastructure.cache.mission_cache import MissionCache
from agentoffice.infrastructure.llm.model_client import (
    MISSING_KEY_MESSAGE,
    AuthenticationError,
    ModelClient,
)
from agentoffice.infrastructure.monitoring.usage_tracker import UsageTracker
from agentoffice.infrastructure.team.team_adapter import (
    TeamAdapter,
    TeamEvent,
    TeamEventType,
    team_name_for,
)

logger = structlog.get_logger()

EventSink = Callable[[OfficeEvent], Awaitable[None]]

USAGE_ENDPOINT = "/api/claude-team"
DEFAULT_TEAM_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_REPLAY_SPACING_MS = 5

SIMULATION_COMPLETE_MESSAGE = (
    "[SIMULATION] Mission analyzed successfully. Ready for real implementation."
)

# Canned lines of the simulation script, per agent
_SCRIPT_MESSAGES = {
    "leo": "Analyzing mission requirements...",
    "momo": "Breaking down tasks and creating plan...",
    "alex": "Reviewing technical feasibility...",
}


class SinkClosedError(Exception):
    """Raised by an event sink once its consumer has disconnected."""


class TeamExecutionError(RuntimeError):
    pass


@dataclass
class SimulationTimings:
    """Pauses of the scripted strategy, in seconds before scaling."""

    scale: float = 1.0
    kickoff: float = 0.5
    planning: float = 0.8
    join_meeting: float = 0.4
    review: float = 1.0
    collaborate: float = 0.8
    wrap_up: float = 1.2
    task_spacing: float = 1.0

    def scaled(self, seconds: float) -> float:
        return max(0.0, seconds * self.scale)


class ExecutionRun:
    """
    Emission state of a single execution.

    All writers (the scripted step sequence and, in real mode, the team
    event forwarder) go through ``emit``, which holds a lock for the whole
    sink call so events reach the consumer one at a time in the order they
    were produced.
    """

    def __init__(self, mission_id: str, sink: EventSink):
        self.mission_id = mission_id
        self._sink = sink
        self._lock = asyncio.Lock()
        self._capture: Optional[list[OfficeEvent]] = None
        self.finished = False
        self.emitted = 0
        self.tasks_completed = 0
        self.collaborations = 0
        self.started_at = time.monotonic()

    async def emit(self, event: OfficeEvent) -> None:
        async with self._lock:
            if self.finished:
                logger.debug(
                    "mission.emit_after_terminal",
                    mission_id=self.mission_id,
                    type=event.type.value,
                )
                return
            if event.is_terminal:
                self.finished = True
            if self._capture is not None:
                self._capture.append(event)
            self.emitted += 1
            await self._sink(event)

    def start_capture(self) -> None:
        self._capture = []

    def stop_capture(self) -> list[OfficeEvent]:
        captured, self._capture = self._capture or [], None
        return captured

    def results(self) -> dict[str, Any]:
        return {
            "tasksCompleted": self.tasks_completed,
            "collaborations": self.collaborations,
            "duration": int((time.monotonic() - self.started_at) * 1000),
        }


class MissionExecutionEngine:
    """Executes missions with the simulation, hybrid or real strategy."""

    def __init__(
        self,
        cache: MissionCache,
        tracker: UsageTracker,
        model_client: ModelClient,
        team_adapter: TeamAdapter,
        cache_enabled: bool = True,
        timings: Optional[SimulationTimings] = None,
        team_timeout: float = DEFAULT_TEAM_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        replay_spacing_ms: int = DEFAULT_REPLAY_SPACING_MS,
    ):
        self.cache = cache
        self.tracker = tracker
        self.model_client = model_client
        self.team_adapter = team_adapter
        self.cache_enabled = cache_enabled
        self.timings = timings or SimulationTimings()
        self.team_timeout = team_timeout
        self.poll_interval = poll_interval
        self.replay_spacing_ms = replay_spacing_ms
        self.logger = logger.bind(component="mission_engine")

    async def execute(
        self,
        mission: str,
        mode: ExecutionMode | str,
        mission_id: str,
        emit: EventSink,
    ) -> ExecutionRun:
        """
        Run a mission and stream its events to ``emit``.

        Never raises for execution failures: they become a terminal
        ``error`` event. Returns the run for inspection by callers.
        """
        mode = mode if isinstance(mode, ExecutionMode) else ExecutionMode.parse(mode)
        run = ExecutionRun(mission_id, emit)
        log = self.logger.bind(mission_id=mission_id, mode=mode.value)
        log.info("mission.execution.started", mission_length=len(mission))

        try:
            if mode is ExecutionMode.SIMULATION:
                await self._run_script(run, mission)
            elif mode is ExecutionMode.HYBRID:
                await self._run_hybrid(run, mission)
            else:
                await self._run_real(run, mission)

            if not run.finished:
                await run.emit(error_event("Execution ended without a result", mission_id))

        except SinkClosedError:
            log.info("mission.execution.consumer_disconnected", emitted=run.emitted)
            return run
        except Exception as e:
            log.error("mission.execution.failed", error=str(e), error_type=type(e).__name__)
            try:
                await run.emit(error_event(str(e), mission_id))
            except SinkClosedError:
                log.info("mission.execution.consumer_disconnected", emitted=run.emitted)
            return run

        log.info("mission.execution.completed", emitted=run.emitted, **run.results())
        return run

    # ------------------------------------------------------------------
    # Scripted strategy (simulation, and hybrid on a cache miss)
    # ------------------------------------------------------------------

    async def _run_script(
        self,
        run: ExecutionRun,
        mission: str,
        analysis: Optional[MissionAnalysis] = None,
    ) -> None:
        roster = TeamRoster(TEAM_AGENT_IDS)
        messages = dict(_SCRIPT_MESSAGES)
        tasks: list[TaskProgress] = []
        if analysis is not None:
            messages.update(analysis.agent_assignments)
            tasks = [
                TaskProgress(
                    task_id=f"{run.mission_id}-task-{index + 1}",
                    task_name=name,
                    agent_id=TEAM_AGENT_IDS[index % len(TEAM_AGENT_IDS)],
                    progress=0,
                    status="started",
                )
                for index, name in enumerate(analysis.tasks)
            ]

        await run.emit(team_log(LogType.MISSION, f"[MISSION START] {mission}"))
        if analysis is not None:
            await run.emit(team_log(LogType.AGENT, f"[ANALYSIS] {analysis.analysis}"))
            for task in tasks:
                await run.emit(task_progress_event(task))

        await self._pause(self.timings.kickoff)
        await run.emit(roster["leo"].begin_work())
        await self._say(run, "leo", messages["leo"])

        await self._pause(self.timings.planning)
        await run.emit(roster["momo"].move_to(Zone.MEETING))
        await self._pause(self.timings.join_meeting)
        await run.emit(roster["momo"].start_talking())
        await self._say(run, "momo", messages["momo"])

        await self._pause(self.timings.review)
        await run.emit(roster["alex"].begin_work())
        await self._say(run, "alex", messages["alex"])

        await self._pause(self.timings.collaborate)
        await run.emit(
            team_log(LogType.COLLAB, "[COLLABORATION] Team discussing implementation strategy")
        )

        await self._pause(self.timings.wrap_up)
        for task in tasks:
            task.progress = 100
            task.status = "completed"
            await run.emit(task_progress_event(task))
        for event in roster.finish_all():
            await run.emit(event)

        run.tasks_completed = len(tasks) if analysis is not None else len(TEAM_AGENT_IDS)
        if analysis is not None:
            message = f"[HYBRID MODE] Mission analyzed successfully: {analysis.analysis}"
        else:
            message = SIMULATION_COMPLETE_MESSAGE
        await run.emit(mission_complete(run.mission_id, message, True, run.results()))

    async def _say(self, run: ExecutionRun, agent_id: str, message: str) -> None:
        """Emit an agent message plus whatever structured content it carries."""
        await run.emit(agent_message(agent_id, message))

        deliverable = extract_deliverable(message, agent_id, run.mission_id)
        if deliverable is not None:
            await run.emit(deliverable_event(deliverable))

        collaboration = extract_collaboration(message, agent_id)
        if collaboration is not None:
            run.collaborations += 1
            await run.emit(collaboration_event(collaboration))

        prompt = extract_user_prompt(message, agent_id)
        if prompt is not None:
            await run.emit(user_prompt_event(prompt))

    async def _pause(self, seconds: float) -> None:
        delay = self.timings.scaled(seconds)
        if delay > 0:
            await asyncio.sleep(delay)

    # ------------------------------------------------------------------
    # Hybrid strategy
    # ------------------------------------------------------------------

    async def _run_hybrid(self, run: ExecutionRun, mission: str) -> None:
        estimated_tokens = self.tracker.estimate_tokens(mission)

        if self.cache_enabled:
            cached = self._load_cached(mission)
            if cached is not None:
                self.logger.info("cache.hit", mission_id=run.mission_id, events=len(cached))
                await run.emit(
                    team_log(LogType.SYSTEM, "[HYBRID MODE] Cache hit - replaying cached session")
                )
                self.tracker.track_call(
                    USAGE_ENDPOINT, estimated_tokens, ExecutionMode.HYBRID, cached=True
                )
                await self._replay(run, cached)
                return

            self.logger.info("cache.miss", mission_id=run.mission_id)
            await run.emit(
                team_log(
                    LogType.SYSTEM,
                    "[HYBRID MODE] Cache miss - executing mission and caching result",
                )
            )
        else:
            await run.emit(
                team_log(LogType.SYSTEM, "[HYBRID MODE] Cache disabled - executing mission")
            )

        self.tracker.track_call(USAGE_ENDPOINT, estimated_tokens, ExecutionMode.HYBRID, cached=False)

        analysis: Optional[MissionAnalysis] = None
        try:
            analysis = await self.model_client.analyze_mission(mission)
        except Exception as e:
            self.logger.warning(
                "mission.hybrid.model_fallback",
                mission_id=run.mission_id,
                error_type=type(e).__name__,
                error=str(e)[:200],
            )
            await run.emit(
                team_log(
                    LogType.SYSTEM,
                    f"[HYBRID MODE] Model unavailable ({e}) - falling back to simulation",
                )
            )

        run.start_capture()
        await self._run_script(run, mission, analysis)
        captured = run.stop_capture()

        # Only complete sessions are worth replaying
        if self.cache_enabled and captured and captured[-1].type is EventType.MISSION_COMPLETE:
            self.cache.set(mission, [event.to_dict() for event in captured])
            self.logger.info("cache.stored", mission_id=run.mission_id, events=len(captured))

    def _load_cached(self, mission: str) -> Optional[list[OfficeEvent]]:
        raw = self.cache.get(mission)
        if raw is None:
            return None
        try:
            return [OfficeEvent.from_dict(item) for item in raw]
        except (ValueError, TypeError) as e:
            self.logger.warning("cache.entry_malformed", error=str(e))
            self.cache.invalidate(mission)
            return None

    async def _replay(self, run: ExecutionRun, events: list[OfficeEvent]) -> None:
        """
        Re-emit a cached session without its original pauses.

        Timestamps become ``now + i * spacing`` and mission ids are rewritten
        to the current run, so replayed output looks like a fresh execution.
        """
        base = datetime.now(timezone.utc)
        spacing = timedelta(milliseconds=self.replay_spacing_ms)
        for index, event in enumerate(events):
            data = event.data
            if "missionId" in data:
                data = {**data, "missionId": run.mission_id}
            await run.emit(
                OfficeEvent(event.type, data, (base + spacing * index).isoformat())
            )

    # ------------------------------------------------------------------
    # Real strategy
    # ------------------------------------------------------------------

    async def _run_real(self, run: ExecutionRun, mission: str) -> None:
        team_name = team_name_for(run.mission_id)
        roster = TeamRoster(TEAM_AGENT_IDS)
        adapter = self.team_adapter
        queue = adapter.subscribe(team_name)
        forwarder: Optional[asyncio.Task] = None
        created = False
        log = self.logger.bind(mission_id=run.mission_id, team=team_name)

        try:
            await run.emit(team_log(LogType.SYSTEM, "[REAL MODE] Initializing agent team..."))
            if not self.model_client.is_ready():
                raise AuthenticationError(MISSING_KEY_MESSAGE)

            self.tracker.track_call(
                USAGE_ENDPOINT,
                self.tracker.estimate_tokens(mission),
                ExecutionMode.REAL,
                cached=False,
            )

            result = await adapter.create_team(team_name, list(TEAM_AGENT_IDS), max_agents=3)
            if not result.success:
                raise TeamExecutionError(f"Failed to create team: {result.error}")
            created = True
            await run.emit(team_log(LogType.SYSTEM, "[REAL MODE] Team created successfully"))

            forwarder = asyncio.create_task(self._forward_team_events(run, queue))
            await adapter.monitor_team(team_name)
            await run.emit(team_log(LogType.SYSTEM, "[REAL MODE] Monitoring team activity..."))

            tasks = await self._assign_team_tasks(run, roster, team_name, mission)
            final_status = await self._wait_for_team(run, team_name)

            # Forward everything the team produced before completing
            queue.put_nowait(None)
            await forwarder

            if final_status == "error":
                raise TeamExecutionError("Agent team stopped with an error")

            for task in tasks:
                task.progress = 100
                task.status = "completed"
                await run.emit(task_progress_event(task))
            for event in roster.finish_all():
                await run.emit(event)
            run.tasks_completed = len(tasks)
            await run.emit(
                mission_complete(
                    run.mission_id,
                    "[REAL MODE] Mission completed successfully",
                    True,
                    run.results(),
                )
            )

        except SinkClosedError:
            raise
        except Exception as e:
            log.error("mission.real.failed", error=str(e), error_type=type(e).__name__)
            await run.emit(error_event(f"[REAL MODE] Error: {e}", run.mission_id))

        finally:
            if forwarder is not None and not forwarder.done():
                forwarder.cancel()
            if forwarder is not None:
                await asyncio.gather(forwarder, return_exceptions=True)
            adapter.unsubscribe(team_name, queue)
            if created:
                try:
                    await adapter.shutdown_team(team_name)
                except Exception as e:
                    log.warning("team.teardown_failed", error=str(e))

    async def _assign_team_tasks(
        self,
        run: ExecutionRun,
        roster: TeamRoster,
        team_name: str,
        mission: str,
    ) -> list[TaskProgress]:
        tasks = []
        for index, agent_id in enumerate(TEAM_AGENT_IDS):
            if index:
                await self._pause(self.timings.task_spacing)
            await run.emit(roster[agent_id].begin_work())

            subject, description, active_form = TEAM_TASK_TEMPLATES[agent_id]
            result = await self.team_adapter.create_task(
                team_name,
                subject=subject,
                description=description.format(mission=mission),
                active_form=active_form,
            )
            if not result.success:
                await run.emit(
                    team_log(LogType.SYSTEM, f"[TASK FAILED] {subject}: {result.error}", agent_id)
                )
                continue

            task = TaskProgress(
                task_id=f"{team_name}-{agent_id}",
                task_name=subject,
                agent_id=agent_id,
                progress=0,
                status="started",
                message=active_form,
            )
            tasks.append(task)
            await run.emit(task_progress_event(task))
        return tasks

    async def _wait_for_team(self, run: ExecutionRun, team_name: str) -> str:
        """Poll until the team stops or errors; the timeout only ends the wait."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.team_timeout
        while True:
            status = self.team_adapter.get_team_status(team_name)
            if status is None:
                return "stopped"
            if status.status in ("stopped", "error"):
                return status.status
            if loop.time() >= deadline:
                await run.emit(
                    team_log(LogType.SYSTEM, "[REAL MODE] Timeout reached, completing mission")
                )
                return "timeout"
            await asyncio.sleep(self.poll_interval)

    async def _forward_team_events(self, run: ExecutionRun, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            if item is None:
                return
            if item.type is TeamEventType.AGENT_MESSAGE:
                agent_id = str(item.data.get("agentId", "")).lower()
                await self._say(run, agent_id, str(item.data.get("message", "")))
                continue
            event = map_team_event(item)
            if event is not None:
                await run.emit(event)


def map_team_event(event: TeamEvent) -> Optional[OfficeEvent]:
    """
    Translate an adapter event (other than agent messages) to the office taxonomy.

    TEAM_ERROR becomes a log line here; a failed team is reported once, by
    the terminal event of the run.
    """
    data = event.data
    if event.type is TeamEventType.AGENT_STATUS:
        agent_id = str(data.get("agentId", "")).lower()
        status = str(data.get("status", "")).upper()
        try:
            return agent_status(agent_id, AgentStatus(status))
        except ValueError:
            return team_log(LogType.AGENT, f"[AGENT STATUS] {agent_id}: {status}", agent_id)
    if event.type is TeamEventType.TASK_UPDATED:
        return team_log(
            LogType.SYSTEM, f"[TASK UPDATE] Task {data.get('taskId')}: {data.get('status')}"
        )
    if event.type is TeamEventType.TASK_CREATED:
        return team_log(LogType.SYSTEM, f"[TASK CREATED] {data.get('subject')}")
    if event.type is TeamEventType.TEAM_ERROR:
        return team_log(
            LogType.SYSTEM, f"[TEAM ERROR] {data.get('error') or 'Unknown team error'}"
        )
    if event.type in (TeamEventType.STDOUT, TeamEventType.STDERR):
        text = data.get("message") or data.get("output") or ""
        return team_log(LogType.SYSTEM, f"[{event.type.value}] {text}")
    return None
