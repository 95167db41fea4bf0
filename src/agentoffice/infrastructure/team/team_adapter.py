"""
Team Process Adapter

Drives the external agent-team command-line tool:
- one-shot sub-commands (team create, task create, message send) run to
  completion and report a ``CommandResult`` mirroring the exit code
- ``monitor_team`` keeps a long-running ``monitor`` process per team whose
  stdout and stderr are parsed line by line into ``TeamEvent`` values

Events are delivered through ``asyncio.Queue`` subscriptions: each
subscriber gets its own queue and receives ``None`` once the team is gone.
There is at most one entry (and one monitor process) per team name.
"""

import asyncio
import hashlib
import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

logger = structlog.get_logger()

DEFAULT_CLI_PATH = "claude-code"
DEFAULT_COMMAND_TIMEOUT = 300.0
SHUTDOWN_GRACE_SECONDS = 5.0


def team_name_for(mission_id: str) -> str:
    """Stable, CLI-safe team name for a mission; distinct missions get distinct teams."""
    digest = hashlib.sha256(mission_id.encode("utf-8")).hexdigest()[:16]
    return f"team-{digest}"


class TeamEventType(str, Enum):
    TEAM_CREATED = "TEAM_CREATED"
    TEAM_ERROR = "TEAM_ERROR"
    AGENT_MESSAGE = "AGENT_MESSAGE"
    AGENT_STATUS = "AGENT_STATUS"
    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    STDOUT = "STDOUT"
    STDERR = "STDERR"


class TeamNotFoundError(LookupError):
    """Raised when an operation names a team the adapter does not know."""

    def __init__(self, team_name: str):
        super().__init__(f"Team '{team_name}' not found")
        self.team_name = team_name


@dataclass
class TeamEvent:
    type: TeamEventType
    team_name: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    raw_output: Optional[str] = None


@dataclass
class CommandResult:
    success: bool
    output: str = ""
    error: Optional[str] = None


@dataclass
class TeamStatus:
    status: str
    created_at: datetime
    events: list[TeamEvent]


@dataclass
class TeamProcess:
    """Book-keeping for one named team."""

    name: str
    agents: list[str]
    status: str = "starting"  # starting | running | stopped | error
    created_at: datetime = field(default_factory=datetime.now)
    events: list[TeamEvent] = field(default_factory=list)
    process: Optional[asyncio.subprocess.Process] = None
    watcher: Optional[asyncio.Task] = None


_AGENT_MESSAGE_LINE = re.compile(r"^\[(\w+)\]\s+(.+)$")
_TASK_LINE = re.compile(r"^Task\s+#(\d+):\s+(\w+)", re.IGNORECASE)
_AGENT_STATUS_LINE = re.compile(r"^Agent\s+(\w+):\s+(\w+)", re.IGNORECASE)
_TEAM_CREATED_LINE = re.compile(r"^Team\s+'([^']+)'\s+created", re.IGNORECASE)


def parse_output_line(line: str, team_name: str) -> Optional[TeamEvent]:
    """
    Turn one stdout line of the monitor process into a team event.

    JSON lines must carry a known ``type``; unknown or non-object JSON is
    dropped. Other lines go through the plain-text patterns and fall back
    to a ``STDOUT`` event.
    """
    text = line.strip()
    if not text:
        return None

    try:
        payload = json.loads(text)
    except ValueError:
        return _parse_plain_line(text, team_name)

    if not isinstance(payload, dict):
        return None
    raw_type = str(payload.get("type", "")).upper()
    try:
        event_type = TeamEventType(raw_type)
    except ValueError:
        logger.debug("team.output_ignored", team=team_name, type=raw_type)
        return None

    data = payload.get("data")
    if not isinstance(data, dict):
        data = {key: value for key, value in payload.items() if key != "type"}
    return TeamEvent(event_type, team_name, dict(data), raw_output=text)


def _parse_plain_line(text: str, team_name: str) -> TeamEvent:
    if match := _AGENT_MESSAGE_LINE.match(text):
        return TeamEvent(
            TeamEventType.AGENT_MESSAGE,
            team_name,
            {"agentId": match.group(1).lower(), "message": match.group(2)},
            raw_output=text,
        )
    if match := _TASK_LINE.match(text):
        return TeamEvent(
            TeamEventType.TASK_UPDATED,
            team_name,
            {"taskId": match.group(1), "status": match.group(2).lower()},
            raw_output=text,
        )
    if match := _AGENT_STATUS_LINE.match(text):
        return TeamEvent(
            TeamEventType.AGENT_STATUS,
            team_name,
            {"agentId": match.group(1).lower(), "status": match.group(2)},
            raw_output=text,
        )
    if match := _TEAM_CREATED_LINE.match(text):
        return TeamEvent(
            TeamEventType.TEAM_CREATED,
            team_name,
            {"teamName": match.group(1)},
            raw_output=text,
        )
    return TeamEvent(TeamEventType.STDOUT, team_name, {"message": text}, raw_output=text)


class TeamAdapter:
    """Supervises agent-team processes and publishes their parsed output."""

    def __init__(
        self,
        cli_path: str = DEFAULT_CLI_PATH,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        shutdown_grace: float = SHUTDOWN_GRACE_SECONDS,
    ):
        self.cli_path = cli_path
        self.command_timeout = command_timeout
        self.shutdown_grace = shutdown_grace
        self._teams: dict[str, TeamProcess] = {}
        self._subscribers: dict[str, list[asyncio.Queue]] = {}
        self.logger = logger.bind(component="team_adapter")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, team_name: str) -> asyncio.Queue:
        """
        Open an event queue for a team (the team need not exist yet).

        The queue receives every event published after this call and a
        final ``None`` once the team is shut down.
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(team_name, []).append(queue)
        return queue

    def unsubscribe(self, team_name: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(team_name, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(team_name, None)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_team(
        self,
        team_name: str,
        agents: list[str],
        max_agents: Optional[int] = 5,
    ) -> CommandResult:
        if team_name in self._teams:
            return CommandResult(success=False, error=f"Team '{team_name}' already exists")

        # Reserve the name before awaiting so a concurrent call fails cleanly
        team = TeamProcess(name=team_name, agents=list(agents))
        self._teams[team_name] = team

        args = ["team", "create", team_name]
        if agents:
            args += ["--agents", ",".join(agents)]
        if max_agents:
            args += ["--max-agents", str(max_agents)]

        result = await self._run_command(args)
        if not result.success:
            self._teams.pop(team_name, None)
            self.logger.warning("team.create_failed", team=team_name, error=result.error)
            return CommandResult(
                success=False,
                output=result.output,
                error=result.error or "Failed to create team",
            )

        team.status = "running"
        self.logger.info("team.created", team=team_name, agents=agents)
        self._publish(
            team,
            TeamEvent(
                TeamEventType.TEAM_CREATED,
                team_name,
                {"teamName": team_name, "agents": list(agents)},
            ),
        )
        return result

    async def create_task(
        self,
        team_name: str,
        subject: str,
        description: str,
        active_form: Optional[str] = None,
    ) -> CommandResult:
        team = self._require(team_name)
        args = [
            "team", team_name, "task", "create",
            "--subject", subject,
            "--description", description,
        ]
        if active_form:
            args += ["--active-form", active_form]

        result = await self._run_command(args)
        if result.success:
            self._publish(
                team,
                TeamEvent(TeamEventType.TASK_CREATED, team_name, {"subject": subject}),
            )
        return result

    async def send_message(
        self,
        team_name: str,
        recipient: str,
        message: str,
        message_type: str = "message",
    ) -> CommandResult:
        self._require(team_name)
        return await self._run_command(
            [
                "team", team_name, "message", "send",
                "--recipient", recipient,
                "--message", message,
                "--type", message_type,
            ]
        )

    async def monitor_team(self, team_name: str) -> None:
        """
        Start the long-running monitor process for a team.

        Returns once the process is spawned; parsing continues in the
        background until the process exits or the team is shut down.

        Raises:
            TeamNotFoundError: If the team was never created
        """
        team = self._require(team_name)
        if team.process is not None:
            return

        try:
            process = await asyncio.create_subprocess_exec(
                self.cli_path, "team", team_name, "monitor", "--format", "json",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            team.status = "error"
            self.logger.error("team.monitor_spawn_failed", team=team_name, error=str(e))
            self._publish(
                team,
                TeamEvent(TeamEventType.TEAM_ERROR, team_name, {"teamName": team_name, "error": str(e)}),
            )
            return

        team.process = process
        team.watcher = asyncio.create_task(self._watch(team, process))
        self.logger.info("team.monitor_started", team=team_name, pid=process.pid)

    def get_team_status(self, team_name: str) -> Optional[TeamStatus]:
        team = self._teams.get(team_name)
        if team is None:
            return None
        return TeamStatus(status=team.status, created_at=team.created_at, events=list(team.events))

    def active_teams(self) -> list[str]:
        return list(self._teams)

    async def shutdown_team(self, team_name: str) -> None:
        """
        Stop a team: SIGTERM the monitor, SIGKILL it after the grace period.

        Raises:
            TeamNotFoundError: If the team is unknown
        """
        team = self._teams.pop(team_name, None)
        if team is None:
            raise TeamNotFoundError(team_name)

        process = team.process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=self.shutdown_grace)
            except asyncio.TimeoutError:
                self.logger.warning("team.kill_forced", team=team_name, pid=process.pid)
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass

        if team.watcher is not None:
            team.watcher.cancel()
            await asyncio.gather(team.watcher, return_exceptions=True)

        if team.status != "error":
            team.status = "stopped"
        self.logger.info("team.shutdown", team=team_name)
        self._close_subscribers(team_name)

    async def shutdown_all(self) -> None:
        await asyncio.gather(
            *(self.shutdown_team(name) for name in list(self._teams)),
            return_exceptions=True,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, team_name: str) -> TeamProcess:
        team = self._teams.get(team_name)
        if team is None:
            raise TeamNotFoundError(team_name)
        return team

    def _publish(self, team: TeamProcess, event: TeamEvent) -> None:
        if event.type is TeamEventType.TEAM_ERROR:
            team.status = "error"
        team.events.append(event)
        for queue in self._subscribers.get(team.name, []):
            queue.put_nowait(event)

    def _close_subscribers(self, team_name: str) -> None:
        for queue in self._subscribers.pop(team_name, []):
            queue.put_nowait(None)

    async def _run_command(self, args: list[str]) -> CommandResult:
        self.logger.debug("team.command", args=args)
        try:
            process = await asyncio.create_subprocess_exec(
                self.cli_path, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return CommandResult(success=False, error=f"Failed to start {self.cli_path}: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.command_timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return CommandResult(
                success=False,
                error=f"Command timed out after {self.command_timeout}s",
            )

        output = stdout.decode("utf-8", errors="replace")
        if process.returncode == 0:
            return CommandResult(success=True, output=output)
        return CommandResult(
            success=False,
            output=output,
            error=stderr.decode("utf-8", errors="replace").strip()
            or f"Process exited with code {process.returncode}",
        )

    async def _watch(self, team: TeamProcess, process: asyncio.subprocess.Process) -> None:
        await asyncio.gather(
            self._read_stdout(team, process.stdout),
            self._read_stderr(team, process.stderr),
        )
        returncode = await process.wait()
        if team.status != "error":
            team.status = "stopped" if returncode == 0 else "error"
        self.logger.info("team.monitor_exited", team=team.name, returncode=returncode)

    async def _read_stdout(self, team: TeamProcess, stream: asyncio.StreamReader) -> None:
        async for raw in stream:
            event = parse_output_line(raw.decode("utf-8", errors="replace"), team.name)
            if event is not None:
                self._publish(team, event)

    async def _read_stderr(self, team: TeamProcess, stream: asyncio.StreamReader) -> None:
        async for raw in stream:
            text = raw.decode("utf-8", errors="replace").strip()
            if text:
                self._publish(
                    team,
                    TeamEvent(TeamEventType.STDERR, team.name, {"message": text}, raw_output=text),
                )
