"""
Application Layer - Service Factory

Builds the process-wide collaborators once (cache, usage tracker, model
client, team adapter) and wires them into the execution engine and the chat
responder. The API keeps the result on ``app.state``; the CLI builds its own.
Nothing here is a module-level singleton, so tests can build isolated
instances freely.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from agentoffice.application.chat import ChatResponder
from agentoffice.application.engine import MissionExecutionEngine, SimulationTimings
from agentoffice.application.settings import Settings
from agentoffice.infrastructure.cache.mission_cache import MissionCache
from agentoffice.infrastructure.llm.model_client import (
    AuthenticationError,
    ModelClient,
    load_model_config,
)
from agentoffice.infrastructure.monitoring.usage_tracker import UsageTracker
from agentoffice.infrastructure.team.team_adapter import TeamAdapter

logger = structlog.get_logger()


@dataclass
class OfficeServices:
    """Collaborators shared by every request for the lifetime of the process."""

    settings: Settings
    cache: MissionCache
    tracker: UsageTracker
    model_client: ModelClient
    team_adapter: TeamAdapter
    engine: MissionExecutionEngine
    chat: ChatResponder

    async def startup(self) -> None:
        await self.tracker.load_from_file()

    async def shutdown(self) -> None:
        await self.team_adapter.shutdown_all()
        await self.tracker.flush()


def build_services(settings: Optional[Settings] = None) -> OfficeServices:
    """Create and wire all services from settings."""
    settings = settings or Settings()
    log = logger.bind(component="service_factory")

    cache = MissionCache(
        max_entries=settings.cache_max_entries,
        ttl_seconds=settings.cache_ttl_seconds,
    )
    tracker = UsageTracker(stats_file=settings.usage_stats_file)

    model_client = ModelClient(load_model_config(settings.llm_config_path))
    if settings.anthropic_api_key:
        try:
            model_client.initialize(settings.anthropic_api_key)
        except AuthenticationError as e:
            log.warning("services.model_client_unavailable", error=str(e))
    else:
        log.info(
            "services.api_key_missing",
            env_var="ANTHROPIC_API_KEY",
            hint="hybrid and real modes need it",
        )

    team_adapter = TeamAdapter(
        cli_path=settings.team_cli_path,
        command_timeout=settings.team_command_timeout_seconds,
    )

    engine = MissionExecutionEngine(
        cache=cache,
        tracker=tracker,
        model_client=model_client,
        team_adapter=team_adapter,
        cache_enabled=settings.cache_enabled,
        timings=SimulationTimings(scale=settings.simulation_time_scale),
        team_timeout=settings.team_timeout_seconds,
    )
    chat = ChatResponder(
        team_adapter=team_adapter,
        delay=0.8 * settings.simulation_time_scale,
    )

    log.info(
        "services.built",
        default_mode=settings.mode.value,
        cache_enabled=settings.cache_enabled,
        model_ready=model_client.is_ready(),
    )
    return OfficeServices(
        settings=settings,
        cache=cache,
        tracker=tracker,
        model_client=model_client,
        team_adapter=team_adapter,
        engine=engine,
        chat=chat,
    )
