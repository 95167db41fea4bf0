from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from agentoffice.core.domain.models import ExecutionMode


load_dotenv()


_TRUE_VALUES = {"1", "true", "yes", "on"}

MODE_DESCRIPTIONS = {
    ExecutionMode.SIMULATION: "Simulation - No API calls, instant responses",
    ExecutionMode.HYBRID: "Hybrid - Cached responses + API for new missions",
    ExecutionMode.REAL: "Real - Always use Claude API",
}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


class Settings:
    """Application settings loaded from environment variables.

    Attributes
    ----------
    mode: ExecutionMode
        Default execution mode when a request does not name one (``MODE``).
    cache_enabled: bool
        Whether hybrid mode reads and writes the mission cache.
    cache_max_entries / cache_ttl_seconds:
        Capacity and time-to-live of the mission cache.
    max_cost_alert / max_tokens_per_day:
        Daily thresholds for uncached calls and estimated tokens.
    anthropic_api_key: Optional[str]
        Model credential. Missing is fine for simulation mode.
    """

    def __init__(self) -> None:
        self.mode: ExecutionMode = ExecutionMode.parse(os.getenv("MODE", "simulation"))
        self.cache_enabled: bool = _env_bool("CACHE_ENABLED", True)
        self.cache_max_entries: int = _env_int("CACHE_MAX_ENTRIES", 100)
        self.cache_ttl_seconds: float = _env_float("CACHE_TTL_SECONDS", 60 * 60 * 24)
        self.max_cost_alert: int = _env_int("MAX_COST_ALERT", 1000)
        self.max_tokens_per_day: int = _env_int("MAX_TOKENS_PER_DAY", 100000)
        self.anthropic_api_key: Optional[str] = os.getenv("ANTHROPIC_API_KEY") or None

        self.llm_config_path: str = os.getenv("LLM_CONFIG_PATH", str(Path("configs", "llm_config.yaml")))
        self.usage_stats_file: str = os.getenv("USAGE_STATS_FILE", str(Path.cwd().joinpath("usage-tracking.json")))

        # External agent-team CLI used by real mode
        self.team_cli_path: str = os.getenv("TEAM_CLI_PATH", "claude-code")
        self.team_timeout_seconds: float = _env_float("TEAM_TIMEOUT_SECONDS", 120.0)
        self.team_command_timeout_seconds: float = _env_float("TEAM_COMMAND_TIMEOUT_SECONDS", 300.0)

        # 0 runs the scripted simulation without delays
        self.simulation_time_scale: float = _env_float("SIMULATION_TIME_SCALE", 1.0)


def describe_mode(mode: ExecutionMode | str) -> str:
    """Human-readable description of an execution mode."""
    return MODE_DESCRIPTIONS[ExecutionMode.parse(str(getattr(mode, "value", mode)))]


def is_api_key_required(mode: ExecutionMode | str) -> bool:
    return ExecutionMode.parse(str(getattr(mode, "value", mode))) is not ExecutionMode.SIMULATION
