"""
Model Client

Thin wrapper around LiteLLM's ``acompletion`` for the conversational model
that analyzes missions. It adds:
- explicit initialization with a credential (missing key fails clearly)
- retry with per-status backoff
- typed errors so callers can tell bad credentials from transient failures

Retry policy (``max_attempts`` counts every attempt, delays in seconds):
- 401: never retried
- 429: retried after the server's ``retry-after`` value, else the base delay
- 5xx: retried after ``base_delay * attempt``
- anything else (network, other HTTP codes): retried after ``base_delay * attempt``
After the last attempt a ``RetryExhaustedError`` names the attempt count and
the last failure.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import litellm
import structlog
import yaml

from agentoffice.core.domain.models import MissionAnalysis
from agentoffice.core.prompts.mission_prompts import (
    DEFAULT_AGENT_ASSIGNMENTS,
    MISSION_ANALYSIS_PROMPT,
)

logger = structlog.get_logger()

DEFAULT_MODEL = "anthropic/claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4096

MISSING_KEY_MESSAGE = (
    "Model client not initialized. Please set ANTHROPIC_API_KEY environment variable."
)
INVALID_KEY_MESSAGE = "Invalid API key. Please check ANTHROPIC_API_KEY environment variable."

_CODE_FENCE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$")


class ModelAPIError(Exception):
    """Failure talking to the model API."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class AuthenticationError(ModelAPIError):
    def __init__(self, message: str = INVALID_KEY_MESSAGE):
        super().__init__(message, status_code=401, retryable=False)


class RateLimitError(ModelAPIError):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429, retryable=True)
        self.retry_after = retry_after


class ServerError(ModelAPIError):
    pass


class RetryExhaustedError(ModelAPIError):
    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(
            f"Failed after {attempts} attempts: {last_error}",
            status_code=getattr(last_error, "status_code", None),
            retryable=False,
        )
        self.attempts = attempts
        self.last_error = last_error


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_attempts: int = 3
    retry_delay: float = 1.0


@dataclass
class ModelConfig:
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass
class ModelResponse:
    content: str
    usage: Dict[str, int]


def load_model_config(config_path: str | Path) -> ModelConfig:
    """
    Load the model configuration from YAML.

    A missing or empty file yields the built-in defaults.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        logger.info("llm.config_missing", path=str(config_file), hint="Using defaults")
        return ModelConfig()

    with open(config_file, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    retry_config = config.get("retry_policy", {}) or {}
    return ModelConfig(
        model=config.get("model", DEFAULT_MODEL),
        max_tokens=int(config.get("max_tokens", DEFAULT_MAX_TOKENS)),
        retry_policy=RetryPolicy(
            max_attempts=int(retry_config.get("max_attempts", 3)),
            retry_delay=float(retry_config.get("retry_delay_seconds", 1.0)),
        ),
    )


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    return match.group(1) if match else stripped


class ModelClient:
    """Retrying client for the mission-analysis model."""

    def __init__(self, config: Optional[ModelConfig] = None):
        self.config = config or ModelConfig()
        self._api_key: Optional[str] = None
        self.logger = logger.bind(component="model_client", model=self.config.model)

    @property
    def retry_policy(self) -> RetryPolicy:
        return self.config.retry_policy

    def initialize(self, api_key: Optional[str]) -> None:
        """
        Make the client ready with the given credential.

        Raises:
            AuthenticationError: If the key is empty
        """
        if not api_key or not api_key.strip():
            raise AuthenticationError(MISSING_KEY_MESSAGE)
        self._api_key = api_key.strip()
        self.logger.info("llm.client_initialized")

    def is_ready(self) -> bool:
        return self._api_key is not None

    async def send_message(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: Optional[str] = None,
    ) -> ModelResponse:
        """
        Send a conversation to the model and return the reply text and usage.

        Raises:
            AuthenticationError: Client not initialized or credential rejected
            RetryExhaustedError: Every attempt failed with a retryable error
        """
        if not self.is_ready():
            raise AuthenticationError(MISSING_KEY_MESSAGE)

        request_messages = list(messages)
        if system_prompt:
            request_messages.insert(0, {"role": "system", "content": system_prompt})

        policy = self.retry_policy
        last_error: Optional[ModelAPIError] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                self.logger.debug(
                    "llm.completion.started",
                    attempt=attempt,
                    message_count=len(request_messages),
                )
                response = await litellm.acompletion(
                    model=self.config.model,
                    messages=request_messages,
                    max_tokens=self.config.max_tokens,
                    api_key=self._api_key,
                )
                return self._to_response(response)

            except Exception as e:
                error = self._classify(e)
                if not error.retryable:
                    self.logger.error("llm.completion.rejected", status_code=error.status_code)
                    raise error from e

                last_error = error
                if attempt == policy.max_attempts:
                    break

                delay = self._retry_delay(error, attempt)
                self.logger.warning(
                    "llm.completion.retry",
                    attempt=attempt,
                    status_code=error.status_code,
                    error_type=type(e).__name__,
                    backoff_seconds=delay,
                )
                await asyncio.sleep(delay)

        self.logger.error(
            "llm.completion.failed",
            attempts=policy.max_attempts,
            error=str(last_error)[:200],
        )
        raise RetryExhaustedError(policy.max_attempts, last_error)

    async def analyze_mission(self, mission: str) -> MissionAnalysis:
        """
        Ask the model to break a mission into tasks and per-agent actions.

        A reply that is not the expected JSON is not an error: the raw text
        becomes the analysis and default tasks and assignments are used.
        Transport and credential errors from ``send_message`` propagate.
        """
        response = await self.send_message(
            [{"role": "user", "content": f"Mission: {mission}"}],
            system_prompt=MISSION_ANALYSIS_PROMPT,
        )
        return self._parse_analysis(response.content, mission)

    def _parse_analysis(self, content: str, mission: str) -> MissionAnalysis:
        try:
            data = json.loads(strip_code_fence(content))
            if not isinstance(data, dict):
                raise ValueError("analysis reply is not a JSON object")
            agents = data.get("agents") or {}
            if not isinstance(agents, dict):
                raise ValueError("agents must be an object")
            assignments = {
                agent_id: str(agents.get(agent_id) or default)
                for agent_id, default in DEFAULT_AGENT_ASSIGNMENTS.items()
            }
            return MissionAnalysis(
                analysis=str(data.get("analysis") or mission),
                tasks=[str(task) for task in data.get("tasks") or []],
                agent_assignments=assignments,
            )
        except (ValueError, TypeError) as e:
            self.logger.warning("llm.analysis_unparseable", error=str(e))
            return MissionAnalysis(
                analysis=content.strip() or mission,
                tasks=["Analyze mission", "Plan approach", "Implement solution"],
                agent_assignments=dict(DEFAULT_AGENT_ASSIGNMENTS),
                from_model=False,
            )

    def _to_response(self, response: Any) -> ModelResponse:
        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None) or {}
        if isinstance(usage, dict):
            input_tokens = usage.get("prompt_tokens", 0)
            output_tokens = usage.get("completion_tokens", 0)
        else:
            input_tokens = getattr(usage, "prompt_tokens", 0)
            output_tokens = getattr(usage, "completion_tokens", 0)
        return ModelResponse(
            content=content,
            usage={"input_tokens": input_tokens or 0, "output_tokens": output_tokens or 0},
        )

    def _retry_delay(self, error: ModelAPIError, attempt: int) -> float:
        base = self.retry_policy.retry_delay
        if isinstance(error, RateLimitError):
            return error.retry_after if error.retry_after is not None else base
        return base * attempt

    @staticmethod
    def _classify(exc: Exception) -> ModelAPIError:
        if isinstance(exc, ModelAPIError):
            return exc

        status = _status_code(exc)
        if status == 401:
            return AuthenticationError()
        if status == 429:
            return RateLimitError(str(exc), retry_after=_retry_after(exc))
        if status is not None and status >= 500:
            return ServerError(str(exc), status_code=status)
        return ModelAPIError(str(exc), status_code=status)


def _status_code(exc: Exception) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _retry_after(exc: Exception) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) or {}
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
