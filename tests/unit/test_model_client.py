"""
Unit tests for ModelClient.

Tests verify:
- Initialization and the missing-credential error
- Retry behaviour per status class (401, 429, 5xx) with sleeps patched out
- Exhaustion error message
- Mission analysis parsing and its fallback
- YAML config loading
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, call, patch

import pytest

from agentoffice.infrastructure.llm.model_client import (
    MISSING_KEY_MESSAGE,
    AuthenticationError,
    ModelClient,
    ModelConfig,
    RetryExhaustedError,
    RetryPolicy,
    load_model_config,
    strip_code_fence,
)

ACOMPLETION = "agentoffice.infrastructure.llm.model_client.litellm.acompletion"
SLEEP = "agentoffice.infrastructure.llm.model_client.asyncio.sleep"


class FakeAPIError(Exception):
    """Mimics a provider exception carrying an HTTP status."""

    def __init__(self, status_code, headers=None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.response = SimpleNamespace(headers=headers or {})


def fake_response(content: str, prompt_tokens: int = 12, completion_tokens: int = 34):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


@pytest.fixture
def client():
    model_client = ModelClient(ModelConfig(retry_policy=RetryPolicy(max_attempts=3, retry_delay=1.0)))
    model_client.initialize("sk-test")
    return model_client


class TestInitialization:
    """Credential handling."""

    def test_not_ready_before_initialize(self):
        assert ModelClient().is_ready() is False

    def test_initialize_with_key(self, client):
        assert client.is_ready() is True

    @pytest.mark.parametrize("key", [None, "", "   "])
    def test_initialize_without_key(self, key):
        with pytest.raises(AuthenticationError, match="ANTHROPIC_API_KEY"):
            ModelClient().initialize(key)

    @pytest.mark.asyncio
    async def test_send_before_initialize(self):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion:
            with pytest.raises(AuthenticationError) as exc_info:
                await ModelClient().send_message([{"role": "user", "content": "hi"}])

        assert str(exc_info.value) == MISSING_KEY_MESSAGE
        acompletion.assert_not_called()


class TestSendMessage:
    """Request shape and retries."""

    @pytest.mark.asyncio
    async def test_success(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion:
            acompletion.return_value = fake_response("hello")

            response = await client.send_message(
                [{"role": "user", "content": "hi"}], system_prompt="be brief"
            )

        assert response.content == "hello"
        assert response.usage == {"input_tokens": 12, "output_tokens": 34}
        kwargs = acompletion.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        assert kwargs["api_key"] == "sk-test"

    @pytest.mark.asyncio
    async def test_rate_limit_then_success(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion, patch(
            SLEEP, new_callable=AsyncMock
        ) as sleep:
            acompletion.side_effect = [
                FakeAPIError(429, {"retry-after": "2"}),
                FakeAPIError(429),
                fake_response("ok"),
            ]

            response = await client.send_message([{"role": "user", "content": "hi"}])

        assert response.content == "ok"
        assert acompletion.call_count == 3
        assert sleep.await_args_list == [call(2.0), call(1.0)]

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retried(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion, patch(
            SLEEP, new_callable=AsyncMock
        ) as sleep:
            acompletion.side_effect = FakeAPIError(401)

            with pytest.raises(AuthenticationError) as exc_info:
                await client.send_message([{"role": "user", "content": "hi"}])

        assert exc_info.value.status_code == 401
        assert acompletion.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error_backoff_grows_with_attempt(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion, patch(
            SLEEP, new_callable=AsyncMock
        ) as sleep:
            acompletion.side_effect = [FakeAPIError(503), FakeAPIError(500), fake_response("ok")]

            await client.send_message([{"role": "user", "content": "hi"}])

        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion, patch(
            SLEEP, new_callable=AsyncMock
        ) as sleep:
            acompletion.side_effect = FakeAPIError(500)

            with pytest.raises(RetryExhaustedError) as exc_info:
                await client.send_message([{"role": "user", "content": "hi"}])

        assert acompletion.call_count == 3
        assert sleep.await_count == 2
        assert str(exc_info.value) == "Failed after 3 attempts: HTTP 500"
        assert exc_info.value.attempts == 3

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock) as acompletion, patch(
            SLEEP, new_callable=AsyncMock
        ):
            acompletion.side_effect = [ConnectionError("reset"), fake_response("ok")]

            response = await client.send_message([{"role": "user", "content": "hi"}])

        assert response.content == "ok"


class TestAnalyzeMission:
    """Analysis reply parsing."""

    @pytest.mark.asyncio
    async def test_fenced_json_reply(self, client):
        reply = (
            "```json\n"
            '{"analysis": "Build a todo app", "tasks": ["API", "UI"],'
            ' "agents": {"leo": "Write the API"}}\n'
            "```"
        )
        with patch(ACOMPLETION, new_callable=AsyncMock, return_value=fake_response(reply)):
            analysis = await client.analyze_mission("todo app")

        assert analysis.analysis == "Build a todo app"
        assert analysis.tasks == ["API", "UI"]
        assert analysis.agent_assignments["leo"] == "Write the API"
        assert set(analysis.agent_assignments) == {"leo", "momo", "alex"}
        assert analysis.from_model is True

    @pytest.mark.asyncio
    async def test_plain_text_reply_falls_back(self, client):
        with patch(
            ACOMPLETION,
            new_callable=AsyncMock,
            return_value=fake_response("Sure! Let's build it step by step."),
        ):
            analysis = await client.analyze_mission("todo app")

        assert analysis.analysis == "Sure! Let's build it step by step."
        assert analysis.tasks == ["Analyze mission", "Plan approach", "Implement solution"]
        assert analysis.from_model is False

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, client):
        with patch(ACOMPLETION, new_callable=AsyncMock, side_effect=FakeAPIError(401)):
            with pytest.raises(AuthenticationError):
                await client.analyze_mission("todo app")


class TestConfig:
    """YAML configuration and helpers."""

    def test_strip_code_fence(self):
        assert strip_code_fence("```json\n{}\n```") == "{}"
        assert strip_code_fence("  plain  ") == "plain"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_model_config(tmp_path / "absent.yaml")
        assert config.retry_policy.max_attempts == 3
        assert config.retry_policy.retry_delay == 1.0

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "llm.yaml"
        path.write_text(
            "model: anthropic/test-model\n"
            "max_tokens: 512\n"
            "retry_policy:\n"
            "  max_attempts: 5\n"
            "  retry_delay_seconds: 0.25\n"
        )

        config = load_model_config(path)

        assert config.model == "anthropic/test-model"
        assert config.max_tokens == 512
        assert config.retry_policy == RetryPolicy(max_attempts=5, retry_delay=0.25)
