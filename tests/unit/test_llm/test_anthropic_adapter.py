"""
Tests for the Anthropic Claude adapter.
"""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest
from tenacity import wait_none

from quarry.exceptions import ModelAuthenticationError
from quarry.llm.adapters import AnthropicAdapter

MESSAGES_URL = "https://api.anthropic.com/v1/messages"


def _message(*texts: str, stop_reason: str = "end_turn") -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(type="text", text=t) for t in texts]
    response.stop_reason = stop_reason
    response.usage.input_tokens = 1_000_000
    response.usage.output_tokens = 100_000
    return response


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr("quarry.llm.adapters.base.wait_exponential", lambda **kw: wait_none())


class TestAnthropicAdapter:
    def test_requires_api_key(self) -> None:
        with pytest.raises(ValueError, match="api_key"):
            AnthropicAdapter(api_key=None)

    @pytest.mark.asyncio
    async def test_infer_joins_text_blocks_and_prices_usage(self) -> None:
        adapter = AnthropicAdapter(api_key="sk-ant", timeout=42)
        adapter.client = MagicMock()
        tool_block = MagicMock(type="tool_use")
        response = _message("Hello ", "world")
        response.content.insert(1, tool_block)
        adapter.client.messages.create = AsyncMock(return_value=response)

        completion = await adapter.infer("system", "user", max_tokens=64)

        assert completion.text == "Hello world"
        assert completion.input_tokens == 1_000_000
        assert completion.output_tokens == 100_000
        assert completion.cost_usd == pytest.approx(3.0 + 1.5)
        assert adapter.name == "anthropic:claude-sonnet-4-20250514"

        kwargs = adapter.client.messages.create.await_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]
        assert kwargs["max_tokens"] == 64
        assert kwargs["timeout"] == 42

    @pytest.mark.asyncio
    async def test_connection_error_retried_up_to_max_retries(self) -> None:
        adapter = AnthropicAdapter(api_key="sk-ant", max_retries=3)
        adapter.client = MagicMock()
        adapter.client.messages.create = AsyncMock(
            side_effect=anthropic.APIConnectionError(request=httpx.Request("POST", MESSAGES_URL))
        )

        with pytest.raises(ConnectionError):
            await adapter.infer("s", "u")
        assert adapter.client.messages.create.await_count == 3

    @pytest.mark.asyncio
    async def test_recovers_after_transient_timeout(self) -> None:
        adapter = AnthropicAdapter(api_key="sk-ant", max_retries=3)
        adapter.client = MagicMock()
        adapter.client.messages.create = AsyncMock(
            side_effect=[
                anthropic.APITimeoutError(request=httpx.Request("POST", MESSAGES_URL)),
                _message("ok"),
            ]
        )

        completion = await adapter.infer("s", "u")

        assert completion.text == "ok"
        assert adapter.client.messages.create.await_count == 2

    @pytest.mark.asyncio
    async def test_authentication_error_is_not_retried(self) -> None:
        adapter = AnthropicAdapter(api_key="bad", api_key_env="CLAUDE_KEY")
        adapter.client = MagicMock()
        request = httpx.Request("POST", MESSAGES_URL)
        adapter.client.messages.create = AsyncMock(
            side_effect=anthropic.AuthenticationError(
                "invalid x-api-key", response=httpx.Response(401, request=request), body=None
            )
        )

        with pytest.raises(ModelAuthenticationError, match="CLAUDE_KEY"):
            await adapter.infer("s", "u")
        assert adapter.client.messages.create.await_count == 1
