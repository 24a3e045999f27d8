"""Unit tests for LLM provider adapters -- OpenAI and Anthropic."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import openai
import pytest

from ragengine.config.settings import Settings
from ragengine.providers.llm import AnthropicLLMProvider, OpenAILLMProvider
from ragengine.providers.llm.pricing import completion_cost
from ragengine.utils.errors import LLMError

# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    defaults = {
        "_env_file": None,
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_llm_model": "gpt-4o-mini",
        "anthropic_api_key": "test-anthropic",
        "anthropic_model": "claude-sonnet-4-20250514",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _openai_client(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


def _anthropic_client(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(**create_kwargs)
    return client


# ======================================================================
# OpenAI LLM Provider
# ======================================================================


class TestOpenAILLMProvider:
    @pytest.mark.asyncio
    async def test_complete_success(self) -> None:
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="LLM response text"))],
            usage=SimpleNamespace(prompt_tokens=1000, completion_tokens=500),
        )
        client = _openai_client(return_value=response)
        provider = OpenAILLMProvider(_settings(), client=client)

        result = await provider.complete("system prompt", "user prompt", temperature=0.1, max_tokens=50)

        assert result.text == "LLM response text"
        assert result.tokens_used == 1500
        assert result.model == "gpt-4o-mini"
        assert result.cost == pytest.approx((1000 * 0.15 + 500 * 0.60) / 1_000_000)
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "system prompt"}
        assert kwargs["messages"][1] == {"role": "user", "content": "user prompt"}
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_api_error_becomes_llm_error(self) -> None:
        error = openai.APIError(
            message="Rate limit exceeded",
            request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
            body=None,
        )
        provider = OpenAILLMProvider(_settings(), client=_openai_client(side_effect=error))

        with pytest.raises(LLMError) as exc_info:
            await provider.complete("system", "user")
        assert exc_info.value.provider_name == "openai"

    @pytest.mark.asyncio
    async def test_empty_response_raises(self) -> None:
        response = SimpleNamespace(choices=[], usage=None)
        provider = OpenAILLMProvider(_settings(), client=_openai_client(return_value=response))

        with pytest.raises(LLMError, match="empty response"):
            await provider.complete("system", "user")

    def test_availability(self) -> None:
        assert OpenAILLMProvider(_settings(), client=MagicMock()).is_available() is True
        assert OpenAILLMProvider(_settings(openai_api_key=""), client=MagicMock()).is_available() is False
        assert OpenAILLMProvider(_settings(), client=MagicMock()).get_provider_name() == "openai"


# ======================================================================
# Anthropic LLM Provider
# ======================================================================


class TestAnthropicLLMProvider:
    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self) -> None:
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="First part."),
                SimpleNamespace(type="tool_use", text=""),
                SimpleNamespace(type="text", text="Second part."),
            ],
            usage=SimpleNamespace(input_tokens=200, output_tokens=100),
        )
        client = _anthropic_client(return_value=response)
        provider = AnthropicLLMProvider(_settings(), client=client)

        result = await provider.complete("be brief", "question")

        assert result.text == "First part.\nSecond part."
        assert result.tokens_used == 300
        assert result.cost == pytest.approx((200 * 3.0 + 100 * 15.0) / 1_000_000)
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "question"}]

    @pytest.mark.asyncio
    async def test_api_error_becomes_llm_error(self) -> None:
        error = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        provider = AnthropicLLMProvider(_settings(), client=_anthropic_client(side_effect=error))

        with pytest.raises(LLMError) as exc_info:
            await provider.complete("system", "user")
        assert exc_info.value.provider_name == "anthropic"

    @pytest.mark.asyncio
    async def test_no_text_blocks_raises(self) -> None:
        response = SimpleNamespace(content=[], usage=SimpleNamespace(input_tokens=1, output_tokens=0))
        provider = AnthropicLLMProvider(_settings(), client=_anthropic_client(return_value=response))

        with pytest.raises(LLMError, match="no text content"):
            await provider.complete("system", "user")

    def test_availability(self) -> None:
        assert AnthropicLLMProvider(_settings(), client=MagicMock()).is_available() is True
        assert (
            AnthropicLLMProvider(_settings(anthropic_api_key=""), client=MagicMock()).is_available()
            is False
        )


# ======================================================================
# Pricing
# ======================================================================


class TestPricing:
    def test_known_model(self) -> None:
        assert completion_cost("gpt-4o", 1_000_000, 0) == pytest.approx(2.50)

    def test_unknown_model_is_free(self) -> None:
        assert completion_cost("local-llama", 5000, 5000) == 0.0
