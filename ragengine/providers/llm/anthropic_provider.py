"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.
The system prompt is a top-level ``system`` argument of the Messages API,
and the response is a list of content blocks of which only text blocks are
kept.
"""

from __future__ import annotations

import anthropic

from ragengine.config.settings import Settings
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.models.retrieval import LLMCompletion
from ragengine.providers.llm.pricing import completion_cost
from ragengine.utils.errors import LLMError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude Messages API."""

    def __init__(
        self, settings: Settings, client: anthropic.AsyncAnthropic | None = None
    ) -> None:
        self._api_key = settings.anthropic_api_key
        self._client = client or anthropic.AsyncAnthropic(api_key=self._api_key or "unset")
        self._model = settings.anthropic_model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> LLMCompletion:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=temperature,
            )
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )

        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        logger.info(
            "anthropic_completion",
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return LLMCompletion(
            text="\n".join(text_blocks),
            tokens_used=input_tokens + output_tokens,
            cost=completion_cost(self._model, input_tokens, output_tokens),
            model=self._model,
        )

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        return bool(self._api_key)
