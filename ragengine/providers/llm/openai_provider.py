"""OpenAI LLM provider adapter.

Wraps the ``openai`` async client's chat completions API to implement
:class:`ILLMProvider`.  Also serves OpenAI-compatible hosts through
``openai_base_url``.
"""

from __future__ import annotations

import openai

from ragengine.config.settings import Settings
from ragengine.interfaces.llm_provider import ILLMProvider
from ragengine.models.retrieval import LLMCompletion
from ragengine.providers.llm.pricing import completion_cost
from ragengine.utils.errors import LLMError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by the OpenAI chat completions API."""

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.openai_api_key
        if client is None:
            client_kwargs: dict = {"api_key": self._api_key or "unset", "timeout": 60.0}
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            client = openai.AsyncOpenAI(**client_kwargs)
        self._client = client
        self._model = settings.openai_llm_model

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> LLMCompletion:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise LLMError(
                message="OpenAI request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"OpenAI API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message="OpenAI returned empty response",
                provider_name=self.get_provider_name(),
            )

        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0
        logger.info(
            "openai_completion",
            model=self._model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return LLMCompletion(
            text=content,
            tokens_used=input_tokens + output_tokens,
            cost=completion_cost(self._model, input_tokens, output_tokens),
            model=self._model,
        )

    def get_provider_name(self) -> str:
        return "openai"

    def is_available(self) -> bool:
        return bool(self._api_key)
