"""Abstract base class for LLM service providers.

Defines the text-in/text-out contract used for generative answer synthesis.
Implementations wrap the OpenAI chat completions API and the Anthropic
messages API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragengine.models.retrieval import LLMCompletion


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: ragengine/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used by the query pipeline."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> LLMCompletion:
        """Generate a completion from the model.

        Parameters
        ----------
        system_prompt:
            The instruction message that sets the model's behaviour.
        user_prompt:
            The prompt holding the retrieved context and the question.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on tokens in the response.

        Returns
        -------
        LLMCompletion
            The response text with token usage and estimated cost.

        Raises
        ------
        ragengine.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
