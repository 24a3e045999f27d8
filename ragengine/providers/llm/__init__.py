"""LLM provider implementations used for generative answer synthesis."""

from ragengine.providers.llm.anthropic_provider import AnthropicLLMProvider
from ragengine.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
