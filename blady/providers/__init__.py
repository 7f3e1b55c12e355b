"""LLM provider abstraction module."""

from blady.providers.base import LLMProvider, LLMResponse
from blady.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
