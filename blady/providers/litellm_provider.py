"""LiteLLM provider: one client for Cerebras, Ollama, OpenAI, Anthropic, OpenRouter and friends."""

import asyncio
import os
from pathlib import Path
from typing import Any

import litellm
from loguru import logger

from blady.errors import LLMError
from blady.providers.base import LLMProvider, LLMResponse
from blady.providers.llm_log import LLMTranscriptLog
from blady.utils.circuit_breaker import CircuitBreaker


class LiteLLMProvider(LLMProvider):
    """
    LLM provider backed by litellm.acompletion.

    Transient failures are retried with exponential backoff; repeated failures
    open a circuit breaker so a dead backend fails fast instead of stalling
    every worker for the full retry schedule.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "cerebras/gpt-oss-120b",
        extra_headers: dict[str, str] | None = None,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        log_dir: Path | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self.breaker = breaker or CircuitBreaker()
        self.transcripts = LLMTranscriptLog(log_dir, engine=default_model) if log_dir else None

        # Ollama is reached through its own env var when litellm routes by prefix
        if api_base and default_model.startswith("ollama/"):
            os.environ.setdefault("OLLAMA_API_BASE", api_base)
        litellm.suppress_debug_info = True
        litellm.drop_params = True

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.13,
        tag: str = "",
    ) -> LLMResponse:
        model = model or self.default_model
        if not self.breaker.allow():
            raise LLMError(f"LLM circuit open for {model}; skipping call")

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await litellm.acompletion(**kwargs)
            except Exception as e:
                last_error = e
                logger.warning(f"LLM call failed ({model}, attempt {attempt}/{self.max_retries}): {e}")
                if attempt < self.max_retries:
                    await asyncio.sleep(self.backoff_seconds * (2 ** (attempt - 1)))
                continue
            self.breaker.record_success()
            result = self._parse_response(response, model)
            if self.transcripts:
                self.transcripts.write(messages, result.content, tag=tag)
            return result

        self.breaker.record_failure()
        if self.transcripts:
            self.transcripts.write(messages, None, tag=tag)
        raise LLMError(f"LLM call to {model} failed after {self.max_retries} attempts: {last_error}") from last_error

    def _parse_response(self, response: Any, model: str) -> LLMResponse:
        choice = response.choices[0]
        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return LLMResponse(
            content=choice.message.content or "",
            model=model,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        return self.default_model
