"""Tests for the LiteLLM provider: retries, circuit breaker, transcripts."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import litellm
import pytest

from blady.errors import LLMError
from blady.providers.litellm_provider import LiteLLMProvider
from blady.utils.circuit_breaker import CircuitBreaker


def completion(content, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    )


MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_chat_passes_settings_and_parses_reply(monkeypatch):
    fake = AsyncMock(return_value=completion('{"actions": []}'))
    monkeypatch.setattr(litellm, "acompletion", fake)
    provider = LiteLLMProvider(api_key="k-1", api_base="https://llm.local", default_model="cerebras/m")

    response = await provider.chat(MESSAGES, max_tokens=100, temperature=0.2)

    assert response.content == '{"actions": []}'
    assert response.model == "cerebras/m"
    assert response.usage["total_tokens"] == 15
    kwargs = fake.await_args.kwargs
    assert kwargs["model"] == "cerebras/m"
    assert kwargs["api_key"] == "k-1"
    assert kwargs["api_base"] == "https://llm.local"
    assert kwargs["max_tokens"] == 100
    assert kwargs["temperature"] == 0.2


@pytest.mark.asyncio
async def test_transient_failure_is_retried(monkeypatch):
    fake = AsyncMock(side_effect=[RuntimeError("503"), completion("ok")])
    monkeypatch.setattr(litellm, "acompletion", fake)
    provider = LiteLLMProvider(default_model="test/m", backoff_seconds=0)

    response = await provider.chat(MESSAGES)
    assert response.content == "ok"
    assert fake.await_count == 2
    assert provider.breaker.state == "closed"


@pytest.mark.asyncio
async def test_exhausted_retries_raise_llm_error(monkeypatch):
    monkeypatch.setattr(litellm, "acompletion", AsyncMock(side_effect=RuntimeError("down")))
    provider = LiteLLMProvider(default_model="test/m", max_retries=2, backoff_seconds=0)
    with pytest.raises(LLMError, match="after 2 attempts"):
        await provider.chat(MESSAGES)


@pytest.mark.asyncio
async def test_open_circuit_fails_fast(monkeypatch):
    fake = AsyncMock(side_effect=RuntimeError("down"))
    monkeypatch.setattr(litellm, "acompletion", fake)
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout_seconds=600)
    provider = LiteLLMProvider(default_model="test/m", max_retries=1, backoff_seconds=0, breaker=breaker)

    with pytest.raises(LLMError):
        await provider.chat(MESSAGES)
    assert breaker.state == "open"

    with pytest.raises(LLMError, match="circuit open"):
        await provider.chat(MESSAGES)
    assert fake.await_count == 1


def test_breaker_half_open_probe():
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout_seconds=0)
    breaker.record_failure()
    assert breaker.state == "closed"
    breaker.record_failure()
    assert breaker.state == "open"
    assert breaker.allow()
    assert breaker.state == "half_open"
    breaker.record_success()
    assert breaker.state == "closed"


@pytest.mark.asyncio
async def test_transcripts_are_written(monkeypatch, tmp_path):
    monkeypatch.setattr(litellm, "acompletion", AsyncMock(return_value=completion("the answer")))
    provider = LiteLLMProvider(default_model="cerebras/m", log_dir=tmp_path)

    await provider.chat(MESSAGES, tag="task-3")

    [prompt] = list(tmp_path.glob("*-cerebras_m-task-3-prompt.txt"))
    [reply] = list(tmp_path.glob("*-cerebras_m-task-3-response.txt"))
    assert "[user]: hi" in prompt.read_text(encoding="utf-8")
    assert reply.read_text(encoding="utf-8") == "the answer"
