"""Pytest config: puts the project root on sys.path and provides shared fakes."""
import json
import sys
from pathlib import Path

import pytest

root = Path(__file__).resolve().parent.parent
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from blady.providers.base import LLMProvider, LLMResponse  # noqa: E402


class ScriptedProvider(LLMProvider):
    """Returns queued replies in order (dicts are JSON-encoded); records every call."""

    def __init__(self, replies=None):
        super().__init__()
        self.replies = list(replies or [])
        self.calls = []

    async def chat(self, messages, model=None, max_tokens=4096, temperature=0.13, tag=""):
        self.calls.append({"messages": messages, "model": model, "tag": tag})
        if not self.replies:
            return LLMResponse(content='{"actions": []}')
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return LLMResponse(content=reply, model=model)

    def get_default_model(self):
        return "test/model"


@pytest.fixture
def provider():
    return ScriptedProvider()
