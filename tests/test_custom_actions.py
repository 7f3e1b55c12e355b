"""Tests for HTTP actions loaded from JSON files."""

import json

import httpx
import pytest

from blady.agent.actions.base import ActionContext
from blady.agent.actions.custom import CustomActionConfig, CustomHttpAction, load_custom_actions
from blady.agent.actions.registry import ActionRegistry
from blady.errors import TransportError


def _recorder(status=200, body="ok"):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, text=body)

    return seen, httpx.MockTransport(handler)


def test_config_requires_name_and_url():
    with pytest.raises(ValueError):
        CustomActionConfig.from_dict({"name": "x"})
    cfg = CustomActionConfig.from_dict({"name": "x", "url": "http://h/x", "method": "get"})
    assert cfg.method == "GET"
    assert CustomActionConfig.from_dict({"name": "y", "url": "http://h/y"}).method == "POST"


@pytest.mark.asyncio
async def test_post_substitutes_path_and_sends_rest_as_body():
    seen, transport = _recorder(body='{"invoice": 7}')
    action = CustomHttpAction(
        CustomActionConfig(
            name="create_invoice",
            url="http://erp.local/customers/{customer_id}/invoices",
            headers={"Authorization": "Bearer t"},
            response_to_llm=True,
        ),
        transport=transport,
    )
    ctx = ActionContext()
    await action.execute(ctx, {"customer_id": "a b", "amount": 12.5})

    request = seen[0]
    assert request.method == "POST"
    assert request.url.raw_path == b"/customers/a%20b/invoices"
    assert json.loads(request.content) == {"amount": 12.5}
    assert request.headers["Authorization"] == "Bearer t"
    assert ctx.tool_outputs == ['[create_invoice] Response (200):\n{"invoice": 7}']


@pytest.mark.asyncio
async def test_get_sends_rest_as_query():
    seen, transport = _recorder()
    action = CustomHttpAction(
        CustomActionConfig(name="lookup", url="http://api.local/items/{item}", method="GET"),
        transport=transport,
    )
    ctx = ActionContext()
    await action.execute(ctx, '{"item": "42", "verbose": true, "q": "red"}')

    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/items/42"
    assert request.url.params["q"] == "red"
    assert request.url.params["verbose"] == "true"
    assert request.content == b""
    assert ctx.tool_outputs == []  # response_to_llm off


@pytest.mark.asyncio
async def test_http_error_raises_transport_error():
    _, transport = _recorder(status=500, body="down")
    action = CustomHttpAction(CustomActionConfig(name="x", url="http://h/x"), transport=transport)
    with pytest.raises(TransportError):
        await action.execute(ActionContext(), {})


@pytest.mark.asyncio
async def test_long_response_is_truncated():
    _, transport = _recorder(body="a" * 5000)
    action = CustomHttpAction(CustomActionConfig(name="x", url="http://h/x", response_to_llm=True), transport=transport)
    ctx = ActionContext()
    await action.execute(ctx, None)
    assert ctx.tool_outputs[0].endswith("... (truncated)")


def test_load_custom_actions_skips_bad_files(tmp_path):
    (tmp_path / "good.json").write_text(json.dumps({"name": "ping", "url": "http://h/ping", "description": "Ping"}))
    (tmp_path / "bad.json").write_text("{nope")
    (tmp_path / "incomplete.json").write_text('{"name": "x"}')
    registry = ActionRegistry()
    assert load_custom_actions(tmp_path, registry) == ["ping"]
    assert registry.get("ping").description == "Ping"
    assert load_custom_actions(tmp_path / "missing", registry) == []
