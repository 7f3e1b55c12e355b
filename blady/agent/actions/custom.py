"""HTTP actions declared as JSON files under `<workspace>/actions/`."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from blady.agent.actions.base import Action, ActionContext, payload_object
from blady.agent.actions.registry import ActionRegistry
from blady.errors import TransportError

HTTP_TIMEOUT = 30.0
MAX_OUTPUT_CHARS = 4000
BODY_METHODS = ("POST", "PUT", "PATCH")

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


@dataclass
class CustomActionConfig:
    """
    One action file, e.g.:

        {"name": "create_invoice", "description": "...", "method": "POST",
         "url": "https://erp.local/customers/{customer_id}/invoices",
         "headers": {"Authorization": "Bearer ..."},
         "parameters": {"type": "object", ...}, "response_to_llm": true}
    """
    name: str
    url: str
    description: str = ""
    method: str = "POST"
    headers: dict[str, str] = field(default_factory=dict)
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object"})
    response_to_llm: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CustomActionConfig":
        if not data.get("name") or not data.get("url"):
            raise ValueError("custom action needs 'name' and 'url'")
        return cls(
            name=str(data["name"]),
            url=str(data["url"]),
            description=str(data.get("description") or ""),
            method=str(data.get("method") or "POST").upper(),
            headers={str(k): str(v) for k, v in (data.get("headers") or {}).items()},
            parameters=data.get("parameters") or {"type": "object"},
            response_to_llm=bool(data.get("response_to_llm", False)),
        )


class CustomHttpAction(Action):
    """
    `{field}` placeholders in the URL are filled from the payload and removed
    from it; the rest goes out as a JSON body (POST/PUT/PATCH) or as query
    parameters (GET/DELETE and anything else).
    """

    def __init__(self, config: CustomActionConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def parameters(self) -> dict[str, Any]:
        return self.config.parameters

    def build_request(self, payload: Any) -> tuple[str, dict[str, Any], dict[str, Any] | None]:
        """Return (url, query params, json body)."""
        data = dict(payload_object(payload, self.name)) if payload not in (None, "") else {}
        used: set[str] = set()

        def substitute(match: re.Match) -> str:
            key = match.group(1)
            if key not in data:
                return match.group(0)
            used.add(key)
            return quote(str(data[key]), safe="")

        url = _PLACEHOLDER_RE.sub(substitute, self.config.url)
        rest = {k: v for k, v in data.items() if k not in used}
        if self.config.method in BODY_METHODS:
            return url, {}, rest
        params = {k: v if isinstance(v, str) else json.dumps(v) for k, v in rest.items()}
        return url, params, None

    async def execute(self, ctx: ActionContext, payload: Any) -> None:
        url, params, body = self.build_request(payload)
        logger.info(f"[CustomAction] {self.name}: {self.config.method} {url}")
        try:
            async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=self._transport) as client:
                r = await client.request(
                    self.config.method,
                    url,
                    params=params or None,
                    json=body,
                    headers=self.config.headers or None,
                )
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"{self.name}: {self.config.method} {url} failed: {e}") from e
        if self.config.response_to_llm:
            text = r.text
            if len(text) > MAX_OUTPUT_CHARS:
                text = text[:MAX_OUTPUT_CHARS] + "... (truncated)"
            ctx.tool_outputs.append(f"[{self.name}] Response ({r.status_code}):\n{text}")


def load_custom_actions(
    directory: Path,
    registry: ActionRegistry,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[str]:
    """Register every `*.json` action file in `directory`. Bad files are skipped with a warning."""
    loaded: list[str] = []
    if not directory.exists():
        return loaded
    for path in sorted(directory.glob("*.json")):
        try:
            config = CustomActionConfig.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, ValueError, AttributeError) as e:
            logger.warning(f"[CustomAction] Skipping {path.name}: {e}")
            continue
        registry.register(CustomHttpAction(config, transport=transport))
        loaded.append(config.name)
    if loaded:
        logger.info(f"[CustomAction] Loaded {len(loaded)} custom actions: {', '.join(loaded)}")
    return loaded
