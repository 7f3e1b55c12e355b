"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

from loguru import logger

from blady.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".blady" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file or create default.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data = convert_keys(data)
            # Bridge URL override for Docker (BLADY_CHANNELS__WHATSAPP__BRIDGE_URL=ws://bridge:3001)
            bridge_url = os.environ.get("BLADY_CHANNELS__WHATSAPP__BRIDGE_URL")
            if bridge_url and isinstance(data.get("channels"), dict) and isinstance(data["channels"].get("whatsapp"), dict):
                data["channels"]["whatsapp"]["bridge_url"] = bridge_url
            _apply_provider_env_overrides(data)
            return Config.model_validate(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file (camelCase keys).

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _apply_provider_env_overrides(data: dict) -> None:
    """Override provider API keys from env (BLADY_PROVIDERS__CEREBRAS__API_KEY, etc.)."""
    providers = data.get("providers")
    if not isinstance(providers, dict):
        return
    for key in ("cerebras", "openai", "openrouter", "deepseek", "anthropic", "groq"):
        val = os.environ.get(f"BLADY_PROVIDERS__{key.upper()}__API_KEY")
        if val is not None and isinstance(providers.get(key), dict):
            providers[key]["api_key"] = val.strip()


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
