"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WhatsAppConfig(BaseModel):
    """WhatsApp channel reached through the Node.js bridge."""
    enabled: bool = True
    bridge_url: str = "ws://localhost:3001"
    allow_from: list[str] = Field(default_factory=list)  # Contacts whose chats may trigger tasks/behaviors
    send_timeout_seconds: float = 15.0


class ChannelsConfig(BaseModel):
    """Configuration for chat channels (WhatsApp only)."""
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)


class AgentDefaults(BaseModel):
    """Default agent configuration."""
    workspace: str = "~/.blady/workspace"
    model: str = "cerebras/gpt-oss-120b"
    watcher_model: str | None = None  # None = same model as the agent
    max_tokens: int = 4096
    temperature: float = 0.13
    language: str = "Spanish"
    max_tool_recursion: int = 5
    debounce_seconds: float = 5.0
    context_messages: int = 9
    llm_log_dir: str | None = None  # When set, every prompt/response pair is also written to disk


class AgentsConfig(BaseModel):
    """Agent configuration."""
    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


class ProviderConfig(BaseModel):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None


class ProvidersConfig(BaseModel):
    """Configuration for LLM providers."""
    cerebras: ProviderConfig = Field(default_factory=ProviderConfig)
    ollama: ProviderConfig = Field(default_factory=lambda: ProviderConfig(api_base="http://localhost:11434"))
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)
    deepseek: ProviderConfig = Field(default_factory=ProviderConfig)
    groq: ProviderConfig = Field(default_factory=ProviderConfig)


class TasksConfig(BaseModel):
    """Scheduled-task ticker."""
    tick_seconds: float = 60.0


class Config(BaseSettings):
    """Root configuration for blady."""
    model_config = SettingsConfigDict(env_prefix="BLADY_", env_nested_delimiter="__")

    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)

    @property
    def workspace_path(self) -> Path:
        """Get expanded workspace path."""
        return Path(self.agents.defaults.workspace).expanduser()

    _GATEWAY_DEFAULTS: ClassVar[dict[str, str]] = {"openrouter": "https://openrouter.ai/api/v1"}

    def get_provider(self, model: str | None = None) -> ProviderConfig | None:
        """Get matched provider config. Falls back to the first provider with an api_key."""
        model = (model or self.agents.defaults.model).lower()
        p = self.providers
        keyword_map = {
            "openrouter": p.openrouter, "cerebras": p.cerebras, "ollama": p.ollama,
            "deepseek": p.deepseek, "anthropic": p.anthropic, "claude": p.anthropic,
            "openai": p.openai, "gpt": p.openai, "groq": p.groq,
        }
        for kw, provider in keyword_map.items():
            if kw in model:
                # Ollama runs locally and needs no key
                if kw == "ollama" or (provider.api_key or "").strip():
                    return provider
                break
        all_providers = [p.openrouter, p.cerebras, p.openai, p.anthropic, p.deepseek, p.groq]
        return next((pr for pr in all_providers if (pr.api_key or "").strip()), None)

    def get_api_key(self, model: str | None = None) -> str | None:
        p = self.get_provider(model)
        return p.api_key if p and p.api_key else None

    def get_api_base(self, model: str | None = None) -> str | None:
        """Get API base URL for the given model. Applies default URLs for known gateways."""
        p = self.get_provider(model)
        if p and p.api_base:
            return p.api_base
        for name, url in self._GATEWAY_DEFAULTS.items():
            if p is not None and p == getattr(self.providers, name):
                return url
        return None
