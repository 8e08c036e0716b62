"""Inference provider abstraction.

Providers turn one chat request into a :class:`CompletionResult`. They never
retry; transport failures come back as unsuccessful results and are turned
into :class:`~dimstar.errors.InferenceError` by the inference client.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from ..errors import ConfigurationError
from ..models.catalog import ModelSpec
from ..models.provider import ChatMessage, CompletionResult


@runtime_checkable
class InferenceProvider(Protocol):
    """Protocol that all inference providers must implement."""

    name: str

    async def complete(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
    ) -> CompletionResult: ...


class BaseProvider:
    """Base class with shared generation-parameter handling."""

    name: str = "base"

    def __init__(self, ai_config: dict, api_key: Optional[str] = None):
        self.config = ai_config
        self.api_key = api_key
        self.max_tokens = int(ai_config.get("max_tokens", 4096))
        self.temperature = float(ai_config.get("temperature", 0.7))
        self.thinking_budget = int(ai_config.get("thinking_budget", 1024))
        self.timeout = float(ai_config.get("timeout_seconds", 300))

    async def complete(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
    ) -> CompletionResult:
        raise NotImplementedError


def get_provider(
    config: dict,
    api_key: Optional[str] = None,
    provider_override: Optional[str] = None,
) -> BaseProvider:
    """Factory function to create the configured inference provider."""
    ai_config = dict(config.get("ai", {}))
    provider_name = provider_override or ai_config.get("provider", "nvidia")

    if provider_name == "nvidia":
        from .nvidia import NvidiaProvider

        if not api_key:
            env_var = ai_config.get("api_key_env", "NVIDIA_API_KEY")
            raise ConfigurationError(
                f"API key not set. Export {env_var} or run: dimstar key set <KEY>"
            )
        return NvidiaProvider(ai_config, api_key)
    elif provider_name == "scripted":
        from .scripted import ScriptedProvider

        return ScriptedProvider(ai_config)
    else:
        raise ConfigurationError(f"Unknown inference provider: {provider_name}")
