"""NVIDIA-hosted OpenAI-compatible chat completions provider."""

from __future__ import annotations

from typing import Optional

import httpx

from ..models.catalog import ModelSpec
from ..models.provider import ChatMessage, CompletionResult
from .base import BaseProvider


class NvidiaProvider(BaseProvider):
    name = "nvidia"
    DEFAULT_ENDPOINT = "https://integrate.api.nvidia.com/v1"

    def __init__(self, ai_config: dict, api_key: Optional[str] = None):
        super().__init__(ai_config, api_key)
        endpoint = ai_config.get("endpoint") or self.DEFAULT_ENDPOINT
        self.url = f"{endpoint.rstrip('/')}/chat/completions"

    def build_body(self, messages: list[ChatMessage], model: ModelSpec) -> dict:
        body: dict = {
            "model": model.id,
            "messages": [m.model_dump() for m in messages],
            "stream": False,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if model.thinking:
            body["thinking"] = {
                "type": "enabled",
                "budget_tokens": self.thinking_budget,
            }
        return body

    async def complete(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
    ) -> CompletionResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = self.build_body(messages, model)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=body, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            return CompletionResult(
                success=False,
                error=f"{e.response.status_code} | {e.response.text}",
            )
        except (httpx.HTTPError, ValueError) as e:
            return CompletionResult(success=False, error=str(e) or type(e).__name__)

        return parse_completion(data)


def parse_completion(data: dict) -> CompletionResult:
    """Extract the final answer from a chat-completions payload.

    ``content`` wins; ``reasoning_content`` is kept as a fallback for
    thinking models that put everything in the reasoning field.
    """
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return CompletionResult(success=False, error=f"Malformed response: {str(data)[:500]}")

    message = choices[0].get("message")
    if not isinstance(message, dict):
        message = {}
    usage = data.get("usage") or {}
    tokens = {
        "input": usage.get("prompt_tokens", 0),
        "output": usage.get("completion_tokens", 0),
    }
    return CompletionResult(
        success=True,
        content=message.get("content") or None,
        reasoning=message.get("reasoning_content") or None,
        tokens_used=tokens,
    )
