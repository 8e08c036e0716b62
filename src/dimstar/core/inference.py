"""The rate-limited inference call capability."""

from __future__ import annotations

from typing import Callable, Optional

from ..errors import InferenceError
from ..models.catalog import ModelSpec
from ..models.provider import ChatMessage
from ..providers.base import InferenceProvider
from ..utils.sanitize import sanitize_error
from .rate_limiter import RateLimiter


class InferenceClient:
    """Issue chat calls through one provider, gated by a shared rate limiter.

    ``call_count`` counts every call issued through this client. Use one
    client per concurrent run; the provider and limiter may be shared.
    Rate-limit waits are reported to this client's ``log``.
    """

    def __init__(
        self,
        provider: InferenceProvider,
        rate_limiter: RateLimiter,
        log: Optional[Callable[[str], None]] = None,
    ):
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.log = log
        self.call_count = 0

    async def chat(self, prompt: str, model: ModelSpec, messages: Optional[list[ChatMessage]] = None) -> str:
        """Send one user prompt (or a full conversation) and return the answer text."""
        conversation = messages or [ChatMessage(role="user", content=prompt)]

        await self.rate_limiter.admit(log=self.log)
        self.call_count += 1
        result = await self.provider.complete(conversation, model)

        if not result.success:
            raise InferenceError(
                f"Inference error ({model.name}): {sanitize_error(result.error or 'unknown error')}",
                model=model.id,
            )
        return result.text
