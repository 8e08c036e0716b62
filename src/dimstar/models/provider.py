"""Inference provider data models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class ChatMessage(BaseModel):
    role: str = "user"
    content: str


class CompletionResult(BaseModel):
    success: bool
    content: Optional[str] = None
    reasoning: Optional[str] = None
    tokens_used: Optional[dict] = None
    error: Optional[str] = None

    @property
    def text(self) -> str:
        """Final answer text; reasoning is only used when no answer was given."""
        return self.content or self.reasoning or ""
