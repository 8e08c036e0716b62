"""Offline provider with canned responses.

Used by ``--dry-run`` and by the test-suite. Each request is classified by
its prompt template and answered from ``DEFAULT_RESPONSES`` unless an
override is given. An override may be a string, a ``CompletionResult``, or a
callable ``(prompt, model) -> str | CompletionResult``.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Union

from ..core.prompts import NO_IMPROVEMENT_PHRASE, PromptKind, classify_prompt
from ..models.catalog import ModelSpec
from ..models.provider import ChatMessage, CompletionResult
from .base import BaseProvider

Response = Union[str, CompletionResult, Callable[[str, ModelSpec], Union[str, CompletionResult]]]

DEFAULT_RESPONSES: dict[PromptKind, str] = {
    PromptKind.DECOMPOSE: (
        "1. Clarify the goal, scope and constraints\n"
        "2. Explore candidate approaches and their trade-offs\n"
        "3. Recommend an approach with concrete next steps"
    ),
    PromptKind.EXECUTE: (
        "Draft analysis: the goal is restated, the main approaches are compared, "
        "and a recommendation with concrete next steps is given."
    ),
    PromptKind.JUDGE: "A The content satisfies the criteria.",
    PromptKind.REFLECT: NO_IMPROVEMENT_PHRASE,
    PromptKind.SYNTHESIZE: (
        "Consolidated answer: combining the team's viewpoints, the recommended "
        "approach is summarised together with its trade-offs and next steps."
    ),
    PromptKind.QUALITY: "0.92",
    PromptKind.EVOLVE: "Add concrete examples\nQuantify the trade-offs",
    PromptKind.STEP: "[Step 1]: Restate the problem and derive the answer directly. [CONCLUSION]",
    PromptKind.CORRECTION: "[Step 1]: Corrected derivation of the answer. [CONCLUSION]",
    PromptKind.STEP_SYNTHESIS: "Final answer: derived from the accepted reasoning steps.",
}


class ScriptedProvider(BaseProvider):
    name = "scripted"

    def __init__(
        self,
        ai_config: Optional[dict] = None,
        responses: Optional[dict[PromptKind, Response]] = None,
        latency: float = 0.0,
    ):
        super().__init__(ai_config or {}, api_key=None)
        self.responses: dict[PromptKind, Response] = dict(DEFAULT_RESPONSES)
        if responses:
            self.responses.update(responses)
        self.latency = latency
        self.requests: list[tuple[PromptKind, str, str]] = []

    def calls_of(self, kind: PromptKind) -> list[tuple[PromptKind, str, str]]:
        return [r for r in self.requests if r[0] == kind]

    async def complete(
        self,
        messages: list[ChatMessage],
        model: ModelSpec,
    ) -> CompletionResult:
        prompt = messages[-1].content if messages else ""
        kind = classify_prompt(prompt)
        self.requests.append((kind, model.id, prompt))

        if self.latency:
            await asyncio.sleep(self.latency)

        response = self.responses.get(kind, "")
        if callable(response):
            response = response(prompt, model)
        if isinstance(response, CompletionResult):
            return response
        return CompletionResult(success=True, content=str(response))
