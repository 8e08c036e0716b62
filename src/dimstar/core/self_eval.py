"""Binary (A/B) self-evaluation against an independently recruited judge."""

from __future__ import annotations

import re
from typing import Callable, Optional

from ..models.agent import Judgment
from ..models.catalog import ModelSpec
from . import prompts
from .inference import InferenceClient
from .registry import ModelRegistry

CONTEXT_CHARS = 500
CONTENT_CHARS = 1500

_VERDICT_RE = re.compile(r"^[\s(\[*_`\"']*([AB])(?![A-Za-z0-9])", re.IGNORECASE)
_LEADING_VERDICT_RE = re.compile(r"^[\s(\[*_`\"']*[AB](?![A-Za-z0-9])[\s)\]*_`\"'.:,-]*", re.IGNORECASE)


def parse_verdict(response: str) -> Judgment:
    """Read the verdict from the leading token.

    Only a leading ``A`` accepts. ``B`` or anything unparseable rejects.
    """
    match = _VERDICT_RE.match(response or "")
    is_correct = bool(match) and match.group(1).upper() == "A"
    reason = _LEADING_VERDICT_RE.sub("", response or "", count=1).strip()
    return Judgment(is_correct=is_correct, reason=reason, raw=response or "")


class SelfEvaluator:
    def __init__(
        self,
        registry: ModelRegistry,
        client: InferenceClient,
        log: Optional[Callable[[str], None]] = None,
    ):
        self.registry = registry
        self.client = client
        self.log = log

    async def evaluate(
        self,
        context: str,
        content: str,
        criteria: str,
        producer: Optional[ModelSpec] = None,
    ) -> Judgment:
        """Judge ``content`` with an evaluator-tagged model.

        When ``producer`` is given the judge is drawn from the other models.
        """
        model = self.registry.recruit(["evaluate"], exclude=producer)
        prompt = prompts.JUDGE.format(
            context=context[:CONTEXT_CHARS],
            content=content[:CONTENT_CHARS],
            criteria=criteria,
        )
        response = await self.client.chat(prompt, model)
        judgment = parse_verdict(response)
        if self.log:
            verdict = "accept" if judgment.is_correct else "reject"
            self.log(f"   Verdict from {model.name}: {verdict}")
        return judgment
