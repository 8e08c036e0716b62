"""Multi-model quality consensus and the convergence/budget policy."""

from __future__ import annotations

import asyncio
import math
import re
from typing import Callable, Optional

from . import prompts
from .inference import InferenceClient
from .registry import ModelRegistry

CONTENT_CHARS = 3000
NEUTRAL_QUALITY = 0.5

QUALITY_TARGET = 0.9
MAX_ROUNDS = 10
MAX_STAGNANT_ROUNDS = 3
MIN_IMPROVEMENT = 0.05
BUDGET_HARD_FACTOR = 2

_SCORE_RE = re.compile(r"([0-9]*\.?[0-9]+)")


def parse_score(response: str) -> Optional[float]:
    """First number in the response, if it lies in [0, 1]."""
    match = _SCORE_RE.search(response or "")
    if not match:
        return None
    score = float(match.group(1))
    if 0.0 <= score <= 1.0:
        return score
    return None


def median_score(scores: list[float]) -> float:
    """Median; for an even count the lower-middle score is taken."""
    if not scores:
        return NEUTRAL_QUALITY
    ordered = sorted(scores)
    return ordered[(len(ordered) - 1) // 2]


async def consensus_quality(
    content: str,
    registry: ModelRegistry,
    client: InferenceClient,
    log: Optional[Callable[[str], None]] = None,
) -> float:
    """Score ``content`` with every catalog model and return the median.

    Failed or unparseable answers are left out; with no valid score the
    neutral default is returned.
    """
    if log:
        log("Starting multi-model quality consensus...")

    prompt = prompts.QUALITY.format(
        content=prompts.truncate(content, CONTENT_CHARS, "...(truncated)")
    )
    models = list(registry.models)
    responses = await asyncio.gather(
        *(client.chat(prompt, model) for model in models),
        return_exceptions=True,
    )

    scores: list[float] = []
    for model, response in zip(models, responses):
        if isinstance(response, BaseException):
            if not isinstance(response, Exception):
                raise response
            if log:
                log(f"  {model.name}: scoring failed ({response})")
            continue
        score = parse_score(response)
        if score is None:
            if log:
                log(f"  {model.name}: no usable score")
            continue
        scores.append(score)
        if log:
            log(f"  {model.name}: {score:.2f}")

    if not scores:
        if log:
            log(f"No valid scores, using neutral {NEUTRAL_QUALITY:.2f}")
        return NEUTRAL_QUALITY

    median = median_score(scores)
    if log:
        log(f"Consensus quality: {median:.2f}")
    return median


def convergence_reasons(
    quality: float,
    round: int,
    no_improve_count: int,
    call_count: int,
    threshold: int,
) -> list[str]:
    """Names of every stop condition that currently holds."""
    conditions = {
        "quality_enough": quality >= QUALITY_TARGET,
        "max_rounds": round >= MAX_ROUNDS,
        "no_improvement": no_improve_count >= MAX_STAGNANT_ROUNDS,
        "budget_exceeded": call_count >= threshold * BUDGET_HARD_FACTOR,
    }
    return [name for name, hit in conditions.items() if hit]


def should_converge(
    quality: float,
    round: int,
    no_improve_count: int,
    call_count: int,
    threshold: int,
) -> bool:
    return bool(convergence_reasons(quality, round, no_improve_count, call_count, threshold))


def calculate_budget(threshold: int, quality: float) -> int:
    """Grow the call budget as quality drops: ``threshold * (1 + (1 - q)^2)``."""
    if quality >= QUALITY_TARGET:
        return threshold
    growth_factor = 1 + (1 - quality) ** 2
    return math.ceil(threshold * growth_factor)


def is_improvement(quality: float, previous: float) -> bool:
    return quality > previous + MIN_IMPROVEMENT
