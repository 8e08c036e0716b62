"""Task evolution: narrow the focus while keeping the original task as anchor."""

from __future__ import annotations

from typing import Callable, Optional

from ..models.task import Task
from . import prompts
from .inference import InferenceClient
from .registry import ModelRegistry

EXCERPT_CHARS = 1500
MAX_FOCUS_POINTS = 3


def parse_focus_points(response: str) -> list[str]:
    """At most three non-empty lines of the response."""
    lines = [line.strip() for line in (response or "").splitlines()]
    return [line for line in lines if line][:MAX_FOCUS_POINTS]


def build_evolved_task(original: str, focus_points: list[str]) -> str:
    points = "\n".join(f"{i}. {point}" for i, point in enumerate(focus_points, 1))
    return prompts.EVOLVED_TASK.format(original=original, points=points)


async def evolve_task(
    task: Task,
    last_result: str,
    quality: float,
    registry: ModelRegistry,
    client: InferenceClient,
    log: Optional[Callable[[str], None]] = None,
) -> Task:
    """Ask a fast model for 1-3 focus points and append them to the anchor."""
    model = registry.recruit(["fast"])
    prompt = prompts.EVOLVE.format(
        original=task.original,
        quality=quality,
        excerpt=prompts.truncate(last_result, EXCERPT_CHARS, "..."),
    )
    response = await client.chat(prompt, model)

    focus_points = parse_focus_points(response)
    task.evolve(focus_points, build_evolved_task(task.original, focus_points))

    if log:
        log(f"Task evolved with {len(focus_points)} focus point(s)")
    return task
