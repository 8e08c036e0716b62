"""Task lineage data models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TaskRevision(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous: str
    focus_points: tuple[str, ...] = ()


class Task(BaseModel):
    """A user task anchored to its original wording.

    ``original`` cannot be reassigned; ``current`` only changes through
    :meth:`evolve`, which records the replaced description in ``history``.
    """

    model_config = ConfigDict(validate_assignment=True)

    original: str = Field(frozen=True)
    current: str = ""
    focus_points: list[str] = []
    history: list[TaskRevision] = []

    def model_post_init(self, __context: Any) -> None:
        if not self.current:
            self.current = self.original

    def evolve(self, focus_points: list[str], evolved: str) -> None:
        self.history.append(
            TaskRevision(previous=self.current, focus_points=tuple(self.focus_points))
        )
        self.focus_points = list(focus_points)
        self.current = evolved
