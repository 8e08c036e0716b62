"""Run and round data models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RoundRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    round: int
    quality: float
    call_count: int
    result_preview: str = ""


class RunResult(BaseModel):
    result: str
    rounds: int
    call_count: int
    quality: float
    history: list[RoundRecord] = []


class RateLimitStatus(BaseModel):
    used_this_minute: int
    remaining: int


class ReasoningResult(BaseModel):
    steps: list[str] = []
    final_answer: str = ""
    total_steps: int = 0
