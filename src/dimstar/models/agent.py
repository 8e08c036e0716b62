"""Agent role and judgment data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    ANALYST = "analyst"
    CREATIVE = "creative"
    CRITIC = "critic"
    SYNTHESIZER = "synthesizer"
    EVALUATOR = "evaluator"


class RoleDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    focus: str
    preferred_tags: tuple[str, ...] = ()
    preamble: str


class Judgment(BaseModel):
    """Outcome of a binary accept/reject self-evaluation."""

    is_correct: bool
    reason: str = ""
    raw: str = ""


class Reflection(BaseModel):
    needs_improvement: bool
    improved: str
