"""Model catalog data models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ModelSpec(BaseModel):
    """One entry of the fixed model catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    max_tokens: int
    tags: frozenset[str] = frozenset()
    thinking: bool = False

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags
