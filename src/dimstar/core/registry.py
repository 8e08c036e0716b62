"""Model catalog and weighted recruitment."""

from __future__ import annotations

import random
from typing import Iterable, Optional

from ..models.catalog import ModelSpec

TAG_WEIGHT = 1.5

DEFAULT_MODELS: tuple[ModelSpec, ...] = (
    ModelSpec(
        id="deepseek-ai/deepseek-v3.2",
        name="DeepSeek V3.2",
        max_tokens=128000,
        tags=frozenset({"deep", "synthesize"}),
    ),
    ModelSpec(
        id="openai/gpt-oss-120b",
        name="GPT-OSS 120B",
        max_tokens=4096,
        tags=frozenset({"fast", "simple"}),
        thinking=True,
    ),
    ModelSpec(
        id="qwen/qwen3-235b-a22b",
        name="Qwen3 235B",
        max_tokens=32000,
        tags=frozenset({"evaluate", "critique"}),
        thinking=True,
    ),
)


class ModelRegistry:
    """Read-only catalog of models, built once at startup."""

    def __init__(self, models: Iterable[ModelSpec] = DEFAULT_MODELS, rng: Optional[random.Random] = None):
        self._models: tuple[ModelSpec, ...] = tuple(models)
        if not self._models:
            raise ValueError("Model catalog is empty")
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: dict, rng: Optional[random.Random] = None) -> "ModelRegistry":
        """Build from the ``models`` config list, falling back to the defaults."""
        entries = config.get("models") or []
        if not entries:
            return cls(DEFAULT_MODELS, rng=rng)
        models = [
            ModelSpec(
                id=e["id"],
                name=e.get("name", e["id"]),
                max_tokens=int(e.get("max_tokens", 4096)),
                tags=frozenset(e.get("tags", [])),
                thinking=bool(e.get("thinking", False)),
            )
            for e in entries
        ]
        return cls(models, rng=rng)

    @property
    def models(self) -> tuple[ModelSpec, ...]:
        return self._models

    def __len__(self) -> int:
        return len(self._models)

    def weights(self, preferred_tags: Iterable[str] = ()) -> list[float]:
        """Per-model weight: 1.5 for each preferred tag the model carries."""
        tags = list(preferred_tags)
        weights = []
        for model in self._models:
            weight = 1.0
            for tag in tags:
                if model.has_tag(tag):
                    weight *= TAG_WEIGHT
            weights.append(weight)
        return weights

    def recruit(
        self,
        preferred_tags: Iterable[str] = (),
        exclude: Optional[ModelSpec] = None,
    ) -> ModelSpec:
        """Roulette-wheel selection biased toward ``preferred_tags``.

        ``exclude`` drops one model from the draw, unless it is the only one.
        """
        candidates = list(self._models)
        weights = self.weights(preferred_tags)
        if exclude is not None and len(candidates) > 1:
            pairs = [(m, w) for m, w in zip(candidates, weights) if m.id != exclude.id]
            if pairs:
                candidates = [m for m, _ in pairs]
                weights = [w for _, w in pairs]

        total = sum(weights)
        point = self._rng.random() * total
        for model, weight in zip(candidates, weights):
            point -= weight
            if point <= 0:
                return model
        return candidates[-1]
