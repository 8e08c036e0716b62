"""Step-wise reasoning with a self-evaluation gate on every step."""

from __future__ import annotations

from typing import Callable, Optional

from ..models.catalog import ModelSpec
from ..models.run import ReasoningResult
from . import prompts
from .inference import InferenceClient
from .registry import ModelRegistry
from .self_eval import SelfEvaluator

DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_STEPS = 10


def format_steps(steps: list[str]) -> str:
    return "\n".join(f"[Step {i}]: {step}" for i, step in enumerate(steps, 1))


def is_conclusion(step: str) -> bool:
    lowered = step.lower()
    return any(marker.lower() in lowered for marker in prompts.CONCLUSION_MARKERS)


class StepReasoner:
    """Generate one reasoning step at a time and judge each before moving on.

    A rejected step is corrected and judged again, up to ``max_retries``
    judgments per step; after that the last version is kept with a warning.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        client: InferenceClient,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_steps: int = DEFAULT_MAX_STEPS,
        log: Optional[Callable[[str], None]] = None,
    ):
        self.registry = registry
        self.client = client
        self.max_retries = max_retries
        self.max_steps = max_steps
        self.log = log
        self.evaluator = SelfEvaluator(registry, client, log=log)
        self.steps: list[str] = []

    def _log(self, message: str) -> None:
        if self.log:
            self.log(message)

    async def generate_step(self, question: str, step_num: int) -> tuple[str, ModelSpec]:
        """Return the new step and the model that wrote it."""
        context = format_steps(self.steps) if self.steps else "This is the first step."
        prompt = prompts.STEP.format(question=question, step_num=step_num, context=context)
        model = self.registry.recruit(["deep"])
        return await self.client.chat(prompt, model), model

    async def correct_step(self, question: str, error_reason: str) -> tuple[str, ModelSpec]:
        prompt = prompts.CORRECTION.format(
            error_reason=error_reason,
            question=question,
            context=format_steps(self.steps) or "(none)",
        )
        model = self.registry.recruit(["deep"])
        return await self.client.chat(prompt, model), model

    async def synthesize(self) -> str:
        prompt = prompts.STEP_SYNTHESIS.format(steps=format_steps(self.steps))
        return await self.client.chat(prompt, self.registry.recruit(["synthesize"]))

    async def run(self, question: str) -> ReasoningResult:
        self.steps = []
        self._log("Starting step-by-step reasoning...")

        for step_num in range(1, self.max_steps + 1):
            self._log(f"Generating step {step_num}...")
            step, author = await self.generate_step(question, step_num)

            for attempt in range(1, self.max_retries + 1):
                context = f"Problem: {question}\n\nPrevious steps:\n{format_steps(self.steps)}"
                judgment = await self.evaluator.evaluate(
                    context, step, prompts.STEP_CRITERIA, producer=author
                )
                if judgment.is_correct:
                    self._log(f"Step {step_num} accepted")
                    break

                self._log(f"Step {step_num} rejected: {judgment.reason[:50]}")
                if attempt < self.max_retries:
                    self._log(f"Correcting ({attempt}/{self.max_retries})...")
                    step, author = await self.correct_step(question, judgment.reason)
            else:
                self._log(f"Warning: step {step_num} still rejected after retries, keeping last version")

            self.steps.append(step)
            if is_conclusion(step):
                self._log("Conclusion reached")
                break

        self._log("Synthesizing final answer...")
        final_answer = await self.synthesize()
        return ReasoningResult(
            steps=list(self.steps),
            final_answer=final_answer,
            total_steps=len(self.steps),
        )
