"""Iterative engine: the round loop that drives a multi-agent run.

Each round decomposes the current task, forms a team sized by the previous
round's quality, executes and verifies the team's work, reflects, synthesizes
a trust-weighted answer and scores it. The loop stops when the convergence
policy says so, otherwise the task is evolved and another round starts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ..errors import RunAbortedError
from ..models.agent import Role
from ..models.run import RoundRecord, RunResult
from ..models.task import Task
from ..utils.fanout import gather_ordered
from ..utils.sanitize import sanitize_error
from . import prompts
from .agents import Agent, AgentManager
from .evolve import evolve_task
from .inference import InferenceClient
from .quality import calculate_budget, consensus_quality, convergence_reasons, is_improvement
from .registry import ModelRegistry
from .self_eval import SelfEvaluator

DEFAULT_THRESHOLD = 50
MAX_SUBTASKS = 3
RESULT_PREVIEW_CHARS = 200
SYNTHESIS_VIEW_CHARS = 1000

LogSink = Callable[[str], None]


class RoundPhase(str, Enum):
    IDLE = "idle"
    DECOMPOSING = "decomposing"
    TEAM_FORMING = "team_forming"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    REFLECTING = "reflecting"
    SYNTHESIZING = "synthesizing"
    SCORING = "scoring"
    EVOLVING = "evolving"
    DONE = "done"


def select_team(round_number: int, quality: float) -> list[Role]:
    """Team composition from the round number and the previous round's quality."""
    if round_number == 1:
        return [Role.ANALYST, Role.CREATIVE, Role.CREATIVE, Role.SYNTHESIZER]
    if quality < 0.5:
        return [
            Role.ANALYST,
            Role.ANALYST,
            Role.CREATIVE,
            Role.CREATIVE,
            Role.CREATIVE,
            Role.CRITIC,
            Role.CRITIC,
            Role.SYNTHESIZER,
        ]
    if quality < 0.8:
        return [Role.ANALYST, Role.CRITIC, Role.CREATIVE, Role.SYNTHESIZER]
    return [Role.SYNTHESIZER, Role.EVALUATOR]


def parse_subtasks(decomposition: str) -> list[str]:
    """Numbered lines of a decomposition, at most three."""
    lines = [line.strip() for line in (decomposition or "").splitlines()]
    return [line for line in lines if re.match(r"^\d", line)][:MAX_SUBTASKS]


@dataclass
class RunState:
    """Per-run counters; owned by the engine and reset by every run."""

    round: int = 0
    call_count: int = 0
    last_quality: float = 0.0
    no_improve_count: int = 0
    phase: RoundPhase = RoundPhase.IDLE
    history: list[RoundRecord] = field(default_factory=list)


class IterativeEngine:
    def __init__(
        self,
        registry: ModelRegistry,
        client: InferenceClient,
        log_sink: Optional[LogSink] = None,
    ):
        self.registry = registry
        self.client = client
        self.state = RunState()
        self._log_sink = log_sink
        self._calls_at_start = 0
        self.task: Optional[Task] = None

        self.agent_manager = AgentManager(registry, client, log=self.log)
        self.self_evaluator = SelfEvaluator(registry, client, log=self.log)
        if client.log is None:
            client.log = self.log

    def set_log_sink(self, sink: Optional[LogSink]) -> None:
        self._log_sink = sink

    def log(self, message: str) -> None:
        if self._log_sink:
            self._log_sink(message)

    def _enter(self, phase: RoundPhase) -> None:
        self.state.phase = phase

    def _sync_calls(self) -> int:
        self.state.call_count = self.client.call_count - self._calls_at_start
        return self.state.call_count

    # ------------------------------------------------------------------
    # Round steps
    # ------------------------------------------------------------------

    def create_team(self, round_number: int, quality: float) -> list[Agent]:
        roles = select_team(round_number, quality)
        self.log(
            f"Forming team (round {round_number}, quality {quality:.2f}): "
            f"{', '.join(r.value for r in roles)}"
        )
        return [self.agent_manager.create_agent(role) for role in roles]

    async def _decompose(self, task: Task, decomposer: Agent) -> list[str]:
        self._enter(RoundPhase.DECOMPOSING)
        decomposition = await decomposer.execute(prompts.DECOMPOSE.format(task=task.current))

        self.log("Self-eval: checking task decomposition...")
        judgment = await self.self_evaluator.evaluate(
            task.current,
            decomposition,
            prompts.DECOMPOSITION_CRITERIA,
            producer=decomposer.model,
        )
        if not judgment.is_correct:
            self.log("Decomposition rejected, regenerating once...")
            decomposition = await decomposer.execute(
                prompts.DECOMPOSE_RETRY.format(reason=judgment.reason, task=task.current)
            )

        subtasks = parse_subtasks(decomposition)
        self.log(f"Decomposed into {len(subtasks)} subtask(s)")
        return subtasks

    async def _verify(self, workers: list[Agent], assignments: list[str], results: list[str]) -> list[str]:
        """Judge every result concurrently, then redo rejected ones one by one."""
        self._enter(RoundPhase.VERIFYING)
        self.log("Self-eval: checking results in parallel...")
        judgments = await gather_ordered(
            self.self_evaluator.evaluate(
                assignment, result, prompts.RESULT_CRITERIA, producer=worker.model
            )
            for worker, assignment, result in zip(workers, assignments, results)
        )

        verified = list(results)
        for i, judgment in enumerate(judgments):
            if judgment.is_correct:
                continue
            self.log(f"{workers[i].id} rejected, regenerating...")
            verified[i] = await workers[i].execute(
                prompts.WORKER_RETRY.format(reason=judgment.reason, task=assignments[i])
            )
        return verified

    async def _reflect(self, workers: list[Agent], results: list[str]) -> list[str]:
        self._enter(RoundPhase.REFLECTING)
        self.log("Reflecting in parallel...")
        reflections = await self.agent_manager.parallel_reflect(workers, results)
        improved = []
        for worker, reflection in zip(workers, reflections):
            worker.update_trust(not reflection.needs_improvement)
            improved.append(reflection.improved)
        return improved

    def build_synthesis_prompt(self, results: list[str], workers: list[Agent]) -> str:
        weighted = self.agent_manager.weighted_synthesize(results, workers)
        weighted.sort(key=lambda w: w.weight, reverse=True)
        views = "\n\n".join(
            prompts.SYNTHESIS_VIEW.format(
                index=i,
                weight=w.weight * 100,
                content=w.content[:SYNTHESIS_VIEW_CHARS],
            )
            for i, w in enumerate(weighted, 1)
        )
        return prompts.SYNTHESIS.format(views=views)

    async def _synthesize(self, task: Task, workers: list[Agent], results: list[str]) -> tuple[str, Agent]:
        self._enter(RoundPhase.SYNTHESIZING)
        synthesizer = self.agent_manager.create_agent(Role.SYNTHESIZER)
        synthesis_prompt = self.build_synthesis_prompt(results, workers)
        synthesized = await synthesizer.execute(synthesis_prompt)

        self.log("Self-eval: checking synthesized conclusion...")
        judgment = await self.self_evaluator.evaluate(
            task.original,
            synthesized,
            prompts.SYNTHESIS_CRITERIA,
            producer=synthesizer.model,
        )
        if not judgment.is_correct:
            self.log("Synthesis rejected, regenerating once...")
            synthesized = await synthesizer.execute(
                prompts.SYNTHESIS_RETRY.format(reason=judgment.reason, prompt=synthesis_prompt)
            )
        return synthesized, synthesizer

    async def execute_round(self, task: Task) -> str:
        """Run one full round and return its synthesized answer."""
        self.state.round += 1
        self.log(f"========== Round {self.state.round} ==========")

        before = set(self.agent_manager.agents)
        try:
            decomposer = self.agent_manager.create_agent(Role.ANALYST)
            subtasks = await self._decompose(task, decomposer)

            self._enter(RoundPhase.TEAM_FORMING)
            workers = self.create_team(self.state.round, self.state.last_quality)
            assignments = [
                subtasks[i % len(subtasks)] if subtasks else task.current
                for i in range(len(workers))
            ]

            self._enter(RoundPhase.EXECUTING)
            self.log(f"Executing {len(workers)} agents in parallel...")
            results = await self.agent_manager.parallel_execute(workers, assignments)

            results = await self._verify(workers, assignments, results)
            results = await self._reflect(workers, results)
            synthesized, _ = await self._synthesize(task, workers, results)
        finally:
            # agents live for one round, including rounds that fail
            self.agent_manager.release(
                [a for aid, a in self.agent_manager.agents.items() if aid not in before]
            )
            self._sync_calls()
        return synthesized

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self, user_task: str, threshold: int = DEFAULT_THRESHOLD) -> RunResult:
        """Refine ``user_task`` round by round until the policy converges.

        Raises :class:`RunAbortedError` carrying the partial history when a
        fatal error interrupts the run.
        """
        self.state = RunState()
        self._calls_at_start = self.client.call_count
        task = self.task = Task(original=user_task)
        self.log(f"Starting iterative run, threshold: {threshold}")

        try:
            return await self._loop(task, threshold)
        except Exception as e:
            self._sync_calls()
            self._enter(RoundPhase.DONE)
            reason = sanitize_error(str(e)) or type(e).__name__
            self.log(f"Run aborted in round {self.state.round}: {reason}")
            raise RunAbortedError(
                reason,
                history=self.state.history,
                rounds=self.state.round,
                call_count=self.state.call_count,
            ) from e

    async def _loop(self, task: Task, threshold: int) -> RunResult:
        state = self.state
        while True:
            result = await self.execute_round(task)

            self._enter(RoundPhase.SCORING)
            quality = await consensus_quality(result, self.registry, self.client, log=self.log)

            if is_improvement(quality, state.last_quality):
                state.no_improve_count = 0
            else:
                state.no_improve_count += 1
            state.last_quality = quality

            state.history.append(
                RoundRecord(
                    round=state.round,
                    quality=quality,
                    call_count=self._sync_calls(),
                    result_preview=result[:RESULT_PREVIEW_CHARS],
                )
            )

            budget = calculate_budget(threshold, quality)
            reasons = convergence_reasons(
                quality=quality,
                round=state.round,
                no_improve_count=state.no_improve_count,
                call_count=state.call_count,
                threshold=budget,
            )
            if reasons:
                self._enter(RoundPhase.DONE)
                self.log(f"Converged: {', '.join(reasons)}")
                self.log(
                    f"Final result ({state.round} rounds, {state.call_count} calls, "
                    f"quality {quality:.2f})"
                )
                return RunResult(
                    result=result,
                    rounds=state.round,
                    call_count=state.call_count,
                    quality=quality,
                    history=list(state.history),
                )

            self._enter(RoundPhase.EVOLVING)
            await evolve_task(task, result, quality, self.registry, self.client, log=self.log)
            self._sync_calls()
