"""Role-specialized agents and the manager that recruits and runs them."""

from __future__ import annotations

import itertools
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..errors import UnknownRoleError
from ..models.agent import Reflection, Role, RoleDefinition
from ..models.catalog import ModelSpec
from ..utils.fanout import gather_ordered
from . import prompts
from .inference import InferenceClient
from .registry import ModelRegistry

INITIAL_TRUST = 0.5
MIN_TRUST = 0.1
MAX_TRUST = 1.0
TRUST_GAIN = 1.1
TRUST_DECAY = 0.9
HISTORY_LIMIT = 20
HISTORY_PREVIEW_CHARS = 200
REFLECT_INPUT_CHARS = 2000

ROLE_DEFS: dict[Role, RoleDefinition] = {
    Role.ANALYST: RoleDefinition(
        role=Role.ANALYST,
        focus="Deep problem analysis",
        preferred_tags=("deep",),
        preamble="You are a deep-analysis expert who excels at breaking complex problems apart.",
    ),
    Role.CREATIVE: RoleDefinition(
        role=Role.CREATIVE,
        focus="Divergent, creative thinking",
        preferred_tags=("fast",),
        preamble="You are a creative expert who excels at looking at problems from many angles.",
    ),
    Role.CRITIC: RoleDefinition(
        role=Role.CRITIC,
        focus="Critical questioning",
        preferred_tags=("critique",),
        preamble="You are a critical-thinking expert who excels at finding problems and gaps.",
    ),
    Role.SYNTHESIZER: RoleDefinition(
        role=Role.SYNTHESIZER,
        focus="Information integration",
        preferred_tags=("synthesize",),
        preamble="You are an integration expert who excels at merging viewpoints into one coherent conclusion.",
    ),
    Role.EVALUATOR: RoleDefinition(
        role=Role.EVALUATOR,
        focus="Quality assessment",
        preferred_tags=("evaluate",),
        preamble="You are an assessment expert who excels at judging content quality objectively.",
    ),
}


def resolve_role(role: Union[Role, str]) -> Role:
    """Map a role name onto the closed role set."""
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).lower())
    except ValueError:
        raise UnknownRoleError(str(role)) from None


class Agent:
    """A single-role, single-model worker that lives for one round."""

    def __init__(self, agent_id: str, role: RoleDefinition, model: ModelSpec, client: InferenceClient):
        self.id = agent_id
        self.role = role
        self.model = model
        self.client = client
        self.trust = INITIAL_TRUST
        self.history: deque[dict] = deque(maxlen=HISTORY_LIMIT)

    def __repr__(self) -> str:
        return f"Agent({self.id}, {self.role.role.value}, {self.model.name}, trust={self.trust:.2f})"

    def update_trust(self, was_good: bool) -> float:
        if was_good:
            self.trust = min(MAX_TRUST, self.trust * TRUST_GAIN)
        else:
            self.trust = max(MIN_TRUST, self.trust * TRUST_DECAY)
        return self.trust

    async def execute(self, task: str) -> str:
        prompt = prompts.EXECUTE.format(preamble=self.role.preamble, task=task)
        result = await self.client.chat(prompt, self.model)
        self.history.append({"task": task, "result": result[:HISTORY_PREVIEW_CHARS]})
        return result

    async def reflect(self, result: str) -> Reflection:
        """Ask the model whether ``result`` can be improved.

        Anything other than the fixed sufficiency phrase counts as an
        improvement, and the reply itself is the improved version.
        """
        prompt = prompts.REFLECT.format(
            result=result[:REFLECT_INPUT_CHARS],
            phrase=prompts.NO_IMPROVEMENT_PHRASE,
        )
        reflection = await self.client.chat(prompt, self.model)
        needs_improvement = prompts.NO_IMPROVEMENT_PHRASE not in reflection
        return Reflection(
            needs_improvement=needs_improvement,
            improved=reflection if needs_improvement else result,
        )


@dataclass
class WeightedResult:
    content: str
    weight: float
    agent: Agent


class AgentManager:
    """Creates agents with weighted model recruitment and runs them together."""

    def __init__(
        self,
        registry: ModelRegistry,
        client: InferenceClient,
        log: Optional[Callable[[str], None]] = None,
    ):
        self.registry = registry
        self.client = client
        self.log = log
        self.agents: dict[str, Agent] = {}
        self._ids = itertools.count(1)

    def create_agent(self, role: Union[Role, str]) -> Agent:
        role_def = ROLE_DEFS[resolve_role(role)]
        model = self.registry.recruit(role_def.preferred_tags)
        agent = Agent(f"agent_{next(self._ids)}", role_def, model, self.client)
        self.agents[agent.id] = agent
        if self.log:
            self.log(f"   Created {role_def.role.value} agent {agent.id} on {model.name}")
        return agent

    def release(self, agents: list[Agent]) -> None:
        """Forget agents at the end of a round."""
        for agent in agents:
            self.agents.pop(agent.id, None)

    async def parallel_execute(self, agents: list[Agent], task: Union[str, list[str]]) -> list[str]:
        """Execute every agent concurrently; results follow ``agents`` order.

        ``task`` is either one task for all agents or one task per agent.
        """
        tasks = [task] * len(agents) if isinstance(task, str) else list(task)
        if len(tasks) != len(agents):
            raise ValueError("Need exactly one task per agent")
        return await gather_ordered(a.execute(t) for a, t in zip(agents, tasks))

    async def parallel_reflect(self, agents: list[Agent], results: list[str]) -> list[Reflection]:
        return await gather_ordered(a.reflect(r) for a, r in zip(agents, results))

    @staticmethod
    def weighted_synthesize(results: list[str], agents: list[Agent]) -> list[WeightedResult]:
        """Pair each result with its agent's share of the team's total trust."""
        total_trust = sum(a.trust for a in agents)
        weighted = []
        for content, agent in zip(results, agents):
            weight = agent.trust / total_trust if total_trust else 1.0 / len(agents)
            weighted.append(WeightedResult(content=content, weight=weight, agent=agent))
        return weighted
