"""Tests for core/agents.py."""

from __future__ import annotations

import asyncio

import pytest

from dimstar.core import prompts
from dimstar.core.agents import ROLE_DEFS, Agent, AgentManager, resolve_role
from dimstar.core.registry import DEFAULT_MODELS
from dimstar.errors import InferenceError, UnknownRoleError
from dimstar.models.agent import Role
from dimstar.models.provider import CompletionResult


def _agent(client, role: Role = Role.ANALYST, model=DEFAULT_MODELS[0]) -> Agent:
    return Agent("agent_x", ROLE_DEFS[role], model, client)


class TestTrust:
    def test_starts_at_half(self, client):
        assert _agent(client).trust == 0.5

    def test_good_reflection_raises_trust(self, client):
        agent = _agent(client)
        agent.update_trust(True)
        assert agent.trust == pytest.approx(0.55)

    def test_bad_reflection_lowers_trust(self, client):
        agent = _agent(client)
        agent.update_trust(False)
        assert agent.trust == pytest.approx(0.45)

    def test_capped_at_one(self, client):
        agent = _agent(client)
        agent.trust = 0.95
        agent.update_trust(True)
        assert agent.trust == 1.0

    def test_floored_at_point_one(self, client):
        agent = _agent(client)
        agent.trust = 0.105
        agent.update_trust(False)
        assert agent.trust == 0.1

    @pytest.mark.parametrize("start", [0.1, 0.3, 0.5, 0.77, 1.0])
    def test_repeated_updates_stay_bounded(self, client, start):
        agent = _agent(client)
        agent.trust = start
        for i in range(60):
            expected_good = min(1.0, agent.trust * 1.1)
            expected_bad = max(0.1, agent.trust * 0.9)
            was_good = (i // 7) % 2 == 0
            agent.update_trust(was_good)
            assert agent.trust == pytest.approx(expected_good if was_good else expected_bad)
            assert 0.1 <= agent.trust <= 1.0


class TestExecute:
    @pytest.mark.asyncio
    async def test_prompt_has_role_preamble_and_task(self, provider, client):
        agent = _agent(client, Role.CRITIC)
        result = await agent.execute("Review the plan")
        _, model_id, prompt = provider.requests[0]
        assert prompt.startswith(ROLE_DEFS[Role.CRITIC].preamble)
        assert "Task: Review the plan" in prompt
        assert model_id == agent.model.id
        assert result == provider.responses[prompts.PromptKind.EXECUTE]

    @pytest.mark.asyncio
    async def test_history_is_truncated_and_bounded(self, scripted_client):
        provider, client = scripted_client({prompts.PromptKind.EXECUTE: "x" * 500})
        agent = _agent(client)
        for i in range(25):
            await agent.execute(f"task {i}")
        assert len(agent.history) == 20
        assert agent.history[-1] == {"task": "task 24", "result": "x" * 200}

    @pytest.mark.asyncio
    async def test_failure_raises_inference_error(self, scripted_client):
        _, client = scripted_client(
            {prompts.PromptKind.EXECUTE: CompletionResult(success=False, error="500 | boom")}
        )
        with pytest.raises(InferenceError, match="500"):
            await _agent(client).execute("anything")


class TestReflect:
    @pytest.mark.asyncio
    async def test_sufficiency_phrase_keeps_original(self, client):
        reflection = await _agent(client).reflect("original answer")
        assert reflection.needs_improvement is False
        assert reflection.improved == "original answer"

    @pytest.mark.asyncio
    async def test_missing_phrase_returns_reflection(self, scripted_client):
        _, client = scripted_client({prompts.PromptKind.REFLECT: "Better answer with sources"})
        reflection = await _agent(client).reflect("original answer")
        assert reflection.needs_improvement is True
        assert reflection.improved == "Better answer with sources"

    @pytest.mark.asyncio
    async def test_phrase_match_is_exact(self, scripted_client):
        _, client = scripted_client({prompts.PromptKind.REFLECT: "no improvement needed"})
        reflection = await _agent(client).reflect("original answer")
        assert reflection.needs_improvement is True


class TestAgentManager:
    def test_create_agent_ids_increase(self, registry, client):
        manager = AgentManager(registry, client)
        ids = [manager.create_agent(Role.CREATIVE).id for _ in range(3)]
        assert ids == ["agent_1", "agent_2", "agent_3"]

    def test_create_agent_from_name(self, registry, client):
        agent = AgentManager(registry, client).create_agent("synthesizer")
        assert agent.role.role is Role.SYNTHESIZER

    def test_unknown_role(self, registry, client):
        with pytest.raises(UnknownRoleError):
            AgentManager(registry, client).create_agent("poet")

    def test_resolve_role_error_is_value_error(self):
        with pytest.raises(ValueError):
            resolve_role("wizard")

    def test_release(self, registry, client):
        manager = AgentManager(registry, client)
        agents = [manager.create_agent(Role.ANALYST) for _ in range(2)]
        manager.release(agents)
        assert manager.agents == {}

    @pytest.mark.asyncio
    async def test_parallel_execute_preserves_order(self, registry, scripted_client):
        delays = {"first": 0.03, "second": 0.0, "third": 0.01}

        def respond(prompt, model):
            return prompt.rsplit("Task: ", 1)[1]

        provider, client = scripted_client({prompts.PromptKind.EXECUTE: respond})
        manager = AgentManager(registry, client)
        agents = [manager.create_agent(Role.CREATIVE) for _ in range(3)]

        original = provider.complete

        async def slow_complete(messages, model):
            task = messages[-1].content.rsplit("Task: ", 1)[1]
            await asyncio.sleep(delays[task])
            return await original(messages, model)

        provider.complete = slow_complete
        results = await manager.parallel_execute(agents, ["first", "second", "third"])
        assert results == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_parallel_execute_same_task(self, registry, client):
        manager = AgentManager(registry, client)
        agents = [manager.create_agent(Role.ANALYST) for _ in range(2)]
        results = await manager.parallel_execute(agents, "shared")
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_parallel_execute_propagates_failure(self, registry, scripted_client):
        def respond(prompt, model):
            if "bad" in prompt:
                return CompletionResult(success=False, error="502 | gateway")
            return "ok"

        _, client = scripted_client({prompts.PromptKind.EXECUTE: respond})
        manager = AgentManager(registry, client)
        agents = [manager.create_agent(Role.ANALYST) for _ in range(3)]
        with pytest.raises(InferenceError, match="502"):
            await manager.parallel_execute(agents, ["good", "bad", "good"])

    @pytest.mark.asyncio
    async def test_parallel_execute_task_count_mismatch(self, registry, client):
        manager = AgentManager(registry, client)
        agents = [manager.create_agent(Role.ANALYST) for _ in range(2)]
        with pytest.raises(ValueError):
            await manager.parallel_execute(agents, ["only one"])

    def test_weighted_synthesize_normalizes_trust(self, registry, client):
        manager = AgentManager(registry, client)
        agents = [manager.create_agent(Role.ANALYST) for _ in range(3)]
        agents[0].trust, agents[1].trust, agents[2].trust = 0.2, 0.3, 0.5

        weighted = manager.weighted_synthesize(["a", "b", "c"], agents)

        assert [w.content for w in weighted] == ["a", "b", "c"]
        assert [w.weight for w in weighted] == pytest.approx([0.2, 0.3, 0.5])
        assert weighted[2].agent is agents[2]
        assert sum(w.weight for w in weighted) == pytest.approx(1.0)
