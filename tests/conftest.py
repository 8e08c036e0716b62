"""Shared fixtures for DimStar tests."""

from __future__ import annotations

import asyncio
import random

import pytest

from dimstar.core.inference import InferenceClient
from dimstar.core.rate_limiter import RateLimiter
from dimstar.core.registry import ModelRegistry
from dimstar.providers.scripted import ScriptedProvider


class FakeClock:
    """Manual clock whose sleep advances time instead of waiting."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> ModelRegistry:
    return ModelRegistry(rng=random.Random(7))


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter(calls_per_minute=10_000)


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def client(provider: ScriptedProvider, limiter: RateLimiter) -> InferenceClient:
    return InferenceClient(provider, limiter)


@pytest.fixture
def log_lines() -> list[str]:
    return []


@pytest.fixture
def scripted_client():
    """Factory: scripted provider plus a client with an effectively unlimited rate."""

    def _make(responses: dict | None = None) -> tuple[ScriptedProvider, InferenceClient]:
        provider = ScriptedProvider(responses=responses)
        return provider, InferenceClient(provider, RateLimiter(calls_per_minute=10_000))

    return _make
