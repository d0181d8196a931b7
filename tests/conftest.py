"""Shared test fixtures — small seeded subsystems and a controllable clock."""

from __future__ import annotations

import pytest

from ecokernel.cells.pool import EntityPool
from ecokernel.config import EcoSettings
from ecokernel.kernel.ecosystem import Ecosystem
from ecokernel.world.world import AgentWorld


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool():
    p = EntityPool(256, seed=7, workers=2, chunk_size=64)
    p.initialize()
    yield p
    p.close()


@pytest.fixture
def world():
    return AgentWorld(capacity=10)


@pytest.fixture
def small_settings():
    return EcoSettings(
        pool_size=256,
        max_agents=20,
        max_patterns=50,
        initial_agents=5,
        initial_patterns=10,
        seed=1234,
        workers=2,
        chunk_size=64,
        concept_source="simulated",
    )


@pytest.fixture
def ecosystem(small_settings, clock):
    eco = Ecosystem(small_settings, clock=clock)
    yield eco
    eco.close()
