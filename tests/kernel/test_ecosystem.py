"""Tests for the ecosystem orchestrator."""

import asyncio

import numpy as np
import pytest

from ecokernel.concepts.sources import ConceptSource
from ecokernel.config import EcoSettings
from ecokernel.exceptions import CircuitOpenError, ConceptSourceError
from ecokernel.guard.breaker import ResilienceGuard
from ecokernel.kernel.ecosystem import Ecosystem, EcosystemStats
from ecokernel.types import MetricState


class BrokenSource(ConceptSource):
    def __init__(self):
        self.calls = 0

    async def fetch(self, query):
        self.calls += 1
        raise ConceptSourceError("offline")


def test_construction_populates_subsystems(ecosystem):
    stats = ecosystem.get_stats()
    assert isinstance(stats, EcosystemStats)
    assert stats.tick_count == 0
    assert stats.pool_size == 256
    assert stats.agent_count == 5
    assert stats.pattern_count == 10
    assert stats.concept_count == 0
    assert stats.metric_state_label == MetricState.CALM.value
    assert ecosystem.metrics.component_names == ["cells", "agents", "emotions"]


def test_tick_advances_everything(ecosystem):
    stats = ecosystem.tick(1 / 60)
    assert stats.tick_count == 1
    assert ecosystem.pool.current_tick == 1
    assert ecosystem.world.current_tick == 1
    assert ecosystem.metrics.update_count == 1
    assert 0.0 < stats.mean_health <= 1.0


def test_tick_order(ecosystem, monkeypatch):
    order = []
    monkeypatch.setattr(ecosystem.pool, "update_all", lambda dt: order.append("pool"))
    monkeypatch.setattr(ecosystem.world, "update", lambda dt: order.append("world"))
    monkeypatch.setattr(ecosystem.metrics, "update", lambda dt: order.append("metrics"))
    ecosystem.tick(0.1)
    assert order == ["pool", "world", "metrics"]


def test_paused_tick_is_noop(ecosystem):
    assert ecosystem.toggle_pause() is True
    stats = ecosystem.tick(1.0)
    assert stats.tick_count == 0
    assert ecosystem.pool.current_tick == 0
    assert ecosystem.toggle_pause() is False
    assert ecosystem.tick(1.0).tick_count == 1


def test_uptime_follows_clock(ecosystem, clock):
    clock.advance(12.5)
    assert ecosystem.get_stats().uptime_seconds == pytest.approx(12.5)


def test_seeded_runs_are_reproducible(small_settings, clock):
    results = []
    for _ in range(2):
        eco = Ecosystem(small_settings, clock=clock)
        for _ in range(5):
            eco.tick(0.1)
        results.append((eco.metrics.history, eco.world.mean_energy, eco.pool.statistics().mean_noise))
        eco.close()
    assert results[0] == results[1]


def test_empty_world_still_ticks(clock):
    cfg = EcoSettings(pool_size=32, initial_agents=0, initial_patterns=0, seed=1, workers=1)
    eco = Ecosystem(cfg, clock=clock)
    try:
        stats = eco.tick(0.1)
        assert stats.agent_count == 0
        assert stats.mean_health == 0.0
        assert stats.mean_energy == 0.0
    finally:
        eco.close()


@pytest.mark.asyncio
async def test_search_concepts_emits_event(ecosystem):
    received = []

    async def handler(event):
        received.append(event)

    ecosystem.event_bus.subscribe("concepts.*", handler)
    found = await ecosystem.search_concepts("neural")

    assert found
    assert ecosystem.get_stats().concept_count == len(found)
    assert len(received) == 1
    assert received[0].data["count"] == len(found)
    assert 0.3 <= received[0].data["mean_importance"] <= 1.0
    assert ecosystem.guard.registry.get_sample_value("archguard_requests_total") == 1.0


@pytest.mark.asyncio
async def test_failing_source_trips_the_breaker(small_settings, clock):
    source = BrokenSource()
    guard = ResilienceGuard(failure_threshold=2, clock=clock)
    eco = Ecosystem(small_settings, concept_source=source, guard=guard, clock=clock)
    try:
        for _ in range(2):
            with pytest.raises(ConceptSourceError):
                await eco.search_concepts()
        with pytest.raises(CircuitOpenError):
            await eco.search_concepts()
        assert source.calls == 2
        assert eco.event_bus.history("concepts.*") == []
    finally:
        eco.close()


def test_evolve_and_lookups(ecosystem):
    assert ecosystem.evolve() == 5
    assert ecosystem.selection.generations == 1

    hits = ecosystem.find_cells(np.ones(57), 3)
    assert len(hits) == 3
    assert hits[0][1] >= hits[1][1] >= hits[2][1]

    patterns = ecosystem.find_patterns(np.ones(224), 2)
    assert len(patterns) == 2
    assert all(entry.usage_count == 1 for _, entry in patterns)


def test_integrate_experience_keeps_norms_capped(ecosystem):
    ecosystem.integrate_experience(np.full(57, 1e6), 1.0)
    assert ecosystem.pool.semantic_norms.max() <= 10.0 + 1e-9


def test_inject_stimulus_perturbs_components(ecosystem):
    ecosystem.inject_stimulus(1.0)
    current, _ = ecosystem.metrics.component("agents")
    assert np.any(current != 0.0)


@pytest.mark.asyncio
async def test_start_and_stop(ecosystem):
    await ecosystem.start(interval=0.001)
    await ecosystem.start(interval=0.001)  # already running
    assert ecosystem.is_running
    await asyncio.sleep(0.05)
    await ecosystem.stop()

    assert not ecosystem.is_running
    assert ecosystem.tick_count > 0
    topics = [e.topic for e in ecosystem.event_bus.history("ecosystem.*")]
    assert topics == ["ecosystem.stopped", "ecosystem.started"]


@pytest.mark.asyncio
async def test_loop_survives_tick_errors(ecosystem):
    def broken(dt):
        raise RuntimeError("tick exploded")

    ecosystem.tick = broken
    await ecosystem.start(interval=0.001)
    await asyncio.sleep(0.02)
    await ecosystem.stop()

    errors = ecosystem.event_bus.history("ecosystem.error")
    assert errors
    assert errors[0].data["error"] == "tick exploded"
