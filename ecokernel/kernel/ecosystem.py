"""Ecosystem — the orchestrator that owns every subsystem and drives ticks.

One tick runs strictly in order: cell pool, agent world, metric sampling,
metric update. Pattern lookups, selection and concept discovery happen on
demand. ``start`` runs ticks on a background asyncio task in real time.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Sequence

import numpy as np
import structlog
from pydantic import BaseModel

from ecokernel.cells.pool import EntityPool
from ecokernel.concepts.searcher import ConceptSearcher
from ecokernel.concepts.sources import Concept, ConceptSource, SimulatedConceptSource, WebConceptSource
from ecokernel.config import EcoSettings, settings
from ecokernel.events.bus import EventBus
from ecokernel.evolution.selection import SelectionEngine
from ecokernel.guard.breaker import ResilienceGuard
from ecokernel.metrics.engine import MetricEngine
from ecokernel.patterns.cache import PatternEntry, PatternCache
from ecokernel.world.world import AgentWorld

_logger = logging.getLogger(__name__)
logger = structlog.get_logger()

SAMPLE_WIDTH = 64
EMOTION_SAMPLE_AGENTS = 8

# component name -> weight
METRIC_COMPONENTS: dict[str, float] = {"cells": 0.3, "agents": 0.5, "emotions": 0.2}


class EcosystemStats(BaseModel):
    tick_count: int
    smoothed_metric: float
    metric_state_label: str
    pool_size: int
    agent_count: int
    mean_health: float
    mean_energy: float
    pattern_count: int
    concept_count: int
    uptime_seconds: float


def _child_seeds(seed: int | None, count: int) -> list[int]:
    return [int(s.generate_state(1)[0]) for s in np.random.SeedSequence(seed).spawn(count)]


def _concept_source(cfg: EcoSettings, seed: int) -> ConceptSource:
    if cfg.concept_source == "web":
        return WebConceptSource(cfg.concept_search_url, timeout=cfg.http_timeout)
    return SimulatedConceptSource(seed)


class Ecosystem:
    """Owns one of each subsystem and advances them together.

    Usage:
        eco = Ecosystem(EcoSettings(pool_size=1000, seed=1))
        for _ in range(60):
            eco.tick(1 / 60)
        await eco.search_concepts()
        eco.get_stats()
    """

    def __init__(
        self,
        config: EcoSettings | None = None,
        *,
        concept_source: ConceptSource | None = None,
        guard: ResilienceGuard | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        cfg = config or settings
        self.config = cfg
        self._clock = clock
        pool_seed, pattern_seed, metric_seed, select_seed, concept_seed, spawn_seed = _child_seeds(cfg.seed, 6)

        self.pool = EntityPool(
            cfg.pool_size, seed=pool_seed, workers=cfg.workers, chunk_size=cfg.chunk_size,
        )
        self.world = AgentWorld(cfg.max_agents)
        self.patterns = PatternCache(cfg.max_patterns, seed=pattern_seed)
        self.metrics = MetricEngine(seed=metric_seed)
        self.selection = SelectionEngine(seed=select_seed)
        self.guard = guard or ResilienceGuard(
            failure_threshold=cfg.failure_threshold,
            reset_timeout=cfg.reset_timeout_seconds,
            rhythm_frequency=cfg.rhythm_frequency_hz,
            clock=clock,
        )
        self.concepts = ConceptSearcher(concept_source or _concept_source(cfg, concept_seed))
        self.event_bus = event_bus or EventBus()

        self.tick_count = 0
        self.paused = False
        self.start_time = clock()
        self._running = False
        self._task: asyncio.Task | None = None
        self._rng = np.random.default_rng(spawn_seed)

        self.pool.initialize()
        self.patterns.generate_random(cfg.initial_patterns)
        for name, weight in METRIC_COMPONENTS.items():
            self.metrics.register_component(name, [0.0] * SAMPLE_WIDTH, weight)

        radius = cfg.spawn_radius
        for _ in range(cfg.initial_agents):
            x, y = self._rng.uniform(-radius, radius, size=2)
            self.world.spawn((float(x), float(y), 0.0))

        _logger.info(
            "Ecosystem ready: %d cells, %d agents, %d patterns",
            self.pool.size, self.world.count, self.patterns.count,
        )

    # ── tick ─────────────────────────────────────────────────────────────

    def tick(self, dt: float) -> EcosystemStats:
        """Advance every subsystem once, in order. A paused ecosystem stays put."""
        if self.paused:
            return self.get_stats()
        dt = max(float(dt), 0.0)
        self.tick_count += 1

        self.pool.update_all(dt)
        self.world.update(dt)

        self.metrics.update_component("cells", self.pool.semantic_sample(SAMPLE_WIDTH))
        self.metrics.update_component("agents", self.world.kaif_sample(SAMPLE_WIDTH))
        emotions = self.world.emotion_sample(EMOTION_SAMPLE_AGENTS)
        if emotions:
            self.metrics.update_component("emotions", emotions)
        self.metrics.update(dt)

        return self.get_stats()

    def toggle_pause(self) -> bool:
        self.paused = not self.paused
        _logger.info("Ecosystem %s", "paused" if self.paused else "resumed")
        return self.paused

    def get_stats(self) -> EcosystemStats:
        return EcosystemStats(
            tick_count=self.tick_count,
            smoothed_metric=self.metrics.value,
            metric_state_label=self.metrics.state.value,
            pool_size=self.pool.size,
            agent_count=self.world.count,
            mean_health=self.world.mean_health,
            mean_energy=self.world.mean_energy,
            pattern_count=self.patterns.count,
            concept_count=self.concepts.count,
            uptime_seconds=max(self._clock() - self.start_time, 0.0),
        )

    # ── on-demand operations ─────────────────────────────────────────────

    async def search_concepts(self, query: str | None = None) -> list[Concept]:
        """Discover concepts through the guard. Breaker and source errors propagate."""
        found = await self.guard.execute(lambda: self.concepts.search(query))
        mean_importance = sum(c.importance for c in found) / len(found) if found else 0.0
        await self.event_bus.emit(
            "concepts.discovered",
            {"count": len(found), "mean_importance": mean_importance},
            source="ecosystem",
        )
        return found

    def integrate_experience(self, experience: Sequence[float], dt: float) -> None:
        self.pool.integrate_experience_all(experience, dt)

    def find_cells(self, query: Sequence[float], k: int = 5) -> list[tuple[int, float]]:
        return self.pool.find_similar(query, k)

    def find_patterns(self, features: Sequence[float], k: int = 5) -> list[tuple[float, PatternEntry]]:
        return self.patterns.find_similar(features, k)

    def evolve(self) -> int:
        """One selection round over the living population. Returns its size."""
        agents = self.world.agents()
        self.selection.evolve(agents)
        return len(agents)

    def inject_stimulus(self, intensity: float) -> None:
        self.metrics.inject_stimulus(intensity)

    # ── real-time loop ───────────────────────────────────────────────────

    async def start(self, interval: float | None = None) -> None:
        if self._running:
            return
        interval = self.config.tick_interval_seconds if interval is None else interval
        self._running = True
        self._task = asyncio.create_task(self._run_loop(interval), name="ecosystem-loop")
        await self._emit("ecosystem.started", {"interval": interval})

    async def stop(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self._emit("ecosystem.stopped", {"tick_count": self.tick_count})

    @property
    def is_running(self) -> bool:
        return self._running

    async def _run_loop(self, interval: float) -> None:
        last = self._clock()
        while self._running:
            now = self._clock()
            try:
                self.tick(now - last)
                self.guard.update_rhythm(now)
            except Exception as e:
                logger.error("ecosystem_tick_failed", tick=self.tick_count, error=str(e))
                await self._emit("ecosystem.error", {"error": str(e)})
            last = now
            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break

    async def _emit(self, topic: str, data: dict[str, Any]) -> None:
        await self.event_bus.emit(topic, data, source="ecosystem")

    def close(self) -> None:
        self.pool.close()
