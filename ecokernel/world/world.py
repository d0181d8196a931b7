"""Agent World — the capacity-bounded population of organisms.

Agents are spawned into an arena, ticked one at a time through the
phase pipeline, and removed for good once their health reaches zero.
When the world is full, spawning evicts the weakest agent first.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np
from pydantic import BaseModel

from ecokernel.exceptions import AgentNotFoundError
from ecokernel.types import EMOTIONS, AgentHandle, EmotionType
from ecokernel.world.agent import Agent, Episode
from ecokernel.world.arena import AgentArena
from ecokernel.world.pipeline import PIPELINE, Phase, run_pipeline

_logger = logging.getLogger(__name__)


class WorldStats(BaseModel):
    tick: int
    agent_count: int
    capacity: int
    total_kaif: float
    mean_kaif: float
    mean_health: float
    mean_energy: float
    total_spawned: int
    total_deaths: int


class AgentWorld:
    """Population of agents with weakest-first eviction.

    Usage:
        world = AgentWorld(capacity=100)
        handle = world.spawn((0.0, 0.0, 0.0))
        world.stimulate(handle, audio=signal)
        world.update(dt=1 / 60)
    """

    def __init__(
        self,
        capacity: int = 1000,
        pipeline: tuple[tuple[str, Phase], ...] = PIPELINE,
    ):
        self.capacity = max(int(capacity), 1)
        self.pipeline = pipeline
        self.current_tick = 0
        self.total_kaif = 0.0
        self.mean_kaif = 0.0
        self.mean_health = 0.0
        self.mean_energy = 0.0
        self.total_spawned = 0
        self.total_deaths = 0
        self._arena = AgentArena()
        self._next_handle: AgentHandle = 0

    # ── population ───────────────────────────────────────────────────────

    def spawn(self, position: Sequence[float] = (0.0, 0.0, 0.0)) -> AgentHandle:
        """Insert a fresh agent, evicting the lowest-health one if full."""
        if len(self._arena) >= self.capacity:
            weakest = min(self._arena, key=lambda a: a.health)
            self._arena.remove(weakest.handle)
            _logger.debug("Evicted agent %d (health %.3f)", weakest.handle, weakest.health)

        handle = self._next_handle
        self._next_handle += 1
        agent = Agent(handle=handle, position=np.asarray(position, dtype=np.float64).copy())
        self._arena.insert(agent)
        self.total_spawned += 1
        self._refresh_means()
        return handle

    def remove(self, handle: AgentHandle) -> Agent | None:
        agent = self._arena.remove(handle)
        self._refresh_means()
        return agent

    def get(self, handle: AgentHandle) -> Agent:
        agent = self._arena.get(handle)
        if agent is None:
            raise AgentNotFoundError(f"No agent with handle {handle}")
        return agent

    def agents(self) -> list[Agent]:
        return list(self._arena)

    @property
    def count(self) -> int:
        return len(self._arena)

    def __contains__(self, handle: object) -> bool:
        return handle in self._arena

    # ── tick ─────────────────────────────────────────────────────────────

    def update(self, dt: float) -> None:
        """Reap the dead, then run every survivor through the pipeline."""
        dt = max(float(dt), 0.0)
        self.current_tick += 1

        dead = [a.handle for a in self._arena if not a.is_alive]
        for handle in dead:
            self._arena.remove(handle)
        if dead:
            self.total_deaths += len(dead)
            _logger.debug("Removed %d dead agents at tick %d", len(dead), self.current_tick)

        for agent in self._arena:
            run_pipeline(agent, dt, self.pipeline)

        self._refresh_means()

    def _refresh_means(self) -> None:
        agents = list(self._arena)
        if not agents:
            self.total_kaif = self.mean_kaif = 0.0
            self.mean_health = self.mean_energy = 0.0
            return
        n = len(agents)
        self.total_kaif = sum(a.emotion.kaif for a in agents)
        self.mean_kaif = self.total_kaif / n
        self.mean_health = sum(a.health for a in agents) / n
        self.mean_energy = sum(a.energy for a in agents) / n

    # ── interaction ──────────────────────────────────────────────────────

    def stimulate(self, handle: AgentHandle, **channels: Any) -> None:
        """Overwrite sensor channels: visual, audio, tactile, chemical, thermal."""
        sensors = self.get(handle).sensors
        for name, values in channels.items():
            current = getattr(sensors, name, None)
            if not isinstance(current, np.ndarray):
                raise ValueError(f"Unknown sensor channel: {name}")
            flat = np.zeros(current.size)
            arr = np.asarray(values, dtype=np.float64).ravel()[: current.size]
            flat[: arr.size] = arr
            setattr(sensors, name, flat.reshape(current.shape))

    def apply_force(
        self, handle: AgentHandle, force: Sequence[float], torque: Sequence[float] | None = None,
    ) -> None:
        self.get(handle).physics.apply_force(force, torque)

    def recall(self, handle: AgentHandle, query: Sequence[float]) -> Episode | None:
        return self.get(handle).memory.recall(query)

    # ── views ────────────────────────────────────────────────────────────

    def emotion_distribution(self) -> list[float]:
        agents = list(self._arena)
        if not agents:
            return [0.5] * len(EMOTIONS)
        return np.mean([a.emotion.coarse for a in agents], axis=0).tolist()

    def dominant_emotion(self) -> tuple[EmotionType, float]:
        dist = self.emotion_distribution()
        i = int(np.argmax(dist))
        return EMOTIONS[i], dist[i]

    def kaif_sample(self, count: int) -> list[float]:
        return [a.emotion.kaif for a in list(self._arena)[:count]]

    def emotion_sample(self, count: int) -> list[float]:
        out: list[float] = []
        for agent in list(self._arena)[:count]:
            out.extend(agent.emotion.coarse.tolist())
        return out

    def stats(self) -> WorldStats:
        return WorldStats(
            tick=self.current_tick,
            agent_count=self.count,
            capacity=self.capacity,
            total_kaif=self.total_kaif,
            mean_kaif=self.mean_kaif,
            mean_health=self.mean_health,
            mean_energy=self.mean_energy,
            total_spawned=self.total_spawned,
            total_deaths=self.total_deaths,
        )
