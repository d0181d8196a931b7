"""The per-agent update pipeline.

An agent tick is an explicit, ordered sequence of phase functions over a
single ``Agent`` record: physics, cognition, emotion, memory, vitals.
Each phase reads only what earlier phases (and earlier ticks) wrote, so
the order in ``PIPELINE`` is the contract.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from ecokernel.metrics.entropy import shannon_entropy
from ecokernel.types import EmotionType
from ecokernel.world.agent import (
    ATTENTION_SIZE,
    EMOTION_BLOCK,
    EPISODE_SIZE,
    Agent,
    Episode,
)

Phase = Callable[[Agent, float], None]

ANGULAR_DAMPING = 0.99
ATTENTION_BLEND = 0.1
WORKING_MEMORY_BLEND = 0.05
EMOTION_BLEND = 0.2
COARSE_BLEND = 0.05
MEMORY_THRESHOLD = 0.5
MEMORY_RATE = 0.1
ENERGY_COST = 0.001
ENERGY_GAIN = 0.002
ENERGY_GAIN_THRESHOLD = 0.7
STARVATION = 0.1
HEALTH_LOSS = 0.001
HEALTH_GAIN = 0.0001

_E = list(EmotionType)


def physics_phase(agent: Agent, dt: float) -> None:
    ph = agent.physics
    acceleration = ph.force / agent.mass
    ph.angular_velocity += ph.torque / agent.mass * dt
    ph.angular_velocity *= ANGULAR_DAMPING
    ph.force[:] = 0.0
    ph.torque[:] = 0.0

    agent.velocity += acceleration * dt
    agent.position += agent.velocity * dt


def cognition_phase(agent: Agent, dt: float) -> None:
    cog = agent.cognition
    sensed = agent.sensors.combined()[:ATTENTION_SIZE]
    n = sensed.size
    cog.attention[:n] = (1 - ATTENTION_BLEND) * cog.attention[:n] + ATTENTION_BLEND * sensed

    half = ATTENTION_SIZE
    wm = cog.working_memory
    wm[:half] = (1 - WORKING_MEMORY_BLEND) * wm[:half] + WORKING_MEMORY_BLEND * cog.attention
    wm[half:] = (1 - WORKING_MEMORY_BLEND) * wm[half:] + WORKING_MEMORY_BLEND * cog.attention


def emotion_phase(agent: Agent, dt: float) -> None:
    emo = agent.emotion
    cog = agent.cognition
    half = ATTENTION_SIZE
    vec = emo.vector
    vec[:half] = (1 - EMOTION_BLEND) * vec[:half] + EMOTION_BLEND * cog.attention
    vec[half:] = (1 - EMOTION_BLEND) * vec[half:] + EMOTION_BLEND * cog.working_memory[:half]

    blocks = np.abs(vec).reshape(-1, EMOTION_BLOCK).mean(axis=1)
    emo.coarse[:] = (1 - COARSE_BLEND) * emo.coarse + COARSE_BLEND * blocks
    _derive_axes(agent)

    if np.abs(vec).sum() < 1e-8:
        emo.kaif = 0.0
        return
    entropy = shannon_entropy(vec, floor=1e-8)
    if dt > 0:
        emo.kaif = abs((entropy - emo.previous_entropy) / dt)
    emo.previous_entropy = entropy


def _derive_axes(agent: Agent) -> None:
    c = dict(zip(_E, agent.emotion.coarse.tolist()))
    emo = agent.emotion
    emo.valence = (
        (c[EmotionType.JOY] + c[EmotionType.CURIOSITY] + c[EmotionType.PEACE]) / 3
        - (c[EmotionType.SADNESS] + c[EmotionType.ANGER] + c[EmotionType.FEAR] + c[EmotionType.DISGUST]) / 4
    )
    emo.arousal = (
        c[EmotionType.ANGER] + c[EmotionType.FEAR] + c[EmotionType.SURPRISE] + c[EmotionType.JOY]
    ) / 4
    emo.dominance = (
        (c[EmotionType.ANGER] + c[EmotionType.CURIOSITY] + c[EmotionType.JOY]) / 3
        - (c[EmotionType.FEAR] + c[EmotionType.SADNESS]) / 2
    )


def memory_phase(agent: Agent, dt: float) -> None:
    importance = agent.emotion.kaif
    if importance <= MEMORY_THRESHOLD:
        return
    snapshot = np.zeros(EPISODE_SIZE)
    parts = np.concatenate([agent.cognition.attention[:32], agent.emotion.coarse])
    snapshot[: parts.size] = parts
    store_episode(agent, snapshot, importance)


def store_episode(agent: Agent, snapshot: np.ndarray, importance: float) -> None:
    """Consolidate a snapshot into long-term memory and the episode ring."""
    mem = agent.memory
    rate = MEMORY_RATE * importance
    start = (mem.write_count % 4) * EPISODE_SIZE
    region = mem.long_term[start:start + EPISODE_SIZE]
    region[:] = (1 - rate) * region + rate * snapshot
    mem.episodes.append(Episode(snapshot=snapshot, importance=importance))
    mem.write_count += 1


def vitals_phase(agent: Agent, dt: float) -> None:
    kaif = agent.emotion.kaif
    agent.energy -= ENERGY_COST * dt
    if kaif > ENERGY_GAIN_THRESHOLD:
        agent.energy += ENERGY_GAIN * dt * kaif
    agent.energy = min(max(agent.energy, 0.0), 1.0)

    if agent.energy < STARVATION:
        agent.health -= HEALTH_LOSS * dt
    else:
        agent.health += HEALTH_GAIN * dt
    agent.health = min(max(agent.health, 0.0), 1.0)


PIPELINE: tuple[tuple[str, Phase], ...] = (
    ("physics", physics_phase),
    ("cognition", cognition_phase),
    ("emotion", emotion_phase),
    ("memory", memory_phase),
    ("vitals", vitals_phase),
)


def run_pipeline(
    agent: Agent, dt: float, pipeline: tuple[tuple[str, Phase], ...] = PIPELINE,
) -> None:
    agent.age += 1
    for _name, phase in pipeline:
        phase(agent, dt)
