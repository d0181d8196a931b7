"""Core types shared across all ecokernel subsystems."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import TypeAlias

import numpy as np

# ── ID Types ──────────────────────────────────────────────────────────────────

AgentHandle: TypeAlias = int
PatternId: TypeAlias = int


def make_rng(seed: int | np.random.Generator | None = None) -> np.random.Generator:
    """Return a numpy Generator, passing an existing one through untouched."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


# ── Metric States ─────────────────────────────────────────────────────────────


class MetricState(str, Enum):
    DORMANT = "dormant"
    CALM = "calm"
    ACTIVE = "active"
    EXCITED = "excited"
    ECSTATIC = "ecstatic"

    @classmethod
    def from_value(cls, value: float) -> MetricState:
        if value < 0.1:
            return cls.DORMANT
        if value < 0.3:
            return cls.CALM
        if value < 0.6:
            return cls.ACTIVE
        if value < 0.8:
            return cls.EXCITED
        return cls.ECSTATIC

    @property
    def color(self) -> tuple[int, int, int]:
        return _STATE_COLORS[self]


_STATE_COLORS: dict[MetricState, tuple[int, int, int]] = {
    MetricState.DORMANT: (60, 60, 80),
    MetricState.CALM: (100, 150, 200),
    MetricState.ACTIVE: (150, 200, 100),
    MetricState.EXCITED: (255, 180, 50),
    MetricState.ECSTATIC: (255, 100, 200),
}


class Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


# ── Emotions ──────────────────────────────────────────────────────────────────


class EmotionType(str, Enum):
    JOY = "joy"
    SADNESS = "sadness"
    ANGER = "anger"
    FEAR = "fear"
    SURPRISE = "surprise"
    DISGUST = "disgust"
    CURIOSITY = "curiosity"
    PEACE = "peace"


EMOTIONS: tuple[EmotionType, ...] = tuple(EmotionType)


def new_id() -> str:
    return uuid.uuid4().hex[:12]
