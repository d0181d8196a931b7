"""Agent — a composite organism as one plain data record.

All behaviour lives in ``ecokernel.world.pipeline``; this module only
describes the state an agent carries and a few accessors over it.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import numpy as np

from ecokernel.evolution.genome import Genome
from ecokernel.types import EMOTIONS, AgentHandle, EmotionType

ATTENTION_SIZE = 128
WORKING_MEMORY_SIZE = 256
EMOTION_SIZE = 256
EMOTION_BLOCK = EMOTION_SIZE // len(EMOTIONS)
EPISODE_SIZE = 64
EPISODE_CAPACITY = 16
LONG_TERM_SIZE = 256


def _zeros(*shape: int):
    return lambda: np.zeros(shape)


@dataclass
class Sensors:
    visual: np.ndarray = field(default_factory=_zeros(32, 3))  # 32 directions x RGB
    audio: np.ndarray = field(default_factory=_zeros(64))  # frequency bands
    tactile: np.ndarray = field(default_factory=_zeros(6, 16))  # 6 faces x 16 points
    chemical: np.ndarray = field(default_factory=_zeros(32))
    thermal: np.ndarray = field(default_factory=_zeros(8))

    def combined(self) -> np.ndarray:
        return np.concatenate([
            self.visual.ravel(),
            self.audio,
            self.tactile.ravel(),
            self.chemical,
            self.thermal,
        ])

    def perception(self) -> tuple[float, float, float]:
        """Mean magnitude of the visual, auditory and tactile channels."""
        return (
            float(np.abs(self.visual).mean()),
            float(np.abs(self.audio).mean()),
            float(np.abs(self.tactile).mean()),
        )


@dataclass
class Physics:
    angular_velocity: np.ndarray = field(default_factory=_zeros(3))
    orientation: np.ndarray = field(default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))
    force: np.ndarray = field(default_factory=_zeros(3))
    torque: np.ndarray = field(default_factory=_zeros(3))
    elasticity: float = 0.5
    friction: float = 0.3

    def apply_force(self, force, torque=None) -> None:
        self.force += np.asarray(force, dtype=np.float64)
        if torque is not None:
            self.torque += np.asarray(torque, dtype=np.float64)


@dataclass
class Cognition:
    attention: np.ndarray = field(default_factory=_zeros(ATTENTION_SIZE))
    working_memory: np.ndarray = field(default_factory=_zeros(WORKING_MEMORY_SIZE))
    processing_depth: int = 0


@dataclass
class Emotion:
    coarse: np.ndarray = field(default_factory=lambda: np.full(len(EMOTIONS), 0.5))
    vector: np.ndarray = field(default_factory=_zeros(EMOTION_SIZE))
    kaif: float = 0.0
    previous_entropy: float = 0.0
    valence: float = 0.0
    arousal: float = 0.0
    dominance: float = 0.0

    def level(self, emotion: EmotionType) -> float:
        return float(self.coarse[EMOTIONS.index(emotion)])

    def dominant(self) -> tuple[EmotionType, float]:
        i = int(np.argmax(self.coarse))
        return EMOTIONS[i], float(self.coarse[i])

    @property
    def axes(self) -> tuple[float, float, float]:
        return self.valence, self.arousal, self.dominance


@dataclass
class Episode:
    snapshot: np.ndarray
    importance: float


@dataclass
class EpisodicMemory:
    long_term: np.ndarray = field(default_factory=_zeros(LONG_TERM_SIZE))
    episodes: deque[Episode] = field(default_factory=lambda: deque(maxlen=EPISODE_CAPACITY))
    write_count: int = 0

    def recall(self, query) -> Episode | None:
        """Episode with the largest dot product against ``query``."""
        if not self.episodes:
            return None
        q = np.zeros(EPISODE_SIZE)
        arr = np.asarray(query, dtype=np.float64).ravel()[:EPISODE_SIZE]
        q[: arr.size] = arr
        return max(self.episodes, key=lambda ep: float(np.dot(q, ep.snapshot)))


@dataclass
class Agent:
    handle: AgentHandle = 0
    position: np.ndarray = field(default_factory=_zeros(3))
    velocity: np.ndarray = field(default_factory=_zeros(3))
    mass: float = 1.0
    temperature: float = 300.0
    age: int = 0
    health: float = 1.0
    energy: float = 1.0
    state: int = 0  # 0=normal, 1=active, 2=dormant
    resonance: float = 0.0
    sensors: Sensors = field(default_factory=Sensors)
    physics: Physics = field(default_factory=Physics)
    cognition: Cognition = field(default_factory=Cognition)
    emotion: Emotion = field(default_factory=Emotion)
    memory: EpisodicMemory = field(default_factory=EpisodicMemory)
    genome: Genome = field(default_factory=Genome)

    @property
    def kaif(self) -> float:
        return self.emotion.kaif

    @property
    def is_alive(self) -> bool:
        return self.health > 0.0
