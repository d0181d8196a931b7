"""Pattern Cache — a bounded store of reusable lighting feature bundles.

Entries are looked up by cosine similarity over a flattened feature
vector. Every lookup promotes the entries it returns, and when the cache
is full the least-used entry makes room for the newcomer.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from ecokernel.types import PatternId, make_rng

_logger = logging.getLogger(__name__)

LIGHT_SLOTS = 32
SH_COEFFS = 9
FEATURE_SIZE = LIGHT_SLOTS * 3 * 2 + SH_COEFFS * 3 + 2 + 3


def _zeros(*shape: int):
    return lambda: np.zeros(shape)


class MaterialProps(BaseModel):
    roughness: float = 0.5
    metalness: float = 0.0
    albedo: tuple[float, float, float] = (0.8, 0.8, 0.8)
    emission: tuple[float, float, float] = (0.0, 0.0, 0.0)


class PatternEntry(BaseModel):
    """One cached lighting pattern."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: PatternId = 0
    direct_lighting: np.ndarray = Field(default_factory=_zeros(LIGHT_SLOTS, 3))
    indirect_lighting: np.ndarray = Field(default_factory=_zeros(LIGHT_SLOTS, 3))
    sh_coeffs: np.ndarray = Field(default_factory=_zeros(SH_COEFFS, 3))
    material: MaterialProps = Field(default_factory=MaterialProps)
    importance: float = 1.0
    usage_count: int = 0

    @classmethod
    def random(cls, rng: np.random.Generator | int | None = None) -> PatternEntry:
        rng = make_rng(rng)
        return cls(
            direct_lighting=rng.uniform(0.0, 0.5, size=(LIGHT_SLOTS, 3)),
            indirect_lighting=rng.uniform(0.0, 0.2, size=(LIGHT_SLOTS, 3)),
            sh_coeffs=rng.uniform(-0.1, 0.1, size=(SH_COEFFS, 3)),
            material=MaterialProps(
                roughness=float(rng.random()),
                metalness=float(rng.uniform(0.0, 0.5)),
                albedo=tuple(rng.random(3).tolist()),
            ),
            importance=float(rng.random()),
        )

    def features(self) -> np.ndarray:
        """Flatten to direct, indirect, SH, roughness, metalness, albedo."""
        return np.concatenate([
            self.direct_lighting.ravel(),
            self.indirect_lighting.ravel(),
            self.sh_coeffs.ravel(),
            [self.material.roughness, self.material.metalness],
            self.material.albedo,
        ])

    def apply(self) -> tuple[np.ndarray, np.ndarray]:
        """Mean direct and indirect light over all slots."""
        return self.direct_lighting.mean(axis=0), self.indirect_lighting.mean(axis=0)

    def blend(self, other: PatternEntry, weight: float) -> PatternEntry:
        w1, w2 = 1.0 - weight, weight
        return PatternEntry(
            direct_lighting=w1 * self.direct_lighting + w2 * other.direct_lighting,
            indirect_lighting=w1 * self.indirect_lighting + w2 * other.indirect_lighting,
            sh_coeffs=w1 * self.sh_coeffs + w2 * other.sh_coeffs,
            material=MaterialProps(
                roughness=w1 * self.material.roughness + w2 * other.material.roughness,
                metalness=w1 * self.material.metalness + w2 * other.material.metalness,
            ),
        )


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    n = min(a.size, b.size)
    a, b = a[:n], b[:n]
    norm = float(np.sqrt(np.dot(a, a) * np.dot(b, b)))
    if norm < 1e-8:
        return 0.0
    return float(np.dot(a, b) / norm)


class PatternCache:
    """Capacity-bounded pattern store with least-used eviction.

    Usage:
        cache = PatternCache(capacity=1000, seed=3)
        pid = cache.add(PatternEntry.random())
        hits = cache.find_similar(features, k=5)
    """

    def __init__(self, capacity: int = 1000, seed: int | np.random.Generator | None = None):
        self.capacity = max(int(capacity), 1)
        self.total_lookups = 0
        self._entries: list[PatternEntry] = []
        self._next_id: PatternId = 0
        self._rng = make_rng(seed)

    def add(self, pattern: PatternEntry) -> PatternId:
        """Store a pattern, evicting the least-used one if full."""
        if len(self._entries) >= self.capacity:
            victim = min(range(len(self._entries)), key=lambda i: self._entries[i].usage_count)
            evicted = self._entries.pop(victim)
            _logger.debug("Evicted pattern %d (usage %d)", evicted.id, evicted.usage_count)

        pattern.id = self._next_id
        self._next_id += 1
        self._entries.append(pattern)
        return pattern.id

    def generate_random(self, count: int) -> None:
        for _ in range(count):
            self.add(PatternEntry.random(self._rng))
        _logger.info("Generated %d random patterns", count)

    def find_similar(
        self, features: Sequence[float], k: int,
    ) -> list[tuple[float, PatternEntry]]:
        """Most similar patterns first. Returned entries count as used."""
        self.total_lookups += 1
        query = np.asarray(features, dtype=np.float64).ravel()

        scored = [
            (cosine_similarity(query, entry.features()), i)
            for i, entry in enumerate(self._entries)
        ]
        scored.sort(key=lambda s: s[0], reverse=True)
        top = scored[: max(k, 0)]

        for _, i in top:
            self._entries[i].usage_count += 1
        return [(sim, self._entries[i]) for sim, i in top]

    def get(self, pattern_id: PatternId) -> PatternEntry | None:
        for entry in self._entries:
            if entry.id == pattern_id:
                return entry
        return None

    @property
    def entries(self) -> list[PatternEntry]:
        return list(self._entries)

    @property
    def count(self) -> int:
        return len(self._entries)
