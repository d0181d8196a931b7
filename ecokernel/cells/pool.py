"""Cell Pool — a fixed-size population of memory cells updated in parallel.

The pool stores every record column-wise in numpy arrays and fans each
bulk operation out over contiguous chunks on a thread pool. Chunks never
share rows, so there is no locking: every call returns only after each
record has been touched exactly once.

Randomness is chunk-local. Each tick spawns one child generator per chunk
from the pool's SeedSequence, so a seeded pool evolves identically no
matter how many workers run the chunks.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Sequence

import numpy as np
from pydantic import BaseModel

from ecokernel.cells.record import (
    MAX_TAGS,
    NORM_CAP,
    SEMANTIC_SIZE,
    BaseType,
    EntityRecord,
    RelaxationState,
    TagKind,
    fit_vector,
)

_logger = logging.getLogger(__name__)

_BASE_CODES = np.array([int(b) for b in BaseType], dtype=np.uint8)
_KIND_CODES = np.array([int(k) for k in TagKind], dtype=np.uint8)
_SLOTS = np.arange(MAX_TAGS)

NOISE_AMPLITUDE = 0.1
ENERGY_DECAY = 0.001
ENERGY_FLOOR = 0.1
TAG_DECAY = 0.01
TAG_MIN_WEIGHT = 0.01
TAG_RATE = 0.001
RELAX_RATE = 0.1
STABILITY_GAIN = 0.0001
LEARNING_RATE = 0.01


def _last_weight(mask: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weight of the highest-index slot set in each row of ``mask``, else 0."""
    last = MAX_TAGS - 1 - np.argmax(mask[:, ::-1], axis=1)
    picked = np.take_along_axis(weights, last[:, None], axis=1)[:, 0]
    return np.where(mask.any(axis=1), picked, 0.0)


class PoolStats(BaseModel):
    size: int
    current_tick: int
    total_updates: int
    mean_energy: float
    mean_noise: float


class EntityPool:
    """Fixed-capacity pool of entity records.

    Usage:
        pool = EntityPool(10_000, seed=7)
        pool.initialize()
        pool.update_all(dt=1 / 60)
        hits = pool.find_similar(query_vector, k=5)
    """

    def __init__(
        self,
        size: int,
        seed: int | None = None,
        workers: int = 0,
        chunk_size: int = 1024,
    ):
        self.size = max(int(size), 0)
        self.chunk_size = max(int(chunk_size), 1)
        self.workers = max(int(workers), 0) or os.cpu_count() or 1
        self.current_tick = 0
        self.total_updates = 0

        self._seed_seq = np.random.SeedSequence(seed)
        self._rng = np.random.default_rng(self._seed_seq.spawn(1)[0])
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="cell-pool",
        )

        n = self.size
        self._base = np.full(n, int(BaseType.ADENINE), dtype=np.uint8)
        self._tag_kind = np.zeros((n, MAX_TAGS), dtype=np.uint8)
        self._tag_weight = np.zeros((n, MAX_TAGS))
        self._tag_count = np.zeros(n, dtype=np.int64)
        self._noise = np.zeros(n)
        self._compaction = np.full(n, 0.5)
        self._accessibility = np.full(n, 0.5)
        self._stability = np.full(n, 0.8)
        self._mod_count = np.zeros(n, dtype=np.int64)
        self._semantic = np.zeros((n, SEMANTIC_SIZE))
        self._energy = np.ones(n)
        self._creation_tick = np.zeros(n, dtype=np.int64)
        self._last_access = np.zeros(n, dtype=np.int64)
        self._access_count = np.zeros(n, dtype=np.int64)

    # ── lifecycle ────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Fill every slot with a freshly sampled random record."""
        n = self.size
        rng = self._rng
        self._base[:] = _BASE_CODES[rng.integers(0, len(_BASE_CODES), size=n)]
        self._noise[:] = rng.uniform(-1.0, 1.0, size=n)
        self._semantic[:] = rng.normal(0.0, 0.1, size=(n, SEMANTIC_SIZE))
        self._tag_kind[:] = 0
        self._tag_weight[:] = 0.0
        self._tag_count[:] = 0
        self._compaction[:] = 0.5
        self._accessibility[:] = 0.5
        self._stability[:] = 0.8
        self._mod_count[:] = 0
        self._energy[:] = 1.0
        self._creation_tick[:] = self.current_tick
        self._last_access[:] = self.current_tick
        self._access_count[:] = 0
        _logger.info("Initialized cell pool with %d records", n)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> EntityPool:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ── bulk operations ──────────────────────────────────────────────────

    def update_all(self, dt: float) -> None:
        """Advance every record by one tick."""
        dt = max(float(dt), 0.0)
        tick = self.current_tick
        self.current_tick += 1
        chunks = self._chunks()
        seeds = self._seed_seq.spawn(len(chunks))
        self._fan_out(
            lambda job: self._update_chunk(job[0], job[1], dt, tick),
            [(bounds, np.random.default_rng(s)) for bounds, s in zip(chunks, seeds)],
        )
        self.total_updates += self.size

    def integrate_experience_all(self, experience: Sequence[float], dt: float) -> None:
        """Pull every semantic vector toward ``experience``."""
        dt = max(float(dt), 0.0)
        exp = np.asarray(experience, dtype=np.float64).ravel()[:SEMANTIC_SIZE]
        self._fan_out(lambda b: self._integrate_chunk(b, exp, dt), self._chunks())

    def find_similar(self, query: Sequence[float], k: int) -> list[tuple[int, float]]:
        """Top-k records by cosine similarity, as (index, similarity) pairs."""
        if k <= 0 or self.size == 0:
            return []
        q = fit_vector(query)
        qq = float(np.dot(q, q))
        parts = self._fan_out(lambda b: self._similarity_chunk(b, q, qq), self._chunks())
        sims = np.concatenate(parts)
        order = np.argsort(-sims, kind="stable")[:k]
        return [(int(i), float(sims[i])) for i in order]

    # ── single-record access ─────────────────────────────────────────────

    def add_tag(self, index: int, kind: TagKind, strength: float) -> bool:
        """Attach a tag to one record. False when the record is full or absent."""
        if not 0 <= index < self.size or self._tag_count[index] >= MAX_TAGS:
            return False
        slot = self._tag_count[index]
        self._tag_kind[index, slot] = int(kind)
        self._tag_weight[index, slot] = min(float(strength), 1.0)
        self._tag_count[index] += 1
        self._mod_count[index] += 1
        self._touch(index)
        return True

    def record(self, index: int) -> EntityRecord:
        """Copy one record out of the pool."""
        if not 0 <= index < self.size:
            raise IndexError(f"record {index} outside pool of {self.size}")
        count = int(self._tag_count[index])
        return EntityRecord(
            index=index,
            base=BaseType(int(self._base[index])),
            tags=[
                (TagKind(int(self._tag_kind[index, i])), float(self._tag_weight[index, i]))
                for i in range(count)
            ],
            noise=float(self._noise[index]),
            relaxation=RelaxationState(
                compaction=float(self._compaction[index]),
                accessibility=float(self._accessibility[index]),
                stability=float(self._stability[index]),
                modification_count=int(self._mod_count[index]),
            ),
            semantic=self._semantic[index].copy(),
            energy=float(self._energy[index]),
            creation_tick=int(self._creation_tick[index]),
            last_access_tick=int(self._last_access[index]),
            access_count=int(self._access_count[index]),
        )

    def semantic_sample(self, count: int, component: int = 0) -> list[float]:
        """One semantic component from each of the first ``count`` records."""
        return self._semantic[: max(count, 0), component].tolist()

    @property
    def semantic_norms(self) -> np.ndarray:
        return np.linalg.norm(self._semantic, axis=1)

    def statistics(self) -> PoolStats:
        n = self.size
        return PoolStats(
            size=n,
            current_tick=self.current_tick,
            total_updates=self.total_updates,
            mean_energy=float(self._energy.mean()) if n else 0.0,
            mean_noise=float(np.abs(self._noise).mean()) if n else 0.0,
        )

    # ── chunk kernels ────────────────────────────────────────────────────

    def _update_chunk(
        self, bounds: tuple[int, int], rng: np.random.Generator, dt: float, tick: int,
    ) -> None:
        s = slice(*bounds)
        n = bounds[1] - bounds[0]

        self._noise[s] = rng.uniform(-NOISE_AMPLITUDE, NOISE_AMPLITUDE, size=n) * self._accessibility[s]
        self._energy[s] = np.maximum(self._energy[s] * max(1.0 - ENERGY_DECAY * dt, 0.0), ENERGY_FLOOR)

        self._age_tags(s, rng, dt)
        self._relax(s, dt)

        self._last_access[s] = tick

    def _age_tags(self, s: slice, rng: np.random.Generator, dt: float) -> None:
        kinds = self._tag_kind[s]
        weights = self._tag_weight[s]
        counts = self._tag_count[s]

        weights *= max(1.0 - TAG_DECAY * dt, 0.0)
        keep = (_SLOTS < counts[:, None]) & (weights >= TAG_MIN_WEIGHT)
        # survivors first, original order preserved
        order = np.argsort(~keep, axis=1, kind="stable")
        kinds[:] = np.take_along_axis(kinds, order, axis=1)
        weights[:] = np.take_along_axis(weights, order, axis=1)
        counts[:] = keep.sum(axis=1)
        weights[_SLOTS >= counts[:, None]] = 0.0

        fresh = (rng.random(counts.size) < TAG_RATE * dt) & (counts < MAX_TAGS)
        rows = np.nonzero(fresh)[0]
        if rows.size:
            slots = counts[rows]
            kinds[rows, slots] = _KIND_CODES[rng.integers(0, len(_KIND_CODES), size=rows.size)]
            weights[rows, slots] = rng.uniform(0.3, 1.0, size=rows.size)
            counts[rows] += 1
            self._mod_count[s][rows] += 1

    def _relax(self, s: slice, dt: float) -> None:
        live = _SLOTS < self._tag_count[s][:, None]
        kinds = self._tag_kind[s]
        weights = self._tag_weight[s]
        methylation = _last_weight(live & (kinds == int(TagKind.METHYLATION)), weights)
        acetylation = _last_weight(live & (kinds == int(TagKind.ACETYLATION)), weights)

        target = 0.5 + 0.3 * methylation - 0.3 * acetylation
        rate = min(RELAX_RATE * dt, 1.0)
        comp = self._compaction[s]
        comp += (target - comp) * rate
        np.clip(comp, 0.0, 1.0, out=comp)
        self._accessibility[s] = 1.0 - comp * 0.8
        self._stability[s] = np.minimum(self._stability[s] + STABILITY_GAIN * dt, 1.0)

    def _integrate_chunk(self, bounds: tuple[int, int], exp: np.ndarray, dt: float) -> None:
        s = slice(*bounds)
        sem = self._semantic[s]
        width = exp.size
        if width:
            rate = LEARNING_RATE * self._accessibility[s] * self._energy[s] * dt
            sem[:, :width] += rate[:, None] * (exp - sem[:, :width])
        norms = np.linalg.norm(sem, axis=1)
        over = norms > NORM_CAP
        if over.any():
            sem[over] *= (NORM_CAP / norms[over])[:, None]

    def _similarity_chunk(self, bounds: tuple[int, int], q: np.ndarray, qq: float) -> np.ndarray:
        sem = self._semantic[slice(*bounds)]
        dots = sem @ q
        norms = np.sqrt(np.einsum("ij,ij->i", sem, sem) * qq)
        small = norms < 1e-6
        return np.where(small, 0.0, dots / np.where(small, 1.0, norms))

    # ── plumbing ─────────────────────────────────────────────────────────

    def _touch(self, index: int) -> None:
        self._last_access[index] = self.current_tick
        self._access_count[index] += 1

    def _chunks(self) -> list[tuple[int, int]]:
        return [
            (start, min(start + self.chunk_size, self.size))
            for start in range(0, self.size, self.chunk_size)
        ]

    def _fan_out(self, fn: Callable[[Any], Any], jobs: list) -> list:
        if len(jobs) <= 1 or self.workers == 1:
            return [fn(job) for job in jobs]
        return list(self._executor.map(fn, jobs))
