"""Entity records — the fixed-layout memory cells held by the pool.

A record is 256 bytes when packed: one base byte, four (tag, strength)
pairs, the noise scalar, the four relaxation fields and a 57-float
semantic vector. Inside the pool records live column-wise; this module
holds the enums, constants and the read-only snapshot type.
"""

from __future__ import annotations

import struct
from enum import Enum

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

SEMANTIC_SIZE = 57
MAX_TAGS = 4
NORM_CAP = 10.0
RECORD_BYTES = 256


class BaseType(int, Enum):
    ADENINE = ord("A")  # memory
    THYMINE = ord("T")  # time
    GUANINE = ord("G")  # generation
    CYTOSINE = ord("C")  # links

    @property
    def char(self) -> str:
        return chr(self.value)


class TagKind(int, Enum):
    METHYLATION = ord("M")  # suppresses
    ACETYLATION = ord("A")  # activates
    PHOSPHORYLATION = ord("P")  # signals
    UBIQUITINATION = ord("U")  # degrades


class RelaxationState(BaseModel):
    compaction: float = 0.5
    accessibility: float = 0.5
    stability: float = 0.8
    modification_count: int = 0


class EntityRecord(BaseModel):
    """Snapshot of one cell, copied out of the pool."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int = 0
    base: BaseType = BaseType.ADENINE
    tags: list[tuple[TagKind, float]] = Field(default_factory=list)
    noise: float = 0.0
    relaxation: RelaxationState = Field(default_factory=RelaxationState)
    semantic: np.ndarray = Field(default_factory=lambda: np.zeros(SEMANTIC_SIZE))
    energy: float = 1.0
    creation_tick: int = 0
    last_access_tick: int = 0
    access_count: int = 0

    def similarity(self, other: EntityRecord) -> float:
        return cosine(self.semantic, other.semantic)

    def to_bytes(self) -> bytes:
        """Pack into the 256-byte wire layout."""
        data = bytearray(RECORD_BYTES)
        data[0] = int(self.base)
        for i, (kind, strength) in enumerate(self.tags[:MAX_TAGS]):
            data[1 + i * 2] = int(kind)
            data[2 + i * 2] = int(max(0.0, min(strength, 1.0)) * 255)
        rel = self.relaxation
        struct.pack_into(
            "<5f", data, 9,
            self.noise, rel.compaction, rel.accessibility, rel.stability,
            float(rel.modification_count),
        )
        # 57 floats starting at byte 29 overrun 256 by one slot; the last is dropped
        fits = (RECORD_BYTES - 29) // 4
        struct.pack_into(f"<{fits}f", data, 29, *self.semantic[:fits].tolist())
        return bytes(data)


def cosine(a: np.ndarray, b: np.ndarray) -> float:
    norm = float(np.sqrt(np.dot(a, a) * np.dot(b, b)))
    if norm < 1e-6:
        return 0.0
    return float(np.dot(a, b) / norm)


def fit_vector(values, size: int = SEMANTIC_SIZE) -> np.ndarray:
    """Pad with zeros or truncate to ``size``."""
    out = np.zeros(size)
    arr = np.asarray(values, dtype=np.float64).ravel()[:size]
    out[: arr.size] = arr
    return out
