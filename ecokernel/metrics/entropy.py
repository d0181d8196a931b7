"""Shannon entropy of activity vectors."""

from __future__ import annotations

from typing import Sequence

import numpy as np


def shannon_entropy(values: Sequence[float] | np.ndarray, floor: float = 1e-10) -> float:
    """Entropy in bits of the |x|-normalised distribution. 0 for an empty or silent vector."""
    mags = np.abs(np.asarray(values, dtype=np.float64)).ravel()
    total = mags.sum()
    if total < floor:
        return 0.0
    p = mags / total
    p = p[p > 1e-10]
    return float(-(p * np.log2(p)).sum())
