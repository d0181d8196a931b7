"""Metric Engine — turns entropy change across subsystems into one scalar.

Each registered component is a weighted activity vector. Every tick the
engine compares each component's current and previous Shannon entropy,
takes the absolute rate of change, and averages those rates by weight.
The result is smoothed, tracked over a rolling window, and classified
into one of five ordered states.
"""

from __future__ import annotations

from collections import deque
from typing import Sequence

import numpy as np
from pydantic import BaseModel

from ecokernel.metrics.entropy import shannon_entropy
from ecokernel.types import MetricState, Trend, make_rng

SMOOTHING = 0.1
HISTORY_SIZE = 100
TREND_WINDOW = 10
TREND_THRESHOLD = 0.1


class MetricSnapshot(BaseModel):
    instant: float
    smoothed: float
    max_ever: float
    average: float
    variance: float
    state: MetricState
    trend: Trend
    update_count: int


class _Component:
    __slots__ = ("current", "previous", "weight")

    def __init__(self, initial: np.ndarray, weight: float):
        self.current = initial
        self.previous = initial.copy()
        self.weight = weight


class MetricEngine:
    """Weighted entropy-derivative aggregator.

    Usage:
        engine = MetricEngine(seed=1)
        engine.register_component("cells", [0.0] * 64, weight=0.3)
        engine.update_component("cells", sample)
        engine.update(dt)
        engine.value, engine.state
    """

    def __init__(self, smoothing: float = SMOOTHING, seed: int | np.random.Generator | None = None):
        self.smoothing = smoothing
        self.instant = 0.0
        self.smoothed = 0.0
        self.max_ever = 0.0
        self.average = 0.0
        self.variance = 0.0
        self.state = MetricState.CALM  # until the first update
        self.update_count = 0
        self._history: deque[float] = deque(maxlen=HISTORY_SIZE)
        self._components: dict[str, _Component] = {}
        self._rng = make_rng(seed)

    # ── components ───────────────────────────────────────────────────────

    def register_component(self, name: str, initial: Sequence[float], weight: float = 1.0) -> None:
        """Track a new component. Re-registering a name keeps the existing one."""
        if name in self._components:
            return
        self._components[name] = _Component(np.asarray(initial, dtype=np.float64).copy(), float(weight))

    def update_component(self, name: str, values: Sequence[float]) -> None:
        comp = self._components.get(name)
        if comp is None:
            return
        comp.previous = comp.current
        comp.current = np.asarray(values, dtype=np.float64).copy()

    def component(self, name: str) -> tuple[np.ndarray, np.ndarray] | None:
        """(current, previous) copies for a component, if registered."""
        comp = self._components.get(name)
        if comp is None:
            return None
        return comp.current.copy(), comp.previous.copy()

    @property
    def component_names(self) -> list[str]:
        return list(self._components)

    # ── computation ──────────────────────────────────────────────────────

    def compute_total(self, dt: float) -> float:
        if dt <= 0 or not self._components:
            return 0.0

        total = 0.0
        total_weight = 0.0
        for comp in self._components.values():
            rate = (shannon_entropy(comp.current) - shannon_entropy(comp.previous)) / dt
            total += abs(rate) * comp.weight
            total_weight += comp.weight

        if total_weight <= 0:
            return 0.0
        return total / total_weight

    def update(self, dt: float) -> float:
        """Fold one tick's instantaneous value into the running statistics."""
        self.update_count += 1
        value = self.compute_total(dt)

        self.instant = value
        self.smoothed = (1.0 - self.smoothing) * self.smoothed + self.smoothing * value
        self.max_ever = max(self.max_ever, value)

        self._history.append(value)
        samples = np.fromiter(self._history, dtype=np.float64)
        self.average = float(samples.mean())
        self.variance = float(((samples - self.average) ** 2).mean())

        self.state = MetricState.from_value(self.smoothed)
        return self.smoothed

    def trend(self) -> Trend:
        history = list(self._history)
        if len(history) < TREND_WINDOW:
            return Trend.STABLE

        recent = sum(history[-TREND_WINDOW:]) / TREND_WINDOW
        if len(history) >= 2 * TREND_WINDOW:
            older = sum(history[-2 * TREND_WINDOW:-TREND_WINDOW]) / TREND_WINDOW
        else:
            older = self.average

        diff = recent - older
        if diff > TREND_THRESHOLD:
            return Trend.RISING
        if diff < -TREND_THRESHOLD:
            return Trend.FALLING
        return Trend.STABLE

    def inject_stimulus(self, intensity: float) -> None:
        """Jolt every component's current vector with bounded uniform noise."""
        if intensity <= 0:
            return
        for comp in self._components.values():
            comp.current = comp.current + self._rng.uniform(-intensity, intensity, size=comp.current.shape) * 0.5

    @property
    def value(self) -> float:
        return self.smoothed

    @property
    def history(self) -> list[float]:
        return list(self._history)

    def snapshot(self) -> MetricSnapshot:
        return MetricSnapshot(
            instant=self.instant,
            smoothed=self.smoothed,
            max_ever=self.max_ever,
            average=self.average,
            variance=self.variance,
            state=self.state,
            trend=self.trend(),
            update_count=self.update_count,
        )
