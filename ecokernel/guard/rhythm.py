"""Phase oscillator for slow periodic rhythms."""

from __future__ import annotations


class RhythmDetector:
    """Tracks phase in [0, 1) of a fixed-frequency rhythm.

    The first ``update`` only seeds the clock; later calls advance the
    phase by elapsed / period.
    """

    def __init__(self, frequency: float = 0.038):
        self.frequency = frequency
        self.period = 1.0 / frequency
        self.phase = 0.0
        self._last: float | None = None

    def update(self, timestamp: float) -> None:
        if self._last is not None:
            self.phase = (self.phase + (timestamp - self._last) / self.period) % 1.0
        self._last = timestamp
