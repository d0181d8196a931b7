"""Resilience Guard — circuit breaker and metrics around fallible calls.

Wrap any async operation with ``execute``. Consecutive failures trip the
breaker; while it is open calls are rejected without running. Once the
reset timeout has passed since the last failure the next caller clears
the breaker and goes through, whatever the outcome.

The reset is optimistic: several callers arriving together after the
cooldown may all pass before the first result comes back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, TypeVar

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from ecokernel.exceptions import CircuitOpenError
from ecokernel.guard.rhythm import RhythmDetector

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResilienceGuard:
    """Circuit breaker with a Prometheus registry.

    Usage:
        guard = ResilienceGuard()
        result = await guard.execute(lambda: client.fetch(url))
    """

    def __init__(
        self,
        failure_threshold: int = 10,
        reset_timeout: float = 30.0,
        rhythm_frequency: float = 0.038,
        namespace: str = "archguard",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock

        self._circuit_open = False
        self._failures = 0
        self._last_failure: float | None = None
        self._ratio = 0.5
        self._lock = asyncio.Lock()

        self.registry = CollectorRegistry()
        self._requests = Counter(
            f"{namespace}_requests", "Total number of requests", registry=self.registry,
        )
        self._errors = Counter(
            f"{namespace}_errors", "Total number of errors", registry=self.registry,
        )
        self._latency = Histogram(
            f"{namespace}_latency_seconds", "Request latency in seconds", registry=self.registry,
        )
        self._ratio_gauge = Gauge(
            f"{namespace}_empathy_ratio", "Empathy ratio (0.0 - 1.0)", registry=self.registry,
        )
        self._ratio_gauge.set(self._ratio)

        self._rhythm = RhythmDetector(rhythm_frequency)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under the breaker. Its own errors propagate unchanged."""
        if self._circuit_open:
            if await self._should_reset():
                self._reset_circuit()
            else:
                raise CircuitOpenError()

        start = self._clock()
        self._requests.inc()
        try:
            result = await operation()
        except Exception:
            self._errors.inc()
            self._failures += 1
            count = self._failures
            async with self._lock:
                self._last_failure = self._clock()
            if count >= self.failure_threshold and not self._circuit_open:
                self._circuit_open = True
                _logger.warning("Circuit opened after %d consecutive failures", count)
            raise

        self._failures = 0
        self._latency.observe(max(self._clock() - start, 0.0))
        return result

    async def _should_reset(self) -> bool:
        async with self._lock:
            last = self._last_failure
        return last is not None and self._clock() - last >= self.reset_timeout

    def _reset_circuit(self) -> None:
        self._circuit_open = False
        self._failures = 0
        _logger.info("Circuit reset after %.1fs cooldown", self.reset_timeout)

    def is_circuit_open(self) -> bool:
        return self._circuit_open

    @property
    def failure_count(self) -> int:
        return self._failures

    # ── ratio ────────────────────────────────────────────────────────────

    async def set_ratio(self, ratio: float) -> None:
        clamped = min(max(float(ratio), 0.0), 1.0)
        async with self._lock:
            self._ratio = clamped
        self._ratio_gauge.set(clamped)

    async def get_ratio(self) -> float:
        async with self._lock:
            return self._ratio

    # ── rhythm ───────────────────────────────────────────────────────────

    def update_rhythm(self, timestamp: float) -> None:
        self._rhythm.update(timestamp)

    @property
    def rhythm_phase(self) -> float:
        return self._rhythm.phase
