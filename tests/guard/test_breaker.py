"""Tests for the resilience guard."""

import asyncio

import pytest

from ecokernel.exceptions import CircuitOpenError, ExecutionFailedError, GuardError, GuardTimeoutError
from ecokernel.guard.breaker import ResilienceGuard
from ecokernel.guard.rhythm import RhythmDetector


def _failing(calls, exc=None):
    async def op():
        calls.append(1)
        raise exc or ExecutionFailedError("boom")
    return op


async def _ok():
    return "ok"


@pytest.mark.asyncio
async def test_success_passes_result_through(clock):
    guard = ResilienceGuard(clock=clock)
    assert await guard.execute(_ok) == "ok"
    assert guard.registry.get_sample_value("archguard_requests_total") == 1.0
    assert guard.registry.get_sample_value("archguard_errors_total") == 0.0
    assert guard.registry.get_sample_value("archguard_latency_seconds_count") == 1.0


@pytest.mark.asyncio
async def test_operation_error_propagates_unchanged(clock):
    guard = ResilienceGuard(clock=clock)
    err = ValueError("bad input")
    with pytest.raises(ValueError) as info:
        await guard.execute(_failing([], err))
    assert info.value is err
    assert guard.failure_count == 1
    assert guard.registry.get_sample_value("archguard_errors_total") == 1.0


@pytest.mark.asyncio
async def test_opens_after_threshold(clock):
    guard = ResilienceGuard(clock=clock)
    calls = []
    op = _failing(calls)
    for _ in range(10):
        with pytest.raises(ExecutionFailedError):
            await guard.execute(op)
    assert guard.is_circuit_open()

    with pytest.raises(CircuitOpenError):
        await guard.execute(op)
    assert len(calls) == 10
    assert guard.registry.get_sample_value("archguard_requests_total") == 10.0


@pytest.mark.asyncio
async def test_success_resets_failure_count(clock):
    guard = ResilienceGuard(failure_threshold=3, clock=clock)
    op = _failing([])
    for _ in range(2):
        with pytest.raises(ExecutionFailedError):
            await guard.execute(op)
    await guard.execute(_ok)
    assert guard.failure_count == 0
    with pytest.raises(ExecutionFailedError):
        await guard.execute(op)
    assert not guard.is_circuit_open()


@pytest.mark.asyncio
async def test_resets_after_timeout(clock):
    guard = ResilienceGuard(failure_threshold=2, reset_timeout=30.0, clock=clock)
    op = _failing([])
    for _ in range(2):
        with pytest.raises(ExecutionFailedError):
            await guard.execute(op)

    clock.advance(29.0)
    with pytest.raises(CircuitOpenError):
        await guard.execute(_ok)

    clock.advance(1.0)
    assert await guard.execute(_ok) == "ok"
    assert not guard.is_circuit_open()
    assert guard.failure_count == 0


@pytest.mark.asyncio
async def test_failed_probe_counts_from_zero(clock):
    guard = ResilienceGuard(failure_threshold=2, reset_timeout=5.0, clock=clock)
    op = _failing([])
    for _ in range(2):
        with pytest.raises(ExecutionFailedError):
            await guard.execute(op)

    clock.advance(5.0)
    with pytest.raises(ExecutionFailedError):
        await guard.execute(op)
    assert not guard.is_circuit_open()
    assert guard.failure_count == 1


@pytest.mark.asyncio
async def test_in_flight_calls_finish_after_opening(clock):
    guard = ResilienceGuard(failure_threshold=5, clock=clock)
    calls = []

    async def op():
        calls.append(1)
        await asyncio.sleep(0)
        raise ExecutionFailedError("slow boom")

    results = await asyncio.gather(*(guard.execute(op) for _ in range(8)), return_exceptions=True)
    assert all(isinstance(r, ExecutionFailedError) for r in results)
    assert guard.is_circuit_open()
    assert len(calls) == 8


@pytest.mark.asyncio
async def test_ratio_is_clamped(clock):
    guard = ResilienceGuard(clock=clock)
    assert await guard.get_ratio() == 0.5
    assert guard.registry.get_sample_value("archguard_empathy_ratio") == 0.5

    await guard.set_ratio(1.7)
    assert await guard.get_ratio() == 1.0
    await guard.set_ratio(-3)
    assert await guard.get_ratio() == 0.0
    assert guard.registry.get_sample_value("archguard_empathy_ratio") == 0.0


def test_registries_are_independent(clock):
    a = ResilienceGuard(clock=clock)
    b = ResilienceGuard(clock=clock)
    assert a.registry is not b.registry


def test_error_hierarchy():
    err = ExecutionFailedError("disk full")
    assert err.reason == "disk full"
    assert str(err) == "Execution failed: disk full"
    assert isinstance(CircuitOpenError(), GuardError)
    assert isinstance(GuardTimeoutError(), GuardError)


def test_rhythm_first_update_only_seeds():
    rhythm = RhythmDetector(0.038)
    rhythm.update(100.0)
    assert rhythm.phase == 0.0
    rhythm.update(100.0 + 0.5 / 0.038)
    assert rhythm.phase == pytest.approx(0.5)


def test_rhythm_wraps(clock):
    guard = ResilienceGuard(rhythm_frequency=0.5, clock=clock)
    guard.update_rhythm(0.0)
    guard.update_rhythm(5.0)
    assert guard.rhythm_phase == pytest.approx(0.5)
