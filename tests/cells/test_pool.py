"""Tests for the cell pool."""

import numpy as np
import pytest

from ecokernel.cells.pool import EntityPool
from ecokernel.cells.record import MAX_TAGS, NORM_CAP, SEMANTIC_SIZE, BaseType, TagKind


def test_initialize_fills_pool(pool):
    stats = pool.statistics()
    assert stats.size == 256
    assert stats.mean_energy == pytest.approx(1.0)

    rec = pool.record(3)
    assert rec.semantic.shape == (SEMANTIC_SIZE,)
    assert rec.base in BaseType
    assert -1.0 <= rec.noise <= 1.0
    assert rec.tags == []


def test_semantic_vectors_are_small_normals(pool):
    values = np.stack([pool.record(i).semantic for i in range(pool.size)])
    assert abs(values.mean()) < 0.01
    assert values.std() == pytest.approx(0.1, abs=0.01)


def test_update_advances_counters(pool):
    pool.update_all(1 / 60)
    pool.update_all(1 / 60)
    stats = pool.statistics()
    assert stats.current_tick == 2
    assert stats.total_updates == 2 * 256
    assert pool.record(0).last_access_tick == 1


def test_energy_never_drops_below_floor(pool):
    for _ in range(5):
        pool.update_all(1000.0)
    energies = [pool.record(i).energy for i in range(pool.size)]
    assert min(energies) == pytest.approx(0.1)


def test_update_keeps_record_invariants(pool):
    for _ in range(20):
        pool.update_all(5.0)
    for i in range(pool.size):
        rec = pool.record(i)
        assert len(rec.tags) <= MAX_TAGS
        assert all(w >= 0.01 for _, w in rec.tags)
        rel = rec.relaxation
        assert 0.0 <= rel.compaction <= 1.0
        assert rel.accessibility == pytest.approx(1.0 - 0.8 * rel.compaction)
        assert rel.stability <= 1.0
        assert abs(rec.noise) <= 0.1


def test_weak_tag_expires(pool):
    assert pool.add_tag(0, TagKind.METHYLATION, 0.02)
    for _ in range(100):
        pool.update_all(1.0)
    tags = pool.record(0).tags
    assert all(kind != TagKind.METHYLATION or w > 0.05 for kind, w in tags)


def test_methylation_raises_compaction(pool):
    pool.add_tag(10, TagKind.METHYLATION, 1.0)
    pool.add_tag(11, TagKind.ACETYLATION, 1.0)
    pool.update_all(1.0)
    assert pool.record(10).relaxation.compaction > 0.5
    assert pool.record(11).relaxation.compaction < 0.5
    assert pool.record(10).relaxation.accessibility < pool.record(11).relaxation.accessibility


def test_latest_tag_of_each_kind_drives_relaxation(pool):
    pool.add_tag(20, TagKind.METHYLATION, 0.9)
    pool.add_tag(20, TagKind.ACETYLATION, 0.5)
    pool.add_tag(20, TagKind.METHYLATION, 0.2)
    pool._relax(slice(20, 21), 1.0)
    # target 0.5 + 0.3 * 0.2 - 0.3 * 0.5, step 0.1
    assert pool.record(20).relaxation.compaction == pytest.approx(0.5 + (0.41 - 0.5) * 0.1)


def test_untagged_record_relaxes_toward_neutral(pool):
    pool._relax(slice(21, 22), 1.0)
    assert pool.record(21).relaxation.compaction == pytest.approx(0.5)


def test_add_tag_respects_capacity(pool):
    for _ in range(MAX_TAGS):
        assert pool.add_tag(1, TagKind.PHOSPHORYLATION, 2.0)
    assert not pool.add_tag(1, TagKind.PHOSPHORYLATION, 0.5)

    rec = pool.record(1)
    assert len(rec.tags) == MAX_TAGS
    assert all(w == 1.0 for _, w in rec.tags)
    assert rec.relaxation.modification_count == MAX_TAGS
    assert rec.access_count == MAX_TAGS


def test_add_tag_out_of_range_is_noop(pool):
    assert not pool.add_tag(-1, TagKind.METHYLATION, 0.5)
    assert not pool.add_tag(10_000, TagKind.METHYLATION, 0.5)


def test_integrate_experience_caps_norm(pool):
    pool.integrate_experience_all([100.0] * SEMANTIC_SIZE, 1000.0)
    assert pool.semantic_norms.max() <= NORM_CAP + 1e-9


def test_integrate_experience_pulls_toward_input(pool):
    before = pool.record(5).semantic
    pool.integrate_experience_all([1.0, 1.0], 1.0)
    after = pool.record(5).semantic
    assert after[0] > before[0] or before[0] > 1.0
    np.testing.assert_array_equal(after[2:], before[2:])


def test_find_similar_returns_exact_match_first(pool):
    query = pool.record(42).semantic
    hits = pool.find_similar(query, 3)
    assert len(hits) == 3
    assert hits[0][0] == 42
    assert hits[0][1] == pytest.approx(1.0)
    assert hits[0][1] >= hits[1][1] >= hits[2][1]


def test_find_similar_pads_short_query(pool):
    hits = pool.find_similar([1.0], 5)
    assert len(hits) == 5
    assert all(-1.0 <= s <= 1.0 for _, s in hits)


def test_find_similar_zero_query_breaks_ties_by_index(pool):
    hits = pool.find_similar([0.0] * SEMANTIC_SIZE, 4)
    assert hits == [(0, 0.0), (1, 0.0), (2, 0.0), (3, 0.0)]


def test_find_similar_empty_requests(pool):
    assert pool.find_similar([1.0] * SEMANTIC_SIZE, 0) == []
    empty = EntityPool(0, seed=1)
    empty.initialize()
    assert empty.find_similar([1.0], 3) == []
    empty.close()


def test_results_independent_of_worker_count():
    serial = EntityPool(300, seed=11, workers=1, chunk_size=50)
    parallel = EntityPool(300, seed=11, workers=4, chunk_size=50)
    try:
        for p in (serial, parallel):
            p.initialize()
            for _ in range(10):
                p.update_all(2.0)

        query = np.linspace(-1.0, 1.0, SEMANTIC_SIZE)
        assert serial.find_similar(query, 10) == parallel.find_similar(query, 10)
        for i in (0, 149, 299):
            assert serial.record(i).tags == parallel.record(i).tags
            assert serial.record(i).noise == parallel.record(i).noise
    finally:
        serial.close()
        parallel.close()


def test_record_bytes_layout(pool):
    rec = pool.record(0)
    data = rec.to_bytes()
    assert len(data) == 256
    assert chr(data[0]) == rec.base.char


def test_record_out_of_range_raises(pool):
    with pytest.raises(IndexError):
        pool.record(256)


def test_negative_dt_is_clamped(pool):
    before = pool.record(0)
    pool.update_all(-5.0)
    after = pool.record(0)
    assert after.energy == before.energy
    assert after.relaxation.compaction == before.relaxation.compaction


def test_record_similarity(pool):
    a, b = pool.record(1), pool.record(2)
    assert a.similarity(a) == pytest.approx(1.0)
    assert -1.0 <= a.similarity(b) <= 1.0


def test_pool_as_context_manager():
    with EntityPool(16, seed=1, workers=1) as p:
        p.initialize()
        p.update_all(0.1)
        assert p.statistics().current_tick == 1


def test_negative_worker_count_falls_back_to_cpus():
    with EntityPool(8, seed=1, workers=-3) as p:
        assert p.workers >= 1
        p.initialize()
        p.update_all(0.1)
        assert p.statistics().current_tick == 1
