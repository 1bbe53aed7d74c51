import numpy as np
import pytest

from pcnormals import KDTreeNeighborQuery, build_neighbor_query


def test_kdtree_returns_self_first_and_sorted(rng):
    P = rng.uniform(size=(200, 3))
    index = KDTreeNeighborQuery(P)
    idx = index.query(P, 6)
    assert idx.shape == (200, 6)
    np.testing.assert_array_equal(idx[:, 0], np.arange(200))
    d = np.linalg.norm(P[idx] - P[:, None, :], axis=2)
    assert np.all(np.diff(d, axis=1) >= 0)


def test_premature_ending_returns_fewer(rng):
    P = rng.uniform(size=(4, 3))
    idx = KDTreeNeighborQuery(P).query(P, 11)
    assert idx.shape == (4, 4)
    assert sorted(idx[0].tolist()) == [0, 1, 2, 3]


def test_single_neighbor_keeps_column_axis(rng):
    P = rng.uniform(size=(10, 3))
    idx = KDTreeNeighborQuery(P).query(P[:3], 1)
    assert idx.shape == (3, 1)
    assert KDTreeNeighborQuery(P).query_point(P[5], 3)[0] == 5


def test_index_is_frozen_snapshot(rng):
    P = rng.uniform(size=(20, 3))
    index = KDTreeNeighborQuery(P)
    before = index.positions.copy()
    P[:] = 100.0
    np.testing.assert_array_equal(index.positions, before)
    with pytest.raises(ValueError):
        index.positions[0, 0] = 1.0


def test_empty_index():
    index = KDTreeNeighborQuery(np.empty((0, 3)))
    assert len(index) == 0
    assert index.query(np.zeros((2, 3)), 5).shape == (2, 0)


def test_bad_count_and_backend(rng):
    P = rng.uniform(size=(5, 3))
    with pytest.raises(ValueError):
        KDTreeNeighborQuery(P).query(P, 0)
    with pytest.raises(ValueError):
        build_neighbor_query(P, "octree")


def test_brute_force_matches_kdtree(rng):
    pytest.importorskip("torch")
    P = rng.uniform(size=(300, 3))
    brute = build_neighbor_query(P, "brute", device="cpu", chunk=64)
    kd = build_neighbor_query(P, "kdtree")
    np.testing.assert_array_equal(brute.query(P, 8), kd.query(P, 8))
    assert brute.query(P[:2], 500).shape == (2, 300)
