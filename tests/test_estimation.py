import numpy as np
import pytest

from pcnormals import (
    DegenerateInput,
    InsufficientNeighbors,
    JetParams,
    NeighborQuery,
    NormalEstimationParams,
    NormalEstimator,
    estimate_normals,
)
from pcnormals.estimation import _select_neighbors
from shapes import create_bell_shape


class _EmptyQuery(NeighborQuery):
    def query(self, points, count):
        return np.empty((len(points), 0), dtype=np.intp)


def test_flat_grid_normals_are_vertical(grid5):
    normals = estimate_normals(grid5, k=4)
    assert normals.vectors.shape == (25, 3)
    np.testing.assert_allclose(np.abs(normals.vectors[:, 2]), 1.0, atol=1e-9)
    np.testing.assert_allclose(normals.vectors[:, :2], 0.0, atol=1e-9)
    assert not normals.oriented.any()
    assert normals.failed == []


@pytest.mark.parametrize("kind", ["pca", "jet"])
def test_sphere_normals_are_unit_and_radial(sphere, kind):
    X, N_true = sphere
    normals = estimate_normals(X, k=10, estimator_kind=kind)
    lengths = normals.unit_lengths()
    assert np.all((lengths >= 0.99) & (lengths <= 1.01))
    cos = np.abs(np.sum(normals.vectors * N_true, axis=1))
    assert cos.min() > 0.95
    assert cos.mean() > 0.995


def test_jet_follows_curved_bell():
    X, N_true = create_bell_shape(N=3000, noise_z_scale=0.0, noise_xy_scale=0.0, random_seed=3)
    normals = estimate_normals(X, k=20, estimator_kind="jet", jet=JetParams(degree=2))
    cos = np.abs(np.sum(normals.vectors * N_true, axis=1))
    assert cos.mean() > 0.99


def test_small_cloud_uses_what_is_returned():
    # Tetrahedron with k larger than the cloud: each point keeps its 3 others
    P = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]], dtype=float)
    normals = estimate_normals(P, k=10)
    assert normals.check_unit()
    # Point 0's neighbors span the plane x + y + z = 1
    assert abs(np.dot(normals.vectors[0], np.ones(3) / np.sqrt(3))) == pytest.approx(1.0)


def test_degenerate_policies():
    P = np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0]], dtype=float)
    with pytest.raises(DegenerateInput) as err:
        estimate_normals(P, k=2)
    assert err.value.index == 0

    defaulted = estimate_normals(P, k=2, on_degenerate="default")
    assert defaulted.failed == [0, 1, 2]
    np.testing.assert_array_equal(defaulted.vectors, np.tile([0.0, 0.0, 1.0], (3, 1)))

    skipped = estimate_normals(P, k=2, on_degenerate="skip")
    assert skipped.failed == [0, 1, 2]
    assert not skipped.valid.any()
    assert skipped.check_unit()


def test_jet_degenerate_policy():
    P = np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0], [3, 0, 0]], dtype=float)
    normals = estimate_normals(P, k=3, estimator_kind="jet", on_degenerate="default")
    assert normals.failed == [0, 1, 2, 3]


def test_single_point_cloud():
    with pytest.raises(DegenerateInput):
        estimate_normals(np.zeros((1, 3)), k=2)
    normals = estimate_normals(np.zeros((1, 3)), k=2, on_degenerate="skip")
    assert normals.failed == [0]


def test_empty_cloud_gives_empty_set():
    normals = estimate_normals(np.empty((0, 3)), k=3)
    assert len(normals) == 0


def test_no_neighbors_raises(grid5):
    est = NormalEstimator(NormalEstimationParams(k=4))
    with pytest.raises(InsufficientNeighbors):
        est.estimate(grid5, query=_EmptyQuery(grid5))


def test_query_for_other_points_rejected(grid5):
    est = NormalEstimator(NormalEstimationParams(k=4))
    with pytest.raises(ValueError):
        est.estimate(grid5, query=_EmptyQuery(grid5[:3]))


@pytest.mark.parametrize(
    "params",
    [
        NormalEstimationParams(k=1),
        NormalEstimationParams(estimator="svd"),
        NormalEstimationParams(on_degenerate="ignore"),
    ],
)
def test_invalid_params(params):
    with pytest.raises(ValueError):
        NormalEstimator(params)


def test_batch_size_does_not_change_result(sphere):
    X, _ = sphere
    a = NormalEstimator(NormalEstimationParams(k=8, batch_size=7)).estimate(X)
    b = NormalEstimator(NormalEstimationParams(k=8)).estimate(X)
    cos = np.abs(np.sum(a.vectors * b.vectors, axis=1))
    np.testing.assert_allclose(cos, 1.0, atol=1e-10)


def test_select_neighbors_drops_self_or_farthest():
    ids = np.array([0, 1])
    rows = np.array([[0, 2, 3], [2, 3, 4]])
    np.testing.assert_array_equal(_select_neighbors(ids, rows, 2), [[2, 3], [2, 3]])
    # Self not first (duplicate position ahead of it)
    rows = np.array([[5, 0, 3], [1, 7, 8]])
    np.testing.assert_array_equal(_select_neighbors(ids, rows, 2), [[5, 3], [7, 8]])
    np.testing.assert_array_equal(_select_neighbors(ids, np.array([[0], [1]]), 2), [[0], [1]])


def test_torch_kernel_estimation_matches_numpy(sphere):
    pytest.importorskip("torch")
    from pcnormals import TorchKernel

    X, _ = sphere
    a = estimate_normals(X, k=10)
    b = estimate_normals(X, k=10, kernel=TorchKernel(device="cpu"))
    cos = np.abs(np.sum(a.vectors * b.vectors, axis=1))
    np.testing.assert_allclose(cos, 1.0, atol=1e-8)
