import numpy as np
import pytest

from pcnormals import DegenerateInput, Plane, fit_plane, fit_planes


def test_three_points_lie_on_fitted_plane():
    P = np.array([[0.0, 0.0, 0.0], [1.0, 0.2, 0.5], [-0.3, 1.0, 0.1]])
    plane = fit_plane(P)
    assert np.isclose(np.linalg.norm(plane.normal), 1.0)
    np.testing.assert_allclose(plane.signed_distance(P), 0.0, atol=1e-9)
    np.testing.assert_allclose(plane.centroid, P.mean(axis=0))


def test_flat_square_normal_and_projection():
    P = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=float)
    plane = fit_plane(P)
    np.testing.assert_allclose(np.abs(plane.normal), [0, 0, 1], atol=1e-12)
    np.testing.assert_allclose(plane.project([0.3, 0.4, 5.0]), [0.3, 0.4, 0.0], atol=1e-12)
    np.testing.assert_allclose(plane.project(np.array([[2.0, 3.0, -1.0]])), [[2.0, 3.0, 0.0]], atol=1e-12)
    assert plane.surface_variation == pytest.approx(0.0, abs=1e-12)


def test_tilted_plane_recovered(rng):
    n_true = np.array([1.0, -2.0, 3.0]) / np.sqrt(14.0)
    uv = rng.uniform(-1, 1, size=(50, 2))
    t1 = np.cross(n_true, [0, 0, 1.0])
    t1 /= np.linalg.norm(t1)
    t2 = np.cross(n_true, t1)
    P = 2.0 + uv[:, :1] * t1 + uv[:, 1:] * t2
    plane = fit_plane(P)
    assert abs(np.dot(plane.normal, n_true)) == pytest.approx(1.0, abs=1e-9)


def test_empty_input_raises():
    with pytest.raises(DegenerateInput):
        fit_plane(np.empty((0, 3)))


@pytest.mark.parametrize(
    "points",
    [
        [[1.0, 2.0, 3.0]],
        [[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]],
        [[0.0, 0.0, 0.0], [1.0, 1.0, 1.0], [2.0, 2.0, 2.0], [3.0, 3.0, 3.0]],
        [[0.5, 0.5, 0.5]] * 4,
    ],
    ids=["single", "two", "colinear", "coincident"],
)
def test_rank_deficient_input_raises(points):
    with pytest.raises(DegenerateInput):
        fit_plane(np.array(points))


def test_degenerate_is_a_value_error():
    with pytest.raises(ValueError):
        fit_plane(np.array([[0.0, 0.0, 0.0]]))


def test_bad_shape_raises():
    with pytest.raises(ValueError):
        fit_plane(np.zeros((4, 2)))


def test_fit_planes_reports_degenerate_rows():
    good = [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
    line = [[0, 0, 0], [1, 0, 0], [2, 0, 0]]
    c, normals, evals, degenerate = fit_planes(np.array([good, line], dtype=float))
    assert c.shape == (2, 3)
    assert evals.shape == (2, 3)
    assert degenerate.tolist() == [False, True]
    np.testing.assert_allclose(np.abs(normals[0]), [0, 0, 1], atol=1e-12)


def test_plane_is_frozen():
    plane = Plane(centroid=np.zeros(3), normal=np.array([0.0, 0.0, 1.0]))
    with pytest.raises(AttributeError):
        plane.normal = np.array([1.0, 0.0, 0.0])
