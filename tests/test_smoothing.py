import numpy as np
import pytest

from pcnormals import DegenerateInput, PointSmoother, SmoothingParams, smooth_points
from shapes import create_plane_grid


@pytest.fixture
def noisy_plane(rng):
    xy = rng.uniform(0, 2, size=(400, 2))
    z = rng.normal(scale=0.01, size=400)
    return np.column_stack([xy, z])


def test_flat_grid_is_unchanged():
    P = create_plane_grid(n=7, spacing=0.5, z=2.0)
    out = smooth_points(P, k=10)
    np.testing.assert_allclose(out, P, atol=1e-12)


def test_noise_is_reduced(noisy_plane):
    out = smooth_points(noisy_plane, k=12)
    assert out.shape == noisy_plane.shape
    assert out[:, 2].std() < 0.7 * noisy_plane[:, 2].std()


def test_more_passes_smooth_further(noisy_plane):
    one = smooth_points(noisy_plane, k=12, iterations=1)
    three = PointSmoother(SmoothingParams(k=12, iterations=3)).smooth(noisy_plane)
    assert three.points[:, 2].std() < one[:, 2].std()
    assert three.max_displacement > 0.0


def test_result_does_not_depend_on_point_order(noisy_plane, rng):
    perm = rng.permutation(len(noisy_plane))
    out = smooth_points(noisy_plane, k=10)
    out_perm = smooth_points(noisy_plane[perm], k=10)
    np.testing.assert_allclose(out_perm, out[perm], atol=1e-12)


def test_input_untouched_unless_in_place(noisy_plane):
    before = noisy_plane.copy()
    out = smooth_points(noisy_plane, k=10)
    np.testing.assert_array_equal(noisy_plane, before)

    out_inplace = smooth_points(noisy_plane, k=10, in_place=True)
    np.testing.assert_array_equal(noisy_plane, out_inplace)
    np.testing.assert_array_equal(out_inplace, out)


def test_in_place_needs_float_array():
    P = create_plane_grid(n=4).tolist()
    with pytest.raises(TypeError):
        smooth_points(P, k=3, in_place=True)


def test_colinear_points_are_left_in_place():
    P = np.column_stack([np.arange(6.0), np.zeros(6), np.zeros(6)])
    result = PointSmoother(SmoothingParams(k=3)).smooth(P)
    np.testing.assert_array_equal(result.points, P)
    assert result.n_degenerate == 6


def test_small_cloud_uses_every_point():
    P = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0.0]])
    out = smooth_points(P, k=10)
    np.testing.assert_allclose(out, P, atol=1e-12)


def test_invalid_input():
    with pytest.raises(DegenerateInput):
        smooth_points(np.empty((0, 3)), k=10)
    with pytest.raises(ValueError):
        smooth_points(np.zeros((5, 3)), k=1)
    with pytest.raises(ValueError):
        PointSmoother(SmoothingParams(iterations=0))
