import numpy as np
import pytest

from shapes import create_plane_grid, create_sphere


@pytest.fixture
def grid5():
    """5 x 5 grid in z = 0, unit spacing; index 12 is the center."""
    return create_plane_grid(n=5, spacing=1.0)


@pytest.fixture
def sphere():
    """Unit sphere samples and their outward normals."""
    return create_sphere(N=1000, radius=1.0)


@pytest.fixture
def rng():
    return np.random.default_rng(7)
