"""
Low-level utilities shared by the normal estimation pipeline.

This module provides:
- Type aliases for estimator kinds, degenerate-point policies and polynomial degree.
- Numerical tolerances used across plane fitting, orientation and smoothing.
- Input validation for (N, 3) point arrays.
- Polynomial design matrix and gradient functions
  used by the jet (local height field) estimator.

These functions are intended as internal helpers.
"""

from typing import Literal

import numpy as np

# ----------------------------- Types -----------------------------

# Local estimator used for per-point normals
EstimatorKind = Literal["pca", "jet"]

# What to do with a point whose neighborhood cannot define a plane
DegeneratePolicy = Literal["raise", "default", "skip"]

# Allowed polynomial degrees for jet fits
Degree = Literal[1, 2]

# Neighbor index backends
NeighborBackend = Literal["kdtree", "brute"]


# ----------------------------- Constants -----------------------------

# Relative tolerance on the middle eigenvalue below which a covariance is rank deficient
RANK_TOL = 1e-10

# Floor used when normalizing vectors
EPS_NORMALIZE = 1e-12

# Fallback normal for degenerate neighborhoods
DEFAULT_NORMAL = np.array([0.0, 0.0, 1.0], dtype=np.float64)

# Accepted deviation of |n| from 1
UNIT_TOL = 0.01


# ----------------------------- Validation -----------------------------

def _as_points(points, name: str = "points") -> np.ndarray:
    """
    Convert array-like input to a float64 (N, 3) array.

    Raises
    ------
    ValueError
        If the input is not two-dimensional with three columns.
    """
    P = np.asarray(points, dtype=np.float64)
    if P.ndim == 1 and P.size == 0:
        P = P.reshape(0, 3)
    if P.ndim != 2 or P.shape[1] != 3:
        raise ValueError(f"{name} must be (N,3)")
    return P


def _check_k(k: int) -> int:
    k = int(k)
    if k < 2:
        raise ValueError("k must be >= 2")
    return k


# ----------------------------- Polynomial helpers -----------------------------

def _poly_design_xy(x: np.ndarray, y: np.ndarray, degree: Degree) -> np.ndarray:
    """
    Construct the polynomial design matrix for a local height field fit.

    Parameters
    ----------
    x, y : np.ndarray, shape (n,)
        Local coordinates of neighbors in the tangent plane.
    degree : Literal[1, 2]
        Polynomial degree: 1 = linear, 2 = quadratic.

    Returns
    -------
    Phi : np.ndarray, shape (n, m)
        Design matrix:
        - For degree=1: [1, x, y]
        - For degree=2: [1, x, y, x^2, xy, y^2]
    """
    if degree == 1:
        return np.column_stack([np.ones_like(x), x, y])
    elif degree == 2:
        return np.column_stack([np.ones_like(x), x, y, x * x, x * y, y * y])
    else:
        raise ValueError("degree must be 1 or 2")


def _n_coeffs(degree: Degree) -> int:
    return 3 if degree == 1 else 6


def _poly_grad_xy(coeffs: np.ndarray, x: float, y: float, degree: Degree) -> np.ndarray:
    """
    Compute the gradient [dz/dx, dz/dy] of the polynomial surface z = f(x,y).
    """
    if degree == 1:
        _, a1, a2 = coeffs
        return np.array([a1, a2], dtype=np.float64)
    else:
        _, a1, a2, a3, a4, a5 = coeffs
        dzdx = a1 + 2 * a3 * x + a4 * y
        dzdy = a2 + a4 * x + 2 * a5 * y
        return np.array([dzdx, dzdy], dtype=np.float64)
