"""
Jet fitting: normals from a local polynomial height field.

For each neighborhood:
  1) Build a local frame via PCA (two tangents + normal).
  2) Fit a polynomial surface z = f(x, y) in the local frame using Gaussian weights.
  3) Differentiate the patch at the query point and map its normal back to world space.

This is a drop-in alternative to the PCA plane normal: slower, but it
follows curved regions instead of averaging them flat. The result is
unoriented, like the PCA normal it refines.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ._utils import RANK_TOL, Degree, _n_coeffs, _poly_design_xy, _poly_grad_xy
from .errors import DegenerateInput
from .kernel import GeometricKernel, get_kernel
from .plane import _degenerate_mask


@dataclass
class JetParams:
    """
    Parameters controlling jet fitting.

    Attributes
    ----------
    degree : Degree
        Polynomial degree for the local fit: 1 (plane) or 2 (quadric).
    h_multiplier : float
        Gaussian bandwidth as a multiple of the median neighbor distance;
        larger -> flatter weights.
    """
    degree: Degree = 2
    h_multiplier: float = 1.5


class JetFitter:
    """
    Local polynomial normal estimator.

    Usage
    -----
    >>> jet = JetFitter(JetParams(degree=2))
    >>> n = jet.fit_normal(points[i], points[neighbor_idx])
    """

    def __init__(self, params: Optional[JetParams] = None, kernel: Optional[GeometricKernel] = None):
        self.params = params or JetParams()
        if self.params.degree not in (1, 2):
            raise ValueError("degree must be 1 or 2")
        self.kernel = get_kernel(kernel)

    def _local_frame(self, Q: np.ndarray):
        c, evals, evecs = self.kernel.pca(Q)
        if _degenerate_mask(evals, np.abs(Q).max(), RANK_TOL):
            raise DegenerateInput(f"rank-deficient neighborhood of {len(Q)} point(s)")
        # Columns [t1, t2, n]; n is the smallest-variance direction
        T = np.stack([evecs[:, 1], evecs[:, 2], evecs[:, 0]], axis=1)
        return c, T

    def _weights(self, query: np.ndarray, Q: np.ndarray) -> np.ndarray:
        d = np.linalg.norm(Q - query, axis=1)
        nonzero = d[d > 0]
        spacing = np.median(nonzero) if len(nonzero) else 1.0
        h = self.params.h_multiplier * max(spacing, 1e-12)
        return np.exp(-(d * d) / (h * h + 1e-18))

    def fit_normal(self, query: np.ndarray, neighborhood: np.ndarray) -> np.ndarray:
        """
        Unit normal of the jet fitted to ``neighborhood``, evaluated at ``query``.

        Falls back to the PCA normal when there are fewer points than
        polynomial coefficients.

        Raises
        ------
        DegenerateInput
            If the neighborhood is empty or rank deficient.
        """
        Q = np.asarray(neighborhood, dtype=np.float64)
        p = np.asarray(query, dtype=np.float64)
        if len(Q) == 0:
            raise DegenerateInput("cannot fit a jet to zero points")

        c, T = self._local_frame(Q)
        if len(Q) < _n_coeffs(self.params.degree):
            return T[:, 2].copy()

        # Local coords of neighbors
        Qloc = (Q - c) @ T
        xq, yq, zq = Qloc[:, 0], Qloc[:, 1], Qloc[:, 2]

        # Weighted least squares fit for z = f(x,y)
        w = self._weights(p, Q)
        Phi = _poly_design_xy(xq, yq, self.params.degree)
        A = np.sqrt(w)[:, None] * Phi
        b = np.sqrt(w) * zq
        coeffs, *_ = np.linalg.lstsq(A, b, rcond=None)

        # Gradient at the query's (x, y) -> local normal -> world frame
        ploc = (p - c) @ T
        fx, fy = _poly_grad_xy(coeffs, float(ploc[0]), float(ploc[1]), self.params.degree)
        n_loc = np.array([-fx, -fy, 1.0], dtype=np.float64)
        n_world = T @ n_loc
        return n_world / np.linalg.norm(n_world)
