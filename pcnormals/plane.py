"""
Best-fit planes by principal component analysis.

The plane through a point set is the one through its centroid whose normal
is the covariance eigenvector with the smallest eigenvalue (the flattest
direction of the set). The sign of that normal is arbitrary.

Public API:
  - Plane: centroid + unit normal, with orthogonal projection.
  - fit_plane(points): fit one plane, raising DegenerateInput when impossible.
  - fit_planes(neighborhoods): batched variant returning a degenerate mask.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import numpy as np

from ._utils import RANK_TOL, _as_points
from .errors import DegenerateInput
from .kernel import GeometricKernel, get_kernel


@dataclass(frozen=True)
class Plane:
    """
    Plane through ``centroid`` with unit ``normal``.

    Attributes
    ----------
    centroid : np.ndarray, shape (3,)
        Mean of the fitted points; lies on the plane.
    normal : np.ndarray, shape (3,)
        Unit normal (sign arbitrary).
    eigenvalues : np.ndarray, shape (3,)
        Covariance eigenvalues, ascending. ``eigenvalues[0]`` is the
        residual variance off the plane.
    """
    centroid: np.ndarray
    normal: np.ndarray
    eigenvalues: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def signed_distance(self, points: np.ndarray) -> Union[float, np.ndarray]:
        """Signed distance of one point (3,) or many (M,3) along ``normal``."""
        P = np.asarray(points, dtype=np.float64)
        return (P - self.centroid) @ self.normal

    def project(self, points: np.ndarray) -> np.ndarray:
        """Orthogonal projection of one point (3,) or many (M,3) onto the plane."""
        P = np.asarray(points, dtype=np.float64)
        d = self.signed_distance(P)
        return P - np.multiply.outer(d, self.normal)

    @property
    def surface_variation(self) -> float:
        """lambda_0 / sum(lambda): 0 for a perfectly flat set."""
        total = float(np.sum(self.eigenvalues))
        return float(self.eigenvalues[0]) / total if total > 0 else 0.0


def _degenerate_mask(evals: np.ndarray, scale: np.ndarray, rank_tol: float) -> np.ndarray:
    """
    True where a covariance cannot define a plane normal.

    The normal is determined only if the two larger eigenvalues are both
    non-negligible. Coincident points give three ~zero eigenvalues and
    colinear points a ~zero middle one; ``scale`` (squared coordinate
    magnitude) sets the absolute floor for round-off.
    """
    largest = evals[..., 2]
    middle = evals[..., 1]
    floor = (1e-12 * np.maximum(scale, 1.0)) ** 2
    return (middle <= rank_tol * largest) | (largest <= floor)


def fit_planes(
    neighborhoods: np.ndarray,
    kernel: Optional[GeometricKernel] = None,
    rank_tol: float = RANK_TOL,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Fit one plane per neighborhood without raising.

    Parameters
    ----------
    neighborhoods : np.ndarray, shape (B, m, 3)
        Equal-size point sets, m >= 1.
    kernel : GeometricKernel, optional
        Arithmetic backend; NumPy by default.

    Returns
    -------
    centroids : np.ndarray, shape (B, 3)
    normals : np.ndarray, shape (B, 3)
        Unit normals; rows flagged degenerate are meaningless.
    evals : np.ndarray, shape (B, 3)
    degenerate : np.ndarray, shape (B,), bool
    """
    Q = np.asarray(neighborhoods, dtype=np.float64)
    if Q.ndim != 3 or Q.shape[2] != 3:
        raise ValueError("neighborhoods must be (B,m,3)")
    if Q.shape[1] == 0:
        raise DegenerateInput("cannot fit a plane to zero points")
    kernel = get_kernel(kernel)

    c, evals, evecs = kernel.pca(Q)
    normals = kernel.normalize(evecs[..., :, 0])
    scale = np.abs(Q).max(axis=(1, 2)) if Q.shape[0] else np.zeros(0)
    degenerate = _degenerate_mask(evals, scale, rank_tol)
    return c, normals, evals, degenerate


def fit_plane(
    points: np.ndarray,
    kernel: Optional[GeometricKernel] = None,
    rank_tol: float = RANK_TOL,
) -> Plane:
    """
    Fit the least-squares plane of a point set by PCA.

    At least 3 non-colinear points are needed for a meaningful plane.

    Parameters
    ----------
    points : np.ndarray, shape (n, 3)
    kernel : GeometricKernel, optional
    rank_tol : float
        Relative tolerance for the rank test on the covariance.

    Raises
    ------
    DegenerateInput
        If ``points`` is empty, or coincident / colinear so that the normal
        is undetermined.
    """
    P = _as_points(points)
    if len(P) < 1:
        raise DegenerateInput("cannot fit a plane to zero points")

    c, normals, evals, degenerate = fit_planes(P[None], kernel=kernel, rank_tol=rank_tol)
    if degenerate[0]:
        raise DegenerateInput(
            f"rank-deficient neighborhood of {len(P)} point(s) "
            f"(eigenvalues {np.array2string(evals[0], precision=3)})"
        )
    return Plane(centroid=c[0], normal=normals[0], eigenvalues=evals[0])
