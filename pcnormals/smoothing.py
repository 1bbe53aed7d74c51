"""
PCA point-set smoothing.

Each point is moved to its orthogonal projection onto the plane fitted to
its k+1 nearest neighbors (itself included). Normals are not involved.

Every pass works in two phases:
  1) Read: build the neighbor index on a frozen copy of the positions, query
     every neighborhood and compute every projection into a buffer.
  2) Write: replace the positions with the buffer.

No position changes while a query that depends on it can still run, so the
result does not depend on point order. Several passes rebuild the index
each time.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ._utils import NeighborBackend, _as_points, _check_k
from .errors import DegenerateInput
from .kernel import GeometricKernel, get_kernel
from .neighbors import build_neighbor_query
from .plane import fit_planes

logger = logging.getLogger(__name__)


@dataclass
class SmoothingParams:
    """
    Parameters controlling PCA smoothing.

    Attributes
    ----------
    k : int
        Neighbors per point (>= 2); k+1 points including the point itself
        define each plane.
    iterations : int
        Number of read/write passes.
    batch_size : int
        Points per vectorized chunk.
    neighbor_backend : NeighborBackend
    """
    k: int = 10
    iterations: int = 1
    batch_size: int = 50_000
    neighbor_backend: NeighborBackend = "kdtree"


@dataclass
class SmoothingResult:
    """
    Attributes
    ----------
    points : np.ndarray, shape (N, 3)
        Relocated points.
    n_degenerate : int
        Point visits (summed over passes) whose neighborhood was rank
        deficient; those points were left where they were.
    max_displacement : float
        Largest distance any point moved overall.
    """
    points: np.ndarray
    n_degenerate: int = 0
    max_displacement: float = 0.0


class PointSmoother:
    """
    Relocate points onto their local PCA planes.

    Usage
    -----
    >>> smoother = PointSmoother(SmoothingParams(k=12))
    >>> result = smoother.smooth(points)
    >>> result.points.shape == points.shape
    True
    """

    def __init__(self, params: Optional[SmoothingParams] = None, kernel: Optional[GeometricKernel] = None):
        self.params = params or SmoothingParams()
        _check_k(self.params.k)
        if self.params.iterations < 1:
            raise ValueError("iterations must be >= 1")
        self.kernel = get_kernel(kernel)

    def _pass(self, P: np.ndarray) -> tuple:
        N = len(P)
        # Read phase: index on frozen positions, results go to a buffer
        query = build_neighbor_query(P, self.params.neighbor_backend)
        buffer = P.copy()
        n_degenerate = 0
        step = max(1, int(self.params.batch_size))

        for s in range(0, N, step):
            ids = np.arange(s, min(s + step, N))
            nbrs = query.query(P[ids], self.params.k + 1)
            c, normals, _, degenerate = fit_planes(P[nbrs], kernel=self.kernel)
            ok = ~degenerate
            # Orthogonal projection of each point onto its own plane
            d = self.kernel.dot(P[ids[ok]] - c[ok], normals[ok])
            buffer[ids[ok]] = P[ids[ok]] - d[:, None] * normals[ok]
            n_degenerate += int(np.count_nonzero(degenerate))

        return buffer, n_degenerate

    def smooth(self, points: np.ndarray, in_place: bool = False) -> SmoothingResult:
        """
        Smooth a point cloud.

        Parameters
        ----------
        points : np.ndarray, shape (N, 3)
        in_place : bool
            Also write the result into ``points`` (which must then be a
            float64 ndarray) once all passes are done.

        Raises
        ------
        DegenerateInput
            If ``points`` is empty.
        """
        P0 = _as_points(points)
        if len(P0) == 0:
            raise DegenerateInput("cannot smooth an empty point set")

        t0 = time.time()
        P = P0.copy()
        n_degenerate = 0
        for _ in range(self.params.iterations):
            P, nd = self._pass(P)
            n_degenerate += nd

        if in_place:
            if not isinstance(points, np.ndarray) or points.dtype != np.float64:
                raise TypeError("in-place smoothing needs a float64 np.ndarray")
            points[...] = P

        disp = float(np.linalg.norm(P - P0, axis=1).max())
        logger.info(
            "Smoothed %d points (k=%d, %d pass(es)) in %.3f s, max displacement %.3g, %d degenerate",
            len(P), self.params.k, self.params.iterations, time.time() - t0, disp, n_degenerate,
        )
        return SmoothingResult(points=P, n_degenerate=n_degenerate, max_displacement=disp)


def smooth_points(
    points: np.ndarray,
    k: int = 10,
    iterations: int = 1,
    kernel=None,
    in_place: bool = False,
) -> np.ndarray:
    """
    Project every point onto the PCA plane of its k+1 nearest neighbors.

    Returns the relocated (N, 3) array; with ``in_place=True`` the input
    array is updated as well.
    """
    params = SmoothingParams(k=k, iterations=iterations)
    return PointSmoother(params, kernel=get_kernel(kernel)).smooth(points, in_place=in_place).points
