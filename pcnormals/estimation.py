"""
Per-point unoriented normal estimation.

For every point:
  1) Gather its k+1 nearest neighbors; the point itself is dropped when the
     index returns it, otherwise the farthest neighbor is.
  2) Fit a local surface to the remaining neighborhood: a PCA plane
     (default) or a jet (local polynomial).
  3) Record the fitted unit normal. Its sign is arbitrary; see
     ``pcnormals.orientation`` to make signs consistent.

Public API:
  - NormalEstimationParams: configuration.
  - NormalEstimator: main class, ``estimate(points)``.
  - estimate_normals(points, k, estimator_kind): one-call helper.

Notes
-----
- The PCA path is vectorized over chunks of ``batch_size`` points; the jet
  path runs point by point. Each chunk writes disjoint rows of the output.
- Degenerate neighborhoods are reported per point through ``on_degenerate``.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ._utils import (
    DEFAULT_NORMAL,
    DegeneratePolicy,
    EstimatorKind,
    NeighborBackend,
    _as_points,
    _check_k,
)
from .errors import DegenerateInput, InsufficientNeighbors
from .jet import JetFitter, JetParams
from .kernel import GeometricKernel, get_kernel
from .neighbors import NeighborQuery, build_neighbor_query
from .normals import NormalSet
from .plane import fit_planes

logger = logging.getLogger(__name__)


@dataclass
class NormalEstimationParams:
    """
    Parameters controlling normal estimation.

    Attributes
    ----------
    k : int
        Neighbors per point (>= 2), not counting the point itself.
    estimator : EstimatorKind
        "pca" (plane fit) or "jet" (polynomial fit).
    on_degenerate : DegeneratePolicy
        "raise" aborts on the first degenerate neighborhood, "default"
        stores (0, 0, 1), "skip" stores a zero vector. Both of the latter
        record the index in ``NormalSet.failed``.
    batch_size : int
        Points per vectorized PCA chunk.
    neighbor_backend : NeighborBackend
        Index built when the caller does not pass one.
    jet : JetParams
        Jet settings, used when ``estimator == "jet"``.
    """
    k: int = 10
    estimator: EstimatorKind = "pca"
    on_degenerate: DegeneratePolicy = "raise"
    batch_size: int = 50_000
    neighbor_backend: NeighborBackend = "kdtree"
    jet: JetParams = field(default_factory=JetParams)


def _select_neighbors(ids: np.ndarray, rows: np.ndarray, k: int) -> np.ndarray:
    """
    Drop the query point from each (k+1)-neighbor row.

    A row that does not contain its own index (duplicate points) loses its
    last, farthest entry instead, so every row keeps the same width. A row
    holding a single index is kept as is.
    """
    c = rows.shape[1]
    if c <= 1:
        return rows
    drop = rows == ids[:, None]
    drop[~drop.any(axis=1), -1] = True
    kept = rows[~drop].reshape(len(rows), c - 1)
    return kept[:, :k]


class NormalEstimator:
    """
    Unoriented normal estimator for 3D point clouds.

    Usage
    -----
    >>> est = NormalEstimator(NormalEstimationParams(k=12))
    >>> normals = est.estimate(points)     # NormalSet, all unoriented
    >>> normals.vectors.shape
    (N, 3)
    """

    def __init__(self, params: Optional[NormalEstimationParams] = None, kernel: Optional[GeometricKernel] = None):
        self.params = params or NormalEstimationParams()
        _check_k(self.params.k)
        if self.params.estimator not in ("pca", "jet"):
            raise ValueError(f"unknown estimator {self.params.estimator!r}; expected 'pca' or 'jet'")
        if self.params.on_degenerate not in ("raise", "default", "skip"):
            raise ValueError(f"unknown degenerate policy {self.params.on_degenerate!r}")
        self.kernel = get_kernel(kernel)
        self._jet = JetFitter(self.params.jet, self.kernel) if self.params.estimator == "jet" else None

    # --------- Degenerate neighborhoods ---------

    def _degenerate(self, i: int, vectors: np.ndarray, failed: list, reason: str) -> None:
        policy = self.params.on_degenerate
        if policy == "raise":
            raise DegenerateInput(reason, index=i)
        vectors[i] = DEFAULT_NORMAL if policy == "default" else 0.0
        failed.append(i)

    # --------- Per-chunk estimation ---------

    def _neighbors(self, query: NeighborQuery, P: np.ndarray, ids: np.ndarray) -> np.ndarray:
        rows = query.query(P[ids], self.params.k + 1)
        if rows.shape[1] == 0:
            raise InsufficientNeighbors("neighbor query returned no points", index=int(ids[0]))
        return _select_neighbors(ids, rows, self.params.k)

    def _estimate_pca(self, P: np.ndarray, ids: np.ndarray, nbrs: np.ndarray, vectors: np.ndarray, failed: list) -> None:
        _, normals, evals, degenerate = fit_planes(P[nbrs], kernel=self.kernel)
        vectors[ids] = normals
        for j in np.flatnonzero(degenerate):
            self._degenerate(int(ids[j]), vectors, failed, f"rank-deficient neighborhood of {nbrs.shape[1]} point(s)")

    def _estimate_jet(self, P: np.ndarray, ids: np.ndarray, nbrs: np.ndarray, vectors: np.ndarray, failed: list) -> None:
        for i, row in zip(ids, nbrs):
            try:
                vectors[i] = self._jet.fit_normal(P[i], P[row])
            except DegenerateInput as e:
                self._degenerate(int(i), vectors, failed, str(e))

    # --------- Public ---------

    def estimate(self, points: np.ndarray, query: Optional[NeighborQuery] = None) -> NormalSet:
        """
        Estimate one unoriented unit normal per point.

        Parameters
        ----------
        points : np.ndarray, shape (N, 3)
        query : NeighborQuery, optional
            Prebuilt index over the same points; built here if omitted.

        Returns
        -------
        NormalSet
            ``oriented`` all False; ``failed`` lists defaulted/skipped indices.

        Raises
        ------
        DegenerateInput
            On a degenerate neighborhood with ``on_degenerate="raise"``.
        InsufficientNeighbors
            If the index returns no neighbor at all for a point.
        """
        P = _as_points(points)
        N = len(P)
        vectors = np.zeros((N, 3), dtype=np.float64)
        failed: list = []
        if N == 0:
            return NormalSet(vectors)

        if query is None:
            query = build_neighbor_query(P, self.params.neighbor_backend)
        elif len(query) != N:
            raise ValueError("neighbor query was built on a different point set")

        t0 = time.time()
        step = max(1, int(self.params.batch_size))
        for s in range(0, N, step):
            ids = np.arange(s, min(s + step, N))
            nbrs = self._neighbors(query, P, ids)
            if self.params.estimator == "pca":
                self._estimate_pca(P, ids, nbrs, vectors, failed)
            else:
                self._estimate_jet(P, ids, nbrs, vectors, failed)

        failed.sort()
        logger.info(
            "Estimated %d normals (%s, k=%d) in %.3f s, %d degenerate",
            N, self.params.estimator, self.params.k, time.time() - t0, len(failed),
        )
        return NormalSet(vectors, failed=failed)


def estimate_normals(
    points: np.ndarray,
    k: int = 10,
    estimator_kind: EstimatorKind = "pca",
    on_degenerate: DegeneratePolicy = "raise",
    kernel=None,
    query: Optional[NeighborQuery] = None,
    jet: Optional[JetParams] = None,
) -> NormalSet:
    """
    Estimate unoriented unit normals with a PCA plane or jet fit over the
    k nearest neighbors of every point.
    """
    params = NormalEstimationParams(
        k=k,
        estimator=estimator_kind,
        on_degenerate=on_degenerate,
        jet=jet or JetParams(),
    )
    return NormalEstimator(params, kernel=get_kernel(kernel)).estimate(points, query=query)
