"""
Riemannian graph over a point cloud.

Vertices are point indices; each point is joined to its k nearest
neighbors (symmetrized, deduplicated). An edge (u, v) weighs
``1 - |n_u . n_v|``: ~0 for parallel tangent planes, ~1 for orthogonal
ones. The absolute value makes the weight blind to normal signs, which are
still arbitrary when the graph is built.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from scipy import sparse

from ._utils import _as_points, _check_k
from .estimation import _select_neighbors
from .kernel import GeometricKernel, get_kernel
from .neighbors import NeighborQuery, KDTreeNeighborQuery
from .normals import NormalSet

logger = logging.getLogger(__name__)

# Added to weights in sparse form so zero-weight edges are stored
SPARSE_EDGE_EPS = 1e-12


@dataclass
class RiemannianGraph:
    """
    Undirected weighted graph on ``n_vertices`` point indices.

    Attributes
    ----------
    n_vertices : int
    edges : np.ndarray, shape (E, 2), int
        Unique pairs with ``u < v``, sorted lexicographically.
    weights : np.ndarray, shape (E,)
        ``1 - |n_u . n_v|`` in [0, 1].
    """
    n_vertices: int
    edges: np.ndarray
    weights: np.ndarray

    @property
    def n_edges(self) -> int:
        return len(self.edges)

    def to_sparse(self) -> sparse.csr_matrix:
        """Symmetric CSR adjacency with weights offset by ``SPARSE_EDGE_EPS``."""
        u, v = self.edges[:, 0], self.edges[:, 1]
        w = self.weights + SPARSE_EDGE_EPS
        A = sparse.coo_matrix(
            (np.concatenate([w, w]), (np.concatenate([u, v]), np.concatenate([v, u]))),
            shape=(self.n_vertices, self.n_vertices),
        )
        return A.tocsr()


def build_riemannian_graph(
    points: np.ndarray,
    normals: Union[NormalSet, np.ndarray],
    k: int,
    query: Optional[NeighborQuery] = None,
    kernel: Optional[GeometricKernel] = None,
) -> RiemannianGraph:
    """
    Build the k-nearest-neighbor Riemannian graph.

    Parameters
    ----------
    points : np.ndarray, shape (N, 3)
    normals : NormalSet or np.ndarray, shape (N, 3)
        Unoriented normals. Points with an invalid (zero / non-unit)
        normal get no edges.
    k : int
        Neighbors per point (>= 2).
    query : NeighborQuery, optional
        Prebuilt index over ``points``.
    kernel : GeometricKernel, optional

    Returns
    -------
    RiemannianGraph
    """
    P = _as_points(points)
    k = _check_k(k)
    normal_set = normals if isinstance(normals, NormalSet) else NormalSet(normals)
    if len(normal_set) != len(P):
        raise ValueError("points and normals must have the same length")
    kernel = get_kernel(kernel)
    N = len(P)

    if N < 2:
        return RiemannianGraph(N, np.empty((0, 2), dtype=np.intp), np.empty(0))

    if query is None:
        query = KDTreeNeighborQuery(P)
    ids = np.arange(N)
    nbrs = _select_neighbors(ids, query.query(P, k + 1), k)

    src = np.repeat(ids, nbrs.shape[1])
    dst = nbrs.ravel()
    pairs = np.column_stack([np.minimum(src, dst), np.maximum(src, dst)])
    valid = normal_set.valid
    keep = (pairs[:, 0] != pairs[:, 1]) & valid[pairs[:, 0]] & valid[pairs[:, 1]]
    edges = np.unique(pairs[keep], axis=0) if keep.any() else np.empty((0, 2), dtype=np.intp)

    n = normal_set.vectors
    if len(edges):
        weights = 1.0 - np.abs(kernel.dot(n[edges[:, 0]], n[edges[:, 1]]))
        weights = np.clip(weights, 0.0, 1.0)
    else:
        weights = np.empty(0)

    logger.debug("Riemannian graph: %d vertices, %d edges (k=%d)", N, len(edges), k)
    return RiemannianGraph(N, edges.astype(np.intp), weights)
