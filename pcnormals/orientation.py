"""
Consistent normal orientation by minimum-spanning-tree propagation.

Algorithm (per connected component of the Riemannian graph):
  1) Pick a reference vertex: the point farthest along ``up`` (default +z),
     lowest index on ties, unless the caller names one. Flip its normal so
     that ``dot(n, up) >= 0``.
  2) Build a minimum spanning forest of the graph (Kruskal; edges ordered by
     (weight, u, v) so equal weights break ties by vertex index).
  3) Walk the tree breadth-first from the reference. A child whose normal
     points away from its parent's (negative dot product) is negated. Every
     visited vertex is marked oriented.

Limitation: components are oriented independently, each against ``up``
through its own reference. Two components may therefore disagree with each
other (e.g. the two sheets of a thin shell sampled too sparsely to connect).
The number of components is reported so callers can detect this.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
from scipy import sparse
from scipy.sparse.csgraph import breadth_first_order, connected_components

from ._utils import EPS_NORMALIZE, NeighborBackend, _as_points, _check_k
from .errors import EmptyGraph
from .graph import RiemannianGraph, build_riemannian_graph
from .kernel import GeometricKernel, get_kernel
from .neighbors import NeighborQuery, build_neighbor_query
from .normals import NormalSet

logger = logging.getLogger(__name__)


@dataclass
class OrientationParams:
    """
    Parameters controlling MST orientation.

    Attributes
    ----------
    k : int
        Neighbors per point in the Riemannian graph (>= 2).
    up : Sequence[float]
        Exterior direction the reference normal of each component is
        turned towards; also ranks reference candidates.
    reference_index : Optional[int]
        Force the reference vertex of the component containing this point.
    neighbor_backend : NeighborBackend
        Index built when the caller does not pass one.
    """
    k: int = 10
    up: Sequence[float] = (0.0, 0.0, 1.0)
    reference_index: Optional[int] = None
    neighbor_backend: NeighborBackend = "kdtree"


@dataclass
class SpanningForest:
    """
    Minimum spanning forest of a Riemannian graph.

    Attributes
    ----------
    edges : np.ndarray, shape (F, 2)
        Forest edges in the order Kruskal accepted them.
    labels : np.ndarray, shape (N,)
        Connected component label of each vertex.
    n_components : int
        Number of components, isolated vertices included.
    n_vertices : int
        Number of vertices of the graph the forest spans.
    """
    edges: np.ndarray
    labels: np.ndarray
    n_components: int
    n_vertices: int

    def to_sparse(self) -> sparse.csr_matrix:
        """Symmetric 0/1 adjacency of the forest."""
        u, v = self.edges[:, 0], self.edges[:, 1]
        ones = np.ones(2 * len(u))
        A = sparse.coo_matrix(
            (ones, (np.concatenate([u, v]), np.concatenate([v, u]))),
            shape=(self.n_vertices, self.n_vertices),
        )
        return A.tocsr()


@dataclass
class OrientationResult:
    """
    Output of ``orient_normals``.

    Attributes
    ----------
    normals : NormalSet
        Oriented normals (``oriented`` True for every reached point).
    parents : np.ndarray, shape (N,)
        Parent of each vertex in the propagation tree, -1 for references
        and unreached points.
    references : List[int]
        Reference vertex of each oriented component.
    n_components : int
        Components that were oriented (one per reference).
    n_unoriented : int
        Points left unoriented (skipped normals).
    forest : SpanningForest
    """
    normals: NormalSet
    parents: np.ndarray
    references: List[int] = field(default_factory=list)
    n_components: int = 0
    n_unoriented: int = 0
    forest: Optional[SpanningForest] = None


def minimum_spanning_forest(graph: RiemannianGraph) -> SpanningForest:
    """
    Kruskal's algorithm with a union-find.

    Edges are visited by increasing weight; equal weights are ordered by
    (u, v), so the forest is a pure function of the graph.
    """
    N = graph.n_vertices
    parent = list(range(N))
    rank = [0] * N

    def find(x: int) -> int:
        root = x
        while parent[root] != root:
            root = parent[root]
        while parent[x] != root:
            parent[x], x = root, parent[x]
        return root

    order = np.lexsort((graph.edges[:, 1], graph.edges[:, 0], graph.weights)) if graph.n_edges else []
    accepted = []
    for e in order:
        u, v = int(graph.edges[e, 0]), int(graph.edges[e, 1])
        ru, rv = find(u), find(v)
        if ru == rv:
            continue
        if rank[ru] < rank[rv]:
            ru, rv = rv, ru
        parent[rv] = ru
        if rank[ru] == rank[rv]:
            rank[ru] += 1
        accepted.append((u, v))
        if len(accepted) == N - 1:
            break

    edges = np.array(accepted, dtype=np.intp).reshape(-1, 2)
    forest = SpanningForest(edges, np.zeros(N, dtype=np.intp), N, N)
    if N:
        forest.n_components, forest.labels = connected_components(forest.to_sparse(), directed=False)
    return forest


class OrientationPropagator:
    """
    Orient estimated normals so that neighbors agree in sign.

    Usage
    -----
    >>> prop = OrientationPropagator(OrientationParams(k=10))
    >>> result = prop.orient(points, normals)
    >>> result.normals.oriented.all()
    True
    """

    def __init__(self, params: Optional[OrientationParams] = None, kernel: Optional[GeometricKernel] = None):
        self.params = params or OrientationParams()
        _check_k(self.params.k)
        up = np.asarray(self.params.up, dtype=np.float64)
        if up.shape != (3,) or not np.linalg.norm(up) > 0:
            raise ValueError("up must be a non-zero 3-vector")
        self.up = up / np.linalg.norm(up)
        self.kernel = get_kernel(kernel)

    def _reference(self, P: np.ndarray, members: np.ndarray) -> int:
        ref = self.params.reference_index
        if ref is not None and ref in members:
            return int(ref)
        # members is ascending, argmax keeps the first (lowest) index on ties
        return int(members[np.argmax(P[members] @ self.up)])

    def _propagate(self, tree: sparse.csr_matrix, ref: int, n: np.ndarray, parents: np.ndarray) -> np.ndarray:
        order, pred = breadth_first_order(tree, ref, directed=False, return_predecessors=True)
        children = order[1:]
        parents[children] = pred[children]
        # All parent/child agreements in one kernel call, before any flip
        agree = np.sign(self.kernel.dot(n[children], n[pred[children]])) if len(children) else np.empty(0)

        flip = np.ones(len(n))
        flip[ref] = -1.0 if self.kernel.dot(n[ref], self.up) < 0 else 1.0
        for v, p, s in zip(children, pred[children], agree):
            flip[v] = -1.0 if flip[p] * s < 0 else 1.0
        n[order] *= flip[order, None]
        return order

    def orient(
        self,
        points: np.ndarray,
        normals: Union[NormalSet, np.ndarray],
        query: Optional[NeighborQuery] = None,
        in_place: bool = False,
    ) -> OrientationResult:
        """
        Orient ``normals`` by MST propagation.

        Parameters
        ----------
        points : np.ndarray, shape (N, 3)
        normals : NormalSet or np.ndarray, shape (N, 3)
            Normals with arbitrary signs. Finite non-unit rows are rescaled to
            unit length; zero or non-finite rows stay unoriented.
        query : NeighborQuery, optional
            Prebuilt index over ``points``.
        in_place : bool
            Flip signs and set flags on the given NormalSet instead of a copy.

        Raises
        ------
        EmptyGraph
            If there are no points.
        ValueError
            If ``reference_index`` is outside the point set.
        """
        P = _as_points(points)
        N = len(P)
        if N == 0:
            raise EmptyGraph("cannot orient normals of an empty point set")
        if isinstance(normals, NormalSet):
            out = normals if in_place else normals.copy()
        else:
            out = NormalSet(np.array(normals, dtype=np.float64))
        if len(out) != N:
            raise ValueError("points and normals must have the same length")
        ref = self.params.reference_index
        if ref is not None and not 0 <= ref < N:
            raise ValueError(f"reference_index {ref} out of range for {N} points")

        # Rescale finite non-unit rows; zero and non-finite rows stay invalid
        lengths = out.unit_lengths()
        rescale = ~out.valid & np.isfinite(lengths) & (lengths > EPS_NORMALIZE)
        if rescale.any():
            out.vectors[rescale] = self.kernel.normalize(out.vectors[rescale])
            logger.debug("Rescaled %d non-unit input normal(s)", int(rescale.sum()))

        t0 = time.time()
        if query is None:
            query = build_neighbor_query(P, self.params.neighbor_backend)
        graph = build_riemannian_graph(P, out, self.params.k, query=query, kernel=self.kernel)
        forest = minimum_spanning_forest(graph)
        tree = forest.to_sparse()

        valid = out.valid
        parents = np.full(N, -1, dtype=np.intp)
        out.oriented[:] = False
        references = []
        for c in range(forest.n_components):
            members = np.flatnonzero((forest.labels == c) & valid)
            if len(members) == 0:
                continue
            ref = self._reference(P, members)
            visited = self._propagate(tree, ref, out.vectors, parents)
            out.oriented[visited] = True
            references.append(ref)

        result = OrientationResult(
            normals=out,
            parents=parents,
            references=references,
            n_components=len(references),
            n_unoriented=out.n_unoriented,
            forest=forest,
        )
        logger.info(
            "Oriented %d normals (k=%d) in %.3f s: %d component(s), %d unoriented",
            N - result.n_unoriented, self.params.k, time.time() - t0,
            result.n_components, result.n_unoriented,
        )
        if result.n_components > 1:
            logger.warning(
                "Riemannian graph has %d components; orientation is consistent only within each",
                result.n_components,
            )
        return result


def orient_normals(
    points: np.ndarray,
    normals: Union[NormalSet, np.ndarray],
    k: int = 10,
    up: Sequence[float] = (0.0, 0.0, 1.0),
    reference_index: Optional[int] = None,
    kernel=None,
    query: Optional[NeighborQuery] = None,
    in_place: bool = False,
) -> OrientationResult:
    """
    Make normal signs consistent by propagating along a minimum spanning
    tree of the k-nearest-neighbor Riemannian graph.
    """
    params = OrientationParams(k=k, up=up, reference_index=reference_index)
    return OrientationPropagator(params, kernel=get_kernel(kernel)).orient(
        points, normals, query=query, in_place=in_place
    )
