"""
k-nearest-neighbor queries over a frozen point set.

The pipeline only needs one operation from a spatial index: "give me the
``count`` stored points closest to this location, nearest first". That
operation is captured by the ``NeighborQuery`` interface; two concrete
indices are provided.

Public API:
  - NeighborQuery: abstract interface.
  - KDTreeNeighborQuery: SciPy cKDTree (default, CPU).
  - BruteForceNeighborQuery: exact chunked pairwise distances in PyTorch.
  - build_neighbor_query(points, backend): factory.

Notes
-----
- Indices snapshot the positions at construction time. Moving the caller's
  points afterwards does not update the index; build a new one instead.
- A query may return fewer than ``count`` indices when the set is smaller
  than ``count`` ("premature ending"); that is not an error.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from scipy.spatial import cKDTree

from ._utils import NeighborBackend, _as_points


class NeighborQuery(ABC):
    """
    Spatial index answering k-nearest-neighbor queries.
    """

    def __init__(self, points: np.ndarray):
        # Frozen copy: later edits to the caller's array must not leak in
        self._positions = _as_points(points).copy()
        self._positions.setflags(write=False)

    @property
    def positions(self) -> np.ndarray:
        """Read-only (N, 3) positions the index was built on."""
        return self._positions

    def __len__(self) -> int:
        return len(self._positions)

    @abstractmethod
    def query(self, points: np.ndarray, count: int) -> np.ndarray:
        """
        Nearest stored points for each query location.

        Parameters
        ----------
        points : np.ndarray, shape (M, 3)
            Query locations.
        count : int
            Number of neighbors wanted.

        Returns
        -------
        idx : np.ndarray, shape (M, min(count, N))
            Integer indices into ``positions``, nearest first.
        """
        pass

    def query_point(self, point: np.ndarray, count: int) -> np.ndarray:
        """Single-point convenience; returns a 1-D index array."""
        p = np.asarray(point, dtype=np.float64).reshape(1, 3)
        return self.query(p, count)[0]

    def _effective_count(self, count: int) -> int:
        if count < 1:
            raise ValueError("count must be >= 1")
        return min(int(count), len(self))


class KDTreeNeighborQuery(NeighborQuery):
    """
    k-NN queries backed by ``scipy.spatial.cKDTree``.

    Usage
    -----
    >>> index = KDTreeNeighborQuery(points)
    >>> idx = index.query(points, 11)   # (N, 11), self first for unique points
    """

    def __init__(self, points: np.ndarray, leafsize: int = 16):
        super().__init__(points)
        self.tree: Optional[cKDTree] = cKDTree(self._positions, leafsize=leafsize) if len(self) else None

    def query(self, points: np.ndarray, count: int) -> np.ndarray:
        Q = _as_points(points, "query points")
        if self.tree is None:
            return np.empty((len(Q), 0), dtype=np.intp)
        k = self._effective_count(count)
        _, idx = self.tree.query(Q, k=k)
        # cKDTree drops the neighbor axis when k == 1
        idx = np.asarray(idx, dtype=np.intp)
        if idx.ndim == 1:
            idx = idx[:, None]
        return idx


class BruteForceNeighborQuery(NeighborQuery):
    """
    Exact k-NN by pairwise squared distances in PyTorch, processed in chunks
    of ``chunk`` query rows to bound memory.
    """

    def __init__(self, points: np.ndarray, device: Optional[str] = None, chunk: int = 8192):
        import torch

        super().__init__(points)
        self._torch = torch
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.chunk = int(chunk)
        self.P = torch.as_tensor(np.array(self._positions), device=self.device, dtype=torch.float64)

    def query(self, points: np.ndarray, count: int) -> np.ndarray:
        torch = self._torch
        Q = _as_points(points, "query points")
        if len(self) == 0:
            return np.empty((len(Q), 0), dtype=np.intp)
        k = self._effective_count(count)
        A_all = torch.as_tensor(Q, device=self.device, dtype=torch.float64)
        b2 = (self.P * self.P).sum(dim=1).unsqueeze(0)      # (1,N)
        idx_all = []

        for s in range(0, len(Q), self.chunk):
            e = min(s + self.chunk, len(Q))
            A = A_all[s:e]                                   # (M,3)
            a2 = (A * A).sum(dim=1, keepdim=True)            # (M,1)
            D2 = torch.clamp(a2 + b2 - 2 * A @ self.P.t(), min=0)
            _, idx = torch.topk(D2, k=k, dim=1, largest=False, sorted=True)
            idx_all.append(idx)

        if not idx_all:
            return np.empty((0, k), dtype=np.intp)
        return torch.cat(idx_all, 0).cpu().numpy().astype(np.intp)


def build_neighbor_query(points: np.ndarray, backend: NeighborBackend = "kdtree", **kwargs) -> NeighborQuery:
    """
    Build a neighbor index over ``points``.

    Parameters
    ----------
    backend : "kdtree" | "brute"
        cKDTree (default) or PyTorch brute force.
    **kwargs
        Forwarded to the index constructor.
    """
    if backend == "kdtree":
        return KDTreeNeighborQuery(points, **kwargs)
    if backend == "brute":
        return BruteForceNeighborQuery(points, **kwargs)
    raise ValueError(f"unknown neighbor backend {backend!r}; expected 'kdtree' or 'brute'")
