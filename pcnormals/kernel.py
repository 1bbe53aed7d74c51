"""
Geometric kernels: the arithmetic every pipeline stage is parameterized by.

A kernel exposes centroid / covariance / symmetric eigen-decomposition /
dot product / normalization over NumPy arrays. All operations accept
leading batch axes, so a (B, m, 3) stack of neighborhoods is handled in one
call. Inputs and outputs are always NumPy arrays; a kernel is free to do the
work elsewhere (``TorchKernel`` runs it on a torch device).

Public API:
  - GeometricKernel: abstract interface.
  - NumpyKernel: default float64 implementation.
  - TorchKernel: PyTorch implementation (CPU or CUDA).
  - get_kernel(name): resolve "numpy" / "torch" to an instance.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import numpy as np

from ._utils import EPS_NORMALIZE


class GeometricKernel(ABC):
    """
    Point / vector arithmetic and eigen-decomposition used by plane fitting,
    graph construction and orientation.
    """

    name: str = "abstract"

    @abstractmethod
    def centroid(self, points: np.ndarray) -> np.ndarray:
        """Mean over the point axis: (..., m, 3) -> (..., 3)."""
        pass

    @abstractmethod
    def covariance(self, points: np.ndarray) -> np.ndarray:
        """Covariance of each point set: (..., m, 3) -> (..., 3, 3)."""
        pass

    @abstractmethod
    def eigh(self, matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Symmetric eigen-decomposition.

        Returns eigenvalues in ascending order (..., 3) and the matching
        eigenvectors as columns (..., 3, 3).
        """
        pass

    @abstractmethod
    def dot(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Row-wise dot product over the last axis."""
        pass

    @abstractmethod
    def normalize(self, v: np.ndarray) -> np.ndarray:
        """Row-wise unit vectors; zero rows stay zero."""
        pass

    def pca(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Principal component analysis of one or many point sets.

        Returns
        -------
        c : np.ndarray, shape (..., 3)
            Centroids.
        evals : np.ndarray, shape (..., 3)
            Covariance eigenvalues, ascending.
        evecs : np.ndarray, shape (..., 3, 3)
            Eigenvectors as columns; column 0 is the smallest-variance
            direction (the plane normal).
        """
        c = self.centroid(points)
        evals, evecs = self.eigh(self.covariance(points))
        return c, evals, evecs

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class NumpyKernel(GeometricKernel):
    """Float64 NumPy / LAPACK kernel."""

    name = "numpy"

    def centroid(self, points: np.ndarray) -> np.ndarray:
        return np.asarray(points, dtype=np.float64).mean(axis=-2)

    def covariance(self, points: np.ndarray) -> np.ndarray:
        P = np.asarray(points, dtype=np.float64)
        X = P - P.mean(axis=-2, keepdims=True)
        n = P.shape[-2]
        return np.swapaxes(X, -1, -2) @ X / max(n - 1, 1)

    def eigh(self, matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        # eigh already sorts ascending
        return np.linalg.eigh(matrix)

    def dot(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return np.einsum("...d,...d->...", a, b)

    def normalize(self, v: np.ndarray) -> np.ndarray:
        v = np.asarray(v, dtype=np.float64)
        norm = np.linalg.norm(v, axis=-1, keepdims=True)
        return np.where(norm > EPS_NORMALIZE, v / np.maximum(norm, EPS_NORMALIZE), 0.0)


class TorchKernel(GeometricKernel):
    """
    PyTorch kernel. Computation happens in float64 on ``device``; results
    are copied back to NumPy so callers never see tensors.
    """

    name = "torch"

    def __init__(self, device: Optional[str] = None):
        import torch

        self._torch = torch
        self.device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        self.dtype = torch.float64

    def _t(self, x):
        return self._torch.as_tensor(np.asarray(x, dtype=np.float64), device=self.device, dtype=self.dtype)

    @staticmethod
    def _np(t) -> np.ndarray:
        return t.detach().cpu().numpy()

    def centroid(self, points: np.ndarray) -> np.ndarray:
        return self._np(self._t(points).mean(dim=-2))

    def covariance(self, points: np.ndarray) -> np.ndarray:
        P = self._t(points)
        X = P - P.mean(dim=-2, keepdim=True)
        n = P.shape[-2]
        C = X.transpose(-1, -2).matmul(X) / max(n - 1, 1)
        return self._np(C)

    def eigh(self, matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        evals, evecs = self._torch.linalg.eigh(self._t(matrix))
        return self._np(evals), self._np(evecs)

    def dot(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return self._np((self._t(a) * self._t(b)).sum(dim=-1))

    def normalize(self, v: np.ndarray) -> np.ndarray:
        t = self._t(v)
        norm = self._torch.linalg.norm(t, dim=-1, keepdim=True)
        out = t / self._torch.clamp_min(norm, EPS_NORMALIZE)
        out = self._torch.where(norm > EPS_NORMALIZE, out, self._torch.zeros_like(out))
        return self._np(out)

    def pca(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        # Single round trip to the device
        P = self._t(points)
        c = P.mean(dim=-2)
        X = P - c.unsqueeze(-2)
        n = P.shape[-2]
        C = X.transpose(-1, -2).matmul(X) / max(n - 1, 1)
        evals, evecs = self._torch.linalg.eigh(C)
        return self._np(c), self._np(evals), self._np(evecs)

    def __repr__(self) -> str:
        return f"TorchKernel(device={self.device!r})"


_DEFAULT_KERNEL = NumpyKernel()


def get_kernel(kernel: Union[None, str, GeometricKernel] = None) -> GeometricKernel:
    """
    Resolve a kernel argument.

    ``None`` and ``"numpy"`` give the shared NumPy kernel, ``"torch"`` builds
    a TorchKernel on the default device, and kernel instances pass through.
    """
    if kernel is None:
        return _DEFAULT_KERNEL
    if isinstance(kernel, GeometricKernel):
        return kernel
    if kernel == "numpy":
        return _DEFAULT_KERNEL
    if kernel == "torch":
        return TorchKernel()
    raise ValueError(f"unknown kernel {kernel!r}; expected 'numpy' or 'torch'")
