"""
pcnormals - normal estimation, orientation and smoothing for point clouds

Components:
    - Kernel: geometric arithmetic backends (NumPy, PyTorch)
    - Neighbors: k-nearest-neighbor queries (cKDTree, brute force)
    - Plane / Jet: local PCA plane and polynomial fits
    - Estimation: per-point unoriented normals
    - Graph / Orientation: Riemannian graph and MST sign propagation
    - Smoothing: projection of points onto local PCA planes
    - IO: .xyz files

Example:
    >>> from pcnormals import estimate_normals, orient_normals, smooth_points
    >>>
    >>> normals = estimate_normals(points, k=10)
    >>> result = orient_normals(points, normals, k=10)
    >>> oriented = result.normals.vectors
    >>> smoothed = smooth_points(points, k=10)
"""

__version__ = "0.1.0"

from .errors import (
    NormalEstimationError,
    DegenerateInput,
    InsufficientNeighbors,
    EmptyGraph,
    PointCloudIOError,
)
from .kernel import GeometricKernel, NumpyKernel, TorchKernel, get_kernel
from .neighbors import (
    NeighborQuery,
    KDTreeNeighborQuery,
    BruteForceNeighborQuery,
    build_neighbor_query,
)
from .normals import NormalSet
from .plane import Plane, fit_plane, fit_planes
from .jet import JetFitter, JetParams
from .estimation import NormalEstimationParams, NormalEstimator, estimate_normals
from .graph import RiemannianGraph, build_riemannian_graph
from .orientation import (
    OrientationParams,
    OrientationPropagator,
    OrientationResult,
    SpanningForest,
    minimum_spanning_forest,
    orient_normals,
)
from .smoothing import PointSmoother, SmoothingParams, SmoothingResult, smooth_points
from .io import read_xyz, write_xyz


__all__ = [
    "__version__",

    # Errors
    "NormalEstimationError",
    "DegenerateInput",
    "InsufficientNeighbors",
    "EmptyGraph",
    "PointCloudIOError",

    # Kernel
    "GeometricKernel",
    "NumpyKernel",
    "TorchKernel",
    "get_kernel",

    # Neighbors
    "NeighborQuery",
    "KDTreeNeighborQuery",
    "BruteForceNeighborQuery",
    "build_neighbor_query",

    # Local fits
    "NormalSet",
    "Plane",
    "fit_plane",
    "fit_planes",
    "JetFitter",
    "JetParams",

    # Estimation
    "NormalEstimationParams",
    "NormalEstimator",
    "estimate_normals",

    # Orientation
    "RiemannianGraph",
    "build_riemannian_graph",
    "OrientationParams",
    "OrientationPropagator",
    "OrientationResult",
    "SpanningForest",
    "minimum_spanning_forest",
    "orient_normals",

    # Smoothing
    "PointSmoother",
    "SmoothingParams",
    "SmoothingResult",
    "smooth_points",

    # IO
    "read_xyz",
    "write_xyz",
]
