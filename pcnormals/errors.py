"""Exceptions raised by the normal estimation, orientation and smoothing stages."""

from typing import Optional


class NormalEstimationError(Exception):
    """Base class for every error raised by pcnormals."""


class DegenerateInput(NormalEstimationError, ValueError):
    """
    A plane cannot be fitted: no points, or a rank-deficient
    (coincident / colinear) neighborhood.
    """

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"point {index}: {message}"
        super().__init__(message)
        self.index = index


class InsufficientNeighbors(NormalEstimationError, ValueError):
    """The neighbor query returned no points at all."""

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"point {index}: {message}"
        super().__init__(message)
        self.index = index


class EmptyGraph(NormalEstimationError, ValueError):
    """Orientation was requested on an empty point set."""


class PointCloudIOError(NormalEstimationError, OSError):
    """A point cloud file could not be read or written."""
