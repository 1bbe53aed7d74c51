"""
Plain-text ``.xyz`` point cloud files.

One point per line, whitespace separated: ``x y z`` or ``x y z nx ny nz``.
Lines starting with ``#`` are comments.
"""

from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from ._utils import _as_points
from .errors import PointCloudIOError

XYZ_EXTENSIONS = (".xyz",)

PathLike = Union[str, Path]


def _check_extension(path: Path) -> None:
    if path.suffix.lower() not in XYZ_EXTENSIONS:
        raise PointCloudIOError(f"cannot read file {path}: unsupported extension {path.suffix!r}")


def read_xyz(path: PathLike) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Read an ``.xyz`` file.

    Returns
    -------
    points : np.ndarray, shape (N, 3)
    normals : Optional[np.ndarray], shape (N, 3)
        Present when the file has six columns.

    Raises
    ------
    PointCloudIOError
        On a missing file, a bad extension, malformed rows, or a ``nan`` /
        ``inf`` coordinate.
    """
    path = Path(path)
    _check_extension(path)
    try:
        data = np.loadtxt(path, dtype=np.float64, comments="#", ndmin=2)
    except (OSError, ValueError) as e:
        raise PointCloudIOError(f"cannot read file {path}: {e}") from e

    if data.size == 0:
        return np.empty((0, 3)), None
    bad = np.flatnonzero(~np.isfinite(data).all(axis=1))
    if len(bad):
        raise PointCloudIOError(f"cannot read file {path}: non-finite value on data row {bad[0] + 1}")
    if data.shape[1] == 3:
        return data, None
    if data.shape[1] == 6:
        return data[:, :3].copy(), data[:, 3:].copy()
    raise PointCloudIOError(f"cannot read file {path}: expected 3 or 6 columns, got {data.shape[1]}")


def write_xyz(path: PathLike, points: np.ndarray, normals: Optional[np.ndarray] = None) -> None:
    """Write points (and normals, if given) as an ``.xyz`` file."""
    path = Path(path)
    _check_extension(path)
    P = _as_points(points)
    data = P
    if normals is not None:
        n = _as_points(normals, "normals")
        if len(n) != len(P):
            raise ValueError("points and normals must have the same length")
        data = np.hstack([P, n])
    try:
        np.savetxt(path, data, fmt="%.9g")
    except OSError as e:
        raise PointCloudIOError(f"cannot write file {path}: {e}") from e
