"""Orientable normals: unit vectors plus a per-point "oriented" flag."""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ._utils import UNIT_TOL


@dataclass
class NormalSet:
    """
    Normals for a point cloud, indexed like the points.

    Attributes
    ----------
    vectors : np.ndarray, shape (N, 3)
        Unit normals. Rows of points that failed estimation under the
        "skip" policy are zero.
    oriented : np.ndarray, shape (N,), bool
        False right after estimation; set by orientation. The sign of a
        vector is meaningless while its flag is False.
    failed : List[int]
        Indices whose neighborhood was degenerate (defaulted or skipped).
    """
    vectors: np.ndarray
    oriented: Optional[np.ndarray] = None
    failed: List[int] = field(default_factory=list)

    def __post_init__(self):
        self.vectors = np.asarray(self.vectors, dtype=np.float64)
        if self.vectors.ndim != 2 or self.vectors.shape[1] != 3:
            raise ValueError("normals must be (N,3)")
        if self.oriented is None:
            self.oriented = np.zeros(len(self.vectors), dtype=bool)
        else:
            self.oriented = np.asarray(self.oriented, dtype=bool)
            if self.oriented.shape != (len(self.vectors),):
                raise ValueError("oriented must have one flag per normal")

    def __len__(self) -> int:
        return len(self.vectors)

    def copy(self) -> "NormalSet":
        return NormalSet(self.vectors.copy(), self.oriented.copy(), list(self.failed))

    def unit_lengths(self) -> np.ndarray:
        return np.linalg.norm(self.vectors, axis=1)

    @property
    def valid(self) -> np.ndarray:
        """Mask of usable normals (finite and of unit length)."""
        lengths = self.unit_lengths()
        return np.isfinite(lengths) & (np.abs(lengths - 1.0) <= UNIT_TOL)

    @property
    def n_unoriented(self) -> int:
        return int(np.count_nonzero(~self.oriented))

    def check_unit(self, tol: float = UNIT_TOL) -> bool:
        """True if every non-skipped normal has length within ``tol`` of 1."""
        lengths = self.unit_lengths()
        keep = np.ones(len(self), dtype=bool)
        keep[[i for i in self.failed if lengths[i] == 0.0]] = False
        return bool(np.all(np.abs(lengths[keep] - 1.0) <= tol))
