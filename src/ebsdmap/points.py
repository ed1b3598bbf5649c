# src/ebsdmap/points.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np

from .grid import GridGeometry

logger = logging.getLogger(__name__)

__all__ = ["PointRecord", "PointStore"]


def _frozen(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True, order="C")
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class PointRecord:
    """One grid cell of measurement data. Euler angles are (phi1, Phi, phi2)."""

    phase: int
    feature_id: int
    euler: Tuple[float, float, float]
    custom: Tuple[float, ...] = ()
    symmetry: int = 0
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def phi1(self) -> float:
        return self.euler[0]

    @property
    def Phi(self) -> float:
        return self.euler[1]

    @property
    def phi2(self) -> float:
        return self.euler[2]


class PointStore:
    """
    Fixed-size per-cell measurement storage, one row per grid cell in offset order.

    Columns are held as read-only numpy arrays; `record(offset)` materialises a
    PointRecord. There is no search API: spatial lookups go through
    `GridGeometry.index_from_point` first.
    """

    def __init__(
        self,
        geometry: GridGeometry,
        phase: np.ndarray,
        feature_id: np.ndarray,
        euler: np.ndarray,
        custom: Optional[np.ndarray] = None,
        symmetry: Optional[np.ndarray] = None,
        custom_names: Optional[Sequence[str]] = None,
    ):
        n = geometry.n_cells
        phase = np.asarray(phase).reshape(-1)
        feature_id = np.asarray(feature_id).reshape(-1)
        euler = np.asarray(euler, dtype=float).reshape(-1, 3)

        for name, arr in (("phase", phase), ("feature_id", feature_id), ("euler", euler)):
            if len(arr) != n:
                raise ValueError(
                    f"PointStore column '{name}' has {len(arr)} rows but the grid "
                    f"{geometry.nx}x{geometry.ny}x{geometry.nz} has {n} cells."
                )
        if custom is None:
            custom = np.zeros((n, 0), dtype=float)
        custom = np.asarray(custom, dtype=float)
        if custom.ndim == 1:
            custom = custom.reshape(-1, 1)
        if custom.shape[0] != n:
            raise ValueError(f"Custom columns have {custom.shape[0]} rows, expected {n}.")
        if symmetry is None:
            symmetry = np.zeros(n, dtype=np.int64)
        symmetry = np.asarray(symmetry).reshape(-1)
        if len(symmetry) != n:
            raise ValueError(f"Symmetry column has {len(symmetry)} rows, expected {n}.")
        if n and int(phase.min()) < 0:
            raise ValueError(f"Phase numbers must be non-negative, found {int(phase.min())}.")

        if custom_names is None:
            custom_names = [f"custom{k}" for k in range(custom.shape[1])]
        custom_names = tuple(str(c) for c in custom_names)
        if len(custom_names) != custom.shape[1]:
            raise ValueError(
                f"{len(custom_names)} custom column names given for {custom.shape[1]} columns."
            )

        self.geometry = geometry
        self.phase = _frozen(phase.astype(np.int64))
        self.feature_id = _frozen(feature_id.astype(np.int64))
        self.euler = _frozen(euler)
        self.custom = _frozen(custom)
        self.symmetry = _frozen(symmetry.astype(np.int64))
        self.custom_names = custom_names

    @classmethod
    def from_scattered(
        cls,
        geometry: GridGeometry,
        positions: np.ndarray,
        phase: np.ndarray,
        feature_id: np.ndarray,
        euler: np.ndarray,
        custom: Optional[np.ndarray] = None,
        symmetry: Optional[np.ndarray] = None,
        custom_names: Optional[Sequence[str]] = None,
    ) -> "PointStore":
        """
        Place rows given in arbitrary order into their cells using the rows'
        (x, y, z) positions. Every cell must receive exactly one row.
        """
        positions = np.asarray(positions, dtype=float)
        offsets = geometry.indices_from_points(positions)
        n = geometry.n_cells
        if len(offsets) != n:
            raise ValueError(
                f"Data has {len(offsets)} points but the grid "
                f"{geometry.nx}x{geometry.ny}x{geometry.nz} has {n} cells."
            )
        hits = np.bincount(offsets, minlength=n)
        if np.any(hits != 1):
            dup = int(np.count_nonzero(hits > 1))
            missing = int(np.count_nonzero(hits == 0))
            raise ValueError(
                f"Data points do not map one-to-one onto grid cells "
                f"({dup} cells hit more than once, {missing} cells empty)."
            )

        order = np.empty(n, dtype=np.int64)
        order[offsets] = np.arange(n)

        def _take(arr):
            return None if arr is None else np.asarray(arr)[order]

        return cls(
            geometry,
            phase=np.asarray(phase).reshape(-1)[order],
            feature_id=np.asarray(feature_id).reshape(-1)[order],
            euler=np.asarray(euler, dtype=float).reshape(-1, 3)[order],
            custom=_take(custom),
            symmetry=_take(symmetry),
            custom_names=custom_names,
        )

    # ---------- Access ----------
    def __len__(self) -> int:
        return len(self.feature_id)

    @property
    def n_custom(self) -> int:
        return self.custom.shape[1]

    def _check_offset(self, offset: int) -> int:
        i = int(offset)
        if i < 0 or i >= len(self):
            raise IndexError(f"Point offset {i} out of range [0, {len(self)}).")
        return i

    def record(self, offset: int) -> PointRecord:
        i = self._check_offset(offset)
        return PointRecord(
            phase=int(self.phase[i]),
            feature_id=int(self.feature_id[i]),
            euler=tuple(float(v) for v in self.euler[i]),
            custom=tuple(float(v) for v in self.custom[i]),
            symmetry=int(self.symmetry[i]),
            position=tuple(float(v) for v in self.geometry.centroid(i)),
        )

    def __getitem__(self, offset: int) -> PointRecord:
        return self.record(offset)

    def __iter__(self) -> Iterator[PointRecord]:
        for i in range(len(self)):
            yield self.record(i)
