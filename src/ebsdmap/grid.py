# src/ebsdmap/grid.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

__all__ = ["GridGeometry"]


@dataclass(frozen=True)
class GridGeometry:
    """
    Regular measurement grid: origin, per-axis spacing and per-axis cell counts.

    Cells are stored row-major with X fastest:
        offset = ix + nx * (iy + ny * iz)
    Axes beyond `dim` are collapsed to index 0 regardless of the query coordinate.
    """

    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    spacing: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    counts: Tuple[int, int, int] = (1, 1, 1)
    dim: int = 3

    def __post_init__(self):
        origin = tuple(float(v) for v in self.origin)
        spacing = tuple(float(v) for v in self.spacing)
        counts = tuple(int(v) for v in self.counts)
        if len(origin) != 3 or len(spacing) != 3 or len(counts) != 3:
            raise ValueError("origin, spacing and counts must each have 3 components.")
        if any(n < 1 for n in counts):
            raise ValueError(f"Grid counts must be positive, got {counts}.")
        if any(not (s > 0.0) for s in spacing[: self.dim]):
            raise ValueError(f"Grid spacing must be positive, got {spacing}.")
        if self.dim not in (1, 2, 3):
            raise ValueError(f"Grid dimension must be 1, 2 or 3, got {self.dim}.")
        for axis in range(self.dim, 3):
            if counts[axis] != 1:
                raise ValueError(
                    f"A {self.dim}-D grid must have a single cell along axis {axis}, got {counts[axis]}."
                )
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "spacing", spacing)
        object.__setattr__(self, "counts", counts)

    @classmethod
    def from_counts(
        cls,
        counts: Sequence[int],
        spacing: Sequence[float] = (1.0, 1.0, 1.0),
        origin: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> "GridGeometry":
        """Build a grid, inferring the dimension from the trailing axes with a single cell."""
        counts = [int(n) for n in counts] + [1] * (3 - len(counts))
        dim = 3
        while dim > 1 and counts[dim - 1] == 1:
            dim -= 1
        spacing = [float(s) for s in spacing] + [1.0] * (3 - len(spacing))
        origin = [float(o) for o in origin] + [0.0] * (3 - len(origin))
        return cls(tuple(origin), tuple(spacing), tuple(counts), dim)

    # ---------- Bounding box ----------
    @property
    def nx(self) -> int:
        return self.counts[0]

    @property
    def ny(self) -> int:
        return self.counts[1]

    @property
    def nz(self) -> int:
        return self.counts[2]

    @property
    def n_cells(self) -> int:
        return self.nx * self.ny * self.nz

    @property
    def bottom_left(self) -> np.ndarray:
        return np.asarray(self.origin, dtype=float)

    @property
    def top_right(self) -> np.ndarray:
        return self.bottom_left + np.asarray(self.counts, dtype=float) * np.asarray(self.spacing)

    @property
    def range(self) -> np.ndarray:
        return self.top_right - self.bottom_left

    def contains(self, point: Sequence[float]) -> bool:
        """Strict bounding-box test over the active axes (index_from_point never rejects)."""
        p = np.asarray(point, dtype=float).reshape(-1)
        lo = self.bottom_left[: self.dim]
        hi = self.top_right[: self.dim]
        q = p[: self.dim]
        return bool(np.all(q >= lo) and np.all(q <= hi))

    # ---------- Point -> offset ----------
    def indices_from_points(self, points: np.ndarray) -> np.ndarray:
        """
        Vectorised cell lookup for an (N, 3) array (shorter rows are padded with 0).
        Each active axis uses floor((c - origin) / spacing) clamped to [0, n-1].
        """
        pts = np.asarray(points, dtype=float)
        if pts.ndim == 1:
            pts = pts.reshape(1, -1)
        if pts.shape[1] < 3:
            pts = np.hstack([pts, np.zeros((len(pts), 3 - pts.shape[1]))])

        ijk = np.zeros((len(pts), 3), dtype=np.int64)
        for axis in range(self.dim):
            raw = np.floor((pts[:, axis] - self.origin[axis]) / self.spacing[axis])
            # NaN coordinates land in cell 0 rather than poisoning the cast
            raw = np.nan_to_num(raw, nan=0.0, posinf=self.counts[axis] - 1, neginf=0.0)
            ijk[:, axis] = np.clip(raw, 0, self.counts[axis] - 1).astype(np.int64)
        return ijk[:, 0] + self.nx * (ijk[:, 1] + self.ny * ijk[:, 2])

    def index_from_point(self, point: Sequence[float]) -> int:
        return int(self.indices_from_points(np.asarray(point, dtype=float).reshape(1, -1))[0])

    # ---------- Offset -> centroid ----------
    def unravel(self, offset: int) -> Tuple[int, int, int]:
        offset = int(offset)
        if offset < 0 or offset >= self.n_cells:
            raise IndexError(f"Grid offset {offset} out of range [0, {self.n_cells}).")
        ix = offset % self.nx
        iy = (offset // self.nx) % self.ny
        iz = offset // (self.nx * self.ny)
        return ix, iy, iz

    def centroid(self, offset: int) -> np.ndarray:
        ijk = np.asarray(self.unravel(offset), dtype=float)
        c = self.bottom_left + (ijk + 0.5) * np.asarray(self.spacing)
        c[self.dim :] = self.origin[self.dim :]
        return c

    def centroids(self) -> np.ndarray:
        """All cell centres in offset order, shape (n_cells, 3)."""
        iz, iy, ix = np.meshgrid(
            np.arange(self.nz), np.arange(self.ny), np.arange(self.nx), indexing="ij"
        )
        ijk = np.stack([ix.ravel(), iy.ravel(), iz.ravel()], axis=1).astype(float)
        out = self.bottom_left + (ijk + 0.5) * np.asarray(self.spacing)
        out[:, self.dim :] = np.asarray(self.origin)[self.dim :]
        return out
