# src/ebsdmap/aggregate.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import reduce
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .identity import IdentitySpace
from .points import PointStore

logger = logging.getLogger(__name__)

__all__ = [
    "GrainSummary",
    "GrainAccumulator",
    "GrainTable",
    "merge_accumulators",
    "build_grain_table",
]


@dataclass(frozen=True)
class GrainSummary:
    """Per-grain averages. `euler` is the plain arithmetic mean of (phi1, Phi, phi2)."""

    global_id: int
    feature_id: int
    phase: int
    local_id: int
    symmetry: int
    euler: Tuple[float, float, float]
    custom: Tuple[float, ...]
    position: Tuple[float, float, float]
    n: int

    @property
    def phi1(self) -> float:
        return self.euler[0]

    @property
    def Phi(self) -> float:
        return self.euler[1]

    @property
    def phi2(self) -> float:
        return self.euler[2]


# ============================== Build phase ===================================


class GrainAccumulator:
    """
    Mutable running sums keyed by grain, filled from one or more PointStores.

    Grains are numbered in order of first sighting. Sums are accumulated in
    point order (np.add.at is unbuffered and sequential), so repeated builds
    over the same data give bit-identical averages.
    """

    def __init__(self, n_custom: int = 0, custom_names: Optional[Sequence[str]] = None):
        self.n_custom = int(n_custom)
        self.custom_names = tuple(custom_names) if custom_names is not None else tuple(
            f"custom{k}" for k in range(self.n_custom)
        )
        self.feature_ids: List[int] = []
        self.phases: List[int] = []
        self.symmetry: List[int] = []
        self._index: Dict[int, int] = {}
        self.euler_sum = np.zeros((0, 3), dtype=float)
        self.custom_sum = np.zeros((0, self.n_custom), dtype=float)
        self.position_sum = np.zeros((0, 3), dtype=float)
        self.counts = np.zeros(0, dtype=np.int64)
        self.max_phase = -1

    def __len__(self) -> int:
        return len(self.feature_ids)

    def _grow(self, n_new: int) -> None:
        if n_new == 0:
            return
        self.euler_sum = np.vstack([self.euler_sum, np.zeros((n_new, 3))])
        self.custom_sum = np.vstack([self.custom_sum, np.zeros((n_new, self.n_custom))])
        self.position_sum = np.vstack([self.position_sum, np.zeros((n_new, 3))])
        self.counts = np.concatenate([self.counts, np.zeros(n_new, dtype=np.int64)])

    def _register(self, feature_ids: np.ndarray, phases: np.ndarray, symmetry: np.ndarray) -> np.ndarray:
        """Map feature ids (first-sighting order) to global ids, appending unseen grains."""
        gids = np.empty(len(feature_ids), dtype=np.int64)
        n_before = len(self.feature_ids)
        for i, (f, p, s) in enumerate(zip(feature_ids, phases, symmetry)):
            f = int(f)
            g = self._index.get(f)
            if g is None:
                g = len(self.feature_ids)
                self._index[f] = g
                self.feature_ids.append(f)
                self.phases.append(int(p))
                self.symmetry.append(int(s))
            gids[i] = g
        self._grow(len(self.feature_ids) - n_before)
        return gids

    def _warn_phase_mismatch(self, feature_ids: np.ndarray, phases: np.ndarray, gids: np.ndarray) -> None:
        grain_phase = np.asarray(self.phases, dtype=np.int64)
        mismatch = np.asarray(phases) != grain_phase[gids]
        if np.any(mismatch):
            bad = np.unique(np.asarray(feature_ids)[mismatch])
            logger.warning(
                "%d grains have points in more than one phase (e.g. feature %d); "
                "keeping the phase of each grain's first point.",
                len(bad),
                int(bad[0]),
            )

    def add_store(self, store: PointStore) -> np.ndarray:
        """
        Accumulate every cell of `store` and return the global id of each cell
        (offset order).
        """
        if store.n_custom != self.n_custom:
            raise ValueError(
                f"PointStore has {store.n_custom} custom columns, accumulator expects {self.n_custom}."
            )
        fids = store.feature_id
        uniq, first_idx, inverse = np.unique(fids, return_index=True, return_inverse=True)
        order = np.argsort(first_idx, kind="stable")
        rank = np.empty_like(order)
        rank[order] = np.arange(len(order))

        first = first_idx[order]
        gid_of_rank = self._register(uniq[order], store.phase[first], store.symmetry[first])
        cell_gid = gid_of_rank[rank[inverse.reshape(-1)]]

        np.add.at(self.euler_sum, cell_gid, store.euler)
        if self.n_custom:
            np.add.at(self.custom_sum, cell_gid, store.custom)
        np.add.at(self.position_sum, cell_gid, store.geometry.centroids())
        self.counts += np.bincount(cell_gid, minlength=len(self.counts))

        self._warn_phase_mismatch(store.feature_id, store.phase, cell_gid)
        if len(store):
            self.max_phase = max(self.max_phase, int(store.phase.max()))
        return cell_gid

    def merged(self, other: "GrainAccumulator") -> "GrainAccumulator":
        """
        Combine two accumulators without modifying either. Grains of `self` keep
        their ids; grains first seen in `other` are appended in `other`'s order.
        """
        if other.n_custom != self.n_custom:
            raise ValueError("Cannot merge accumulators with different custom column counts.")
        out = GrainAccumulator(self.n_custom, self.custom_names)
        out.feature_ids = list(self.feature_ids)
        out.phases = list(self.phases)
        out.symmetry = list(self.symmetry)
        out._index = dict(self._index)
        out.euler_sum = self.euler_sum.copy()
        out.custom_sum = self.custom_sum.copy()
        out.position_sum = self.position_sum.copy()
        out.counts = self.counts.copy()
        out.max_phase = max(self.max_phase, other.max_phase)

        other_fids = np.asarray(other.feature_ids, dtype=np.int64)
        other_phases = np.asarray(other.phases, dtype=np.int64)
        gids = out._register(other_fids, other_phases, np.asarray(other.symmetry, dtype=np.int64))
        out._warn_phase_mismatch(other_fids, other_phases, gids)
        np.add.at(out.euler_sum, gids, other.euler_sum)
        if self.n_custom:
            np.add.at(out.custom_sum, gids, other.custom_sum)
        np.add.at(out.position_sum, gids, other.position_sum)
        np.add.at(out.counts, gids, other.counts)
        return out

    def finalize(self) -> "GrainTable":
        identity = IdentitySpace(self.feature_ids, self.phases, n_phases=self.max_phase + 1)
        counts = self.counts.astype(float).reshape(-1, 1)
        # every registered grain has at least one point
        return GrainTable(
            identity=identity,
            avg_euler=self.euler_sum / counts,
            avg_custom=self.custom_sum / counts,
            avg_position=self.position_sum / counts,
            counts=self.counts.copy(),
            symmetry=np.asarray(self.symmetry, dtype=np.int64),
            custom_names=self.custom_names,
        )


def merge_accumulators(parts: Iterable[GrainAccumulator]) -> GrainAccumulator:
    """Fold worker-local accumulators into one, in the given order."""
    parts = list(parts)
    if not parts:
        raise ValueError("merge_accumulators needs at least one accumulator.")
    return reduce(lambda a, b: a.merged(b), parts[1:], parts[0])


# ============================== Result ========================================


class GrainTable:
    """Immutable per-grain averages indexed by global id, plus the IdentitySpace."""

    def __init__(
        self,
        identity: IdentitySpace,
        avg_euler: np.ndarray,
        avg_custom: np.ndarray,
        avg_position: np.ndarray,
        counts: np.ndarray,
        symmetry: np.ndarray,
        custom_names: Sequence[str] = (),
    ):
        self.identity = identity
        self.avg_euler = avg_euler
        self.avg_custom = avg_custom
        self.avg_position = avg_position
        self.counts = counts
        self.symmetry = symmetry
        self.custom_names = tuple(custom_names)
        for arr in (avg_euler, avg_custom, avg_position, counts, symmetry):
            arr.flags.writeable = False

    def __len__(self) -> int:
        return self.identity.grain_num()

    def summary(self, global_id: int) -> GrainSummary:
        g = self.identity.check_global_id(global_id)
        key = self.identity.key_of(g)
        return GrainSummary(
            global_id=g,
            feature_id=self.identity.feature_of(g),
            phase=key.phase,
            local_id=int(key.local_id),
            symmetry=int(self.symmetry[g]),
            euler=tuple(float(v) for v in self.avg_euler[g]),
            custom=tuple(float(v) for v in self.avg_custom[g]),
            position=tuple(float(v) for v in self.avg_position[g]),
            n=int(self.counts[g]),
        )

    def summary_at(self, phase: int, local_id: int) -> GrainSummary:
        return self.summary(self.identity.global_id(phase, local_id))

    # ---------- Tables ----------
    def to_frame(self) -> pd.DataFrame:
        ident = self.identity
        df = pd.DataFrame(
            {
                "global_id": np.arange(len(self), dtype=np.int64),
                "feature_id": ident.feature_ids,
                "phase": ident.phases,
                "local_id": ident.local_ids,
                "symmetry": self.symmetry,
                "n": self.counts,
                "phi1": self.avg_euler[:, 0],
                "Phi": self.avg_euler[:, 1],
                "phi2": self.avg_euler[:, 2],
                "x": self.avg_position[:, 0],
                "y": self.avg_position[:, 1],
                "z": self.avg_position[:, 2],
            }
        )
        for k, name in enumerate(self.custom_names):
            df[name] = self.avg_custom[:, k]
        return df

    def phase_frame(self) -> pd.DataFrame:
        """
        One row per phase (empty phases included): grain count, point count,
        volume fraction and point-weighted mean orientation.
        """
        n_phases = self.identity.phase_num()
        phases = self.identity.phases
        counts = self.counts.astype(float)
        points = np.bincount(phases, weights=counts, minlength=n_phases)
        total = points.sum()
        rows = {
            "phase": np.arange(n_phases, dtype=np.int64),
            "grains": np.bincount(phases, minlength=n_phases),
            "n": points.astype(np.int64),
            "volume_fraction": points / total if total > 0 else np.zeros(n_phases),
        }
        with np.errstate(invalid="ignore", divide="ignore"):
            for k, name in enumerate(("phi1", "Phi", "phi2")):
                s = np.bincount(phases, weights=self.avg_euler[:, k] * counts, minlength=n_phases)
                rows[name] = np.where(points > 0, s / points, np.nan)
        return pd.DataFrame(rows)

    def __eq__(self, other) -> bool:
        if not isinstance(other, GrainTable):
            return NotImplemented
        return (
            self.identity == other.identity
            and np.array_equal(self.avg_euler, other.avg_euler)
            and np.array_equal(self.avg_custom, other.avg_custom)
            and np.array_equal(self.counts, other.counts)
        )

    __hash__ = None


def build_grain_table(store: PointStore) -> Tuple[GrainTable, np.ndarray]:
    """
    Single pass over `store` building the IdentitySpace and the grain averages.
    Returns (table, cell_global_ids) where the second array gives the global id
    of every cell in offset order.
    """
    t0 = time.process_time()
    acc = GrainAccumulator(store.n_custom, store.custom_names)
    cell_gid = acc.add_store(store)
    table = acc.finalize()
    cell_gid.flags.writeable = False
    logger.info(
        "build_grain_table: %d points -> %d grains in %d phases (%.3fs)",
        len(store),
        table.identity.grain_num(),
        table.identity.phase_num(),
        time.process_time() - t0,
    )
    return table, cell_gid
