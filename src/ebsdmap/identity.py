# src/ebsdmap/identity.py
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, NamedTuple, NewType, Optional, Sequence, Tuple

import numpy as np

__all__ = ["FeatureID", "GlobalID", "LocalID", "GrainKey", "IdentitySpace"]

# Grains are indexed through three schemes:
#   feature_id  the grain number as written in the data file
#   global_id   dense 0..G-1 index into the grain summary table
#   local_id    index into one phase's grain list, unique only together with the phase
FeatureID = NewType("FeatureID", int)
GlobalID = NewType("GlobalID", int)
LocalID = NewType("LocalID", int)


class GrainKey(NamedTuple):
    phase: int
    local_id: LocalID


class IdentitySpace:
    """
    Frozen cross-reference between feature, global and per-phase local grain ids.

    `feature_ids[g]` and `phases[g]` describe global grain g; grains are listed in
    the order they were first seen, so the assignment is reproducible for a
    given point order. Phase numbering is taken verbatim from the data: when
    phases start at 1, phase 0 exists and is empty.
    """

    def __init__(self, feature_ids: Sequence[int], phases: Sequence[int], n_phases: Optional[int] = None):
        feature_ids = np.asarray(feature_ids, dtype=np.int64).reshape(-1)
        phases = np.asarray(phases, dtype=np.int64).reshape(-1)
        if len(feature_ids) != len(phases):
            raise ValueError("feature_ids and phases must have one entry per grain.")
        if len(np.unique(feature_ids)) != len(feature_ids):
            raise ValueError("feature ids must be unique across grains.")
        if len(phases) and int(phases.min()) < 0:
            raise ValueError(f"Phase numbers must be non-negative, found {int(phases.min())}.")

        n_needed = int(phases.max()) + 1 if len(phases) else 0
        n_phases = n_needed if n_phases is None else int(n_phases)
        if n_phases < n_needed:
            raise ValueError(f"n_phases={n_phases} but phase {n_needed - 1} is used.")

        members = [[] for _ in range(n_phases)]
        local_ids = np.empty(len(feature_ids), dtype=np.int64)
        for g, p in enumerate(phases):
            local_ids[g] = len(members[p])
            members[p].append(g)

        self._feature_ids = feature_ids
        self._phases = phases
        self._local_ids = local_ids
        self._members: Tuple[Tuple[int, ...], ...] = tuple(tuple(m) for m in members)
        self._global_id_map: Mapping[int, int] = MappingProxyType(
            {int(f): g for g, f in enumerate(feature_ids)}
        )
        for arr in (self._feature_ids, self._phases, self._local_ids):
            arr.flags.writeable = False

    # ---------- Counts ----------
    def grain_num(self, phase: Optional[int] = None) -> int:
        if phase is None:
            return len(self._feature_ids)
        return len(self._members_of(phase))

    def phase_num(self) -> int:
        return len(self._members)

    # ---------- Translation ----------
    def _members_of(self, phase: int) -> Tuple[int, ...]:
        p = int(phase)
        if p < 0 or p >= len(self._members):
            raise IndexError(f"Phase {p} out of range [0, {len(self._members)}).")
        return self._members[p]

    def global_id(self, phase: int, local_id: int) -> GlobalID:
        members = self._members_of(phase)
        i = int(local_id)
        if i < 0 or i >= len(members):
            raise IndexError(
                f"local_id {i} out of range for phase {int(phase)}, which has {len(members)} grains."
            )
        return GlobalID(members[i])

    def feature_id(self, phase: int, local_id: int) -> FeatureID:
        return self.feature_of(self.global_id(phase, local_id))

    def check_global_id(self, global_id: int) -> int:
        g = int(global_id)
        if g < 0 or g >= len(self._feature_ids):
            raise IndexError(f"global_id {g} out of range [0, {len(self._feature_ids)}).")
        return g

    def feature_of(self, global_id: int) -> FeatureID:
        return FeatureID(int(self._feature_ids[self.check_global_id(global_id)]))

    def phase_of(self, global_id: int) -> int:
        return int(self._phases[self.check_global_id(global_id)])

    def key_of(self, global_id: int) -> GrainKey:
        g = self.check_global_id(global_id)
        return GrainKey(int(self._phases[g]), LocalID(int(self._local_ids[g])))

    def global_id_of(self, feature_id: int) -> GlobalID:
        try:
            return GlobalID(self._global_id_map[int(feature_id)])
        except KeyError as e:
            raise KeyError(f"feature_id={feature_id} not present in the data.") from e

    def members(self, phase: int) -> Tuple[int, ...]:
        """Global ids of the grains of `phase`, in local-id order."""
        return self._members_of(phase)

    # ---------- Raw views (read-only) ----------
    @property
    def feature_ids(self) -> np.ndarray:
        return self._feature_ids

    @property
    def phases(self) -> np.ndarray:
        return self._phases

    @property
    def local_ids(self) -> np.ndarray:
        return self._local_ids

    @property
    def global_id_map(self) -> Mapping[int, int]:
        return self._global_id_map

    def __eq__(self, other) -> bool:
        if not isinstance(other, IdentitySpace):
            return NotImplemented
        return (
            np.array_equal(self._feature_ids, other._feature_ids)
            and np.array_equal(self._phases, other._phases)
            and self._members == other._members
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"IdentitySpace(grains={self.grain_num()}, phases={self.phase_num()})"
