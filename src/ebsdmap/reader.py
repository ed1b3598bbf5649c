# src/ebsdmap/reader.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np

from .access import FieldFunctor, avg_field_functor, point_field_functor
from .aggregate import GrainSummary, GrainTable, build_grain_table
from .grid import GridGeometry
from .identity import FeatureID, GlobalID
from .points import PointRecord, PointStore
from .weights import NodeInput, NodeWeightMaps, WeightMapConfig, build_node_weight_maps

logger = logging.getLogger(__name__)

__all__ = ["EBSDState", "EBSDReader"]


@dataclass(frozen=True)
class EBSDState:
    """Everything one load produces; swapped in as a unit on reload."""

    store: PointStore
    table: GrainTable
    cell_global_ids: np.ndarray
    weights: Optional[NodeWeightMaps] = None

    @property
    def geometry(self) -> GridGeometry:
        return self.store.geometry


class EBSDReader:
    """
    Query surface over a loaded measurement grid.

    Grains are indexed through three schemes:
      * feature_id  the grain number in the data file
      * global_id   index into the grain average table (0..G-1, first-seen order)
      * local_id    index into a phase's grain list, unique only together with the phase

    Phases keep the numbering of the data file; if it starts at 1, phase 0
    simply holds no grains.

    Call order: load() -> (optional) build_weight_maps() -> queries.
    """

    def __init__(self, store: Optional[PointStore] = None):
        self._state: Optional[EBSDState] = None
        if store is not None:
            self.load(store)

    # ---------- Build ----------
    def load(self, store: PointStore) -> "EBSDReader":
        """Build identity and averages for `store`, replacing any previous state."""
        table, cell_gid = build_grain_table(store)
        self._state = EBSDState(store=store, table=table, cell_global_ids=cell_gid)
        return self

    def build_weight_maps(
        self, nodes: NodeInput, cfg: Optional[WeightMapConfig] = None
    ) -> NodeWeightMaps:
        s = self._require()
        maps = build_node_weight_maps(s.geometry, s.table, s.cell_global_ids, nodes, cfg)
        self._state = EBSDState(s.store, s.table, s.cell_global_ids, maps)
        return maps

    def _require(self) -> EBSDState:
        if self._state is None:
            raise RuntimeError("No data loaded; call load() before querying the reader.")
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> EBSDState:
        return self._require()

    @property
    def geometry(self) -> GridGeometry:
        return self._require().geometry

    @property
    def table(self) -> GrainTable:
        return self._require().table

    # ---------- Grid ----------
    def index_from_point(self, point: Sequence[float]) -> int:
        return self._require().geometry.index_from_point(point)

    def index_from_index(self, var: int) -> int:
        """Slot in the average table for grain-list position `var`."""
        return self._require().table.identity.check_global_id(var)

    # ---------- Point / average data ----------
    def get_data(self, point: Sequence[float]) -> PointRecord:
        s = self._require()
        return s.store.record(s.geometry.index_from_point(point))

    def get_avg_data(self, phase_or_global_id: int, local_id: Optional[int] = None) -> GrainSummary:
        """get_avg_data(global_id) or get_avg_data(phase, local_id)."""
        table = self._require().table
        if local_id is None:
            return table.summary(phase_or_global_id)
        return table.summary_at(phase_or_global_id, local_id)

    def get_euler_angles(self, global_id: int) -> Tuple[float, float, float]:
        return self.get_avg_data(global_id).euler

    # ---------- Counting / identity ----------
    def get_grain_num(self, phase: Optional[int] = None) -> int:
        return self._require().table.identity.grain_num(phase)

    def get_phase_num(self) -> int:
        return self._require().table.identity.phase_num()

    def get_feature_id(self, phase: int, local_id: int) -> FeatureID:
        return self._require().table.identity.feature_id(phase, local_id)

    def get_global_id(self, phase: int, local_id: int) -> GlobalID:
        return self._require().table.identity.global_id(phase, local_id)

    def get_global_id_of(self, feature_id: int) -> GlobalID:
        return self._require().table.identity.global_id_of(feature_id)

    # ---------- Weight maps ----------
    def _weights(self) -> NodeWeightMaps:
        s = self._require()
        if s.weights is None:
            raise RuntimeError("Node weight maps not built; call build_weight_maps() first.")
        return s.weights

    def get_node_to_grain_weight_map(self) -> Mapping[int, np.ndarray]:
        return self._weights().grain

    def get_node_to_phase_weight_map(self) -> Mapping[int, np.ndarray]:
        return self._weights().phase

    # ---------- Named field access ----------
    def get_point_data_access_functor(self, field_name: str) -> FieldFunctor:
        return point_field_functor(field_name, self._require().store.custom_names)

    def get_avg_data_access_functor(self, field_name: str) -> FieldFunctor:
        return avg_field_functor(field_name, self._require().table.custom_names)
