"""ebsdmap: grain/phase indexing and node-weight maps for gridded EBSD data."""

from .access import avg_field_functor, point_field_functor
from .aggregate import GrainAccumulator, GrainSummary, GrainTable, build_grain_table, merge_accumulators
from .grid import GridGeometry
from .identity import GrainKey, IdentitySpace
from .loaders import load_point_store, read_dream3d, read_ebsd_text
from .pipeline import run
from .points import PointRecord, PointStore
from .reader import EBSDReader
from .weights import NodeWeightMaps, WeightMapConfig, build_node_weight_maps

__all__ = [
    "EBSDReader",
    "GrainAccumulator",
    "GrainKey",
    "GrainSummary",
    "GrainTable",
    "GridGeometry",
    "IdentitySpace",
    "NodeWeightMaps",
    "PointRecord",
    "PointStore",
    "WeightMapConfig",
    "avg_field_functor",
    "build_grain_table",
    "build_node_weight_maps",
    "load_point_store",
    "merge_accumulators",
    "point_field_functor",
    "read_dream3d",
    "read_ebsd_text",
    "run",
]
