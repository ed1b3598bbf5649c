# src/ebsdmap/weights.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import spatial

from .aggregate import GrainTable
from .grid import GridGeometry

logger = logging.getLogger(__name__)

__all__ = [
    "KERNELS",
    "WeightMapConfig",
    "NodeWeightMaps",
    "normalize_nodes",
    "build_node_weight_maps",
]

NodeInput = Union[Mapping[int, Sequence[float]], np.ndarray]


def _uniform(s: np.ndarray) -> np.ndarray:
    return np.ones_like(s)


def _linear(s: np.ndarray) -> np.ndarray:
    return np.clip(1.0 - s, 0.0, None)


def _gaussian(s: np.ndarray) -> np.ndarray:
    return np.exp(-2.0 * s * s)


# kernels take the distance normalised by the radius
KERNELS = {"uniform": _uniform, "linear": _linear, "gaussian": _gaussian}


@dataclass
class WeightMapConfig:
    """
    Neighbourhood of a node = its containing cell plus every cell whose centroid
    lies within `radius` of the node. radius=None keeps only the containing cell.
    """

    radius: Optional[float] = None
    kernel: str = "uniform"  # "uniform" | "linear" | "gaussian"

    def __post_init__(self):
        if self.kernel not in KERNELS:
            raise ValueError(
                f"Unknown kernel '{self.kernel}'. Choose from {'|'.join(sorted(KERNELS))}."
            )
        if self.radius is not None and not (float(self.radius) > 0.0):
            raise ValueError(f"radius must be positive, got {self.radius}.")


@dataclass(frozen=True)
class NodeWeightMaps:
    grain: Mapping[int, np.ndarray]
    phase: Mapping[int, np.ndarray]

    @classmethod
    def empty(cls) -> "NodeWeightMaps":
        return cls(MappingProxyType({}), MappingProxyType({}))


def normalize_nodes(nodes: NodeInput) -> Tuple[np.ndarray, np.ndarray]:
    """
    Accept {node_id: (x, y[, z])} or an (N, D) array (node id = row index) and
    return (ids, coords) with coords padded to (N, 3).
    """
    if hasattr(nodes, "items"):
        items = list(nodes.items())
        ids = np.asarray([int(k) for k, _ in items], dtype=np.int64)
        rows = [np.asarray(v, dtype=float).reshape(-1) for _, v in items]
        width = max((len(r) for r in rows), default=3)
        coords = np.zeros((len(rows), max(width, 3)), dtype=float)
        for i, r in enumerate(rows):
            coords[i, : len(r)] = r
    else:
        coords = np.asarray(nodes, dtype=float)
        if coords.ndim == 1:
            coords = coords.reshape(-1, 1)
        ids = np.arange(len(coords), dtype=np.int64)
        if coords.shape[1] < 3:
            coords = np.hstack([coords, np.zeros((len(coords), 3 - coords.shape[1]))])
    return ids, coords[:, :3]


def build_node_weight_maps(
    geometry: GridGeometry,
    table: GrainTable,
    cell_global_ids: np.ndarray,
    nodes: NodeInput,
    cfg: Optional[WeightMapConfig] = None,
) -> NodeWeightMaps:
    """
    For every node return the normalised weight of each grain (length G) and of
    each phase (length P) over the node's neighbourhood. Nodes with non-finite
    coordinates or zero total weight are left out of both maps.
    """
    cfg = cfg or WeightMapConfig()
    n_grains = table.identity.grain_num()
    n_phases = table.identity.phase_num()
    if n_grains == 0 or n_phases == 0:
        raise RuntimeError(
            "Grain table is empty; build the grain averages before the node weight maps."
        )

    ids, coords = normalize_nodes(nodes)
    if len(ids) == 0:
        return NodeWeightMaps.empty()

    t0 = time.process_time()
    # inactive axes of 1-D/2-D grids do not contribute to distances
    coords = coords.copy()
    coords[:, geometry.dim :] = np.asarray(geometry.origin)[geometry.dim :]
    finite = np.all(np.isfinite(coords), axis=1)
    containing = geometry.indices_from_points(coords)
    grain_phase = table.identity.phases
    kernel = KERNELS[cfg.kernel]

    centroids = None
    neighbors = None
    if cfg.radius is not None and np.any(finite):
        centroids = geometry.centroids()
        tree = spatial.cKDTree(centroids)
        neighbors = tree.query_ball_point(coords[finite], r=float(cfg.radius))

    grain_map = {}
    phase_map = {}
    skipped = 0
    k = 0
    for i in range(len(ids)):
        if not finite[i]:
            skipped += 1
            continue
        if neighbors is None:
            cells = np.array([containing[i]], dtype=np.int64)
            w = np.ones(1)
        else:
            cells = np.union1d(np.asarray(neighbors[k], dtype=np.int64), [containing[i]])
            d = np.linalg.norm(centroids[cells] - coords[i], axis=1)
            w = kernel(d / float(cfg.radius))
        k += 1

        total = float(w.sum())
        if not (total > 0.0):
            skipped += 1
            continue
        gw = np.bincount(cell_global_ids[cells], weights=w, minlength=n_grains) / total
        pw = np.bincount(grain_phase, weights=gw, minlength=n_phases)
        gw.flags.writeable = False
        pw.flags.writeable = False
        grain_map[int(ids[i])] = gw
        phase_map[int(ids[i])] = pw

    logger.info(
        "build_node_weight_maps: %d nodes -> %d weighted (%d skipped), radius=%s kernel=%s (%.3fs)",
        len(ids),
        len(grain_map),
        skipped,
        cfg.radius,
        cfg.kernel,
        time.process_time() - t0,
    )
    return NodeWeightMaps(MappingProxyType(grain_map), MappingProxyType(phase_map))
