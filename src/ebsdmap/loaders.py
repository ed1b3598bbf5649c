# src/ebsdmap/loaders.py
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import h5py as hdf
import numpy as np
import pandas as pd

from .grid import GridGeometry
from .points import PointStore

logger = logging.getLogger(__name__)

__all__ = [
    "TextFormatConfig",
    "find_dataset_keys",
    "read_dataset",
    "read_ebsd_text",
    "read_dream3d",
    "load_point_store",
]

PathLike = Union[str, Path]

HDF5_SUFFIXES = (".dream3d", ".h5", ".hdf5")

DEFAULT_DREAM3D_MAPPING: Dict[str, str] = {
    "feature_id": "FeatureIds",
    "phase": "Phases",
    "euler": "EulerAngles",
    "dimensions": "DIMENSIONS",
    "spacing": "SPACING",
    "origin": "ORIGIN",
}
DEFAULT_PREFER_GROUPS = ["CellData", "_SIMPL_GEOMETRY", "CellFeatureData"]

_HEADER_RE = re.compile(r"^#\s*([A-Za-z_]+)\s*:\s*(\S+)")


# ----------------- Common HDF5 helpers -----------------


def find_dataset_keys(
    f: hdf.File, target_name: str, prefer_groups: Optional[List[str]] = None
) -> List[str]:
    """
    Locate a dataset named `target_name` (case-insensitive) anywhere in `f` and
    return its key path, e.g. ["DataContainers", "ImageDataContainer", "CellData", "FeatureIds"].
    With several matches, prefer a path containing an earlier entry of `prefer_groups`,
    then the shortest path.
    """
    hits: List[List[str]] = []

    def visit(name, obj):
        if isinstance(obj, hdf.Dataset) and name.split("/")[-1].lower() == target_name.lower():
            hits.append([k for k in name.split("/") if k])

    f.visititems(visit)
    if not hits:
        raise KeyError(target_name)

    def score(keys: List[str]) -> Tuple[int, int]:
        rank = 0
        if prefer_groups:
            rank = len(prefer_groups)
            for i, g in enumerate(prefer_groups):
                if any(g in k for k in keys):
                    rank = i
                    break
        return (rank, len(keys))

    hits.sort(key=score)
    return hits[0]


def read_dataset(f: hdf.File, target_name: str, prefer_groups: Optional[List[str]] = None) -> np.ndarray:
    obj = f
    for k in find_dataset_keys(f, target_name, prefer_groups=prefer_groups):
        obj = obj[k]
    return np.asarray(obj[()])


# ----------------- Dream3D / HDF5 -----------------


def read_dream3d(
    path: PathLike,
    mapping: Optional[Dict[str, str]] = None,
    prefer_groups: Optional[List[str]] = None,
    angles_in_radians: bool = True,
) -> PointStore:
    """
    Fill a PointStore from a Dream3D file. Cell arrays are stored (Z, Y, X, C),
    so a C-order flatten is already the X-fastest offset order.

    Phases default to 1 everywhere when absent (Dream3D numbers phases from 1,
    leaving phase 0 empty); SPACING and ORIGIN default to 1 and 0.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    names = dict(DEFAULT_DREAM3D_MAPPING)
    names.update(mapping or {})
    prefer = prefer_groups or DEFAULT_PREFER_GROUPS

    t0 = time.process_time()
    with hdf.File(p, "r") as f:
        feature_id = read_dataset(f, names["feature_id"], prefer)
        euler = read_dataset(f, names["euler"], prefer)
        dims = read_dataset(f, names["dimensions"], prefer).reshape(-1)
        try:
            phase = read_dataset(f, names["phase"], prefer)
        except KeyError:
            logger.warning("No '%s' dataset in %s; assigning every cell to phase 1.", names["phase"], p)
            phase = np.ones(feature_id.size, dtype=np.int64)
        try:
            spacing = read_dataset(f, names["spacing"], prefer).reshape(-1)
        except KeyError:
            spacing = np.ones(3)
        try:
            origin = read_dataset(f, names["origin"], prefer).reshape(-1)
        except KeyError:
            origin = np.zeros(3)

    euler = np.asarray(euler, dtype=float).reshape(-1, 3)
    if angles_in_radians:
        euler = np.degrees(euler)
    geometry = GridGeometry.from_counts(dims, spacing=spacing, origin=origin)
    store = PointStore(
        geometry,
        phase=np.asarray(phase).reshape(-1),
        feature_id=np.asarray(feature_id).reshape(-1),
        euler=euler,
    )
    logger.info(
        "read_dream3d: %s grid %dx%dx%d (%d-D) in %.3fs",
        p.name,
        geometry.nx,
        geometry.ny,
        geometry.nz,
        geometry.dim,
        time.process_time() - t0,
    )
    return store


# ----------------- Whitespace-separated text -----------------


@dataclass
class TextFormatConfig:
    """
    Column layout of the text format: `phi1 Phi phi2 x y z feature_id phase symmetry [custom...]`.
    Header lines look like `# X_step: 0.5`, `# X_Dim: 40`, `# X_Min: 0`.
    """

    angles_in_radians: bool = True
    custom_names: Optional[Sequence[str]] = None


def _parse_header(path: Path) -> Dict[str, float]:
    header: Dict[str, float] = {}
    with open(path, "r") as fh:
        for line in fh:
            s = line.strip()
            if not s:
                continue
            if not s.startswith("#"):
                break
            m = _HEADER_RE.match(s)
            if m is None:
                continue
            try:
                header[m.group(1).upper()] = float(m.group(2))
            except ValueError:
                continue
    return header


def _infer_axis(vals: np.ndarray) -> Tuple[float, float, int]:
    """Return (origin, step, count) for centroid coordinates along one axis."""
    uniq = np.unique(vals[~np.isnan(vals)])
    if uniq.size == 0:
        raise ValueError("Axis has no valid values")
    if uniq.size == 1:
        return float(uniq[0]) - 0.5, 1.0, 1
    diffs = np.diff(uniq)
    diffs = diffs[diffs > 1e-8]
    step = float(diffs.min())
    count = int(np.rint((uniq[-1] - uniq[0]) / step)) + 1
    return float(uniq[0]) - 0.5 * step, step, count


def read_ebsd_text(path: PathLike, cfg: Optional[TextFormatConfig] = None) -> PointStore:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    cfg = cfg or TextFormatConfig()

    t0 = time.process_time()
    header = _parse_header(p)
    df = pd.read_csv(p, sep=r"\s+", comment="#", header=None, engine="python")
    if df.shape[1] < 9:
        raise ValueError(
            f"{p}: expected at least 9 columns (phi1 Phi phi2 x y z feature_id phase symmetry), "
            f"found {df.shape[1]}."
        )
    before = len(df)
    df = df.apply(pd.to_numeric, errors="coerce").dropna().reset_index(drop=True)
    if len(df) < before:
        logger.warning("Dropped %d malformed rows while reading %s.", before - len(df), p)

    data = df.to_numpy(dtype=float)
    xyz = data[:, 3:6]

    origin, spacing, counts = [], [], []
    for axis, a in enumerate("XYZ"):
        o, s, n = _infer_axis(xyz[:, axis])
        origin.append(header.get(f"{a}_MIN", o))
        spacing.append(header.get(f"{a}_STEP", s))
        counts.append(int(header.get(f"{a}_DIM", n)))
    geometry = GridGeometry.from_counts(counts, spacing=spacing, origin=origin)

    euler = data[:, 0:3]
    if cfg.angles_in_radians:
        euler = np.degrees(euler)
    custom = data[:, 9:] if data.shape[1] > 9 else None
    custom_names = cfg.custom_names
    if custom_names is not None and custom is not None and len(custom_names) != custom.shape[1]:
        raise ValueError(
            f"{len(custom_names)} custom column names given but the file has {custom.shape[1]} custom columns."
        )

    store = PointStore.from_scattered(
        geometry,
        positions=xyz,
        phase=np.rint(data[:, 7]).astype(np.int64),
        feature_id=np.rint(data[:, 6]).astype(np.int64),
        euler=euler,
        custom=custom,
        symmetry=np.rint(data[:, 8]).astype(np.int64),
        custom_names=custom_names if custom is not None else None,
    )
    logger.info(
        "read_ebsd_text: %s grid %dx%dx%d (%d-D), %d custom columns in %.3fs",
        p.name,
        geometry.nx,
        geometry.ny,
        geometry.nz,
        geometry.dim,
        store.n_custom,
        time.process_time() - t0,
    )
    return store


def load_point_store(path: PathLike, fmt: Optional[str] = None, **kwargs) -> PointStore:
    """Dispatch on `fmt` ("text" | "dream3d") or, when None, on the file suffix."""
    p = Path(path)
    if fmt is None:
        fmt = "dream3d" if p.suffix.lower() in HDF5_SUFFIXES else "text"
    if fmt == "dream3d":
        return read_dream3d(p, **kwargs)
    if fmt == "text":
        return read_ebsd_text(p, **kwargs)
    raise ValueError(f"Unknown format '{fmt}'. Choose from 'text'|'dream3d'.")
