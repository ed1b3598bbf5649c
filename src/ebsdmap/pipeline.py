"""High-level programmatic API for ebsdmap."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .loaders import load_point_store
from .reader import EBSDReader
from .weights import NodeInput, WeightMapConfig


def run(
    path: str | Path,
    nodes: Optional[NodeInput] = None,
    *,
    radius: Optional[float] = None,
    kernel: str = "uniform",
    fmt: Optional[str] = None,
) -> EBSDReader:
    """
    Load a measurement file and build every index over it.

    Parameters
    ----------
    path : str | Path
        Text EBSD file or Dream3D HDF5 file
    nodes : mapping or array, optional
        Mesh node positions, {node_id: (x, y, z)} or an (N, 3) array.
        When given, the node weight maps are built as well.
    radius : float, optional
        Neighbourhood radius for the weight maps (default: containing cell only)
    kernel : str, default="uniform"
        Distance kernel: "uniform", "linear" or "gaussian"
    fmt : str, optional
        "text" or "dream3d" (default: chosen from the file suffix)

    Returns
    -------
    EBSDReader

    Examples
    --------
    >>> from ebsdmap import run
    >>> reader = run("grains.txt", nodes={0: (0.5, 0.5, 0.0)}, radius=1.0)
    >>> reader.get_node_to_grain_weight_map()[0]
    """
    reader = EBSDReader(load_point_store(path, fmt=fmt))
    if nodes is not None:
        reader.build_weight_maps(nodes, WeightMapConfig(radius=radius, kernel=kernel))
    return reader
