#!/usr/bin/env python3
"""
Minimal example demonstrating ebsdmap usage.

This example:
1. Generates a small synthetic Dream3D HDF5 file
2. Builds the grain/phase indices and averages
3. Computes node weight maps for a handful of mesh nodes
"""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent))

from toy_data_generator import create_toy_dream3d

from ebsdmap import run


def main():
    toy_data = Path(__file__).parent / "toy_data.dream3d"
    create_toy_dream3d(toy_data, size=(20, 20, 20))

    # a coarse 5x5x5 "mesh" of nodes across the volume
    axis = np.linspace(0.0, 20.0, 5)
    xx, yy, zz = np.meshgrid(axis, axis, axis, indexing="ij")
    nodes = np.column_stack([xx.ravel(), yy.ravel(), zz.ravel()])

    reader = run(toy_data, nodes, radius=2.0, kernel="gaussian")

    print(f"grains={reader.get_grain_num()} phases={reader.get_phase_num()}")
    for phase in range(reader.get_phase_num()):
        for local_id in range(reader.get_grain_num(phase)):
            s = reader.get_avg_data(phase, local_id)
            print(f"  phase {phase} local {local_id}: feature {s.feature_id}, n={s.n}, euler={s.euler}")

    grain_map = reader.get_node_to_grain_weight_map()
    center = len(nodes) // 2
    print(f"node {center} at {nodes[center]}: grain weights {np.round(grain_map[center], 3)}")


if __name__ == "__main__":
    main()
