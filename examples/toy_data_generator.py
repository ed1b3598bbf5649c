#!/usr/bin/env python3
"""
Generate a minimal synthetic Dream3D HDF5 file for trying out ebsdmap.

This creates a small voxel grid with a few grains in two phases.
"""

from __future__ import annotations

import h5py
import numpy as np
from pathlib import Path


def create_toy_dream3d(output_path: Path, size: tuple[int, int, int] = (20, 20, 20)) -> None:
    """
    Create a minimal Dream3D HDF5 file with:
    - FeatureIds: (z,y,x,1) grain IDs 1..3
    - Phases: (z,y,x,1) phase per voxel (grain 3 is phase 2, the rest phase 1)
    - EulerAngles: (z,y,x,3) Euler angles (radians)
    - DIMENSIONS / SPACING / ORIGIN: grid geometry, [X, Y, Z] order
    """
    z_size, y_size, x_size = size

    feature_ids = np.ones((z_size, y_size, x_size, 1), dtype=np.int32)
    feature_ids[z_size // 2 :, :, :, 0] = 2
    feature_ids[z_size // 4 : 3 * z_size // 4, y_size // 4 : 3 * y_size // 4, x_size // 4 : 3 * x_size // 4, 0] = 3
    phases = np.where(feature_ids == 3, 2, 1).astype(np.int32)

    euler_angles = np.zeros((z_size, y_size, x_size, 3), dtype=np.float32)
    euler_angles[feature_ids[..., 0] == 2] = [np.pi / 4, np.pi / 6, np.pi / 3]
    euler_angles[feature_ids[..., 0] == 3] = [np.pi / 2, np.pi / 4, np.pi / 2]

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with h5py.File(output_path, "w") as f:
        volume = f.create_group("DataContainers").create_group("ImageDataContainer")
        cell_data = volume.create_group("CellData")
        cell_data.create_dataset("FeatureIds", data=feature_ids)
        cell_data.create_dataset("Phases", data=phases)
        cell_data.create_dataset("EulerAngles", data=euler_angles)

        geometry = volume.create_group("_SIMPL_GEOMETRY")
        geometry.create_dataset("DIMENSIONS", data=np.array([x_size, y_size, z_size], dtype=np.int64))
        geometry.create_dataset("SPACING", data=np.array([1.0, 1.0, 1.0], dtype=np.float32))
        geometry.create_dataset("ORIGIN", data=np.array([0.0, 0.0, 0.0], dtype=np.float32))

    print(f"Created toy Dream3D file: {output_path}")
    print(f"  Volume size: {x_size} × {y_size} × {z_size}")
    print("  Grains: 1, 2 (phase 1), 3 (phase 2)")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate toy Dream3D HDF5 file")
    parser.add_argument("--output", type=Path, default=Path("toy_data.dream3d"), help="Output HDF5 file path")
    parser.add_argument(
        "--size", type=int, nargs=3, default=[20, 20, 20], metavar=("Z", "Y", "X"), help="Volume size (default: 20 20 20)"
    )

    args = parser.parse_args()
    create_toy_dream3d(args.output, tuple(args.size))
