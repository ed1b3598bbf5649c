"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import h5py
import numpy as np
import pytest

from ebsdmap.grid import GridGeometry
from ebsdmap.points import PointStore
from ebsdmap.reader import EBSDReader


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def two_grain_store() -> PointStore:
    """nx=2, ny=nz=1: feature ids 5 and 7, both in phase 0."""
    geom = GridGeometry.from_counts((2, 1, 1))
    return PointStore(
        geom,
        phase=[0, 0],
        feature_id=[5, 7],
        euler=np.zeros((2, 3)),
    )


@pytest.fixture
def three_point_store() -> PointStore:
    """Feature 1 (phase 0) on two cells with phi1 10 and 20, feature 2 (phase 1) with phi1 30."""
    geom = GridGeometry.from_counts((3, 1, 1))
    euler = np.array([[10.0, 1.0, 2.0], [20.0, 3.0, 4.0], [30.0, 5.0, 6.0]])
    return PointStore(geom, phase=[0, 0, 1], feature_id=[1, 1, 2], euler=euler)


@pytest.fixture
def block_store() -> PointStore:
    """
    4x4 2-D grid with unit spacing split into quadrants:
      feature 10 (phase 1) lower-left,  feature 20 (phase 1) lower-right,
      feature 30 (phase 2) upper-left,  feature 40 (phase 2) upper-right.
    Phases start at 1, so phase 0 is empty. One custom column = 100 * feature.
    """
    geom = GridGeometry.from_counts((4, 4, 1))
    fid = np.zeros((4, 4), dtype=int)  # [iy, ix]
    fid[:2, :2] = 10
    fid[:2, 2:] = 20
    fid[2:, :2] = 30
    fid[2:, 2:] = 40
    fid = fid.reshape(-1)
    phase = np.where(fid < 30, 1, 2)
    euler = np.column_stack([fid.astype(float), np.zeros(16), np.ones(16)])
    return PointStore(
        geom,
        phase=phase,
        feature_id=fid,
        euler=euler,
        custom=(100.0 * fid).reshape(-1, 1),
        custom_names=["ci"],
    )


@pytest.fixture
def block_reader(block_store: PointStore) -> EBSDReader:
    return EBSDReader(block_store)


@pytest.fixture
def toy_dream3d_file(tmp_dir: Path) -> Path:
    """
    Minimal Dream3D HDF5 file: 2x3x4 (Z, Y, X) cells, two grains split along X,
    phases 1 and 2, Euler angles in radians.
    """
    h5_path = tmp_dir / "toy.dream3d"
    z_size, y_size, x_size = 2, 3, 4

    feature_ids = np.ones((z_size, y_size, x_size, 1), dtype=np.int32)
    feature_ids[:, :, 2:, 0] = 2
    phases = np.where(feature_ids == 1, 1, 2).astype(np.int32)

    euler_angles = np.zeros((z_size, y_size, x_size, 3), dtype=np.float32)
    euler_angles[:, :, 2:, :] = [np.pi / 2, 0.0, np.pi / 4]

    with h5py.File(h5_path, "w") as f:
        container = f.create_group("DataContainers")
        volume = container.create_group("ImageDataContainer")
        cell_data = volume.create_group("CellData")
        cell_data.create_dataset("FeatureIds", data=feature_ids)
        cell_data.create_dataset("Phases", data=phases)
        cell_data.create_dataset("EulerAngles", data=euler_angles)

        geometry = volume.create_group("_SIMPL_GEOMETRY")
        geometry.create_dataset("DIMENSIONS", data=np.array([x_size, y_size, z_size], dtype=np.int64))
        geometry.create_dataset("SPACING", data=np.array([0.5, 0.5, 1.0], dtype=np.float32))
        geometry.create_dataset("ORIGIN", data=np.array([0.0, 0.0, 0.0], dtype=np.float32))

    return h5_path


@pytest.fixture
def toy_text_file(tmp_dir: Path) -> Path:
    """
    3x2 2-D text file (rows deliberately out of grid order) with one custom column.
    Columns: phi1 Phi phi2 x y z feature_id phase symmetry custom0
    """
    path = tmp_dir / "toy.txt"
    rows = [
        # upper row (y = 1.5): grains 4, 4, 9
        (0.0, 0.0, 0.0, 0.5, 1.5, 0.0, 4, 1, 43, 0.9),
        (0.0, 0.0, 0.0, 1.5, 1.5, 0.0, 4, 1, 43, 0.7),
        (np.pi, 0.0, 0.0, 2.5, 1.5, 0.0, 9, 2, 43, 0.5),
        # lower row (y = 0.5): grains 4, 9, 9
        (0.0, 0.0, 0.0, 0.5, 0.5, 0.0, 4, 1, 43, 0.8),
        (np.pi, 0.0, 0.0, 1.5, 0.5, 0.0, 9, 2, 43, 0.6),
        (np.pi, 0.0, 0.0, 2.5, 0.5, 0.0, 9, 2, 43, 0.4),
    ]
    lines = [
        "# Header: ebsdmap toy data",
        "# X_Min: 0",
        "# Y_Min: 0",
        "# Z_Min: 0",
        "# X_step: 1",
        "# Y_step: 1",
        "# Z_step: 1",
        "# X_Dim: 3",
        "# Y_Dim: 2",
        "# Z_Dim: 1",
    ]
    lines += [" ".join(str(v) for v in r) for r in rows]
    path.write_text("\n".join(lines) + "\n")
    return path
