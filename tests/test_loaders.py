"""Tests for ebsdmap.loaders module."""

from __future__ import annotations

from pathlib import Path

import h5py
import numpy as np
import pytest

from ebsdmap.loaders import (
    TextFormatConfig,
    find_dataset_keys,
    load_point_store,
    read_dream3d,
    read_ebsd_text,
)
from ebsdmap.reader import EBSDReader


def test_find_dataset_keys(toy_dream3d_file: Path):
    with h5py.File(toy_dream3d_file, "r") as f:
        keys = find_dataset_keys(f, "featureids", prefer_groups=["CellData"])
        assert keys[-1] == "FeatureIds"
        assert "CellData" in keys
        with pytest.raises(KeyError):
            find_dataset_keys(f, "NoSuchThing")


def test_read_dream3d(toy_dream3d_file: Path):
    store = read_dream3d(toy_dream3d_file)
    g = store.geometry
    assert (g.nx, g.ny, g.nz, g.dim) == (4, 3, 2, 3)
    assert np.allclose(g.spacing, (0.5, 0.5, 1.0))
    assert len(store) == 24

    reader = EBSDReader(store)
    assert reader.get_phase_num() == 3
    assert reader.get_grain_num(0) == 0
    assert reader.get_feature_id(1, 0) == 1
    assert reader.get_feature_id(2, 0) == 2
    s = reader.get_avg_data(2, 0)
    assert s.n == 12
    assert s.phi1 == pytest.approx(90.0, abs=1e-4)
    assert s.phi2 == pytest.approx(45.0, abs=1e-4)
    # x >= 1.0 is the second grain (spacing 0.5)
    assert reader.get_data((1.2, 0.1, 1.5)).feature_id == 2


def test_read_dream3d_without_phases(tmp_dir: Path):
    path = tmp_dir / "nophase.dream3d"
    with h5py.File(path, "w") as f:
        cell = f.create_group("DataContainers/Vol/CellData")
        cell.create_dataset("FeatureIds", data=np.array([[[[1], [2]]]], dtype=np.int32))
        cell.create_dataset("EulerAngles", data=np.zeros((1, 1, 2, 3), dtype=np.float32))
        geom = f.create_group("DataContainers/Vol/_SIMPL_GEOMETRY")
        geom.create_dataset("DIMENSIONS", data=np.array([2, 1, 1]))
    store = read_dream3d(path)
    assert store.phase.tolist() == [1, 1]
    assert store.geometry.dim == 1


def test_read_ebsd_text(toy_text_file: Path):
    store = read_ebsd_text(toy_text_file)
    g = store.geometry
    assert (g.nx, g.ny, g.nz, g.dim) == (3, 2, 1, 2)
    assert store.feature_id.tolist() == [4, 9, 9, 4, 4, 9]
    assert store.n_custom == 1

    reader = EBSDReader(store)
    assert reader.get_phase_num() == 3
    assert reader.get_global_id_of(4) == 0
    assert reader.get_global_id_of(9) == 1
    s9 = reader.get_avg_data(reader.get_global_id_of(9))
    assert s9.phi1 == pytest.approx(180.0)
    assert s9.symmetry == 43
    assert reader.get_avg_data(0).custom[0] == pytest.approx(0.8)


def test_read_ebsd_text_degrees(toy_text_file: Path):
    store = read_ebsd_text(toy_text_file, TextFormatConfig(angles_in_radians=False, custom_names=["ci"]))
    assert store.euler[:, 0].max() == pytest.approx(np.pi)
    assert store.custom_names == ("ci",)


def test_text_without_header_infers_grid(tmp_dir: Path):
    path = tmp_dir / "noheader.txt"
    path.write_text(
        "0 0 0 1.0 0 0 1 1 0\n"
        "0 0 0 3.0 0 0 1 1 0\n"
        "0 0 0 5.0 0 0 2 1 0\n"
    )
    store = read_ebsd_text(path)
    g = store.geometry
    assert (g.nx, g.dim) == (3, 1)
    assert g.spacing[0] == 2.0
    assert g.origin[0] == 0.0


def test_text_missing_cells_is_fatal(tmp_dir: Path):
    path = tmp_dir / "short.txt"
    path.write_text("# X_Dim: 3\n# X_step: 1\n# X_Min: 0\n0 0 0 0.5 0 0 1 1 0\n0 0 0 1.5 0 0 1 1 0\n")
    with pytest.raises(ValueError):
        read_ebsd_text(path)


def test_text_too_few_columns(tmp_dir: Path):
    path = tmp_dir / "bad.txt"
    path.write_text("0 0 0 0.5 0 0\n")
    with pytest.raises(ValueError, match="9 columns"):
        read_ebsd_text(path)


def test_load_point_store_dispatch(toy_dream3d_file: Path, toy_text_file: Path):
    assert load_point_store(toy_dream3d_file).geometry.dim == 3
    assert load_point_store(toy_text_file).geometry.dim == 2
    with pytest.raises(ValueError):
        load_point_store(toy_text_file, fmt="csv")
    with pytest.raises(FileNotFoundError):
        load_point_store(toy_text_file.parent / "missing.txt")
