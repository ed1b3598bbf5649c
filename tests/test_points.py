"""Tests for ebsdmap.points module."""

from __future__ import annotations

import numpy as np
import pytest

from ebsdmap.grid import GridGeometry
from ebsdmap.points import PointRecord, PointStore


def test_record_fields(block_store: PointStore):
    rec = block_store.record(0)
    assert isinstance(rec, PointRecord)
    assert rec.feature_id == 10
    assert rec.phase == 1
    assert rec.phi1 == 10.0
    assert rec.custom == (1000.0,)
    assert rec.position == (0.5, 0.5, 0.0)
    assert block_store.custom_names == ("ci",)


def test_store_is_read_only(block_store: PointStore):
    with pytest.raises(ValueError):
        block_store.feature_id[0] = 99
    with pytest.raises(ValueError):
        block_store.euler[0, 0] = 1.0


def test_offset_out_of_range(block_store: PointStore):
    with pytest.raises(IndexError):
        block_store.record(16)
    with pytest.raises(IndexError):
        block_store[-1]


def test_cell_count_mismatch_is_fatal():
    geom = GridGeometry.from_counts((2, 2, 1))
    with pytest.raises(ValueError, match="4 cells"):
        PointStore(geom, phase=[0, 0, 0], feature_id=[1, 1, 1], euler=np.zeros((3, 3)))


def test_negative_phase_rejected():
    geom = GridGeometry.from_counts((2, 1, 1))
    with pytest.raises(ValueError):
        PointStore(geom, phase=[0, -1], feature_id=[1, 2], euler=np.zeros((2, 3)))


def test_from_scattered_orders_by_offset():
    geom = GridGeometry.from_counts((2, 2, 1))
    positions = np.array([[1.5, 1.5, 0], [0.5, 0.5, 0], [1.5, 0.5, 0], [0.5, 1.5, 0]])
    store = PointStore.from_scattered(
        geom,
        positions=positions,
        phase=[0, 0, 0, 0],
        feature_id=[4, 1, 2, 3],
        euler=np.zeros((4, 3)),
        symmetry=[43, 43, 43, 43],
    )
    assert store.feature_id.tolist() == [1, 2, 3, 4]
    assert store.record(3).symmetry == 43


def test_from_scattered_rejects_duplicate_cells():
    geom = GridGeometry.from_counts((2, 1, 1))
    with pytest.raises(ValueError, match="one-to-one"):
        PointStore.from_scattered(
            geom,
            positions=np.array([[0.5, 0, 0], [0.6, 0, 0]]),
            phase=[0, 0],
            feature_id=[1, 2],
            euler=np.zeros((2, 3)),
        )


def test_iteration_follows_offsets(two_grain_store: PointStore):
    assert [r.feature_id for r in two_grain_store] == [5, 7]
    assert len(two_grain_store) == 2
