"""Tests for ebsdmap.reader module."""

from __future__ import annotations

import numpy as np
import pytest

from ebsdmap.grid import GridGeometry
from ebsdmap.points import PointStore
from ebsdmap.reader import EBSDReader
from ebsdmap.weights import WeightMapConfig


def test_queries_before_load_fail():
    reader = EBSDReader()
    assert not reader.is_loaded
    with pytest.raises(RuntimeError):
        reader.get_grain_num()
    with pytest.raises(RuntimeError):
        reader.get_data((0.0, 0.0, 0.0))


def test_weight_maps_before_build_fail(block_reader: EBSDReader):
    with pytest.raises(RuntimeError):
        block_reader.get_node_to_grain_weight_map()


def test_get_data(block_reader: EBSDReader):
    assert block_reader.get_data((3.2, 0.4, 0.0)).feature_id == 20
    # clamped, not rejected
    assert block_reader.get_data((-5.0, 9.0, 0.0)).feature_id == 30


def test_avg_data_both_forms(block_reader: EBSDReader):
    by_key = block_reader.get_avg_data(1, 1)
    by_gid = block_reader.get_avg_data(block_reader.get_global_id(1, 1))
    assert by_key == by_gid
    assert by_key.feature_id == 20
    assert block_reader.get_euler_angles(0) == (10.0, 0.0, 1.0)


def test_empty_phase_query_is_fatal(block_reader: EBSDReader):
    with pytest.raises(IndexError):
        block_reader.get_avg_data(3, 0)
    with pytest.raises(IndexError):
        block_reader.get_avg_data(0, 0)


def test_counts_and_ids(block_reader: EBSDReader):
    assert block_reader.get_grain_num() == 4
    assert block_reader.get_phase_num() == 3
    assert block_reader.get_grain_num(0) == 0
    assert block_reader.get_feature_id(2, 0) == 30
    assert block_reader.get_global_id(2, 0) == 2
    assert block_reader.get_global_id_of(30) == 2


def test_index_helpers(block_reader: EBSDReader):
    assert block_reader.index_from_point((1.5, 2.5, 0.0)) == 1 + 4 * 2
    assert block_reader.index_from_index(3) == 3
    with pytest.raises(IndexError):
        block_reader.index_from_index(4)


def test_weight_maps_through_reader(block_reader: EBSDReader):
    block_reader.build_weight_maps({11: (3.5, 3.5, 0.0)}, WeightMapConfig(radius=0.5))
    gw = block_reader.get_node_to_grain_weight_map()[11]
    pw = block_reader.get_node_to_phase_weight_map()[11]
    assert gw.tolist() == [0.0, 0.0, 0.0, 1.0]
    assert pw.tolist() == [0.0, 0.0, 1.0]


def test_reload_replaces_state(block_reader: EBSDReader, two_grain_store: PointStore):
    block_reader.build_weight_maps({0: (0.5, 0.5, 0.0)})
    block_reader.load(two_grain_store)
    assert block_reader.get_grain_num() == 2
    assert block_reader.get_phase_num() == 1
    with pytest.raises(RuntimeError):
        block_reader.get_node_to_grain_weight_map()


def test_reload_same_data_is_identical(block_store: PointStore):
    a = EBSDReader(block_store)
    b = EBSDReader(block_store)
    assert a.table == b.table
    assert np.array_equal(a.state.cell_global_ids, b.state.cell_global_ids)


def test_access_functors_use_custom_names(block_reader: EBSDReader):
    f = block_reader.get_point_data_access_functor("ci")
    assert f(block_reader.get_data((0.5, 0.5, 0.0))) == 1000.0
    g = block_reader.get_avg_data_access_functor("n")
    assert g(block_reader.get_avg_data(0)) == 4
    with pytest.raises(ValueError):
        block_reader.get_avg_data_access_functor("bogus")


def test_one_dimensional_grid():
    geom = GridGeometry.from_counts((4,), spacing=(2.0,))
    store = PointStore(geom, phase=[1, 1, 1, 1], feature_id=[3, 3, 6, 6], euler=np.zeros((4, 3)))
    reader = EBSDReader(store)
    assert reader.get_data((5.0, 100.0, -3.0)).feature_id == 6
    maps = reader.build_weight_maps(np.array([[4.0], [1.0]]), WeightMapConfig(radius=1.5))
    assert np.allclose(maps.grain[0], [0.5, 0.5])
    assert np.allclose(maps.grain[1], [1.0, 0.0])
