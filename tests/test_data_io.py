import json

import pandas as pd
import pytest

from data_io import (
    orders_from_frame, stock_from_frame, bin_coordinates_from_frame, read_orders, read_stock, read_bin_coordinates,
    load_layout, unit_from_dict, unit_to_dict,
)
from models import OrderLine, StockRecord, Point3D
from routing import generate_route
from storage import gen_rack_rows


def test_missing_columns_raise():
    with pytest.raises(ValueError, match="qty"):
        orders_from_frame(pd.DataFrame({"material": ["M1"]}))
    with pytest.raises(ValueError, match="qty_available"):
        stock_from_frame(pd.DataFrame({"material": ["M1"], "bin": ["A"]}))
    with pytest.raises(ValueError, match="z"):
        bin_coordinates_from_frame(pd.DataFrame({"bin": ["A"], "x": [1], "y": [0]}))


def test_orders_drop_blank_and_non_positive():
    df = pd.DataFrame({"material": ["M1", None, "M2", "M3"], "qty": [2, 3, 0, "x"]})
    assert orders_from_frame(df) == [OrderLine("M1", 2.0)]


def test_stock_rows():
    df = pd.DataFrame({
        "material": ["M1", "M2", None],
        "bin": ["A", "B", "C"],
        "qty_available": [4, None, 1],
        "description": ["Bolt", None, "x"],
    })
    assert stock_from_frame(df) == [StockRecord("M1", "A", 4.0, "Bolt"), StockRecord("M2", "B", 0.0, "")]


def test_bin_coordinates_drop_bad_rows():
    df = pd.DataFrame({
        "bin": ["A", "B", "C", "D"],
        "x": [1.0, "oops", 3.0, 4.0],
        "y": [0.0, 0.0, None, 0.0],
        "z": [2.0, 2.0, 2.0, float("inf")],
        "floor_id": [1, 0, 0, None],
    })
    coords = bin_coordinates_from_frame(df)
    assert [c.bin for c in coords] == ["A"]
    assert coords[0].floor_id == 1


def test_csv_readers(tmp_path):
    (tmp_path / "orders.csv").write_text("material,qty\nM1,3\nM2,1\n")
    (tmp_path / "stock.csv").write_text("material,bin,qty_available,description\nM1,A,5,Bolt\n")
    (tmp_path / "bins.csv").write_text("bin,x,y,z\nA,1.5,0,2.5\n")

    assert read_orders(str(tmp_path / "orders.csv")) == [OrderLine("M1", 3.0), OrderLine("M2", 1.0)]
    assert read_stock(str(tmp_path / "stock.csv")) == [StockRecord("M1", "A", 5.0, "Bolt")]
    coords = read_bin_coordinates(str(tmp_path / "bins.csv"))
    assert coords[0].point == Point3D(1.5, 0.0, 2.5)
    assert coords[0].floor_id is None


def test_unit_dict_round_trip():
    for unit in gen_rack_rows(2, 2):
        assert unit_from_dict(unit_to_dict(unit)) == unit
    with pytest.raises(ValueError, match="posX"):
        unit_from_dict({"id": 1, "floorIndex": 0, "posZ": 0, "params": {}})


def test_load_layout(tmp_path):
    units = gen_rack_rows(1, 2)
    data = {
        "floors": [
            {"id": 0, "name": "Ground", "entryPoint": {"x": 9.5, "y": 0, "z": -1.5}, "maxX": 40},
            {"id": 1, "name": "Mezzanine"},
        ],
        "units": [unit_to_dict(u) for u in units],
    }
    path = tmp_path / "layout.json"
    path.write_text(json.dumps(data))

    floors, loaded = load_layout(str(path))
    assert [f.id for f in floors] == [0]
    assert floors[0].entry_point == Point3D(9.5, 0.0, -1.5)
    assert floors[0].max_x == 40
    assert loaded == units

    path.write_text(json.dumps({"floors": []}))
    with pytest.raises(ValueError, match="units"):
        load_layout(str(path))


def test_numeric_codes_keep_leading_zeros(tmp_path):
    (tmp_path / "orders.csv").write_text("material,qty\n000123,2\n")
    (tmp_path / "stock.csv").write_text("material,bin,qty_available\n000123,0042,5\n,B2,1\n")
    (tmp_path / "bins.csv").write_text("bin,x,y,z\n0042,1.0,0,2.0\n,3.0,0,3.0\n")

    orders = read_orders(str(tmp_path / "orders.csv"))
    stock = read_stock(str(tmp_path / "stock.csv"))
    coords = read_bin_coordinates(str(tmp_path / "bins.csv"))
    assert orders == [OrderLine("000123", 2.0)]
    assert stock == [StockRecord("000123", "0042", 5.0, "")]
    assert [c.bin for c in coords] == ["0042"]

    result = generate_route(orders, stock, coords, entry_point=Point3D(0, 0, 0))
    assert [(t.material, t.bin, t.qty_to_pick) for t in result.tasks] == [("000123", "0042", 2.0)]
    assert result.skipped == []
