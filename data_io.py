import json
import math
from typing import List, Dict, Any, Tuple

import pandas as pd

from models import OrderLine, StockRecord, BinCoordinate, Floor, Point3D, RackUnit, UnitParams, LevelConfig

# Expected schemas (extra columns are ignored)
# orders.csv: material:str, qty:number
# stock.csv: material:str, bin:str, qty_available:number, description:str (optional)
# bins.csv: bin:str, x, y, z:number, floor_id:int (optional)
# layout.json: {"floors": [...], "units": [...]} as exported by the layout editor


def _require(df: pd.DataFrame, needed: set, what: str) -> None:
    missing = needed - set(df.columns)
    if missing:
        raise ValueError(f"{what} missing columns: {sorted(missing)}")


def orders_from_frame(df: pd.DataFrame) -> List[OrderLine]:
    _require(df, {"material", "qty"}, "orders")
    df = df.dropna(subset=["material"])
    lines = []
    for row in df.to_dict("records"):
        material = str(row["material"]).strip()
        qty = pd.to_numeric(row["qty"], errors="coerce")
        if material and not pd.isna(qty) and qty > 0:
            lines.append(OrderLine(material=material, qty=float(qty)))
    return lines


def stock_from_frame(df: pd.DataFrame) -> List[StockRecord]:
    _require(df, {"material", "bin", "qty_available"}, "stock")
    records = []
    for row in df.to_dict("records"):
        material = str(row["material"]).strip() if not pd.isna(row["material"]) else ""
        bin_code = str(row["bin"]).strip() if not pd.isna(row["bin"]) else ""
        if not material or not bin_code:
            continue
        qty = pd.to_numeric(row["qty_available"], errors="coerce")
        desc = row.get("description", "")
        records.append(StockRecord(
            material=material,
            bin=bin_code,
            qty_available=0.0 if pd.isna(qty) else float(qty),
            description="" if pd.isna(desc) else str(desc),
        ))
    return records


def bin_coordinates_from_frame(df: pd.DataFrame) -> List[BinCoordinate]:
    """Rows with a missing or non-numeric coordinate are dropped, never defaulted."""
    _require(df, {"bin", "x", "y", "z"}, "bins")
    coords = []
    for row in df.to_dict("records"):
        if pd.isna(row["bin"]) or not str(row["bin"]).strip():
            continue
        xyz = [pd.to_numeric(row[k], errors="coerce") for k in ("x", "y", "z")]
        if any(pd.isna(v) or not math.isfinite(v) for v in xyz):
            continue
        floor_id = row.get("floor_id")
        coords.append(BinCoordinate(
            bin=str(row["bin"]).strip(),
            x=float(xyz[0]), y=float(xyz[1]), z=float(xyz[2]),
            floor_id=None if floor_id is None or pd.isna(floor_id) else int(floor_id),
        ))
    return coords


# codes stay text so leading zeros and numeric-looking ids survive
_TEXT_COLUMNS = {"material": str, "bin": str, "description": str}


def read_orders(path: str) -> List[OrderLine]:
    return orders_from_frame(pd.read_csv(path, dtype=_TEXT_COLUMNS))


def read_stock(path: str) -> List[StockRecord]:
    return stock_from_frame(pd.read_csv(path, dtype=_TEXT_COLUMNS))


def read_bin_coordinates(path: str) -> List[BinCoordinate]:
    return bin_coordinates_from_frame(pd.read_csv(path, dtype=_TEXT_COLUMNS))


def unit_from_dict(d: Dict[str, Any]) -> RackUnit:
    for key in ("id", "floorIndex", "posX", "posZ", "params"):
        if key not in d:
            raise ValueError(f"layout unit missing key: {key}")
    p = d["params"]
    params = UnitParams(
        levels=int(p["levels"]),
        bays=int(p["bays"]),
        bins=int(p["bins"]),
        size=float(p["size"]),
        level_config=[LevelConfig(bays=int(lc["bays"]), bins=int(lc["bins"])) for lc in p.get("levelConfig") or []],
    )
    return RackUnit(
        id=d["id"],
        floor_index=int(d["floorIndex"]),
        pos_x=float(d["posX"]),
        pos_z=float(d["posZ"]),
        rot_y=float(d.get("rotY", 0.0)),
        params=params,
    )


def unit_to_dict(u: RackUnit) -> Dict[str, Any]:
    p = u.params
    return {
        "id": u.id,
        "floorIndex": u.floor_index,
        "posX": u.pos_x,
        "posZ": u.pos_z,
        "rotY": u.rot_y,
        "params": {
            "levels": p.levels, "bays": p.bays, "bins": p.bins, "size": p.size,
            "levelConfig": [{"bays": lc.bays, "bins": lc.bins} for lc in p.level_config],
        },
    }


def floor_from_dict(d: Dict[str, Any]) -> Floor:
    entry = d.get("entryPoint") or d.get("entry_point")
    if entry is None:
        raise ValueError(f"floor {d.get('id')} missing entry point")
    return Floor(
        id=int(d["id"]),
        entry_point=Point3D.from_dict(entry),
        rotation=float(d.get("rotation", 0.0)),
        max_x=d.get("maxX", d.get("max_x")),
        name=d.get("name", ""),
    )


def load_layout(path: str) -> Tuple[List[Floor], List[RackUnit]]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if "units" not in data:
        raise ValueError("layout missing 'units'")
    # Floors without an entry point only carry display names; they are not routable
    floors = [floor_from_dict(fl) for fl in data.get("floors", []) if fl.get("entryPoint") or fl.get("entry_point")]
    units = [unit_from_dict(u) for u in data["units"]]
    return floors, units
