"""
Generate a demo data set for the picker:
1) layout.json: {"floors": [...], "units": [...]} in the layout editor's format
2) bins.csv: columns [bin, x, y, z, floor_id], derived from the layout
3) stock.csv: columns [material, bin, qty_available, description]
4) orders.csv: columns [material, qty]

Rack rows come from storage.gen_rack_rows, one block of rows per floor, laid out
side by side along X. Every floor gets its door in the block's cross-aisle.
Materials are stored in a few random bins each; the order samples materials
with Zipf-like popularity, and roughly `--short-ratio` of its lines ask for
more than the warehouse holds.

Usage:
  python tools/generate_demo_data.py --floors 2 --rows 6 --units-per-row 6 --num-materials 60 --order-lines 15 --seed 7 --out-dir demo_data
"""
from __future__ import annotations
import argparse
import json
import os
import sys
from typing import List

import numpy as np
import pandas as pd

# Direct execution from the repo root or tools/
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data_io import unit_to_dict  # noqa: E402
from models import Floor, Point3D, RackUnit  # noqa: E402
from storage import gen_rack_rows, gen_bin_coordinates, cross_aisle_x  # noqa: E402

FLOOR_GAP_M = 20.0
AISLE_WIDTH_M = 3.0


def sample_popularity(n: int, alpha: float = 1.07) -> np.ndarray:
    """Zipf-like popularity weights (lower alpha -> heavier head)."""
    ranks = np.arange(1, n + 1)
    weights = 1 / np.power(ranks, alpha)
    return weights / weights.sum()


def make_layout(num_floors: int, rows: int, units_per_row: int, bays: int = 4, size: float = 1.0):
    floors: List[Floor] = []
    units: List[RackUnit] = []
    block_w = units_per_row * bays * size + AISLE_WIDTH_M
    for f in range(num_floors):
        origin_x = f * (block_w + FLOOR_GAP_M)
        units.extend(gen_rack_rows(rows, units_per_row, floor_index=f, origin_x=origin_x,
                                   aisle_width=AISLE_WIDTH_M, bays=bays, size=size, first_id=len(units) + 1))
        door_x = cross_aisle_x(units_per_row, origin_x=origin_x, bays=bays, size=size) + AISLE_WIDTH_M / 2
        floors.append(Floor(
            id=f,
            entry_point=Point3D(door_x, 0.0, -1.5),
            max_x=origin_x + block_w + FLOOR_GAP_M / 2 if f < num_floors - 1 else None,
            name=f"Floor {f}",
        ))
    return floors, units


def layout_json(floors: List[Floor], units: List[RackUnit]) -> dict:
    return {
        "floors": [
            {"id": fl.id, "name": fl.name, "entryPoint": fl.entry_point.to_dict(),
             "rotation": fl.rotation, "maxX": fl.max_x}
            for fl in floors
        ],
        "units": [unit_to_dict(u) for u in units],
    }


def build_stock_df(materials: List[str], bins: List[str], bins_per_material: int) -> pd.DataFrame:
    rows = []
    # each bin holds at most one material
    chosen = np.random.choice(len(bins), size=min(len(bins), len(materials) * bins_per_material), replace=False)
    for i, b in enumerate(chosen):
        m = materials[i % len(materials)]
        qty = int(min(30, max(1, np.random.poisson(lam=6))))
        rows.append({"material": m, "bin": bins[b], "qty_available": qty, "description": f"Demo item {m}"})
    return pd.DataFrame(rows)


def build_orders_df(materials: List[str], stock_df: pd.DataFrame, order_lines: int, short_ratio: float) -> pd.DataFrame:
    probs = sample_popularity(len(materials))
    n = min(order_lines, len(materials))
    picked = np.random.choice(len(materials), size=n, replace=False, p=probs)
    on_hand = stock_df.groupby("material")["qty_available"].sum()
    rows = []
    for idx in picked:
        m = materials[idx]
        available = int(on_hand.get(m, 0))
        if np.random.random() < short_ratio:
            qty = available + int(np.random.randint(1, 5))
        else:
            qty = int(np.random.randint(1, max(2, available + 1)))
        rows.append({"material": m, "qty": qty})
    return pd.DataFrame(rows)


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--floors", type=int, default=1)
    ap.add_argument("--rows", type=int, default=6)
    ap.add_argument("--units-per-row", type=int, default=6)
    ap.add_argument("--num-materials", type=int, default=60)
    ap.add_argument("--bins-per-material", type=int, default=3)
    ap.add_argument("--order-lines", type=int, default=15)
    ap.add_argument("--short-ratio", type=float, default=0.1)
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--out-dir", type=str, default="demo_data")
    args = ap.parse_args()

    np.random.seed(args.seed)

    floors, units = make_layout(args.floors, args.rows, args.units_per_row)
    coords = gen_bin_coordinates(units)
    bins_df = pd.DataFrame([{"bin": c.bin, "x": c.x, "y": c.y, "z": c.z, "floor_id": c.floor_id} for c in coords])

    materials = [f"MAT-{i:04d}" for i in range(1, args.num_materials + 1)]
    stock_df = build_stock_df(materials, bins_df["bin"].tolist(), args.bins_per_material)
    orders_df = build_orders_df(materials, stock_df, args.order_lines, args.short_ratio)

    out_dir = args.out_dir
    os.makedirs(out_dir, exist_ok=True)
    layout_path = os.path.join(out_dir, "layout.json")
    bins_path = os.path.join(out_dir, "bins.csv")
    stock_path = os.path.join(out_dir, "stock.csv")
    orders_path = os.path.join(out_dir, "orders.csv")

    with open(layout_path, "w", encoding="utf-8") as f:
        json.dump(layout_json(floors, units), f, indent=2)
    bins_df.to_csv(bins_path, index=False)
    stock_df.to_csv(stock_path, index=False)
    orders_df.to_csv(orders_path, index=False)

    print(f"Wrote: {layout_path}\n       : {bins_path}\n       : {stock_path}\n       : {orders_path}\n"
          f"       Info: {len(units)} rack units, {len(coords)} bins, {len(stock_df)} stock records, {len(orders_df)} order lines")


if __name__ == "__main__":
    main()
