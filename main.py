# main.py

import argparse
import logging
import random

from data_io import read_orders, read_stock, read_bin_coordinates, load_layout
from geometry import GeometryIndex
from kpis import compute_route_kpis, material_summary
from models import OrderLine, StockRecord, Floor, Point3D, load_cfg
from routing import compute_shortages, get_metric
from simulation import PickingSession, simulate_worker
from storage import gen_rack_rows, gen_bin_coordinates, cross_aisle_x

DEMO_ROWS = 4
DEMO_UNITS_PER_ROW = 4


def demo_layout():
    units = gen_rack_rows(DEMO_ROWS, DEMO_UNITS_PER_ROW)
    door_x = cross_aisle_x(DEMO_UNITS_PER_ROW) + 1.5
    floors = [Floor(id=0, entry_point=Point3D(door_x, 0.0, -1.5), name="Demo floor")]
    return floors, units


def gen_stock(coords, materials, rng, bins_per_material=3, max_qty=8):
    stock = []
    bins = [c.bin for c in coords]
    for m in materials:
        for b in rng.sample(bins, bins_per_material):
            stock.append(StockRecord(material=m, bin=b, qty_available=rng.randint(1, max_qty), description=f"Item {m}"))
    return stock


def gen_orders(materials, rng, max_qty=12):
    return [OrderLine(material=m, qty=rng.randint(1, max_qty)) for m in materials]


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Generate and walk a picking route, replanning on short picks.")
    ap.add_argument("--layout", help="layout.json with floors and rack units")
    ap.add_argument("--stock", help="stock.csv (material, bin, qty_available, description)")
    ap.add_argument("--orders", help="orders.csv (material, qty)")
    ap.add_argument("--bins", help="bins.csv (bin, x, y, z, floor_id); default: derived from the layout")
    ap.add_argument("--config", help="YAML planner config")
    ap.add_argument("--metric", default="euclidean", choices=["euclidean", "walking"])
    ap.add_argument("--short-pick", type=int, default=None,
                    help="sequence number of a task the simulated worker short-picks by half")
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--plot", action="store_true", help="show a floor map of the finished route")
    ap.add_argument("--log-level", default="INFO")
    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_cfg(args.config)
    rng = random.Random(args.seed)

    # --- Layout ---
    if args.layout:
        floors, units = load_layout(args.layout)
    else:
        floors, units = demo_layout()
    coords = read_bin_coordinates(args.bins) if args.bins else gen_bin_coordinates(units)
    geometry = GeometryIndex(units, cfg)

    # --- Stock and order snapshots ---
    materials = [f"MAT-{i:03d}" for i in range(1, 9)]
    stock = read_stock(args.stock) if args.stock else gen_stock(coords, materials, rng)
    orders = read_orders(args.orders) if args.orders else gen_orders(materials, rng)

    shortages = compute_shortages(orders, stock)
    short = sorted(m for m, is_short in shortages.items() if is_short)
    if short:
        print(f"Warning: stock does not cover {len(short)} materials: {', '.join(short)}")

    # --- Route ---
    metric = get_metric(args.metric, geometry, cfg)
    session = PickingSession(orders, stock, coords, floors=floors or None, cfg=cfg, metric=metric)
    result = session.start()
    if result.skipped:
        print(f"Skipped (no located stock): {', '.join(o.material for o in result.skipped)}")
    print(f"Initial route: {len(result.tasks)} tasks")
    for t in result.tasks:
        print(f"  {t.sequence:>3}  {t.material:<10} {t.bin:<12} x{t.qty_to_pick:g}  (+{t.distance_from_last:.1f})")

    # --- Simulated worker ---
    def pick(task, local_stock):
        qty = min(task.qty_to_pick, local_stock)
        if args.short_pick is not None and task.sequence == args.short_pick:
            qty = qty // 2
        return qty

    simulate_worker(session, pick)
    if session.shortfall:
        print(f"Unresolved shortfall: {session.shortfall}")

    # --- KPIs ---
    kpis = compute_route_kpis(session.tasks, cfg)
    for k, v in kpis["Route"].items():
        print(f"{k}: {v:.2f}" if isinstance(v, float) else f"{k}: {v}")
    print(material_summary(session.tasks, orders).to_string(index=False))

    if args.plot:
        from visualization import plot_floor_map
        for fid, floor_geometry in geometry.floors.items():
            plot_floor_map(floor_geometry, session.tasks, kpis=kpis)
    return session


if __name__ == "__main__":
    main()
