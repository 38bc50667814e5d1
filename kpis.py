from collections import defaultdict
from typing import List, Optional

import pandas as pd

from models import PickingTask, OrderLine, PlannerCfg


def compute_route_kpis(tasks: List[PickingTask], cfg: Optional[PlannerCfg] = None):
    cfg = cfg or PlannerCfg()
    per_floor = defaultdict(lambda: {"Tasks": 0, "Distance (m)": 0.0, "Picked": 0})
    total_distance = 0.0
    picked = 0
    partial = 0
    split = 0

    for t in tasks:
        total_distance += t.distance_from_last
        fl = per_floor[t.floor_id]
        fl["Tasks"] += 1
        fl["Distance (m)"] += t.distance_from_last
        if t.is_picked:
            picked += 1
            fl["Picked"] += 1
        if t.is_partial:
            partial += 1
        if t.is_split:
            split += 1

    travel_time = total_distance / cfg.walking_speed_mps if cfg.walking_speed_mps else 0.0
    total_time = travel_time + len(tasks) * cfg.pick_time_s

    return {
        "Per Floor": [
            {"Floor": fid, **vals} for fid, vals in sorted(per_floor.items())
        ],
        "Route": {
            "Total Distance (m)": total_distance,
            "Tasks": len(tasks),
            "Picked Tasks": picked,
            "Pending Tasks": len(tasks) - picked,
            "Partial Picks": partial,
            "Split Tasks": split,
            "Floors Visited": len(per_floor),
            "Sections": sum(1 for t in tasks if t.start_new_section),
            "Travel Time (s)": travel_time,
            "Total Time (s)": total_time,
            "Total Time (min)": total_time / 60 if total_time else 0,
        },
    }


def material_summary(tasks: List[PickingTask], order_lines: List[OrderLine]) -> pd.DataFrame:
    """One row per ordered material: required vs planned vs picked."""
    orders = pd.DataFrame([{"material": o.material, "required": o.qty} for o in order_lines],
                          columns=["material", "required"])
    orders = orders.groupby("material", sort=False, as_index=False)["required"].sum()

    rows = [{
        "material": t.material,
        "planned": 0 if t.is_picked else t.qty_to_pick,
        "picked": (t.picked_qty or 0) if t.is_picked else 0,
    } for t in tasks]
    work = pd.DataFrame(rows, columns=["material", "planned", "picked"])
    work = work.groupby("material", as_index=False)[["planned", "picked"]].sum()

    summary = orders.merge(work, on="material", how="left").fillna({"planned": 0, "picked": 0})
    summary["outstanding"] = (summary["required"] - summary["picked"]).clip(lower=0)
    return summary[["material", "required", "planned", "picked", "outstanding"]]
