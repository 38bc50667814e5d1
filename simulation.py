import json
import logging
from dataclasses import replace
from typing import List, Dict, Optional, Callable, Any

from geometry import GeometryIndex
from models import (
    OrderLine, StockRecord, BinCoordinate, PickingTask, Floor, Point3D, PlannerCfg, RouteResult, ReplanResult,
)
from pathing import find_path
from replanning import replan
from routing import BinCoordinates, DistanceMetric, coordinate_map, generate_route, active_path_start
from storage import floor_of

logger = logging.getLogger(__name__)


class PickingSession:
    """
    One worker, one active route. Holds the planning state between confirmations;
    every change goes through `generate_route` / `replan`, which never touch the
    snapshots held here.
    """

    def __init__(self, order_lines: List[OrderLine], stock_records: List[StockRecord], bin_coordinates: BinCoordinates,
                 floors: Optional[List[Floor]] = None, entry_point: Optional[Point3D] = None,
                 cfg: Optional[PlannerCfg] = None, metric: Optional[DistanceMetric] = None):
        self.order_lines = list(order_lines)
        self.stock_records = list(stock_records)
        self.bin_coordinates: Dict[str, BinCoordinate] = coordinate_map(bin_coordinates)
        self.floors = list(floors) if floors else None
        self.entry_point = entry_point
        self.cfg = cfg or PlannerCfg()
        self.metric = metric
        self.tasks: List[PickingTask] = []
        self.focus_index: Optional[int] = None
        self.skipped: List[OrderLine] = []
        self.unmet: Dict[str, float] = {}
        self.shortfall: Dict[str, float] = {}

    def start(self) -> RouteResult:
        result = generate_route(self.order_lines, self.stock_records, self.bin_coordinates,
                                entry_point=self.entry_point, floors=self.floors, cfg=self.cfg, metric=self.metric)
        self.tasks = result.tasks
        self.skipped = result.skipped
        self.unmet = result.unmet
        self.shortfall = {}
        self.focus_index = 0 if self.tasks else None
        return result

    @property
    def current_task(self) -> Optional[PickingTask]:
        if self.focus_index is None:
            return None
        return self.tasks[self.focus_index]

    @property
    def is_complete(self) -> bool:
        return self.focus_index is None

    @property
    def settled_tasks(self) -> List[PickingTask]:
        return [t for t in self.tasks if t.is_picked]

    @property
    def pending_tasks(self) -> List[PickingTask]:
        return [t for t in self.tasks if not t.is_picked]

    def local_stock(self, material: str, bin_code: str) -> float:
        return sum(s.qty_available for s in self.stock_records if s.material == material and s.bin == bin_code)

    def confirm_pick(self, picked_qty: float, bin: Optional[str] = None) -> ReplanResult:
        """Resolve the focused task, optionally at a substitute bin, and replan the rest."""
        task = self.current_task
        if task is None:
            raise ValueError("route is complete; nothing to confirm")
        if picked_qty < 0:
            raise ValueError(f"picked quantity must be >= 0, got {picked_qty}")

        resolved = replace(task, picked_qty=picked_qty)
        if bin is not None and bin != task.bin:
            coord = self.bin_coordinates.get(bin)
            if coord is None or not coord.is_finite():
                raise ValueError(f"bin {bin!r} has no known location")
            if not any(s.material == task.material and s.bin == bin for s in self.stock_records):
                raise ValueError(f"bin {bin!r} holds no stock of {task.material}")
            resolved = replace(resolved, bin=bin, coordinates=coord.point, floor_id=floor_of(coord, self.floors))

        others = [t for t in self.tasks if t is not task]
        result = replan(
            resolved,
            pending_tasks=[t for t in others if not t.is_picked],
            settled_tasks=[t for t in others if t.is_picked],
            order_lines=self.order_lines,
            stock_records=self.stock_records,
            bin_coordinates=self.bin_coordinates,
            floors=self.floors,
            metric=self.metric,
        )
        self.tasks = result.tasks
        self.focus_index = result.focus_index
        for material, qty in result.shortfall.items():
            self.shortfall[material] = qty
        if result.complete:
            logger.info("Route complete: %d tasks picked", len(self.tasks))
        return result

    def active_path_start(self) -> Optional[Point3D]:
        return active_path_start(self.tasks, self.focus_index, self.floors, self.entry_point)

    def guidance_path(self, geometry_index: Optional[GeometryIndex]) -> List[Point3D]:
        task = self.current_task
        start = self.active_path_start()
        if task is None or start is None:
            return []
        return find_path(start, task.coordinates, task.floor_id, geometry_index, self.cfg)

    # --- save/load boundary ---

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_lines": [{"material": o.material, "qty": o.qty} for o in self.order_lines],
            "stock_records": [
                {"material": s.material, "bin": s.bin, "qty_available": s.qty_available, "description": s.description}
                for s in self.stock_records
            ],
            "bin_coordinates": [
                {"bin": c.bin, "x": c.x, "y": c.y, "z": c.z, "floor_id": c.floor_id}
                for c in self.bin_coordinates.values()
            ],
            "floors": [
                {"id": f.id, "entry_point": f.entry_point.to_dict(), "rotation": f.rotation,
                 "max_x": f.max_x, "name": f.name}
                for f in self.floors or []
            ],
            "entry_point": self.entry_point.to_dict() if self.entry_point else None,
            "tasks": [t.to_dict() for t in self.tasks],
            "focus_index": self.focus_index,
            "skipped": [{"material": o.material, "qty": o.qty} for o in self.skipped],
            "unmet": dict(self.unmet),
            "shortfall": dict(self.shortfall),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], cfg: Optional[PlannerCfg] = None,
                  metric: Optional[DistanceMetric] = None) -> "PickingSession":
        floors = [
            Floor(id=int(f["id"]), entry_point=Point3D.from_dict(f["entry_point"]), rotation=f.get("rotation", 0.0),
                  max_x=f.get("max_x"), name=f.get("name", ""))
            for f in d.get("floors", [])
        ]
        session = cls(
            order_lines=[OrderLine(**o) for o in d["order_lines"]],
            stock_records=[StockRecord(**s) for s in d["stock_records"]],
            bin_coordinates=[BinCoordinate(**c) for c in d["bin_coordinates"]],
            floors=floors or None,
            entry_point=Point3D.from_dict(d["entry_point"]) if d.get("entry_point") else None,
            cfg=cfg,
            metric=metric,
        )
        session.tasks = [PickingTask.from_dict(t) for t in d.get("tasks", [])]
        session.focus_index = d.get("focus_index")
        session.skipped = [OrderLine(**o) for o in d.get("skipped", [])]
        session.unmet = dict(d.get("unmet", {}))
        session.shortfall = dict(d.get("shortfall", {}))
        return session

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str, cfg: Optional[PlannerCfg] = None,
             metric: Optional[DistanceMetric] = None) -> "PickingSession":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f), cfg=cfg, metric=metric)


def simulate_worker(session: PickingSession,
                    pick_fn: Optional[Callable[[PickingTask, float], float]] = None,
                    max_steps: int = 10000) -> List[PickingTask]:
    """
    Drive a session to completion. `pick_fn(task, local_stock)` returns the
    quantity the worker actually confirms; the default takes what the bin holds,
    capped at the planned quantity.
    """
    if session.focus_index is None and not session.tasks:
        session.start()
    steps = 0
    while not session.is_complete and steps < max_steps:
        task = session.current_task
        local = session.local_stock(task.material, task.bin)
        qty = pick_fn(task, local) if pick_fn else min(task.qty_to_pick, local)
        session.confirm_pick(qty)
        steps += 1
    return session.tasks
