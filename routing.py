import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import List, Dict, Optional, Iterable, Union, Mapping

from geometry import GeometryIndex
from models import (
    OrderLine, StockRecord, BinCoordinate, PickingTask, Floor, Point3D, PlannerCfg, RouteResult,
)
from pathing import plan_path
from storage import floor_of, floor_by_id, index_bin_coordinates

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_POINT = Point3D(0.0, 0.0, 0.0)

BinCoordinates = Union[Mapping[str, BinCoordinate], Iterable[BinCoordinate]]


class DistanceMetric:
    name = ""

    def distance(self, a: Point3D, b: Point3D, floor_a: Optional[int] = None, floor_b: Optional[int] = None) -> float:
        raise NotImplementedError


class EuclideanDistance(DistanceMetric):
    name = "euclidean"

    def distance(self, a, b, floor_a=None, floor_b=None):
        return a.distance_to(b)


class WalkingDistance(DistanceMetric):
    """
    Length of the planned walking path between two points on one floor.
    Points on different floors fall back to straight-line distance.
    """
    name = "walking"

    def __init__(self, geometry_index: GeometryIndex, cfg: Optional[PlannerCfg] = None):
        self.geometry_index = geometry_index
        self.cfg = cfg or geometry_index.cfg
        self._cache: Dict[tuple, float] = {}

    def distance(self, a, b, floor_a=None, floor_b=None):
        if floor_a is None or floor_a != floor_b:
            return a.distance_to(b)
        key = (a, b, floor_a)
        if key not in self._cache:
            self._cache[key] = plan_path(a, b, floor_a, self.geometry_index, self.cfg).length
        return self._cache[key]


METRICS = {
    EuclideanDistance.name: EuclideanDistance,
    WalkingDistance.name: WalkingDistance,
}


def get_metric(name: str = "euclidean", geometry_index: Optional[GeometryIndex] = None,
               cfg: Optional[PlannerCfg] = None) -> DistanceMetric:
    if name not in METRICS:
        raise ValueError(f"unknown distance metric: {name!r} (expected one of {sorted(METRICS)})")
    if name == WalkingDistance.name:
        if geometry_index is None:
            raise ValueError("walking distance needs a geometry index")
        return WalkingDistance(geometry_index, cfg)
    return EuclideanDistance()


def coordinate_map(bin_coordinates: BinCoordinates) -> Dict[str, BinCoordinate]:
    if isinstance(bin_coordinates, Mapping):
        return dict(bin_coordinates)
    return index_bin_coordinates(bin_coordinates)


@dataclass
class _StockSlot:
    # Private working copy of one stock record; allocation only ever touches these
    material: str
    bin: str
    qty: float
    point: Point3D
    floor_id: int


def _working_pool(stock_records, coords, wanted, floors) -> List[_StockSlot]:
    pool = []
    unlocated = 0
    for s in stock_records:
        if s.material not in wanted or s.qty_available <= 0:
            continue
        coord = coords.get(s.bin)
        if coord is None or not coord.is_finite():
            unlocated += 1
            continue
        pool.append(_StockSlot(s.material, s.bin, s.qty_available, coord.point, floor_of(coord, floors)))
    if unlocated:
        logger.debug("Excluded %d stock records without a bin coordinate", unlocated)
    return pool


def _floor_passes(pool: List[_StockSlot], floors: Optional[List[Floor]], entry_point: Point3D):
    """Yield (start position, floor id, stock on that floor) in visiting order."""
    if not floors:
        yield entry_point, None, list(pool)
        return
    listed = [fl.id for fl in floors]
    for fl in floors:
        yield fl.entry_point, fl.id, [s for s in pool if s.floor_id == fl.id]
    for fid in sorted({s.floor_id for s in pool} - set(listed)):
        yield entry_point, None, [s for s in pool if s.floor_id == fid]


def generate_route(order_lines: List[OrderLine], stock_records: List[StockRecord], bin_coordinates: BinCoordinates,
                   entry_point: Optional[Point3D] = None, floors: Optional[List[Floor]] = None,
                   cfg: Optional[PlannerCfg] = None, metric: Optional[DistanceMetric] = None) -> RouteResult:
    """
    Greedy nearest-candidate allocation of an order onto located stock.

    Each step picks the closest record (from the current position) whose material
    still has outstanding demand, takes min(demand, available) from it and moves
    there. With a floor table the route restarts at each floor's entry point.
    Inputs are never mutated.
    """
    cfg = cfg or PlannerCfg()
    metric = metric or EuclideanDistance()
    if entry_point is None:
        entry_point = floors[0].entry_point if floors else DEFAULT_ENTRY_POINT
    coords = coordinate_map(bin_coordinates)

    remaining: Dict[str, float] = {}
    for line in order_lines:
        if line.qty > 0:
            remaining[line.material] = remaining.get(line.material, 0) + line.qty

    pool = _working_pool(stock_records, coords, remaining, floors)
    located = {s.material for s in pool}
    skipped = [line for line in order_lines if line.qty > 0 and line.material not in located]
    if skipped:
        logger.warning("%d order lines have no located stock: %s",
                       len(skipped), ", ".join(line.material for line in skipped))

    tasks: List[PickingTask] = []
    for start, start_floor, floor_stock in _floor_passes(pool, floors, entry_point):
        pos = start
        pos_floor = start_floor
        while floor_stock:
            candidates = [s for s in floor_stock if remaining[s.material] > 0]
            if not candidates:
                break
            if cfg.prefer_full_cover:
                covering = [s for s in candidates if s.qty >= remaining[s.material]]
                candidates = covering or candidates
            dists = [metric.distance(pos, s.point, pos_floor, s.floor_id) for s in candidates]
            # index(min) keeps the first of equal distances, so ties follow stock order
            dist = min(dists)
            chosen = candidates[dists.index(dist)]
            qty = min(remaining[chosen.material], chosen.qty)

            tasks.append(PickingTask(
                sequence=len(tasks) + 1,
                material=chosen.material,
                bin=chosen.bin,
                qty_to_pick=qty,
                coordinates=chosen.point,
                distance_from_last=dist,
                floor_id=chosen.floor_id,
                start_new_section=not tasks or tasks[-1].floor_id != chosen.floor_id,
            ))
            logger.debug("Task %d: %s x%s from %s (%.2f)", len(tasks), chosen.material, qty, chosen.bin, dist)

            remaining[chosen.material] -= qty
            chosen.qty -= qty
            if chosen.qty <= 0:
                floor_stock = [s for s in floor_stock if s is not chosen]
            pos, pos_floor = chosen.point, chosen.floor_id

    _mark_splits(tasks)
    unmet = {m: q for m, q in remaining.items() if q > 0 and m in located}
    if unmet:
        logger.warning("Stock does not cover the order for %d materials: %s", len(unmet), unmet)
    logger.info("Route generated: %d tasks, %d skipped lines", len(tasks), len(skipped))
    return RouteResult(tasks=tasks, skipped=skipped, unmet=unmet)


def _mark_splits(tasks: List[PickingTask]) -> None:
    counts = defaultdict(int)
    for t in tasks:
        counts[t.material] += 1
    for t in tasks:
        if counts[t.material] > 1:
            t.is_split = True


def compute_shortages(order_lines: List[OrderLine], stock_records: List[StockRecord]) -> Dict[str, bool]:
    """Material -> True when total stock (located or not) is below the ordered quantity."""
    available = defaultdict(float)
    for s in stock_records:
        available[s.material] += max(s.qty_available, 0)
    ordered = defaultdict(float)
    for line in order_lines:
        ordered[line.material] += line.qty
    return {m: available[m] < q for m, q in ordered.items() if q > 0}


def reorder_tasks(start: Point3D, start_floor: Optional[int], tasks: List[PickingTask], first_sequence: int = 1,
                  metric: Optional[DistanceMetric] = None) -> List[PickingTask]:
    """Nearest-neighbour re-sequencing of tasks from a given position. Returns new task objects."""
    metric = metric or EuclideanDistance()
    pool = list(tasks)
    ordered = []
    pos, pos_floor = start, start_floor
    while pool:
        dists = [metric.distance(pos, t.coordinates, pos_floor, t.floor_id) for t in pool]
        best = dists.index(min(dists))
        nxt = pool.pop(best)
        ordered.append(replace(
            nxt,
            sequence=first_sequence + len(ordered),
            distance_from_last=dists[best],
            start_new_section=nxt.floor_id != pos_floor,
        ))
        pos, pos_floor = nxt.coordinates, nxt.floor_id
    return ordered


def active_path_start(tasks: List[PickingTask], index: int, floors: Optional[List[Floor]] = None,
                      entry_point: Optional[Point3D] = None) -> Optional[Point3D]:
    """Where guidance to tasks[index] begins: the floor entry on a new section, else the previous bin."""
    if index is None or not 0 <= index < len(tasks):
        return None
    task = tasks[index]
    if index == 0 or task.start_new_section:
        fl = floor_by_id(floors, task.floor_id)
        if fl is not None:
            return fl.entry_point
        if index == 0:
            return entry_point if entry_point is not None else DEFAULT_ENTRY_POINT
    return tasks[index - 1].coordinates
