import hashlib
import json
import logging
import math
from collections import defaultdict
from typing import List, Dict, Iterable, Optional

import numpy as np

from models import Obstacle, FloorGeometry, RackUnit, PlannerCfg

logger = logging.getLogger(__name__)

QUARTER_TURN = math.pi / 2


def unit_footprint(unit: RackUnit) -> Obstacle:
    """World-space AABB of a unit, rotation snapped to the nearest quarter turn."""
    quarter_turns = int(round(unit.rot_y / QUARTER_TURN)) % 4
    w, d = unit.width, unit.depth
    if quarter_turns % 2 == 1:
        w, d = d, w
    return Obstacle(
        min_x=unit.pos_x - w / 2,
        max_x=unit.pos_x + w / 2,
        min_z=unit.pos_z - d / 2,
        max_z=unit.pos_z + d / 2,
    )


def union_bounds(boxes: List[Obstacle]) -> Obstacle:
    arr = np.array([[b.min_x, b.max_x, b.min_z, b.max_z] for b in boxes], dtype=float)
    return Obstacle(
        min_x=float(arr[:, 0].min()),
        max_x=float(arr[:, 1].max()),
        min_z=float(arr[:, 2].min()),
        max_z=float(arr[:, 3].max()),
    )


def extend_to_walls(box: Obstacle, bounds: Obstacle, threshold: float, margin: float) -> Obstacle:
    # Racks standing against the floor edge are pushed past it so the edge reads as closed wall
    min_x, max_x, min_z, max_z = box.min_x, box.max_x, box.min_z, box.max_z
    if min_x - bounds.min_x < threshold:
        min_x -= margin
    if bounds.max_x - max_x < threshold:
        max_x += margin
    if min_z - bounds.min_z < threshold:
        min_z -= margin
    if bounds.max_z - max_z < threshold:
        max_z += margin
    return Obstacle(min_x, max_x, min_z, max_z)


def build_floor_geometry(floor_id: int, units: List[RackUnit], cfg: Optional[PlannerCfg] = None) -> FloorGeometry:
    cfg = cfg or PlannerCfg()
    boxes = [unit_footprint(u) for u in units]
    bounds = union_bounds(boxes)
    obstacles = [extend_to_walls(b, bounds, cfg.wall_threshold, cfg.wall_margin) for b in boxes]
    return FloorGeometry(floor_id=floor_id, obstacles=obstacles, bounds=bounds)


def layout_digest(units: Iterable[RackUnit]) -> str:
    rows = sorted(
        [u.id, u.floor_index, round(u.pos_x, 3), round(u.pos_z, 3), round(u.rot_y, 3),
         round(u.width, 3), round(u.depth, 3)]
        for u in units
    )
    return hashlib.sha256(json.dumps(rows).encode("utf-8")).hexdigest()


class GeometryIndex:
    """
    Per-floor obstacle sets derived from static rack geometry.
    Built once per layout; `refresh` only rebuilds when the layout digest changes.
    """

    def __init__(self, units: Iterable[RackUnit], cfg: Optional[PlannerCfg] = None):
        self.cfg = cfg or PlannerCfg()
        self.digest = ""
        self.floors: Dict[int, FloorGeometry] = {}
        self.refresh(units)

    def refresh(self, units: Iterable[RackUnit]) -> bool:
        units = list(units)
        digest = layout_digest(units)
        if digest == self.digest:
            return False
        by_floor = defaultdict(list)
        for u in units:
            by_floor[u.floor_index].append(u)
        self.floors = {
            fid: build_floor_geometry(fid, floor_units, self.cfg)
            for fid, floor_units in sorted(by_floor.items())
        }
        self.digest = digest
        logger.info("Geometry index built: %d floors, %d units", len(self.floors), len(units))
        return True

    def get(self, floor_id: int) -> Optional[FloorGeometry]:
        return self.floors.get(floor_id)

    def __contains__(self, floor_id: int) -> bool:
        return floor_id in self.floors
