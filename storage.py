import math
from typing import List, Dict, Optional, Iterable

from models import BinCoordinate, Floor, Point3D, RackUnit, LevelConfig, UnitParams

# Rotation: 0 faces +Z, pi faces -Z, +/-pi/2 face +/-X
DEFAULT_FLOORS = [
    Floor(id=0, entry_point=Point3D(0.0, 0.0, 25.0), rotation=0.0, max_x=35.0, name="Piso 0"),
    Floor(id=1, entry_point=Point3D(82.0, 0.0, -16.0), rotation=-math.pi / 2, max_x=100.0, name="Piso 1"),
    Floor(id=2, entry_point=Point3D(153.0, 0.0, -14.0), rotation=-math.pi / 2, max_x=None, name="Piso 2"),
]


def determine_floor(x: float, floors: Optional[List[Floor]] = None) -> int:
    if not floors:
        return 0
    for fl in floors:
        if fl.max_x is not None and x < fl.max_x:
            return fl.id
    return floors[-1].id


def floor_of(coord: BinCoordinate, floors: Optional[List[Floor]] = None) -> int:
    if coord.floor_id is not None:
        return coord.floor_id
    return determine_floor(coord.x, floors)


def floor_by_id(floors: Optional[List[Floor]], floor_id: int) -> Optional[Floor]:
    for fl in floors or []:
        if fl.id == floor_id:
            return fl
    return None


def gen_bin_coordinates(units: Iterable[RackUnit]) -> List[BinCoordinate]:
    """
    Expand every rack unit into one coordinate per slot.
    Bin code is "<unit>-<level>-<bay>-<depth>" with level 0-based and bay/depth 1-based.
    Depth 1 sits at the unit front (+Z in local space).
    """
    coords = []
    for unit in units:
        p = unit.params
        rack_width = unit.width
        rack_depth = unit.depth
        half_w = rack_width / 2
        half_d = rack_depth / 2
        cos = math.cos(-unit.rot_y)
        sin = math.sin(-unit.rot_y)
        for level in range(p.levels):
            if level < len(p.level_config):
                lc = p.level_config[level]
            else:
                lc = LevelConfig(bays=p.bays, bins=p.bins)
            bay_width = rack_width / lc.bays
            bin_depth = rack_depth / lc.bins
            for b in range(lc.bays):
                for d in range(lc.bins):
                    local_x = -half_w + b * bay_width + bay_width / 2
                    local_y = level * p.size + p.size / 2
                    local_z = half_d - d * bin_depth - bin_depth / 2
                    world_x = unit.pos_x + local_x * cos - local_z * sin
                    world_z = unit.pos_z + local_x * sin + local_z * cos
                    coords.append(BinCoordinate(
                        bin=f"{unit.id}-{level}-{b + 1}-{d + 1}",
                        x=world_x,
                        y=local_y,
                        z=world_z,
                        floor_id=unit.floor_index,
                    ))
    return coords


def gen_rack_rows(num_rows: int, units_per_row: int, floor_index: int = 0, origin_x: float = 0.0,
                  origin_z: float = 0.0, aisle_width: float = 3.0, levels: int = 4, bays: int = 4,
                  bins: int = 2, size: float = 1.0, first_id: int = 1) -> List[RackUnit]:
    """
    Parallel rack rows along X separated by aisles along Z. Each row is split in
    two by a cross-aisle of `aisle_width` after the first units_per_row // 2 units,
    i.e. at x in [cross_aisle_x(...), cross_aisle_x(...) + aisle_width].
    """
    params = UnitParams(levels=levels, bays=bays, bins=bins, size=size)
    unit_w = bays * size
    unit_d = bins * size
    gap_at = units_per_row // 2
    units = []
    uid = first_id
    for r in range(num_rows):
        z = origin_z + r * (unit_d + aisle_width) + unit_d / 2
        # alternate rows face opposite aisles
        rot = 0.0 if r % 2 == 0 else math.pi
        for k in range(units_per_row):
            x = origin_x + k * unit_w + unit_w / 2
            if k >= gap_at:
                x += aisle_width
            units.append(RackUnit(id=uid, floor_index=floor_index, pos_x=x, pos_z=z, rot_y=rot, params=params))
            uid += 1
    return units


def cross_aisle_x(units_per_row: int, origin_x: float = 0.0, bays: int = 4, size: float = 1.0) -> float:
    return origin_x + (units_per_row // 2) * bays * size


def index_bin_coordinates(coords: Iterable[BinCoordinate]) -> Dict[str, BinCoordinate]:
    # Later entries win, matching a map built by repeated inserts
    return {c.bin: c for c in coords if c.bin}
