from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from typing import List, Dict, Optional, Any
import math

import yaml


@dataclass(frozen=True)
class Point3D:
    x: float
    y: float
    z: float

    def distance_to(self, other: "Point3D") -> float:
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Point3D":
        return cls(x=float(d["x"]), y=float(d.get("y", 0.0)), z=float(d["z"]))


@dataclass(frozen=True)
class OrderLine:
    material: str
    qty: float


@dataclass(frozen=True)
class StockRecord:
    material: str
    bin: str
    qty_available: float
    description: str = ""


@dataclass(frozen=True)
class BinCoordinate:
    bin: str
    x: float
    y: float
    z: float
    floor_id: Optional[int] = None

    @property
    def point(self) -> Point3D:
        return Point3D(self.x, self.y, self.z)

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.z))


class TaskStatus(Enum):
    PENDING = "pending"
    PICKED = "picked"


@dataclass
class PickingTask:
    sequence: int
    material: str
    bin: str
    qty_to_pick: float
    coordinates: Point3D
    distance_from_last: float = 0.0
    floor_id: int = 0
    start_new_section: bool = False
    status: TaskStatus = TaskStatus.PENDING
    picked_qty: Optional[float] = None
    is_partial: bool = False
    is_split: bool = False

    @property
    def key(self):
        return (self.material, self.bin)

    @property
    def is_picked(self) -> bool:
        return self.status is TaskStatus.PICKED

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["coordinates"] = self.coordinates.to_dict()
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PickingTask":
        return cls(
            sequence=int(d["sequence"]),
            material=str(d["material"]),
            bin=str(d["bin"]),
            qty_to_pick=d["qty_to_pick"],
            coordinates=Point3D.from_dict(d["coordinates"]),
            distance_from_last=float(d.get("distance_from_last", 0.0)),
            floor_id=int(d.get("floor_id", 0)),
            start_new_section=bool(d.get("start_new_section", False)),
            status=TaskStatus(d.get("status", "pending")),
            picked_qty=d.get("picked_qty"),
            is_partial=bool(d.get("is_partial", False)),
            is_split=bool(d.get("is_split", False)),
        )


@dataclass(frozen=True)
class Floor:
    id: int
    entry_point: Point3D
    rotation: float = 0.0
    max_x: Optional[float] = None
    name: str = ""


@dataclass(frozen=True)
class Obstacle:
    """Axis-aligned rectangle on the (x, z) floor plane."""
    min_x: float
    max_x: float
    min_z: float
    max_z: float

    def expanded(self, pad: float) -> "Obstacle":
        return Obstacle(self.min_x - pad, self.max_x + pad, self.min_z - pad, self.max_z + pad)

    def contains(self, x: float, z: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_z <= z <= self.max_z


@dataclass(frozen=True)
class FloorGeometry:
    floor_id: int
    obstacles: List[Obstacle]
    bounds: Obstacle


@dataclass(frozen=True)
class LevelConfig:
    bays: int
    bins: int


@dataclass(frozen=True)
class UnitParams:
    levels: int
    bays: int
    bins: int
    size: float
    level_config: List[LevelConfig] = field(default_factory=list)

    @property
    def max_bays(self) -> int:
        if self.level_config:
            return max(lc.bays for lc in self.level_config)
        return self.bays

    @property
    def max_bins(self) -> int:
        if self.level_config:
            return max(lc.bins for lc in self.level_config)
        return self.bins


@dataclass(frozen=True)
class RackUnit:
    id: int
    floor_index: int
    pos_x: float
    pos_z: float
    rot_y: float
    params: UnitParams

    @property
    def width(self) -> float:
        return self.params.max_bays * self.params.size

    @property
    def depth(self) -> float:
        return self.params.max_bins * self.params.size


@dataclass
class RouteResult:
    tasks: List[PickingTask]
    skipped: List[OrderLine] = field(default_factory=list)
    unmet: Dict[str, float] = field(default_factory=dict)


@dataclass
class ReplanResult:
    tasks: List[PickingTask]
    focus_index: Optional[int]
    shortfall: Dict[str, float] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return self.focus_index is None


@dataclass
class PlannerCfg:
    obstacle_padding: float = 0.5
    snap_max_steps: int = 500
    max_expansions: int = 5000
    splice_tolerance: float = 0.1
    wall_threshold: float = 3.0
    wall_margin: float = 20.0
    grid_margin: int = 2
    max_grid_cells: int = 4_000_000
    path_y: float = 0.0
    walking_speed_mps: float = 1.0
    pick_time_s: float = 15.0
    prefer_full_cover: bool = False

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "PlannerCfg":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (d or {}).items() if k in known})


def load_cfg(path: Optional[str] = None) -> PlannerCfg:
    if not path:
        return PlannerCfg()
    with open(path, "r", encoding="utf-8") as f:
        return PlannerCfg.from_dict(yaml.safe_load(f))
