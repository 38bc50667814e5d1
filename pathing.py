"""
Grid path planning on one floor.

The floor plane (x, z) is rasterised onto the integer lattice; a cell is blocked
when it falls inside any padded obstacle rectangle. Endpoints that land inside a
rack (pick locations usually do) are snapped to the nearest free cell with a
bounded BFS, then a 4-connected A* with Manhattan heuristic connects them.
Search is capped; on a cap hit or a disconnected map an L-shaped direct path is
returned and flagged as approximate.

The raster covers the floor bounds plus a margin. An endpoint outside it is
clamped to the window edge (flagged approximate). Without floor geometry the
window is the box around both endpoints. A window over
`PlannerCfg.max_grid_cells` is never allocated; the direct path is returned.

Tie-breaks follow heap insertion order, so identical inputs give identical
paths in practice; this is best-effort rather than a guarantee.
"""
from __future__ import annotations

import heapq
import itertools
import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import List, Tuple, Optional, Dict

import numpy as np

from geometry import GeometryIndex
from models import FloorGeometry, PlannerCfg, Point3D

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]  # (ix, iz)

DIRECTIONS = ((1, 0), (-1, 0), (0, 1), (0, -1))


def to_cell(p: Point3D) -> Cell:
    return (math.floor(p.x + 0.5), math.floor(p.z + 0.5))


def grid_window(geometry: Optional[FloorGeometry], cfg: PlannerCfg, include: List[Cell] = ()):
    """(x0, z0, nx, nz) of the search raster.

    With geometry the window is the floor bounds plus ``grid_margin``; without it,
    the box around the ``include`` cells plus the same margin.
    """
    margin = cfg.grid_margin
    if geometry is not None:
        b = geometry.bounds
        xs = [math.floor(b.min_x), math.ceil(b.max_x)]
        zs = [math.floor(b.min_z), math.ceil(b.max_z)]
    else:
        xs = [c[0] for c in include]
        zs = [c[1] for c in include]
    x0 = min(xs) - margin
    z0 = min(zs) - margin
    return x0, z0, max(xs) + margin - x0 + 1, max(zs) + margin - z0 + 1


class OccupancyGrid:
    def __init__(self, geometry: Optional[FloorGeometry], cfg: PlannerCfg, include: List[Cell] = ()):
        self.x0, self.z0, self.nx, self.nz = grid_window(geometry, cfg, include)
        self.blocked = np.zeros((self.nx, self.nz), dtype=bool)
        if geometry is not None:
            for obs in geometry.obstacles:
                self._block(obs.expanded(cfg.obstacle_padding))

    def _block(self, obs) -> None:
        i0 = max(math.ceil(obs.min_x) - self.x0, 0)
        i1 = min(math.floor(obs.max_x) - self.x0, self.nx - 1)
        j0 = max(math.ceil(obs.min_z) - self.z0, 0)
        j1 = min(math.floor(obs.max_z) - self.z0, self.nz - 1)
        if i0 <= i1 and j0 <= j1:
            self.blocked[i0:i1 + 1, j0:j1 + 1] = True

    def in_window(self, cell: Cell) -> bool:
        i, j = cell[0] - self.x0, cell[1] - self.z0
        return 0 <= i < self.nx and 0 <= j < self.nz

    def clamp(self, cell: Cell) -> Cell:
        return (min(max(cell[0], self.x0), self.x0 + self.nx - 1),
                min(max(cell[1], self.z0), self.z0 + self.nz - 1))

    def is_blocked(self, cell: Cell) -> bool:
        if not self.in_window(cell):
            return True
        return bool(self.blocked[cell[0] - self.x0, cell[1] - self.z0])

    def neighbors(self, cell: Cell):
        for dx, dz in DIRECTIONS:
            nb = (cell[0] + dx, cell[1] + dz)
            if self.in_window(nb):
                yield nb


def snap_to_walkable(grid: OccupancyGrid, cell: Cell, max_steps: int) -> Optional[Cell]:
    """Nearest free cell by 4-connected BFS, or None when the step cap runs out."""
    if not grid.is_blocked(cell):
        return cell
    queue = deque([cell])
    seen = {cell}
    steps = 0
    while queue and steps < max_steps:
        cur = queue.popleft()
        steps += 1
        if not grid.is_blocked(cur):
            return cur
        for nb in grid.neighbors(cur):
            if nb not in seen:
                seen.add(nb)
                queue.append(nb)
    return None


def _heuristic(a: Cell, b: Cell) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def _reconstruct(parent: Dict[Cell, Optional[Cell]], cur: Cell) -> List[Cell]:
    path = []
    while cur is not None:
        path.append(cur)
        cur = parent[cur]
    path.reverse()
    return path


def astar(grid: OccupancyGrid, start: Cell, goal: Cell, max_expansions: int) -> Optional[List[Cell]]:
    # The goal may itself be blocked when snapping failed; it is still enterable
    counter = itertools.count()
    open_heap = [(_heuristic(start, goal), 0, next(counter), start)]
    g_score: Dict[Cell, int] = {start: 0}
    parent: Dict[Cell, Optional[Cell]] = {start: None}
    closed = set()
    expansions = 0

    while open_heap:
        _, g_cur, _, cur = heapq.heappop(open_heap)
        if cur in closed:
            continue
        if cur == goal:
            return _reconstruct(parent, cur)
        if expansions >= max_expansions:
            logger.debug("A* expansion cap %d reached", max_expansions)
            return None
        closed.add(cur)
        expansions += 1
        for nb in grid.neighbors(cur):
            if nb in closed:
                continue
            if nb != goal and grid.is_blocked(nb):
                continue
            tentative = g_cur + 1
            if tentative < g_score.get(nb, math.inf):
                g_score[nb] = tentative
                parent[nb] = cur
                heapq.heappush(open_heap, (tentative + _heuristic(nb, goal), tentative, next(counter), nb))
    return None


def simplify_cells(cells: List[Cell]) -> List[Cell]:
    """Keep only the endpoints and the cells where the direction of travel changes."""
    if len(cells) <= 2:
        return list(cells)
    out = [cells[0]]
    for prev, cur, nxt in zip(cells, cells[1:], cells[2:]):
        if (cur[0] - prev[0], cur[1] - prev[1]) != (nxt[0] - cur[0], nxt[1] - cur[1]):
            out.append(cur)
    out.append(cells[-1])
    return out


def direct_path(start: Point3D, end: Point3D, tol: float = 0.1) -> List[Point3D]:
    corner = Point3D(end.x, start.y, start.z)
    points = [start]
    if corner.distance_to(start) > tol and corner.distance_to(end) > tol:
        points.append(corner)
    points.append(end)
    return points


def path_length(points: List[Point3D]) -> float:
    return sum(a.distance_to(b) for a, b in zip(points, points[1:]))


@dataclass
class PathResult:
    points: List[Point3D]
    approximate: bool = False
    snapped_start: Optional[Cell] = None
    snapped_end: Optional[Cell] = None

    @property
    def length(self) -> float:
        return path_length(self.points)


def plan_path(start: Point3D, end: Point3D, floor_id: int, geometry_index: Optional[GeometryIndex],
              cfg: Optional[PlannerCfg] = None) -> PathResult:
    cfg = cfg or (geometry_index.cfg if geometry_index is not None else PlannerCfg())
    geometry = geometry_index.get(floor_id) if geometry_index is not None else None
    raw_start, raw_end = to_cell(start), to_cell(end)
    _, _, nx, nz = grid_window(geometry, cfg, [raw_start, raw_end])
    if nx * nz > cfg.max_grid_cells:
        logger.warning("Search window %dx%d on floor %s exceeds %d cells; using direct path",
                       nx, nz, floor_id, cfg.max_grid_cells)
        return PathResult(direct_path(start, end, cfg.splice_tolerance), approximate=True)
    grid = OccupancyGrid(geometry, cfg, include=[raw_start, raw_end])

    # Endpoints beyond the floor window join the grid at its edge; that leg is not searched
    in_start, in_end = grid.clamp(raw_start), grid.clamp(raw_end)
    clamped = (in_start, in_end) != (raw_start, raw_end)
    if clamped:
        logger.debug("Endpoint outside floor %s window clamped: %s -> %s, %s -> %s",
                     floor_id, raw_start, in_start, raw_end, in_end)

    s_cell = snap_to_walkable(grid, in_start, cfg.snap_max_steps) or in_start
    e_cell = snap_to_walkable(grid, in_end, cfg.snap_max_steps) or in_end

    cells = astar(grid, s_cell, e_cell, cfg.max_expansions)
    if cells is None:
        logger.warning("No grid path on floor %s from %s to %s; using direct path", floor_id, s_cell, e_cell)
        return PathResult(direct_path(start, end, cfg.splice_tolerance), approximate=True,
                          snapped_start=s_cell, snapped_end=e_cell)

    points = [Point3D(float(ix), cfg.path_y, float(iz)) for ix, iz in simplify_cells(cells)]
    if start.distance_to(points[0]) > cfg.splice_tolerance:
        points.insert(0, start)
    if end.distance_to(points[-1]) > cfg.splice_tolerance:
        points.append(end)
    if len(points) < 2:
        points = [start, end]
    return PathResult(points, approximate=clamped, snapped_start=s_cell, snapped_end=e_cell)


def find_path(start: Point3D, end: Point3D, floor_id: int, geometry_index: Optional[GeometryIndex],
              cfg: Optional[PlannerCfg] = None) -> List[Point3D]:
    return plan_path(start, end, floor_id, geometry_index, cfg).points
