import math

from geometry import unit_footprint, union_bounds, extend_to_walls, build_floor_geometry, layout_digest, GeometryIndex
from models import Obstacle, RackUnit, UnitParams, LevelConfig, PlannerCfg
from storage import gen_rack_rows


def _unit(uid=1, x=10.0, z=10.0, rot=0.0, bays=4, bins=2, floor=0, level_config=None):
    params = UnitParams(levels=3, bays=bays, bins=bins, size=1.0, level_config=level_config or [])
    return RackUnit(id=uid, floor_index=floor, pos_x=x, pos_z=z, rot_y=rot, params=params)


def test_footprint_swaps_on_quarter_turn():
    box = unit_footprint(_unit(rot=math.pi / 2))
    assert (box.min_x, box.max_x, box.min_z, box.max_z) == (9.0, 11.0, 8.0, 12.0)

    # half turn keeps width along x
    box = unit_footprint(_unit(rot=math.pi))
    assert (box.min_x, box.max_x, box.min_z, box.max_z) == (8.0, 12.0, 9.0, 11.0)


def test_footprint_snaps_small_rotation():
    assert unit_footprint(_unit(rot=0.2)) == unit_footprint(_unit(rot=0.0))
    assert unit_footprint(_unit(rot=-math.pi / 2 + 0.1)) == unit_footprint(_unit(rot=math.pi / 2))


def test_footprint_uses_widest_level():
    u = _unit(level_config=[LevelConfig(bays=2, bins=1), LevelConfig(bays=6, bins=3)])
    box = unit_footprint(u)
    assert box.max_x - box.min_x == 6.0
    assert box.max_z - box.min_z == 3.0


def test_union_bounds():
    b = union_bounds([Obstacle(0, 2, 0, 1), Obstacle(5, 7, -3, 4)])
    assert b == Obstacle(0.0, 7.0, -3.0, 4.0)


def test_extend_to_walls_only_touches_near_edges():
    bounds = Obstacle(0, 30, 0, 30)
    box = Obstacle(1, 5, 10, 12)
    out = extend_to_walls(box, bounds, threshold=3.0, margin=20.0)
    assert out.min_x == -19.0
    assert out.max_x == 5
    assert (out.min_z, out.max_z) == (10, 12)

    inner = Obstacle(10, 12, 10, 12)
    assert extend_to_walls(inner, bounds, threshold=3.0, margin=20.0) == inner


def test_build_floor_geometry_bounds_are_unextended():
    units = gen_rack_rows(2, 4)
    geo = build_floor_geometry(0, units, PlannerCfg())
    assert len(geo.obstacles) == len(units)
    assert geo.bounds.min_x == 0.0
    assert geo.bounds.min_z == 0.0
    # every unit in a two-row layout touches a wall on at least one edge
    assert all(o.min_z < 0 or o.max_z > geo.bounds.max_z for o in geo.obstacles)


def test_layout_digest_ignores_order():
    units = gen_rack_rows(2, 4)
    assert layout_digest(units) == layout_digest(list(reversed(units)))
    moved = [_unit(uid=u.id, x=u.pos_x + 1, z=u.pos_z) for u in units]
    assert layout_digest(moved) != layout_digest(units)


def test_geometry_index_rebuilds_only_on_change():
    units = gen_rack_rows(2, 4) + gen_rack_rows(1, 2, floor_index=1, origin_x=50.0, first_id=100)
    idx = GeometryIndex(units)
    assert 0 in idx and 1 in idx
    assert 2 not in idx
    assert idx.get(2) is None
    first = idx.get(0)

    assert idx.refresh(list(units)) is False
    assert idx.get(0) is first

    assert idx.refresh(units[:-1]) is True
    assert len(idx.get(1).obstacles) == 1
