import pytest

from kpis import compute_route_kpis, material_summary
from models import PickingTask, OrderLine, Point3D, PlannerCfg, TaskStatus


def _tasks():
    return [
        PickingTask(1, "M1", "a", 3, Point3D(2, 0, 0), distance_from_last=2.0, start_new_section=True,
                    status=TaskStatus.PICKED, picked_qty=1, is_partial=True, is_split=True),
        PickingTask(2, "M2", "c", 2, Point3D(5, 0, 0), distance_from_last=3.0),
        PickingTask(3, "M1", "b", 2, Point3D(60, 0, 0), distance_from_last=10.0, floor_id=1,
                    start_new_section=True, is_split=True),
    ]


def test_route_kpis():
    kpis = compute_route_kpis(_tasks(), PlannerCfg(walking_speed_mps=0.5, pick_time_s=10.0))
    route = kpis["Route"]
    assert route["Total Distance (m)"] == 15.0
    assert route["Tasks"] == 3
    assert route["Picked Tasks"] == 1
    assert route["Pending Tasks"] == 2
    assert route["Partial Picks"] == 1
    assert route["Split Tasks"] == 2
    assert route["Floors Visited"] == 2
    assert route["Sections"] == 2
    assert route["Travel Time (s)"] == 30.0
    assert route["Total Time (s)"] == 60.0
    assert route["Total Time (min)"] == pytest.approx(1.0)

    per_floor = kpis["Per Floor"]
    assert [f["Floor"] for f in per_floor] == [0, 1]
    assert per_floor[0]["Tasks"] == 2 and per_floor[0]["Picked"] == 1
    assert per_floor[1]["Distance (m)"] == 10.0


def test_empty_route_kpis():
    route = compute_route_kpis([])["Route"]
    assert route["Tasks"] == 0
    assert route["Total Time (min)"] == 0


def test_material_summary():
    orders = [OrderLine("M1", 5), OrderLine("M2", 2), OrderLine("M3", 4)]
    summary = material_summary(_tasks(), orders).set_index("material")
    assert list(summary.columns) == ["required", "planned", "picked", "outstanding"]
    assert summary.loc["M1", "picked"] == 1
    assert summary.loc["M1", "planned"] == 2
    assert summary.loc["M1", "outstanding"] == 4
    assert summary.loc["M2", "planned"] == 2
    # ordered but never routed
    assert summary.loc["M3", "planned"] == 0
    assert summary.loc["M3", "outstanding"] == 4
