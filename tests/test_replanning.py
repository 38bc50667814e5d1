from dataclasses import replace

from models import OrderLine, StockRecord, BinCoordinate, PickingTask, Point3D, TaskStatus
from replanning import replan
from routing import generate_route


def _bins(**positions):
    return [BinCoordinate(bin=name, x=x, y=0.0, z=0.0) for name, x in positions.items()]


def _resolve(tasks, index, picked, stock, orders, coords, **changes):
    resolved = replace(tasks[index], picked_qty=picked, **changes)
    others = [t for i, t in enumerate(tasks) if i != index]
    return replan(
        resolved,
        pending_tasks=[t for t in others if not t.is_picked],
        settled_tasks=[t for t in others if t.is_picked],
        order_lines=orders,
        stock_records=stock,
        bin_coordinates=coords,
    )


def test_short_pick_spawns_task_elsewhere():
    orders = [OrderLine("M1", 5)]
    stock = [StockRecord("M1", "binA", 5), StockRecord("M1", "binC", 10)]
    coords = _bins(binA=2.0, binC=8.0)
    tasks = generate_route(orders, stock, coords).tasks
    assert [(t.bin, t.qty_to_pick) for t in tasks] == [("binA", 5)]

    result = _resolve(tasks, 0, 2, stock, orders, coords)

    done, extra = result.tasks
    assert done.status is TaskStatus.PICKED
    assert done.picked_qty == 2 and done.is_partial
    assert (extra.bin, extra.qty_to_pick, extra.sequence) == ("binC", 3, 2)
    assert extra.is_split and extra.status is TaskStatus.PENDING
    assert extra.distance_from_last == 6.0
    assert result.focus_index == 1
    assert result.shortfall == {}
    assert not result.complete


def test_short_pick_without_other_stock_reports_shortfall():
    orders = [OrderLine("M1", 5)]
    stock = [StockRecord("M1", "binA", 5)]
    coords = _bins(binA=2.0)
    tasks = generate_route(orders, stock, coords).tasks

    result = _resolve(tasks, 0, 2, stock, orders, coords)

    assert len(result.tasks) == 1
    assert result.shortfall == {"M1": 3}
    assert result.complete and result.focus_index is None


def test_over_pick_shrinks_then_drops_pending():
    orders = [OrderLine("M1", 6)]
    stock = [StockRecord("M1", "binA", 3), StockRecord("M1", "binB", 3)]
    coords = _bins(binA=2.0, binB=10.0)
    tasks = generate_route(orders, stock, coords).tasks
    assert [t.bin for t in tasks] == ["binA", "binB"]

    shrunk = _resolve(tasks, 0, 5, stock, orders, coords)
    assert [(t.bin, t.qty_to_pick) for t in shrunk.tasks] == [("binA", 3), ("binB", 1)]
    assert not shrunk.tasks[0].is_partial

    dropped = _resolve(tasks, 0, 6, stock, orders, coords)
    assert [t.bin for t in dropped.tasks] == ["binA"]
    assert dropped.complete


def test_queued_bins_are_not_reused_for_the_shortfall():
    orders = [OrderLine("M1", 5)]
    stock = [StockRecord("M1", "binA", 3), StockRecord("M1", "binB", 5), StockRecord("M1", "binC", 10)]
    coords = _bins(binA=2.0, binB=10.0, binC=4.0)
    tasks = generate_route(orders, stock, coords).tasks
    # binC is nearer than binB, so it covers the last 2
    assert [(t.bin, t.qty_to_pick) for t in tasks] == [("binA", 3), ("binC", 2)]

    result = _resolve(tasks, 0, 1, stock, orders, coords)

    # 4 still owed: binC keeps its 2, binB (not queued) covers the other 2
    assert [(t.bin, t.qty_to_pick, t.sequence) for t in result.tasks] == [
        ("binA", 3, 1), ("binC", 2, 2), ("binB", 2, 3),
    ]
    assert result.tasks[0].picked_qty == 1


def test_other_materials_only_change_order():
    settled = PickingTask(1, "X", "x1", 1, Point3D(1, 0, 0), status=TaskStatus.PICKED, picked_qty=1)
    current = PickingTask(2, "M1", "a", 4, Point3D(5, 0, 0))
    far = PickingTask(3, "Y", "far", 2, Point3D(20, 0, 0))
    near = PickingTask(4, "Z", "near", 1, Point3D(6, 0, 0))
    orders = [OrderLine("X", 1), OrderLine("M1", 4), OrderLine("Y", 2), OrderLine("Z", 1)]
    stock = [StockRecord("X", "x1", 1), StockRecord("M1", "a", 4), StockRecord("Y", "far", 2), StockRecord("Z", "near", 1)]
    coords = _bins(x1=1.0, a=5.0, far=20.0, near=6.0)

    result = replan(replace(current, picked_qty=4), [current, far, near], [settled, current],
                    orders, stock, coords)

    assert [(t.material, t.sequence) for t in result.tasks] == [("X", 1), ("M1", 2), ("Z", 3), ("Y", 4)]
    assert result.tasks[3].qty_to_pick == 2
    assert result.tasks[2].distance_from_last == 1.0
    assert result.focus_index == 2
    # caller's tasks are untouched
    assert (far.sequence, near.sequence, current.status) == (3, 4, TaskStatus.PENDING)


def test_substitute_bin_replaces_planned_copy():
    orders = [OrderLine("M1", 5)]
    stock = [StockRecord("M1", "binA", 3), StockRecord("M1", "binB", 2), StockRecord("M1", "binS", 10)]
    coords = _bins(binA=2.0, binB=10.0, binS=20.0)
    tasks = generate_route(orders, stock, coords).tasks
    assert [t.bin for t in tasks] == ["binA", "binB"]

    resolved = replace(tasks[0], bin="binS", coordinates=Point3D(20.0, 0.0, 0.0), picked_qty=5)
    # the full pre-resolution list, planned binA task included
    result = replan(resolved, tasks, [], orders, stock, coords)

    assert [(t.bin, t.picked_qty) for t in result.tasks] == [("binS", 5)]
    assert result.complete
    assert tasks[0].bin == "binA"


def test_unconfirmed_quantity_counts_as_planned():
    orders = [OrderLine("M1", 3)]
    stock = [StockRecord("M1", "binA", 3)]
    coords = _bins(binA=1.0)
    tasks = generate_route(orders, stock, coords).tasks
    result = replan(tasks[0], [], [], orders, stock, coords)
    assert result.tasks[0].picked_qty == 3
    assert not result.tasks[0].is_partial
    assert result.complete
