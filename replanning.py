"""
Reconciles the remaining plan after one task resolves differently than planned.

The resolved task may carry a substitute bin and/or a confirmed quantity that
differs from `qty_to_pick`. Pending work for that material is shrunk or dropped
to match what is still owed, any uncovered remainder is allocated from the
nearest unused bins, and the pending set is re-sequenced from the worker's
current position. Tasks for other materials only change order.
"""
import logging
from dataclasses import replace
from typing import List, Dict, Optional

from models import (
    OrderLine, StockRecord, PickingTask, TaskStatus, Floor, ReplanResult,
)
from routing import BinCoordinates, DistanceMetric, coordinate_map, reorder_tasks
from storage import floor_of

logger = logging.getLogger(__name__)


def _order_total(order_lines: List[OrderLine], material: str) -> float:
    return sum(line.qty for line in order_lines if line.material == material)


def _reconcile_pending(pending: List[PickingTask], resolved: PickingTask, remaining: float):
    updated = []
    for t in pending:
        if t.material != resolved.material:
            updated.append(t)
            continue
        # The bin just visited is treated as exhausted for this material
        if t.bin == resolved.bin:
            continue
        if remaining <= 0:
            continue
        qty = min(t.qty_to_pick, remaining)
        updated.append(t if qty == t.qty_to_pick else replace(t, qty_to_pick=qty))
        remaining -= qty
    return updated, remaining


def _cover_shortfall(resolved: PickingTask, remaining: float, busy_bins, stock_records, coords, floors):
    candidates = []
    for s in stock_records:
        if s.material != resolved.material or s.bin in busy_bins or s.qty_available <= 0:
            continue
        coord = coords.get(s.bin)
        if coord is None or not coord.is_finite():
            continue
        candidates.append((s, coord))
    # sorted() is stable, equal distances keep stock order
    candidates.sort(key=lambda sc: resolved.coordinates.distance_to(sc[1].point))

    spawned = []
    for s, coord in candidates:
        if remaining <= 0:
            break
        qty = min(s.qty_available, remaining)
        spawned.append(PickingTask(
            sequence=0,
            material=resolved.material,
            bin=s.bin,
            qty_to_pick=qty,
            coordinates=coord.point,
            floor_id=floor_of(coord, floors),
            is_split=True,
        ))
        busy_bins.add(s.bin)
        remaining -= qty
        logger.debug("Spawned task %s x%s from %s", resolved.material, qty, s.bin)
    return spawned, remaining


def replan(resolved_task: PickingTask, pending_tasks: List[PickingTask], settled_tasks: List[PickingTask],
           order_lines: List[OrderLine], stock_records: List[StockRecord], bin_coordinates: BinCoordinates,
           floors: Optional[List[Floor]] = None,
           metric: Optional[DistanceMetric] = None) -> ReplanResult:
    """
    `resolved_task` must carry the confirmed `picked_qty` (None counts as the planned quantity).
    `pending_tasks` and `settled_tasks` are the lists from before the resolution; the
    resolved task is ignored wherever it appears in them, either as the same object or,
    among pending tasks, as the planned copy with the same sequence. Nothing passed in is mutated.
    """
    coords = coordinate_map(bin_coordinates)
    material = resolved_task.material
    confirmed = resolved_task.picked_qty if resolved_task.picked_qty is not None else resolved_task.qty_to_pick

    settled = [t for t in settled_tasks if t is not resolved_task and t.is_picked]
    settled_qty = sum(t.picked_qty or 0 for t in settled if t.material == material)
    remaining = _order_total(order_lines, material) - (settled_qty + confirmed)

    pending = [t for t in pending_tasks
               if t is not resolved_task and t.sequence != resolved_task.sequence and not t.is_picked]
    pending, remaining = _reconcile_pending(pending, resolved_task, remaining)

    shortfall: Dict[str, float] = {}
    if remaining > 0:
        busy_bins = {resolved_task.bin}
        busy_bins.update(t.bin for t in pending if t.material == material)
        busy_bins.update(t.bin for t in settled if t.material == material)
        spawned, remaining = _cover_shortfall(resolved_task, remaining, busy_bins, stock_records, coords, floors)
        pending.extend(spawned)
        if remaining > 0:
            shortfall[material] = remaining
            logger.warning("Replan shortfall: %s still short by %s after exhausting stock", material, remaining)

    renumbered = [replace(t, sequence=i + 1) for i, t in enumerate(settled)]
    resolved = replace(
        resolved_task,
        sequence=len(settled) + 1,
        status=TaskStatus.PICKED,
        picked_qty=confirmed,
        is_partial=confirmed < resolved_task.qty_to_pick,
    )
    resequenced = reorder_tasks(resolved.coordinates, resolved.floor_id, pending,
                                first_sequence=len(settled) + 2, metric=metric)
    tasks = renumbered + [resolved] + resequenced
    focus_index = len(renumbered) + 1 if resequenced else None

    logger.info("Replanned after %s@%s: %d pending, shortfall %s",
                material, resolved.bin, len(resequenced), shortfall or "none")
    return ReplanResult(tasks=tasks, focus_index=focus_index, shortfall=shortfall)
