from __future__ import annotations
from collections import OrderedDict
from dataclasses import astuple, replace
from typing import Dict, Any, List, Optional, Tuple
import logging

from data_io import unit_from_dict, floor_from_dict
from geometry import GeometryIndex, layout_digest
from kpis import compute_route_kpis
from models import OrderLine, StockRecord, BinCoordinate, PickingTask, Point3D, PlannerCfg
from pathing import plan_path
from replanning import replan
from routing import generate_route, compute_shortages, get_metric, coordinate_map
from storage import floor_of

logger = logging.getLogger(__name__)

# (layout digest, planner cfg) -> GeometryIndex, least recently used first
GEOMETRY_CACHE_SIZE = 32
_GEOMETRY_CACHE: "OrderedDict[Tuple[str, tuple], GeometryIndex]" = OrderedDict()


def geometry_for(units_payload: List[Dict[str, Any]], cfg: PlannerCfg) -> Optional[GeometryIndex]:
    if not units_payload:
        return None
    units = [unit_from_dict(u) for u in units_payload]
    key = (layout_digest(units), astuple(cfg))
    if key in _GEOMETRY_CACHE:
        logger.debug("Geometry cache hit for %s", key[0][:12])
        _GEOMETRY_CACHE.move_to_end(key)
        return _GEOMETRY_CACHE[key]
    _GEOMETRY_CACHE[key] = GeometryIndex(units, cfg)
    while len(_GEOMETRY_CACHE) > GEOMETRY_CACHE_SIZE:
        _GEOMETRY_CACHE.popitem(last=False)
    return _GEOMETRY_CACHE[key]


def _orders(payload) -> List[OrderLine]:
    return [OrderLine(material=o["material"], qty=float(o["qty"])) for o in payload]


def _stock(payload) -> List[StockRecord]:
    return [StockRecord(material=s["material"], bin=s["bin"], qty_available=float(s["qty_available"]),
                        description=s.get("description") or "") for s in payload]


def _coords(payload) -> List[BinCoordinate]:
    return [BinCoordinate(bin=c["bin"], x=float(c["x"]), y=float(c["y"]), z=float(c["z"]),
                          floor_id=c.get("floor_id")) for c in payload]


def _floors(payload):
    return [floor_from_dict(f) for f in payload or []] or None


def run_route(req: Dict[str, Any]) -> Dict[str, Any]:
    cfg = PlannerCfg.from_dict(req.get("config"))
    geometry = geometry_for(req.get("units") or [], cfg)
    metric = get_metric(req.get("metric") or "euclidean", geometry, cfg)
    entry = req.get("entry_point")
    orders = _orders(req["order_lines"])
    result = generate_route(
        orders,
        _stock(req["stock_records"]),
        _coords(req["bin_coordinates"]),
        entry_point=Point3D.from_dict(entry) if entry else None,
        floors=_floors(req.get("floors")),
        cfg=cfg,
        metric=metric,
    )
    return {
        "tasks": [t.to_dict() for t in result.tasks],
        "skipped": [{"material": o.material, "qty": o.qty} for o in result.skipped],
        "unmet": result.unmet,
        "kpis": compute_route_kpis(result.tasks, cfg),
    }


def run_replan(req: Dict[str, Any]) -> Dict[str, Any]:
    cfg = PlannerCfg.from_dict(req.get("config"))
    geometry = geometry_for(req.get("units") or [], cfg)
    metric = get_metric(req.get("metric") or "euclidean", geometry, cfg)
    floors = _floors(req.get("floors"))
    coords = coordinate_map(_coords(req["bin_coordinates"]))
    stock = _stock(req["stock_records"])

    resolved = replace(PickingTask.from_dict(req["resolved_task"]), picked_qty=float(req["picked_qty"]))
    if resolved.picked_qty < 0:
        raise ValueError(f"picked quantity must be >= 0, got {resolved.picked_qty}")
    substitute = req.get("bin")
    if substitute and substitute != resolved.bin:
        coord = coords.get(substitute)
        if coord is None or not coord.is_finite():
            raise ValueError(f"bin {substitute!r} has no known location")
        if not any(s.material == resolved.material and s.bin == substitute for s in stock):
            raise ValueError(f"bin {substitute!r} holds no stock of {resolved.material!r}")
        resolved = replace(resolved, bin=substitute, coordinates=coord.point, floor_id=floor_of(coord, floors))

    result = replan(
        resolved,
        pending_tasks=[PickingTask.from_dict(t) for t in req.get("pending_tasks") or []],
        settled_tasks=[PickingTask.from_dict(t) for t in req.get("settled_tasks") or []],
        order_lines=_orders(req["order_lines"]),
        stock_records=stock,
        bin_coordinates=coords,
        floors=floors,
        metric=metric,
    )
    return {
        "tasks": [t.to_dict() for t in result.tasks],
        "focus_index": result.focus_index,
        "shortfall": result.shortfall,
        "complete": result.complete,
    }


def run_path(req: Dict[str, Any]) -> Dict[str, Any]:
    cfg = PlannerCfg.from_dict(req.get("config"))
    geometry = geometry_for(req.get("units") or [], cfg)
    result = plan_path(Point3D.from_dict(req["start"]), Point3D.from_dict(req["end"]),
                       int(req.get("floor_id", 0)), geometry, cfg)
    return {
        "points": [p.to_dict() for p in result.points],
        "length": result.length,
        "approximate": result.approximate,
        "snapped_start": list(result.snapped_start) if result.snapped_start else None,
        "snapped_end": list(result.snapped_end) if result.snapped_end else None,
    }


def run_shortages(req: Dict[str, Any]) -> Dict[str, Any]:
    shortages = compute_shortages(_orders(req["order_lines"]), _stock(req["stock_records"]))
    return {"shortages": shortages, "short_materials": sorted(m for m, short in shortages.items() if short)}
