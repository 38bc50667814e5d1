from __future__ import annotations
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .registry import list_metrics
from .runner import run_route, run_replan, run_path, run_shortages

app = FastAPI(title="Picker API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PointIn(BaseModel):
    x: float
    y: float = 0.0
    z: float


class OrderLineIn(BaseModel):
    material: str
    qty: float


class StockRecordIn(BaseModel):
    material: str
    bin: str
    qty_available: float
    description: str = ""


class BinCoordinateIn(BaseModel):
    bin: str
    x: float
    y: float
    z: float
    floor_id: Optional[int] = None


class FloorIn(BaseModel):
    id: int
    entry_point: PointIn
    rotation: float = 0.0
    max_x: Optional[float] = None
    name: str = ""


class LayoutMixin(BaseModel):
    # Rack units as exported by the layout editor (id, floorIndex, posX, posZ, rotY, params)
    units: List[Dict[str, Any]] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)


class RouteRequest(LayoutMixin):
    order_lines: List[OrderLineIn]
    stock_records: List[StockRecordIn]
    bin_coordinates: List[BinCoordinateIn]
    floors: List[FloorIn] = Field(default_factory=list)
    entry_point: Optional[PointIn] = None
    metric: str = "euclidean"


class ReplanRequest(LayoutMixin):
    resolved_task: Dict[str, Any]
    picked_qty: float
    bin: Optional[str] = None
    pending_tasks: List[Dict[str, Any]] = Field(default_factory=list)
    settled_tasks: List[Dict[str, Any]] = Field(default_factory=list)
    order_lines: List[OrderLineIn]
    stock_records: List[StockRecordIn]
    bin_coordinates: List[BinCoordinateIn]
    floors: List[FloorIn] = Field(default_factory=list)
    metric: str = "euclidean"


class PathRequest(LayoutMixin):
    start: PointIn
    end: PointIn
    floor_id: int = 0


class ShortageRequest(BaseModel):
    order_lines: List[OrderLineIn]
    stock_records: List[StockRecordIn]


def _run(fn, req: BaseModel):
    try:
        return fn(req.model_dump())
    except (ValueError, KeyError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/metrics")
def get_metrics():
    return {"metrics": list_metrics()}


@app.post("/api/route")
def api_route(req: RouteRequest):
    return _run(run_route, req)


@app.post("/api/replan")
def api_replan(req: ReplanRequest):
    return _run(run_replan, req)


@app.post("/api/path")
def api_path(req: PathRequest):
    return _run(run_path, req)


@app.post("/api/shortages")
def api_shortages(req: ShortageRequest):
    return _run(run_shortages, req)
