from __future__ import annotations

from routing import METRICS

# Thin registry so the UI can list what /api/route accepts
_DESCRIPTIONS = {
    "euclidean": "Straight-line 3-D distance",
    "walking": "Length of the planned walking path around racks",
}


def list_metrics():
    return [{"name": name, "description": _DESCRIPTIONS.get(name, "")} for name in sorted(METRICS)]
