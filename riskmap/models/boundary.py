# riskmap/models/boundary.py
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

Vertex = Tuple[float, float]  # (lng, lat), GeoJSON order


class BoundaryFeature(BaseModel):
    """
    One administrative boundary (geoBoundaries ADM3 feature).
    `ring` and `bounds` are only set for Polygon geometries that parsed;
    anything else is carried along but never matches a point.
    """
    model_config = ConfigDict(frozen=True)

    shape_id: str
    shape_name: str
    geometry_type: str
    geometry: Dict[str, Any]
    ring: Optional[Tuple[Vertex, ...]] = None
    bounds: Optional[Tuple[float, float, float, float]] = None  # minx, miny, maxx, maxy

    @property
    def matchable(self) -> bool:
        return self.geometry_type == "Polygon" and bool(self.ring)
