# riskmap/services/spatial.py
"""
Point-in-boundary lookup against geoBoundaries polygons.

Assumes simple, hole-free, non-overlapping Polygons (ADM3 partition).
MultiPolygons and holes are not matched; when polygons overlap the first one
in input order wins.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from shapely.errors import GEOSException
from shapely.geometry import shape

from riskmap.models.boundary import BoundaryFeature, Vertex

log = logging.getLogger("riskmap.spatial")


# ---------- Loading ----------
def _features_of(collection: Any) -> List[Dict[str, Any]]:
    if collection is None:
        return []
    if isinstance(collection, dict):
        return list(collection.get("features") or [])
    return list(collection)


def load_boundaries(collection: Any) -> List[BoundaryFeature]:
    """
    Accept a GeoJSON FeatureCollection dict (or a plain list of features)
    and return BoundaryFeature objects in input order.
    """
    boundaries: List[BoundaryFeature] = []
    for idx, feat in enumerate(_features_of(collection)):
        geom = feat.get("geometry")
        if not geom:
            continue
        props = feat.get("properties") or {}
        shape_id = props.get("shapeID")
        if shape_id is None:
            log.warning("Boundary feature %d has no shapeID; using its index", idx)
            shape_id = f"feature{idx}"

        gtype = geom.get("type", "")
        ring: Optional[Tuple[Vertex, ...]] = None
        bounds = None
        if gtype == "Polygon":
            try:
                poly = shape(geom)
                ring = tuple((float(x), float(y)) for x, y, *_ in poly.exterior.coords)
                bounds = tuple(poly.bounds)
            except (GEOSException, ValueError, TypeError, IndexError, KeyError) as e:
                log.warning("Skipping unreadable polygon %s: %s", shape_id, e)
                ring, bounds = None, None

        boundaries.append(BoundaryFeature(
            shape_id=str(shape_id),
            shape_name=props.get("shapeName") or props.get("name") or "Unknown",
            geometry_type=gtype,
            geometry=geom,
            ring=ring,
            bounds=bounds,
        ))

    log.info("Loaded %d boundary features", len(boundaries))
    return boundaries


# ---------- Ray casting ----------
def is_point_in_polygon(point: Tuple[float, float], ring: Sequence[Vertex]) -> bool:
    """Even-odd ray casting. `point` and `ring` are both (x=lng, y=lat)."""
    x, y = point
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def _in_bounds(x: float, y: float, bounds: Tuple[float, float, float, float]) -> bool:
    minx, miny, maxx, maxy = bounds
    return minx <= x <= maxx and miny <= y <= maxy


def find_containing_boundary(
    point: Optional[Tuple[float, float]],
    boundaries: Optional[Iterable[BoundaryFeature]],
) -> Optional[BoundaryFeature]:
    """
    `point` is (lat, lng). Returns the first Polygon boundary containing it,
    or None (no point, no boundaries, or no hit).
    """
    if point is None or not boundaries:
        return None
    lat, lng = point
    if lat is None or lng is None:
        return None

    for b in boundaries:
        if not b.matchable:
            continue
        if b.bounds is not None and not _in_bounds(lng, lat, b.bounds):
            continue
        if is_point_in_polygon((lng, lat), b.ring):
            return b
    return None


def label_point(boundary: BoundaryFeature) -> Optional[Tuple[float, float]]:
    """(lat, lng) of a point guaranteed inside the boundary, for markers/labels."""
    try:
        p = shape(boundary.geometry).representative_point()
    except (GEOSException, ValueError, TypeError, AttributeError, KeyError):
        return None
    return (p.y, p.x)
