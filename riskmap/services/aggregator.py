# riskmap/services/aggregator.py
"""
Group incidents into per-area aggregates.

Spatial containment wins (key `boundary_<shapeID>`); otherwise incidents fall
back to an admin-name key, or to a ~1.1 km coordinate cell when the row has
no woreda/town.

Partial results from different chunks combine with `merge_areas`, which is
what `aggregate_parallel` uses.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence

from riskmap.models.area import AreaAggregate, Centroid
from riskmap.models.boundary import BoundaryFeature
from riskmap.models.incident import Incident
from riskmap.services.spatial import find_containing_boundary

log = logging.getLogger("riskmap.aggregator")


# ---------- Keys ----------
def _norm(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def _round_coord(value: float) -> str:
    # half-up to 2 dp, rendered without trailing zeros (9.0 -> "9", 38.70 -> "38.7")
    rounded = math.floor(value * 100 + 0.5) / 100
    return f"{rounded:g}"


def fallback_key(incident: Incident) -> str:
    region = _norm(incident.region)
    zone = _norm(incident.zone)
    woreda = _norm(incident.woreda)
    if woreda:
        return f"{region}_{zone}_{woreda}"

    town = _norm(incident.town)
    if town:
        return f"{region}_{zone}_{town}"

    lat, lng = incident.coordinates
    return f"{region}_coord_{_round_coord(lat)}_{_round_coord(lng)}"


def boundary_key(boundary: BoundaryFeature) -> str:
    return f"boundary_{boundary.shape_id}"


# ---------- Accumulator ----------
def _new_area(key: str, incident: Incident, boundary: Optional[BoundaryFeature]) -> AreaAggregate:
    if boundary is not None:
        return AreaAggregate(
            key=key,
            region=incident.region or "Unknown",
            zone=incident.zone or "Unknown",
            woreda=boundary.shape_name,
            boundary=boundary,
        )
    return AreaAggregate(
        key=key,
        region=incident.region,
        zone=incident.zone,
        woreda=incident.woreda,
        coordinates=Centroid(avg_lat=incident.latitude, avg_lng=incident.longitude, count=0),
    )


def add_incident(area: AreaAggregate, incident: Incident) -> None:
    """Fold one incident into an area owned by the current pass."""
    area.incidents.append(incident)
    area.total_incidents += 1
    area.total_fatalities += incident.fatalities
    area.total_injuries += incident.injuries
    if incident.event_type not in area.event_types:
        area.event_types.append(incident.event_type)

    c = area.coordinates
    if area.boundary is None and c is not None:
        c.avg_lat = (c.avg_lat * c.count + incident.latitude) / (c.count + 1)
        c.avg_lng = (c.avg_lng * c.count + incident.longitude) / (c.count + 1)
        c.count += 1

    latest = area.latest_incident
    if latest is None or incident.timestamp > latest.timestamp:
        area.latest_incident = incident


def aggregate(
    incidents: Iterable[Incident],
    boundaries: Optional[Sequence[BoundaryFeature]] = None,
) -> Dict[str, AreaAggregate]:
    """Single pass over `incidents`; returns {key: AreaAggregate} in first-seen key order."""
    areas: Dict[str, AreaAggregate] = {}
    spatial = fallback = 0

    for inc in incidents:
        if not isinstance(inc, Incident):
            raise TypeError(f"expected Incident, got {type(inc).__name__}")

        boundary = find_containing_boundary(inc.coordinates, boundaries)
        if boundary is not None:
            key = boundary_key(boundary)
            spatial += 1
        else:
            key = fallback_key(inc)
            fallback += 1

        area = areas.get(key)
        if area is None:
            area = areas[key] = _new_area(key, inc, boundary)
        add_incident(area, inc)

    log.info("Aggregated into %d area groups (spatial=%d, fallback=%d)", len(areas), spatial, fallback)
    return areas


# ---------- Merge (partition-then-reduce) ----------
def merge_areas(left: AreaAggregate, right: AreaAggregate) -> AreaAggregate:
    """
    Combine two partial aggregates for the same key into a new one.
    `left` is treated as the earlier partition: its identity fields, its
    incidents first, and its latest incident on timestamp ties.
    """
    if left.key != right.key:
        raise ValueError(f"cannot merge areas with different keys: {left.key!r} != {right.key!r}")

    event_types = list(left.event_types)
    for et in right.event_types:
        if et not in event_types:
            event_types.append(et)

    latest = left.latest_incident
    if right.latest_incident is not None and (
        latest is None or right.latest_incident.timestamp > latest.timestamp
    ):
        latest = right.latest_incident

    coords = left.coordinates
    if left.boundary is None and left.coordinates and right.coordinates:
        a, b = left.coordinates, right.coordinates
        n = a.count + b.count
        coords = Centroid(
            avg_lat=(a.avg_lat * a.count + b.avg_lat * b.count) / n if n else a.avg_lat,
            avg_lng=(a.avg_lng * a.count + b.avg_lng * b.count) / n if n else a.avg_lng,
            count=n,
        )
    elif coords is not None:
        coords = coords.model_copy()

    return left.model_copy(update={
        "incidents": left.incidents + right.incidents,
        "total_incidents": left.total_incidents + right.total_incidents,
        "total_fatalities": left.total_fatalities + right.total_fatalities,
        "total_injuries": left.total_injuries + right.total_injuries,
        "event_types": event_types,
        "latest_incident": latest,
        "coordinates": coords,
    })


def merge_partials(partials: Iterable[Dict[str, AreaAggregate]]) -> Dict[str, AreaAggregate]:
    """Reduce partial mappings in order; keys keep first-seen order."""
    merged: Dict[str, AreaAggregate] = {}
    for part in partials:
        for key, area in part.items():
            merged[key] = merge_areas(merged[key], area) if key in merged else area
    return merged


def _chunks(items: List[Incident], n: int) -> List[List[Incident]]:
    size = max(1, math.ceil(len(items) / n))
    return [items[i:i + size] for i in range(0, len(items), size)]


def aggregate_parallel(
    incidents: Iterable[Incident],
    boundaries: Optional[Sequence[BoundaryFeature]] = None,
    *,
    workers: int = 4,
) -> Dict[str, AreaAggregate]:
    """
    Same result as `aggregate`, computed over contiguous chunks on a thread
    pool and merged back in chunk order.

    Aggregation is pure Python, so threads do not run it faster under the GIL.
    This exercises the partition-then-merge path (the shape a multi-process or
    multi-host split would take); `workers=1` is the fast default.
    """
    items = list(incidents)
    if workers <= 1 or len(items) < 2:
        return aggregate(items, boundaries)

    chunks = _chunks(items, workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(aggregate, chunk, boundaries) for chunk in chunks]
        partials = [f.result() for f in futures]

    return merge_partials(partials)
