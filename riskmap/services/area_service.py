# riskmap/services/area_service.py
from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from riskmap.db.datastore import get_dataset
from riskmap.models.area import AreaAssessment
from riskmap.models.filters import IncidentFilters
from riskmap.models.incident import Incident
from riskmap.services.filters import filter_incidents
from riskmap.services.pipeline import assess_areas, ranked
from riskmap.services.report import generate_report, incident_statistics, serialize_area
from riskmap.services.spatial import label_point

AGGREGATION_WORKERS = int(os.getenv("AGGREGATION_WORKERS", "1"))


def get_filtered_incidents(filters: IncidentFilters, now: datetime) -> List[Incident]:
    return filter_incidents(get_dataset().incidents, filters, now)


def get_area_assessments(filters: IncidentFilters, now: datetime) -> Dict[str, AreaAssessment]:
    ds = get_dataset()
    incidents = filter_incidents(ds.incidents, filters, now)
    return assess_areas(incidents, ds.boundaries, now, workers=AGGREGATION_WORKERS)


def _center(a: AreaAssessment) -> Optional[List[float]]:
    area = a.area
    if area.boundary is not None:
        p = label_point(area.boundary)
        return list(p) if p else None
    if area.coordinates is not None:
        return [area.coordinates.avg_lat, area.coordinates.avg_lng]
    return None


def _area_row(a: AreaAssessment) -> Dict[str, Any]:
    area, risk = a.area, a.risk
    return {
        "key": area.key,
        "name": area.display_name,
        "region": area.region,
        "zone": area.zone,
        "shapeID": area.boundary.shape_id if area.boundary else None,
        "score": risk.score,
        "level": risk.level,
        "color": risk.color,
        "totalIncidents": area.total_incidents,
        "totalFatalities": area.total_fatalities,
        "totalInjuries": area.total_injuries,
        "center": _center(a),
    }


def get_area_rows(filters: IncidentFilters, now: datetime) -> Dict[str, Any]:
    rows = [_area_row(a) for a in ranked(get_area_assessments(filters, now))]
    return {"areas": rows, "count": len(rows)}


def get_areas_geojson(filters: IncidentFilters, now: datetime) -> Dict[str, Any]:
    """Boundary-matched areas as a FeatureCollection, ready for a choropleth layer."""
    fc: Dict[str, Any] = {"type": "FeatureCollection", "features": []}
    for a in ranked(get_area_assessments(filters, now)):
        b = a.area.boundary
        if b is None:
            continue
        fc["features"].append({
            "type": "Feature",
            "properties": {
                "shapeID": b.shape_id,
                "shapeName": b.shape_name,
                "key": a.area.key,
                "score": a.risk.score,
                "level": a.risk.level,
                "color": a.risk.color,
                "totalIncidents": a.area.total_incidents,
                "eventTypes": list(a.area.event_types),
            },
            "geometry": b.geometry,
        })
    return fc


def get_area_summary(key: str, filters: IncidentFilters, now: datetime) -> Dict[str, Any]:
    assessments = get_area_assessments(filters, now)
    if key not in assessments:
        raise KeyError(key)
    return serialize_area(assessments[key], include_incidents=False)


def get_report(filters: IncidentFilters, now: datetime) -> Dict[str, Any]:
    return generate_report(get_area_assessments(filters, now), filters, now)


def get_statistics(filters: IncidentFilters, now: datetime) -> Dict[str, Any]:
    return incident_statistics(get_filtered_incidents(filters, now), now)
