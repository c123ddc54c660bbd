# riskmap/services/report.py
"""
JSON report export (the structure the dashboard's "Export" button downloads).
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from riskmap.models.area import AreaAssessment
from riskmap.models.filters import IncidentFilters
from riskmap.models.incident import Incident
from riskmap.services.pipeline import ranked
from riskmap.services.severity import get_recommendations, get_top_event_types

log = logging.getLogger("riskmap.report")

LEVELS = ("high", "moderate", "minimal")


def _iso(dt: datetime) -> str:
    return (dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)).isoformat()


def serialize_incident(incident: Incident) -> Dict[str, Any]:
    return {
        "id": incident.id,
        "type": incident.category,
        "eventType": incident.event_type,
        "date": _iso(incident.timestamp),
        "location": {
            "latitude": incident.latitude,
            "longitude": incident.longitude,
            "town": incident.town,
            "woreda": incident.woreda,
            "region": incident.region,
        },
        "casualties": {
            "fatalities": incident.fatalities,
            "injuries": incident.injuries,
        },
        "notes": incident.notes,
    }


def _latest_summary(incident: Optional[Incident]) -> Optional[Dict[str, Any]]:
    if incident is None:
        return None
    return {
        "type": incident.event_type,
        "date": _iso(incident.timestamp),
        "location": incident.town or incident.woreda,
    }


def serialize_area(assessment: AreaAssessment, *, include_incidents: bool = True) -> Dict[str, Any]:
    area, risk = assessment.area, assessment.risk
    payload = {
        "key": area.key,
        "name": area.display_name,
        "region": area.region,
        "zone": area.zone,
        "riskLevel": risk.level,
        "riskScore": risk.score,
        "color": risk.color,
        "breakdown": risk.breakdown.model_dump(by_alias=True),
        "totalIncidents": area.total_incidents,
        "totalFatalities": area.total_fatalities,
        "totalInjuries": area.total_injuries,
        "eventTypes": list(area.event_types),
        "topEventTypes": get_top_event_types(area.incidents),
        "latestIncident": _latest_summary(area.latest_incident),
        "recommendations": get_recommendations(risk.level, area),
    }
    if include_incidents:
        payload["incidents"] = [serialize_incident(i) for i in area.incidents]
    return payload


def score_distribution(scores: Sequence[float]) -> Dict[str, Any]:
    """Spread of area scores (what the map logs after each render)."""
    arr = np.asarray(list(scores), dtype=float)
    if arr.size == 0:
        return {"count": 0, "mean": 0.0, "median": 0.0, "max": 0.0,
                "above8": 0, "from6to8": 0, "from3to6": 0, "top5": []}
    return {
        "count": int(arr.size),
        "mean": round(float(arr.mean()), 2),
        "median": round(float(np.median(arr)), 2),
        "max": round(float(arr.max()), 2),
        "above8": int(np.count_nonzero(arr >= 8)),
        "from6to8": int(np.count_nonzero((arr >= 6) & (arr < 8))),
        "from3to6": int(np.count_nonzero((arr >= 3) & (arr < 6))),
        "top5": [round(float(s), 2) for s in np.sort(arr)[::-1][:5]],
    }


def generate_report(
    assessments: Dict[str, AreaAssessment],
    filters: Optional[IncidentFilters],
    generated_at: datetime,
) -> Dict[str, Any]:
    """Build the export structure; areas sorted by descending risk score."""
    filters = filters or IncidentFilters()
    counts = {lvl: 0 for lvl in LEVELS}
    total_incidents = total_fatalities = total_injuries = 0

    for a in assessments.values():
        total_incidents += a.area.total_incidents
        total_fatalities += a.area.total_fatalities
        total_injuries += a.area.total_injuries
        counts[a.risk.level] += 1

    ordered = ranked(assessments)
    report = {
        "metadata": {
            "generatedAt": _iso(generated_at),
            "filters": filters.as_dict(),
            "totalAreas": len(assessments),
        },
        "summary": {
            "totalIncidents": total_incidents,
            "totalFatalities": total_fatalities,
            "totalInjuries": total_injuries,
            "countsByLevel": counts,
            "scoreDistribution": score_distribution([a.risk.score for a in ordered]),
        },
        "areas": [serialize_area(a) for a in ordered],
    }
    log.info("Report built: %d areas, %d incidents", len(assessments), total_incidents)
    return report


def incident_statistics(incidents: Iterable[Incident], now: datetime, *, recent_days: int = 7) -> Dict[str, Any]:
    items = list(incidents)
    event_counts: Dict[str, int] = {}
    region_counts: Dict[str, int] = {}
    for inc in items:
        et = inc.event_type or "Unknown"
        event_counts[et] = event_counts.get(et, 0) + 1
        region = inc.region or "Unknown"
        region_counts[region] = region_counts.get(region, 0) + 1

    ref = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
    cutoff = ref - timedelta(days=recent_days)
    recent = sorted((i for i in items if i.timestamp >= cutoff), key=lambda i: i.timestamp, reverse=True)

    return {
        "totalIncidents": len(items),
        "totalFatalities": sum(i.fatalities for i in items),
        "totalInjuries": sum(i.injuries for i in items),
        "eventTypeCounts": event_counts,
        "regionCounts": region_counts,
        "recentIncidents": [serialize_incident(i) for i in recent[:10]],
    }


def report_filename(generated_at: datetime) -> str:
    return f"incident-report-{generated_at.date().isoformat()}.json"


def write_report(report: Dict[str, Any], path: str | Path) -> Path:
    out = Path(path)
    if out.parent and not out.parent.exists():
        out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    log.info("Saved report with %d areas to %s", len(report.get("areas", [])), out)
    return out
