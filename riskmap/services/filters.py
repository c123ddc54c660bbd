# riskmap/services/filters.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from riskmap.models.filters import IncidentFilters
from riskmap.models.incident import Incident

# event types that count as high severity regardless of casualties
HIGH_SEVERITY_TYPES = {
    "drone strike",
    "armed clash",
    "crime/killing",
    "kidnapping",
    "gunfire",
    "cross-border attack",
}


def is_high_severity(incident: Incident) -> bool:
    return (
        incident.event_type.lower() in HIGH_SEVERITY_TYPES
        or incident.fatalities > 0
        or incident.injuries > 2
    )


def filter_incidents(
    incidents: Iterable[Incident],
    filters: Optional[IncidentFilters],
    now: datetime,
) -> List[Incident]:
    """Apply the time-range and incident-type filters relative to `now`."""
    out = list(incidents)
    if filters is None:
        return out

    if filters.time_range != "all":
        ref = now if now.tzinfo else now.replace(tzinfo=timezone.utc)
        cutoff = ref - timedelta(days=filters.time_range)
        out = [i for i in out if i.timestamp >= cutoff]

    kind = filters.incident_type
    if kind in ("crime", "conflict"):
        out = [i for i in out if i.category == kind]
    elif kind == "high-severity":
        out = [i for i in out if is_high_severity(i)]

    return out
