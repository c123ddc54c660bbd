# riskmap/routes/params.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, Query
from pydantic import ValidationError

from riskmap.models.filters import IncidentFilters


def query_filters(
    time_range: str = Query("all", description="'all' or number of days (30, 60, 90)"),
    incident_type: str = Query("all", description="all | crime | conflict | high-severity"),
) -> IncidentFilters:
    try:
        return IncidentFilters(time_range=time_range, incident_type=incident_type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False, include_context=False))


def reference_time(
    as_of: Optional[datetime] = Query(None, description="Reference time for recency (default: now, UTC)"),
) -> datetime:
    # the only place the wall clock is read; everything below gets it passed in
    if as_of is None:
        return datetime.now(timezone.utc)
    return as_of if as_of.tzinfo else as_of.replace(tzinfo=timezone.utc)
