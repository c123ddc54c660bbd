from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from riskmap.db.datastore import reload_dataset
from riskmap.models.filters import IncidentFilters
from riskmap.routes.params import query_filters, reference_time
from riskmap.services.area_service import get_report, get_statistics

router = APIRouter(tags=["report"])


@router.get("/report")
def report(
    filters: IncidentFilters = Depends(query_filters),
    now: datetime = Depends(reference_time),
):
    """Full export: metadata, summary and every area with its incidents."""
    try:
        return get_report(filters, now)
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=f"Data file missing: {e.filename}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/incidents/statistics")
def statistics(
    filters: IncidentFilters = Depends(query_filters),
    now: datetime = Depends(reference_time),
):
    try:
        return get_statistics(filters, now)
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=f"Data file missing: {e.filename}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/refresh")
def refresh():
    """Re-read the CSV and boundary files."""
    try:
        ds = reload_dataset()
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=f"Data file missing: {e.filename}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "message": "Data reloaded.",
        "crime": len(ds.crime),
        "conflict": len(ds.conflict),
        "boundaries": len(ds.boundaries),
    }
