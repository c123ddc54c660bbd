from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from riskmap.models.filters import IncidentFilters
from riskmap.routes.params import query_filters, reference_time
from riskmap.services.area_service import get_area_rows, get_area_summary, get_areas_geojson

router = APIRouter(tags=["areas"])


@router.get("/areas")
def list_areas(
    filters: IncidentFilters = Depends(query_filters),
    now: datetime = Depends(reference_time),
):
    """Scored areas (boundary and fallback groups), highest risk first."""
    try:
        return get_area_rows(filters, now)
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=f"Data file missing: {e.filename}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/areas/geojson")
def areas_geojson(
    filters: IncidentFilters = Depends(query_filters),
    now: datetime = Depends(reference_time),
):
    """
    Boundary-matched areas as GeoJSON with score/level/color properties.
    Fallback (non-boundary) groups have no polygon and are left out.
    """
    try:
        return get_areas_geojson(filters, now)
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=f"Data file missing: {e.filename}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/areas/{key:path}")
def area_detail(
    key: str,
    filters: IncidentFilters = Depends(query_filters),
    now: datetime = Depends(reference_time),
):
    try:
        return get_area_summary(key, filters, now)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No incidents for area '{key}'")
    except FileNotFoundError as e:
        raise HTTPException(status_code=503, detail=f"Data file missing: {e.filename}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
