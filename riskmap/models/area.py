# riskmap/models/area.py
from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from riskmap.models.boundary import BoundaryFeature
from riskmap.models.incident import Incident

RiskLevel = Literal["high", "moderate", "minimal"]


class Centroid(BaseModel):
    """Running mean position of a fallback (non-boundary) group."""
    avg_lat: float
    avg_lng: float
    count: int = 1


class AreaAggregate(BaseModel):
    """
    Accumulator for one spatial (boundary_<shapeID>) or administrative group.
    Only the aggregation pass that created it writes to it.
    """
    key: str
    region: Optional[str] = None
    zone: Optional[str] = None
    woreda: Optional[str] = None  # shapeName when spatially matched
    boundary: Optional[BoundaryFeature] = None

    incidents: List[Incident] = Field(default_factory=list)
    total_incidents: int = 0
    total_fatalities: int = 0
    total_injuries: int = 0
    event_types: List[str] = Field(default_factory=list)  # insertion order, unique
    latest_incident: Optional[Incident] = None
    coordinates: Optional[Centroid] = None  # fallback groups only

    @property
    def display_name(self) -> str:
        return self.woreda or "Unknown"


# ---------- Scorer outputs ----------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ScoreBreakdown(_CamelModel):
    severity_score: float = 0.0
    recency_multiplier: float = 0.0
    casualty_multiplier: float = 0.0
    quantity_multiplier: float = 0.0


class IncidentScore(_CamelModel):
    score: float
    breakdown: ScoreBreakdown


class RiskScore(_CamelModel):
    score: float = Field(0.0, ge=0)
    level: RiskLevel = "minimal"
    color: str = "transparent"
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)


class AreaAssessment(BaseModel):
    """An aggregate with the RiskScore computed for it (what renderers/exporters consume)."""
    model_config = ConfigDict(frozen=True)

    area: AreaAggregate
    risk: RiskScore
