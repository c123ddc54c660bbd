# riskmap/models/incident.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Source table an incident came from
Category = Literal["crime", "conflict"]


class Incident(BaseModel):
    """
    One normalized crime/conflict event.
    Built by the normalizer only after coordinates and date parsed cleanly;
    strict so that a wrong type from a caller fails here instead of deep in scoring.
    """
    model_config = ConfigDict(frozen=True, strict=True)

    id: str = Field(..., description="Opaque unique identifier")
    category: Category = Field(..., description="crime or conflict")
    event_type: str = Field("unknown", description="Free-text classification, e.g. 'Armed Clash'")
    timestamp: datetime = Field(..., description="UTC date the incident happened")
    coordinates: Tuple[float, float] = Field(..., description="(latitude, longitude)")

    # admin hierarchy; None means the column was empty
    region: Optional[str] = None
    zone: Optional[str] = None
    woreda: Optional[str] = None
    kebele: Optional[str] = None
    town: Optional[str] = None

    fatalities: int = Field(0, ge=0)
    injuries: int = Field(0, ge=0)
    notes: Optional[str] = None
    com_personnel: bool = Field(False, description="'COM Personnel?' column was YES")

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        # naive values are read as UTC so every comparison downstream is aware-vs-aware
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v.astimezone(timezone.utc)

    @property
    def latitude(self) -> float:
        return self.coordinates[0]

    @property
    def longitude(self) -> float:
        return self.coordinates[1]
