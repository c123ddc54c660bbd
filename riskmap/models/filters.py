# riskmap/models/filters.py
from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field, field_validator

IncidentTypeFilter = Literal["all", "crime", "conflict", "high-severity"]


class IncidentFilters(BaseModel):
    # "all" or number of days back from the reference time (UI offers 30/60/90)
    time_range: Union[int, Literal["all"]] = Field("all", description="'all' or days")
    incident_type: IncidentTypeFilter = "all"

    @field_validator("time_range", mode="before")
    @classmethod
    def _coerce_days(cls, v):
        if isinstance(v, str) and v.strip().lower() != "all":
            try:
                return int(v.strip())
            except ValueError:
                raise ValueError(f"time_range must be 'all' or a number of days, got {v!r}")
        if isinstance(v, str):
            return "all"
        return v

    @field_validator("time_range")
    @classmethod
    def _positive_days(cls, v):
        if isinstance(v, int) and v <= 0:
            raise ValueError("time_range must be a positive number of days")
        return v

    def as_dict(self) -> dict:
        return {"timeRange": str(self.time_range), "incidentType": self.incident_type}
