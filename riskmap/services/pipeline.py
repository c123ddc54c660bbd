# riskmap/services/pipeline.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional, Sequence

from riskmap.models.area import AreaAssessment
from riskmap.models.boundary import BoundaryFeature
from riskmap.models.incident import Incident
from riskmap.services.aggregator import aggregate, aggregate_parallel
from riskmap.services.severity import score_area


def assess_areas(
    incidents: Iterable[Incident],
    boundaries: Optional[Sequence[BoundaryFeature]],
    now: datetime,
    *,
    workers: int = 1,
) -> Dict[str, AreaAssessment]:
    """
    Aggregate incidents into areas and attach a RiskScore to each.
    `now` is the reference time for recency; nothing here reads the clock.
    """
    if workers > 1:
        areas = aggregate_parallel(incidents, boundaries, workers=workers)
    else:
        areas = aggregate(incidents, boundaries)

    return {
        key: AreaAssessment(area=area, risk=score_area(area, now))
        for key, area in areas.items()
    }


def ranked(assessments: Dict[str, AreaAssessment]) -> list[AreaAssessment]:
    """Highest score first; equal scores keep aggregation order."""
    return sorted(assessments.values(), key=lambda a: -a.risk.score)
