from __future__ import annotations
import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from riskmap.models.area import AreaAggregate, IncidentScore, RiskScore, ScoreBreakdown
from riskmap.models.incident import Incident

log = logging.getLogger("riskmap.severity")

# Severity weights per event type, checked top to bottom for substring matches.
# Keep it a list: the order is what decides e.g. "armed robbery" (robbery, 4).
SEVERITY_WEIGHTS: List[Tuple[str, float]] = [
    ("drone strike", 9),
    ("armed clash", 8),
    ("crime/killing", 8),
    ("cross-border attack", 7),
    ("kidnapping", 7),
    ("gunfire", 6),
    ("robbery", 4),
    ("arrests", 3),
    ("vehicle accident", 3),
    ("theft", 2),
    ("other crime", 2),
    ("miscellaneous", 2),
    ("unknown", 1),
]
_WEIGHT_BY_TYPE: Dict[str, float] = dict(SEVERITY_WEIGHTS)
DEFAULT_WEIGHT = _WEIGHT_BY_TYPE["unknown"]

# token -> table entry whose weight it borrows
_OVERRIDE_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("kill", "death"), "crime/killing"),
    (("attack", "clash"), "armed clash"),
    (("bomb", "explosion"), "drone strike"),
]

RISK_THRESHOLDS = {"high": 6.0, "moderate": 3.0}
RISK_COLORS = {
    "high": "#CC0000",
    "moderate": "#FFCC00",
    "minimal": "transparent",
}

RECENCY_WINDOW_DAYS = 90
RECENCY_FLOOR = 0.1
RECENT_BOOST_DAYS = 7
RECENT_BOOST = 1.2
CASUALTY_CAP = 1.0

# what get_recommendations() adds per level
_LEVEL_RECOMMENDATIONS = {
    "high": [
        "Implement immediate security protocols",
        "Consider travel restrictions to this area",
        "Increase security detail for operations",
        "Monitor situation continuously",
    ],
    "moderate": [
        "Maintain standard security protocols",
        "Regular monitoring recommended",
        "Brief personnel on local conditions",
    ],
    "minimal": [
        "Maintain basic security awareness",
    ],
}


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def get_severity_score(event_type: str) -> float:
    """
    Weight for a free-text event type:
    exact match -> first substring overlap (table order) -> override tokens -> unknown.
    """
    if not isinstance(event_type, str):
        raise TypeError(f"event_type must be a string, got {type(event_type).__name__}")

    et = event_type.strip().lower() or "unknown"
    if et in _WEIGHT_BY_TYPE:
        return _WEIGHT_BY_TYPE[et]

    for key, weight in SEVERITY_WEIGHTS:
        if key in et or et in key:
            return weight

    for tokens, target in _OVERRIDE_RULES:
        if any(t in et for t in tokens):
            return _WEIGHT_BY_TYPE[target]

    return DEFAULT_WEIGHT


def get_recency_multiplier(timestamp: Optional[datetime], now: datetime) -> float:
    """Linear 90-day decay with a 0.1 floor and a x1.2 boost inside the last week."""
    if timestamp is None:
        return RECENCY_FLOOR

    days_ago = (_as_utc(now) - _as_utc(timestamp)).total_seconds() / 86400.0
    if days_ago < 0:
        # future-dated row (data error); don't penalize it
        return 1.0

    decay = max(RECENCY_FLOOR, 1 - days_ago / RECENCY_WINDOW_DAYS)
    if days_ago <= RECENT_BOOST_DAYS:
        return min(RECENT_BOOST, decay * RECENT_BOOST)
    return decay


def get_casualty_multiplier(fatalities: int = 0, injuries: int = 0) -> float:
    if fatalities < 0 or injuries < 0:
        raise ValueError(f"casualty counts must be non-negative (fatalities={fatalities}, injuries={injuries})")
    casualty_score = fatalities * 2 + injuries * 0.5
    if casualty_score > 0:
        return 1 + min(casualty_score * 0.1, CASUALTY_CAP)  # at most 2x
    return 1.0


def get_quantity_multiplier(incident_count: int) -> float:
    if incident_count <= 1:
        return 1.0
    return 1 + math.log10(incident_count) * 0.2


def categorize_score(score: float) -> str:
    """Risk level for a final area score."""
    if score >= RISK_THRESHOLDS["high"]:
        return "high"
    if score >= RISK_THRESHOLDS["moderate"]:
        return "moderate"
    return "minimal"


def get_risk_color(level: str) -> str:
    return RISK_COLORS[level]


def score_incident(incident: Incident, now: datetime) -> IncidentScore:
    severity = get_severity_score(incident.event_type)
    recency = get_recency_multiplier(incident.timestamp, now)
    casualty = get_casualty_multiplier(incident.fatalities, incident.injuries)
    return IncidentScore(
        score=severity * recency * casualty,
        breakdown=ScoreBreakdown(
            severity_score=severity,
            recency_multiplier=recency,
            casualty_multiplier=casualty,
        ),
    )


def score_area(area: AreaAggregate, now: datetime) -> RiskScore:
    """
    Sum of incident scores x quantity multiplier, rounded to 2 dp.
    Breakdown holds per-incident means plus the area-level quantity multiplier.
    """
    incidents = area.incidents if area is not None else []
    if not incidents:
        return RiskScore(score=0.0, level="minimal", color=RISK_COLORS["minimal"])

    total = sev = rec = cas = 0.0
    for inc in incidents:
        s = score_incident(inc, now)
        total += s.score
        sev += s.breakdown.severity_score
        rec += s.breakdown.recency_multiplier
        cas += s.breakdown.casualty_multiplier

    n = len(incidents)
    quantity = get_quantity_multiplier(n)
    final = round(total * quantity, 2)
    level = categorize_score(final)

    log.debug("Risk %s: score=%.2f level=%s incidents=%d", area.key, final, level, n)
    return RiskScore(
        score=final,
        level=level,
        color=get_risk_color(level),
        breakdown=ScoreBreakdown(
            severity_score=sev / n,
            recency_multiplier=rec / n,
            casualty_multiplier=cas / n,
            quantity_multiplier=quantity,
        ),
    )


def get_top_event_types(incidents: Sequence[Incident], limit: int = 3) -> List[Dict[str, object]]:
    """Most frequent event types, ties kept in first-seen order."""
    counts: Dict[str, int] = {}
    for inc in incidents:
        et = inc.event_type or "Unknown"
        counts[et] = counts.get(et, 0) + 1
    ranked = sorted(counts.items(), key=lambda kv: -kv[1])
    return [{"type": t, "count": c} for t, c in ranked[:limit]]


def get_recommendations(level: str, area: AreaAggregate) -> List[str]:
    recs = list(_LEVEL_RECOMMENDATIONS.get(level, []))
    types = {t.lower() for t in area.event_types}
    if "robbery" in types or "theft" in types:
        recs.append("Advise on personal security measures")
    if "kidnapping" in types:
        recs.append("Review kidnapping response protocols")
    if area.total_fatalities > 0:
        recs.append("Consider this area high priority for monitoring")
    return recs
