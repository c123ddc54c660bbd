# riskmap/services/normalizer.py
"""
Turn raw CSV rows (Crime-Report-RSO / Conflict-Incident-RSO) into Incident objects.

Field data is messy: rows without coordinates or a usable date are dropped
here so that nothing downstream has to check for them again.
"""
from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from riskmap.models.incident import Incident

log = logging.getLogger("riskmap.normalizer")

CATEGORIES = ("crime", "conflict")

# Order matters: the first pattern that matches the string decides how it is read.
_DATE_PATTERNS = (
    (re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})"), ("month", "day", "year")),  # M/D/YYYY
    (re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})"), ("year", "month", "day")),  # YYYY-M-D
    (re.compile(r"(\d{1,2})-(\d{1,2})-(\d{4})"), ("month", "day", "year")),  # M-D-YYYY
)

_LEADING_INT = re.compile(r"^\s*\+?(\d+)")
_PARSE_DEFAULT = datetime(1970, 1, 1)


def _clean(value: Any) -> Optional[str]:
    """Empty / whitespace-only cells become None (column present but empty)."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse an incident date into an aware UTC datetime, or None.
    Tries M/D/YYYY, YYYY-M-D, M-D-YYYY, then generic parsing.
    """
    s = _clean(value)
    if s is None:
        return None

    for pattern, order in _DATE_PATTERNS:
        match = pattern.search(s)
        if match:
            parts = dict(zip(order, (int(g) for g in match.groups())))
            try:
                # out-of-range parts roll over like a calendar would: 2/30/2024 -> 2024-03-01
                return datetime(parts["year"], 1, 1, tzinfo=timezone.utc) + relativedelta(
                    months=parts["month"] - 1, days=parts["day"] - 1,
                )
            except (ValueError, OverflowError):
                return None

    try:
        # fixed default so partial dates ("March 2024") never pick up today's fields
        dt = date_parser.parse(s, default=_PARSE_DEFAULT)
    except (date_parser.ParserError, ValueError, OverflowError):
        return None
    return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def parse_number(value: Any) -> int:
    """Casualty columns: blank/'none' -> 0, 'yes' -> 1, leading integer otherwise."""
    s = _clean(value)
    if s is None or s.lower() == "none":
        return 0
    if s.lower() == "yes":
        return 1
    m = _LEADING_INT.match(s)
    return int(m.group(1)) if m else 0


def parse_flag(value: Any) -> bool:
    s = _clean(value)
    return s is not None and s.lower() == "yes"


def parse_coordinate(value: Any) -> Optional[float]:
    s = _clean(value)
    if s is None:
        return None
    try:
        f = float(s)
    except ValueError:
        return None
    return f if math.isfinite(f) else None


def normalize_row(row: Mapping[str, Any], category: str) -> Optional[Incident]:
    """Build one Incident, or None if the row lacks coordinates or a date."""
    if not isinstance(row, Mapping):
        raise TypeError(f"row must be a mapping of column -> value, got {type(row).__name__}")

    lat = parse_coordinate(row.get("Latitude"))
    lng = parse_coordinate(row.get("Longitude"))
    date = parse_date(row.get("Date"))
    if lat is None or lng is None or date is None:
        return None

    return Incident(
        id=f"{category}_{uuid.uuid4().hex}",
        category=category,
        event_type=_clean(row.get("Event Type")) or "unknown",
        timestamp=date,
        coordinates=(lat, lng),
        region=_clean(row.get("Region")) or "Unknown",
        zone=_clean(row.get("Zone")),
        woreda=_clean(row.get("Woreda")),
        kebele=_clean(row.get("Kebele")),
        town=_clean(row.get("Town")),
        injuries=parse_number(row.get("Injuries")),
        fatalities=parse_number(row.get("Fatalities")),
        notes=_clean(row.get("Notes")) or _clean(row.get("What Happened?")),
        com_personnel=parse_flag(row.get("COM Personnel?")),
    )


def normalize(rows: Iterable[Mapping[str, Any]], category: str) -> List[Incident]:
    """
    Normalize every row of one source table. Unusable rows are skipped, not raised.
    """
    if category not in CATEGORIES:
        raise ValueError(f"category must be one of {CATEGORIES}, got {category!r}")

    incidents: List[Incident] = []
    dropped = 0
    for i, row in enumerate(rows):
        inc = normalize_row(row, category)
        if inc is None:
            dropped += 1
            log.debug("Dropped %s row %d (missing coordinates or date)", category, i)
            continue
        incidents.append(inc)

    log.info("Normalized %d %s incidents (%d rows dropped)", len(incidents), category, dropped)
    return incidents
