# riskmap/db/datastore.py
"""
File-backed source data: the two RSO CSV exports and the ADM3 boundaries.
Paths come from the environment (.env allowed), defaults sit next to the project.
"""
from __future__ import annotations

import csv
import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from riskmap.models.boundary import BoundaryFeature
from riskmap.models.incident import Incident
from riskmap.services.normalizer import normalize
from riskmap.services.spatial import load_boundaries

log = logging.getLogger("riskmap.datastore")

_ROOT = Path(__file__).resolve().parents[2]

CRIME_CSV = os.getenv("CRIME_CSV", str(_ROOT / "data" / "Crime-Report-RSO.csv"))
CONFLICT_CSV = os.getenv("CONFLICT_CSV", str(_ROOT / "data" / "Conflict-Incident-RSO.csv"))
BOUNDARIES_FILE = os.getenv("BOUNDARIES_FILE", str(_ROOT / "layers" / "geoBoundaries-ETH-ADM3.geojson"))


class Dataset(BaseModel):
    model_config = ConfigDict(frozen=True)

    crime: List[Incident]
    conflict: List[Incident]
    boundaries: List[BoundaryFeature]

    @property
    def incidents(self) -> List[Incident]:
        return [*self.crime, *self.conflict]


def read_csv_rows(path: str | Path) -> List[Dict[str, str]]:
    """Header row -> dict per line; blank lines skipped. utf-8-sig strips Excel's BOM."""
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        rows = [r for r in csv.DictReader(f) if any((v or "").strip() for v in r.values() if isinstance(v, str))]
    log.info("Read %d rows from %s", len(rows), path)
    return rows


def read_feature_collection(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        gj = json.load(f)
    if not isinstance(gj, dict) or "features" not in gj:
        raise ValueError(f"{path} is not a GeoJSON FeatureCollection")
    return gj


def load_dataset(
    crime_csv: Optional[str | Path] = None,
    conflict_csv: Optional[str | Path] = None,
    boundaries_file: Optional[str | Path] = None,
) -> Dataset:
    """Read and normalize everything. Missing files raise FileNotFoundError."""
    crime = normalize(read_csv_rows(crime_csv or CRIME_CSV), "crime")
    conflict = normalize(read_csv_rows(conflict_csv or CONFLICT_CSV), "conflict")
    boundaries = load_boundaries(read_feature_collection(boundaries_file or BOUNDARIES_FILE))

    log.info(
        "Loaded %d crime incidents, %d conflict incidents, %d boundary features",
        len(crime), len(conflict), len(boundaries),
    )
    return Dataset(crime=crime, conflict=conflict, boundaries=boundaries)


@lru_cache(maxsize=1)
def get_dataset() -> Dataset:
    return load_dataset()


def reload_dataset() -> Dataset:
    get_dataset.cache_clear()
    return get_dataset()
