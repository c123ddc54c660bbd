from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from riskmap.models.incident import Incident
from riskmap.services.spatial import load_boundaries

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

_ids = count(1)


def square(shape_id, name, min_lng, min_lat, size=1.0):
    ring = [
        [min_lng, min_lat],
        [min_lng + size, min_lat],
        [min_lng + size, min_lat + size],
        [min_lng, min_lat + size],
        [min_lng, min_lat],
    ]
    return {
        "type": "Feature",
        "properties": {"shapeID": shape_id, "shapeName": name},
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def make_incident(
    event_type="unknown",
    days_ago=0.0,
    lat=8.5,
    lng=38.5,
    fatalities=0,
    injuries=0,
    category="crime",
    region="Oromia",
    zone=None,
    woreda=None,
    town=None,
    now=NOW,
):
    return Incident(
        id=f"{category}_{next(_ids)}",
        category=category,
        event_type=event_type,
        timestamp=now - timedelta(days=days_ago),
        coordinates=(float(lat), float(lng)),
        region=region,
        zone=zone,
        woreda=woreda,
        town=town,
        fatalities=fatalities,
        injuries=injuries,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def feature_collection():
    return {
        "type": "FeatureCollection",
        "features": [
            square("ETH-ADM3-X", "Adama", 38.0, 8.0),
            square("ETH-ADM3-Y", "Bishoftu", 39.0, 8.0),
        ],
    }


@pytest.fixture
def boundaries(feature_collection):
    return load_boundaries(feature_collection)
