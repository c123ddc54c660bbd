import csv
import json

import pytest
from fastapi.testclient import TestClient

from riskmap.db import datastore
from riskmap.main import app
from riskmap.services import area_service
from riskmap.routes import report as report_routes

from conftest import make_incident, square

HEADER = ["Event Type", "Date", "Latitude", "Longitude", "Region", "Zone", "Woreda",
          "Kebele", "Town", "Injuries", "Fatalities", "Notes"]

CRIME_ROWS = [
    ["Theft", "5/20/2024", "8.4", "38.4", "Oromia", "East Shewa", "", "", "Adama", "0", "None", "Phone taken"],
    ["Robbery", "2024-05-25", "8.6", "39.6", "Oromia", "East Shewa", "", "", "", "Yes", "0", ""],
    ["Theft", "", "8.6", "38.6", "Oromia", "", "", "", "", "", "", "no date"],
]
CONFLICT_ROWS = [
    ["Armed Clash", "05-29-2024", "8.5", "38.5", "Oromia", "", "", "", "", "1", "2", ""],
    ["Gunfire", "5/1/2024", "5.0", "36.0", "SNNP", "", "", "", "Jinka", "0", "0", ""],
]

AS_OF = "2024-06-01T12:00:00Z"


def _write_csv(path, rows):
    with open(path, "w", encoding="utf-8", newline="") as f:
        w = csv.writer(f)
        w.writerow(HEADER)
        w.writerows(rows)
        w.writerow([])  # trailing blank line like the exports have


@pytest.fixture
def data_files(tmp_path, feature_collection):
    crime = tmp_path / "crime.csv"
    conflict = tmp_path / "conflict.csv"
    bounds = tmp_path / "bounds.geojson"
    _write_csv(crime, CRIME_ROWS)
    _write_csv(conflict, CONFLICT_ROWS)
    bounds.write_text(json.dumps(feature_collection), encoding="utf-8")
    return crime, conflict, bounds


@pytest.fixture
def client(monkeypatch, data_files):
    ds = datastore.load_dataset(*data_files)
    monkeypatch.setattr(area_service, "get_dataset", lambda: ds)
    monkeypatch.setattr(report_routes, "reload_dataset", lambda: ds)
    return TestClient(app)


class TestDatastore:
    def test_load_dataset(self, data_files):
        ds = datastore.load_dataset(*data_files)
        assert len(ds.crime) == 2  # undated row dropped
        assert len(ds.conflict) == 2
        assert [b.shape_id for b in ds.boundaries] == ["ETH-ADM3-X", "ETH-ADM3-Y"]
        assert ds.incidents[0].notes == "Phone taken"
        assert ds.crime[1].injuries == 1

    def test_missing_file(self, tmp_path, data_files):
        _, conflict, bounds = data_files
        with pytest.raises(FileNotFoundError):
            datastore.load_dataset(tmp_path / "nope.csv", conflict, bounds)

    def test_not_a_feature_collection(self, tmp_path, data_files):
        crime, conflict, _ = data_files
        bad = tmp_path / "bad.geojson"
        bad.write_text(json.dumps(square("a", "A", 0, 0)), encoding="utf-8")
        with pytest.raises(ValueError):
            datastore.load_dataset(crime, conflict, bad)


class TestRoutes:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"

    def test_areas(self, client):
        resp = client.get("/areas", params={"as_of": AS_OF})
        assert resp.status_code == 200
        body = resp.json()
        keys = [a["key"] for a in body["areas"]]
        assert keys[0] == "boundary_ETH-ADM3-X"
        assert set(keys) == {"boundary_ETH-ADM3-X", "boundary_ETH-ADM3-Y", "snnp__jinka"}
        top = body["areas"][0]
        assert top["level"] == "high"
        assert top["shapeID"] == "ETH-ADM3-X"
        assert top["center"] is not None
        fallback = next(a for a in body["areas"] if a["key"] == "snnp__jinka")
        assert fallback["center"] == [5.0, 36.0]

    def test_areas_filtered(self, client):
        resp = client.get("/areas", params={"as_of": AS_OF, "incident_type": "crime"})
        keys = {a["key"] for a in resp.json()["areas"]}
        assert keys == {"boundary_ETH-ADM3-X", "boundary_ETH-ADM3-Y"}

    def test_bad_filter(self, client):
        assert client.get("/areas", params={"incident_type": "riots"}).status_code == 400
        assert client.get("/areas", params={"time_range": "soon"}).status_code == 400

    def test_geojson(self, client):
        fc = client.get("/areas/geojson", params={"as_of": AS_OF}).json()
        assert fc["type"] == "FeatureCollection"
        ids = [f["properties"]["shapeID"] for f in fc["features"]]
        assert ids == ["ETH-ADM3-X", "ETH-ADM3-Y"]
        assert fc["features"][0]["properties"]["color"] == "#CC0000"
        assert fc["features"][0]["geometry"]["type"] == "Polygon"

    def test_area_detail(self, client):
        body = client.get("/areas/boundary_ETH-ADM3-X", params={"as_of": AS_OF}).json()
        assert body["name"] == "Adama"
        assert body["totalIncidents"] == 2
        assert "incidents" not in body

    def test_area_detail_missing(self, client):
        assert client.get("/areas/nowhere", params={"as_of": AS_OF}).status_code == 404

    def test_report(self, client):
        body = client.get("/report", params={"as_of": AS_OF, "time_range": "30"}).json()
        assert body["metadata"]["filters"] == {"timeRange": "30", "incidentType": "all"}
        assert body["metadata"]["totalAreas"] == 2  # 5/1 gunfire is older than 30 days
        assert body["summary"]["totalIncidents"] == 3

    def test_statistics(self, client):
        body = client.get("/incidents/statistics", params={"as_of": AS_OF}).json()
        assert body["totalIncidents"] == 4
        assert body["eventTypeCounts"]["Theft"] == 1
        # robbery on 5/25 is 7.5 days before as_of, just outside the window
        assert [r["eventType"] for r in body["recentIncidents"]] == ["Armed Clash"]

    def test_refresh(self, client):
        body = client.post("/refresh").json()
        assert body == {"message": "Data reloaded.", "crime": 2, "conflict": 2, "boundaries": 2}

    def test_missing_data_is_503(self, monkeypatch):
        def _missing():
            raise FileNotFoundError(2, "No such file", "data/Crime-Report-RSO.csv")
        monkeypatch.setattr(area_service, "get_dataset", _missing)
        resp = TestClient(app).get("/areas")
        assert resp.status_code == 503

    @pytest.mark.parametrize("path", ["/areas", "/areas/geojson", "/areas/x", "/report", "/incidents/statistics"])
    def test_malformed_data_is_400(self, monkeypatch, path):
        def _broken():
            raise ValueError("bounds.geojson is not a GeoJSON FeatureCollection")
        monkeypatch.setattr(area_service, "get_dataset", _broken)
        resp = TestClient(app).get(path)
        assert resp.status_code == 400
        assert "FeatureCollection" in resp.json()["detail"]

    def test_refresh_malformed_data_is_400(self, monkeypatch):
        def _broken():
            raise ValueError("bounds.geojson is not a GeoJSON FeatureCollection")
        monkeypatch.setattr(report_routes, "reload_dataset", _broken)
        assert TestClient(app).post("/refresh").status_code == 400

    def test_area_key_with_slash(self, monkeypatch, boundaries):
        inc = make_incident("Theft", region="Addis Ababa", town="Kolfe/Keranio", lat=9.02, lng=38.7)
        ds = datastore.Dataset(crime=[inc], conflict=[], boundaries=boundaries)
        monkeypatch.setattr(area_service, "get_dataset", lambda: ds)
        client = TestClient(app)

        keys = [a["key"] for a in client.get("/areas", params={"as_of": AS_OF}).json()["areas"]]
        assert keys == ["addis ababa__kolfe/keranio"]
        resp = client.get("/areas/addis ababa__kolfe/keranio", params={"as_of": AS_OF})
        assert resp.status_code == 200
        assert resp.json()["key"] == "addis ababa__kolfe/keranio"
