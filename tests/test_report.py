import json

import pytest
from pydantic import ValidationError

from riskmap.models.filters import IncidentFilters
from riskmap.services.filters import filter_incidents, is_high_severity
from riskmap.services.pipeline import assess_areas
from riskmap.services.report import (
    generate_report,
    incident_statistics,
    report_filename,
    score_distribution,
    serialize_incident,
    write_report,
)

from conftest import NOW, make_incident


@pytest.fixture
def incidents():
    return [
        make_incident("Armed Clash", days_ago=3, fatalities=2, category="conflict"),
        make_incident("Theft", days_ago=80),
        make_incident("Robbery", days_ago=40, lat=8.5, lng=39.5, injuries=3),
        make_incident("Arrests", days_ago=200, region="Oromia", town="Adama", lat=5.0, lng=36.0),
    ]


class TestFilters:
    def test_defaults_keep_everything(self, incidents):
        assert filter_incidents(incidents, IncidentFilters(), NOW) == incidents
        assert filter_incidents(incidents, None, NOW) == incidents

    def test_time_range(self, incidents):
        out = filter_incidents(incidents, IncidentFilters(time_range="60"), NOW)
        assert [i.event_type for i in out] == ["Armed Clash", "Robbery"]

    def test_category(self, incidents):
        out = filter_incidents(incidents, IncidentFilters(incident_type="conflict"), NOW)
        assert [i.event_type for i in out] == ["Armed Clash"]

    def test_high_severity(self, incidents):
        out = filter_incidents(incidents, IncidentFilters(incident_type="high-severity"), NOW)
        # armed clash by type, robbery by injuries > 2
        assert [i.event_type for i in out] == ["Armed Clash", "Robbery"]
        assert not is_high_severity(make_incident("Theft", injuries=2))

    @pytest.mark.parametrize("kwargs", [
        {"time_range": "soon"}, {"time_range": 0}, {"incident_type": "riots"},
    ])
    def test_invalid_filters(self, kwargs):
        with pytest.raises(ValidationError):
            IncidentFilters(**kwargs)


class TestSerializeIncident:
    def test_shape(self):
        inc = make_incident("Gunfire", fatalities=1, injuries=2, town="Adama", woreda="Adama")
        data = serialize_incident(inc)
        assert data["type"] == "crime"
        assert data["eventType"] == "Gunfire"
        assert data["date"].startswith("2024-06-01")
        assert data["location"] == {
            "latitude": 8.5, "longitude": 38.5, "town": "Adama", "woreda": "Adama", "region": "Oromia",
        }
        assert data["casualties"] == {"fatalities": 1, "injuries": 2}
        assert "notes" in data


class TestGenerateReport:
    def test_structure_and_order(self, incidents, boundaries):
        assessments = assess_areas(incidents, boundaries, NOW)
        report = generate_report(assessments, IncidentFilters(time_range="90"), NOW)

        meta = report["metadata"]
        assert meta["totalAreas"] == 3
        assert meta["filters"] == {"timeRange": "90", "incidentType": "all"}
        assert meta["generatedAt"].startswith("2024-06-01T12:00:00")

        summary = report["summary"]
        assert summary["totalIncidents"] == 4
        assert summary["totalFatalities"] == 2
        assert summary["totalInjuries"] == 3
        assert sum(summary["countsByLevel"].values()) == 3

        scores = [a["riskScore"] for a in report["areas"]]
        assert scores == sorted(scores, reverse=True)
        top = report["areas"][0]
        assert top["key"] == "boundary_ETH-ADM3-X"
        assert top["name"] == "Adama"
        assert top["riskLevel"] == "high"
        assert top["latestIncident"]["type"] == "Armed Clash"
        assert len(top["incidents"]) == 2
        assert top["eventTypes"] == ["Armed Clash", "Theft"]

    def test_json_serializable(self, incidents, boundaries):
        report = generate_report(assess_areas(incidents, boundaries, NOW), None, NOW)
        json.dumps(report)

    def test_empty(self, boundaries):
        report = generate_report(assess_areas([], boundaries, NOW), None, NOW)
        assert report["metadata"]["totalAreas"] == 0
        assert report["summary"]["totalIncidents"] == 0
        assert report["summary"]["countsByLevel"] == {"high": 0, "moderate": 0, "minimal": 0}
        assert report["areas"] == []

    def test_parallel_pipeline_matches(self, incidents, boundaries):
        seq = assess_areas(incidents, boundaries, NOW)
        par = assess_areas(incidents, boundaries, NOW, workers=3)
        assert {k: v.risk for k, v in seq.items()} == {k: v.risk for k, v in par.items()}


class TestStatistics:
    def test_counts_and_recent(self, incidents):
        stats = incident_statistics(incidents, NOW)
        assert stats["totalIncidents"] == 4
        assert stats["eventTypeCounts"]["Theft"] == 1
        assert stats["regionCounts"] == {"Oromia": 4}
        assert [r["eventType"] for r in stats["recentIncidents"]] == ["Armed Clash"]

    def test_score_distribution(self):
        dist = score_distribution([9.0, 7.0, 4.0, 1.0])
        assert dist["count"] == 4
        assert dist["mean"] == 5.25
        assert dist["above8"] == 1
        assert dist["from6to8"] == 1
        assert dist["from3to6"] == 1
        assert dist["top5"] == [9.0, 7.0, 4.0, 1.0]

    def test_score_distribution_empty(self):
        assert score_distribution([])["count"] == 0


def test_write_report(tmp_path):
    path = write_report({"metadata": {}, "areas": []}, tmp_path / "out" / report_filename(NOW))
    assert path.name == "incident-report-2024-06-01.json"
    assert json.loads(path.read_text(encoding="utf-8")) == {"metadata": {}, "areas": []}
