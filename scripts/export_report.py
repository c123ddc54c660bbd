# scripts/export_report.py
"""
Build the incident risk report from the CSV exports and boundary GeoJSON and
write it to disk as JSON.

Usage:
  python scripts/export_report.py [--crime data/Crime-Report-RSO.csv]
                                  [--conflict data/Conflict-Incident-RSO.csv]
                                  [--boundaries layers/geoBoundaries-ETH-ADM3.geojson]
                                  [--time-range 30] [--incident-type conflict]
                                  [--as-of 2024-06-01] [--out reports/]

Env vars (same as the API):
  CRIME_CSV, CONFLICT_CSV, BOUNDARIES_FILE, AGGREGATION_WORKERS
"""
import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

load_dotenv()

from riskmap.db.datastore import load_dataset  # noqa: E402
from riskmap.models.filters import IncidentFilters  # noqa: E402
from riskmap.services.filters import filter_incidents  # noqa: E402
from riskmap.services.normalizer import parse_date  # noqa: E402
from riskmap.services.pipeline import assess_areas  # noqa: E402
from riskmap.services.report import generate_report, report_filename, write_report  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the woreda risk report as JSON.")
    parser.add_argument("--crime", help="Crime CSV path (default: $CRIME_CSV)")
    parser.add_argument("--conflict", help="Conflict CSV path (default: $CONFLICT_CSV)")
    parser.add_argument("--boundaries", help="Boundary GeoJSON path (default: $BOUNDARIES_FILE)")
    parser.add_argument("--time-range", default="all", help="'all' or number of days (30, 60, 90)")
    parser.add_argument("--incident-type", default="all",
                        help="all | crime | conflict | high-severity")
    parser.add_argument("--as-of", default=None,
                        help="Reference date for recency (default: now, UTC)")
    parser.add_argument("--out", "-o", default=".",
                        help="Output file, or directory for incident-report-<date>.json")
    parser.add_argument("--workers", type=int, default=int(os.getenv("AGGREGATION_WORKERS", "1")),
                        help="Threads used for aggregation")
    return parser


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)

    try:
        filters = IncidentFilters(time_range=args.time_range, incident_type=args.incident_type)
    except ValidationError as e:
        print(f"Error: invalid filters: {e}")
        return 2

    if args.as_of:
        now = parse_date(args.as_of)
        if now is None:
            print(f"Error: could not parse --as-of {args.as_of!r}")
            return 2
    else:
        now = datetime.now(timezone.utc)

    try:
        ds = load_dataset(args.crime, args.conflict, args.boundaries)
    except FileNotFoundError as e:
        print(f"Error: file not found: {e.filename}")
        return 1

    incidents = filter_incidents(ds.incidents, filters, now)
    assessments = assess_areas(incidents, ds.boundaries, now, workers=args.workers)
    report = generate_report(assessments, filters, now)

    out = Path(args.out)
    if out.is_dir() or not out.suffix:
        out = out / report_filename(now)
    write_report(report, out)

    levels = report["summary"]["countsByLevel"]
    print(
        f"\nDone. Areas: {report['metadata']['totalAreas']}  "
        f"Incidents: {report['summary']['totalIncidents']}  "
        f"High: {levels['high']}  Moderate: {levels['moderate']}  -> {out}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
