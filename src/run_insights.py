"""
Injection Insights — command-line runner
========================================
Runs the full analysis for one user and prints (or writes) the JSON report.

Usage:
    python run_insights.py --user u123                        # read from PostgreSQL
    python run_insights.py --user u123 --data snapshot.json   # read a JSON snapshot
    python run_insights.py --user u123 --meal-type dinner --now 2026-03-01T12:00:00Z
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("run_insights")

from constants import MEAL_TYPES
from pipeline.insight_pipeline import InsightPipeline
from routes.helpers import _parse_now
from settings import AnalyticsSettings
from stores import DataUnavailable, InMemoryEventStore, PostgresEventStore

def build_pipeline(data_path=None) -> InsightPipeline:
    settings = AnalyticsSettings.from_env()
    if data_path:
        try:
            store = InMemoryEventStore.from_json(data_path)
        except DataUnavailable as e:
            log.warning("%s; continuing with an empty snapshot", e)
            store = InMemoryEventStore()
    else:
        store = PostgresEventStore()
    return InsightPipeline(store, settings=settings)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Injection–symptom insight report")
    parser.add_argument("--user", required=True, help="User id to analyse")
    parser.add_argument("--data", help="JSON snapshot file instead of PostgreSQL")
    parser.add_argument("--meal-type", choices=MEAL_TYPES, help="Meal the context is for")
    parser.add_argument("--now", help="Reference time (ISO-8601); defaults to the current time")
    parser.add_argument("--output", help="Write the report here instead of stdout")
    args = parser.parse_args(argv)

    try:
        now = _parse_now(args.now)
    except ValueError:
        parser.error(f"--now must be ISO-8601, got {args.now!r}")

    pipeline = build_pipeline(args.data)
    report = pipeline.run(args.user, meal_type=args.meal_type, now=now)

    text = json.dumps(report, indent=2, ensure_ascii=False)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(text)
        log.info("Report written to %s", args.output)
    else:
        print(text)

    strict_health = os.getenv("STRICT_PIPELINE_HEALTH", "0").strip() == "1"
    if strict_health and report["analysis_status"] != "success":
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
