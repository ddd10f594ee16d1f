#!/usr/bin/env python3
from __future__ import annotations

# ruff: noqa: E402
import argparse
import logging
import os
import sys

# Ensure project root is in path for local execution.
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from jobmarket.config.settings import get_settings
from jobmarket.job_connectors.models import FetchOptions, SearchFilters
from jobmarket.job_connectors.registry import available_connectors, enabled_connector_names
from jobmarket.job_connectors.runner import run_connectors
from jobmarket.job_connectors.sinks import JobSink, JsonlSink, StdoutSink


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run job market ingestion connectors (France Travail).")
    parser.add_argument("--list", action="store_true", help="List available connectors and exit.")
    parser.add_argument("--connector", help="Run a single connector by name (e.g. france_travail).")
    parser.add_argument("--max-results", type=int, help="Maximum number of offers to request per connector.")
    parser.add_argument("--keywords", help="Search keywords (default: FRANCE_TRAVAIL_KEYWORDS).")
    parser.add_argument("--departement", help="Restrict the search to one department code (e.g. 75).")
    parser.add_argument("--output", help="Upsert jobs into this JSONL file instead of printing them to stdout.")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.local.log_level.upper(),
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    registry = available_connectors(settings)
    if args.list:
        print("Available connectors:", ", ".join(sorted(registry.keys())) or "(none configured)")
        print("Enabled connectors:", ", ".join(enabled_connector_names(settings)))
        for connector in registry.values():
            connector.close()
        return 0

    if args.connector:
        connector = registry.get(args.connector.strip().lower())
        if connector is None:
            print(f"Unknown or unconfigured connector: {args.connector}", file=sys.stderr)
            print("Available connectors:", ", ".join(sorted(registry.keys())), file=sys.stderr)
            return 2
        connectors = [connector]
    else:
        connectors = [registry[name] for name in enabled_connector_names(settings) if name in registry]
    if not connectors:
        print("No connector configured; set FRANCE_TRAVAIL_CLIENT_ID and FRANCE_TRAVAIL_CLIENT_SECRET.", file=sys.stderr)
        return 2

    ft = settings.france_travail
    max_results = args.max_results if args.max_results is not None else settings.connectors.default_max_results
    if max_results < 0:
        print("--max-results must be >= 0", file=sys.stderr)
        return 2
    options = FetchOptions(
        max_results=max_results,
        page_size=settings.connectors.page_size,
        filters=SearchFilters(
            keywords=args.keywords if args.keywords is not None else ft.keywords,
            departement=args.departement if args.departement is not None else ft.departement,
        ),
        run_timeout_s=settings.connectors.run_timeout_s,
    )

    sink: JobSink = JsonlSink(args.output) if args.output else StdoutSink()
    try:
        summary = run_connectors(connectors, options, sink=sink)
    finally:
        for connector in registry.values():
            connector.close()

    for stats in summary.connectors:
        print(
            f"Connector {stats.connector_name}: pages={stats.pages} raw={stats.raw_records} "
            f"normalized={stats.normalized_ok} rejected={stats.rejected_total} inserted={stats.inserted} "
            f"updated={stats.updated} skipped={stats.skipped} failed={stats.failed} stop={stats.stop_reason}",
            file=sys.stderr,
        )
    print(f"Run summary run_id={summary.run_id} jobs={len(summary.jobs)} failed={summary.failed}", file=sys.stderr)
    return 0 if summary.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
