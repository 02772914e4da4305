"""Command line entry point.

``ingest`` runs track files through the full ingestion pipeline against an
in-memory journey and prints the per-file outcome and the journey totals.
``inspect`` parses a single file and prints its statistics.
"""

from __future__ import annotations

import argparse
from dataclasses import asdict
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from .config import MAX_SIMPLIFIED_POINTS, SIMPLIFICATION_TOLERANCE_M
from .errors import JourneyTracksError, ParseError
from .geometry import compute_stats, simplify_route
from .models import ActivityStats, Journey, declared_sport
from .parsers import parse_track
from .services import (
    IngestionResult,
    IngestionService,
    IngestionServiceConfig,
    UploadRequest,
)
from .storage import InMemoryActivityStore, InMemoryObjectStorage


def _setup_logging(level: str = "INFO") -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=getattr(logging, level.upper(), logging.INFO),
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="journey_tracks",
        description="Ingest GPX/TCX/KML/KMZ/FIT activity files and summarise them.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest", help="Process files into a throwaway journey and print the totals"
    )
    ingest.add_argument("files", nargs="+", type=Path, help="Track files to ingest")
    ingest.add_argument(
        "--journey-name",
        default="Journey",
        help="Name of the in-memory journey (default: Journey)",
    )
    ingest.add_argument(
        "--type",
        dest="activity_type",
        help=(
            "Activity type for every file. When omitted, the sport declared "
            "inside TCX/FIT files is used."
        ),
    )
    ingest.add_argument(
        "--tolerance",
        type=float,
        default=SIMPLIFICATION_TOLERANCE_M,
        help=f"Route simplification tolerance in metres (default: {SIMPLIFICATION_TOLERANCE_M:g})",
    )
    ingest.add_argument(
        "--json", action="store_true", help="Emit machine-readable JSON"
    )

    inspect = subparsers.add_parser("inspect", help="Parse one file and print its stats")
    inspect.add_argument("file", type=Path, help="Track file to inspect")
    inspect.add_argument(
        "--tolerance",
        type=float,
        default=SIMPLIFICATION_TOLERANCE_M,
        help="Route simplification tolerance in metres",
    )
    inspect.add_argument(
        "--json", action="store_true", help="Emit machine-readable JSON"
    )
    return parser.parse_args(argv)


def _stats_payload(stats: ActivityStats) -> Dict[str, Any]:
    return asdict(stats)


def _format_stats(stats: ActivityStats) -> List[str]:
    lines = [
        f"  distance:       {stats.distance_m} m",
        f"  duration:       {stats.duration_s:.0f} s",
        f"  elevation:      +{stats.elevation_gain_m} m / -{stats.elevation_loss_m} m",
        f"  points:         {stats.point_count}",
    ]
    if stats.avg_speed_mps is not None:
        lines.append(f"  avg speed:      {stats.avg_speed_mps:.2f} m/s")
    if stats.max_speed_mps is not None:
        lines.append(f"  max speed:      {stats.max_speed_mps:.2f} m/s")
    if stats.estimated_calories is not None:
        lines.append(f"  calories (est): {stats.estimated_calories}")
    return lines


def _read_requests(paths: Sequence[Path], activity_type: str | None) -> List[UploadRequest]:
    requests: List[UploadRequest] = []
    for path in paths:
        requests.append(
            UploadRequest(
                file_name=path.name,
                data=path.read_bytes(),
                activity_type=activity_type,
            )
        )
    return requests


def run_ingest(args: argparse.Namespace) -> int:
    store = InMemoryActivityStore()
    journey = store.create_journey(Journey(name=args.journey_name))
    config = IngestionServiceConfig(simplification_tolerance_m=args.tolerance)
    try:
        requests = _read_requests(args.files, args.activity_type)
    except OSError as exc:
        logging.error("Failed to read input file: %s", exc)
        return 2

    with IngestionService(store, InMemoryObjectStorage(), config=config) as service:
        results = service.process_batch(journey.id, requests)
    journey = store.get_journey(journey.id)

    if args.json:
        payload = {
            "journey": asdict(journey),
            "results": [_result_payload(store, r) for r in results],
        }
        print(json.dumps(payload, indent=2, default=str))
    else:
        for result in results:
            marker = "ok" if result.ok else "FAILED"
            line = f"{result.file_name}: {marker}"
            if result.error:
                line += f" ({result.error})"
            print(line)
        totals = journey.totals
        print(
            f"Journey '{journey.name}': {totals.activity_count} activities, "
            f"{totals.total_distance_m} m, +{totals.total_elevation_gain_m} m, "
            f"{totals.total_duration_s:.0f} s"
        )
    return 0 if all(r.ok for r in results) else 1


def _result_payload(store: InMemoryActivityStore, result: IngestionResult) -> Dict[str, Any]:
    activity = store.get_activity(result.activity_id)
    return {
        "file_name": result.file_name,
        "activity_id": result.activity_id,
        "name": activity.name,
        "activity_type": activity.activity_type,
        "status": result.status.value,
        "error": result.error,
        "stats": _stats_payload(activity.stats) if activity.stats else None,
        "route_polyline": activity.route.encoded_polyline if activity.route else None,
    }


def run_inspect(args: argparse.Namespace) -> int:
    path: Path = args.file
    try:
        track = parse_track(path.read_bytes(), path.name)
    except OSError as exc:
        logging.error("Failed to read %s: %s", path, exc)
        return 2
    except ParseError as exc:
        logging.error("Failed to parse %s: %s", path, exc)
        return 1

    sport = declared_sport(track)
    stats = compute_stats(track.points, sport)
    route = simplify_route(track.points, args.tolerance, MAX_SIMPLIFIED_POINTS)
    if args.json:
        payload = {
            "format": track.format.value,
            "name": track.name,
            "sport": sport,
            "stats": _stats_payload(stats),
            "route": route.to_geojson(),
        }
        print(json.dumps(payload, indent=2, default=str))
        return 0

    print(f"{path.name} ({track.format.value.upper()})")
    if track.name:
        print(f"  name:           {track.name}")
    if sport:
        print(f"  sport:          {sport}")
    for line in _format_stats(stats):
        print(line)
    print(f"  route points:   {len(route.points)} (tolerance {route.tolerance_m:g} m)")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.log_level)
    try:
        if args.command == "ingest":
            return run_ingest(args)
        return run_inspect(args)
    except JourneyTracksError as exc:
        logging.error("%s", exc)
        return 1


__all__ = ["main", "parse_args", "run_ingest", "run_inspect"]
