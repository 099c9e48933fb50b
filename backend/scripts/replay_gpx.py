"""Replay a GPX file through the live tracking pipeline and print a summary.

Usage:
    python scripts/replay_gpx.py track.gpx --network 3g
    python scripts/replay_gpx.py track.gpx --save
    python scripts/replay_gpx.py track.gpx --save data/history.json
"""

import argparse
import logging

from smartrunner.core.config import settings
from smartrunner.core.time_utils import format_distance, format_duration, format_pace, format_speed
from smartrunner.tracking.gpx_io import samples_from_gpx
from smartrunner.tracking.models import ConnectionClass, NetworkQualityReading
from smartrunner.tracking.session import SessionAggregator
from smartrunner.tracking.stores import LocalRunStore


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("gpx")
    parser.add_argument("--network", default=None, help="effective type, e.g. slow-2g, 3g, fast")
    parser.add_argument(
        "--save",
        nargs="?",
        const=settings.local_history_path,
        default=None,
        help="append the run to a local history file (default: LOCAL_HISTORY_PATH)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    with open(args.gpx, "r", encoding="utf-8") as f:
        samples = samples_from_gpx(f.read())
    if not samples:
        print("No track points in file")
        return 1

    tracker = SessionAggregator(
        store=LocalRunStore(args.save) if args.save else None,
        noise_floor_m=settings.noise_floor_m,
        default_accuracy_m=settings.default_accuracy_m,
        calories_per_meter=settings.calories_per_meter,
    )
    if args.network:
        tracker.handle_network(NetworkQualityReading(ConnectionClass.parse(args.network)))

    # GPS time stands in for the wall clock while replaying
    tracker.start(now_ms=samples[0].timestamp)
    for sample in samples:
        tracker.handle_sample(sample, now_ms=sample.timestamp)
    live = tracker.snapshot()
    print(f"accepted {live.raw_points}/{len(samples)} samples, {live.filtered_points} after filtering")

    outcome = tracker.stop(now_ms=samples[-1].timestamp, save=bool(args.save))
    record = outcome.record
    if record is None:
        print(f"Not enough data: {outcome.error}")
        return 1

    print(f"distance  {format_distance(record.distance)}")
    print(f"duration  {format_duration(record.duration)}")
    print(f"avg speed {format_speed(record.avg_speed)}")
    print(f"max speed {format_speed(record.max_speed)}")
    print(f"pace      {format_pace(record.distance, record.duration)}")
    print(f"calories  {record.calories}")
    if args.save:
        print(f"{outcome.status.value} -> {args.save}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
