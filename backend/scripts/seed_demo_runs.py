"""Seed the database with simulated runs.

Each run is a synthetic GPS stream pushed through a SessionAggregator,
so the stored figures come out of the same pipeline a live session uses.

Usage:
    python scripts/seed_demo_runs.py --user demo-user --runs 8
"""

import argparse
import math
import random
import time

from smartrunner.core.config import settings
from smartrunner.db import Base, SessionLocal, engine
from smartrunner.models.run import Run
from smartrunner.tracking.models import PositionSample
from smartrunner.tracking.session import SessionAggregator, StopStatus
from smartrunner.tracking.stores import SqlRunStore

# Cubbon Park, Bengaluru
START_LAT = 12.9716
START_LON = 77.5946
M_PER_DEG_LAT = 111_320.0


def simulate_run(start_ms: int, minutes: int, speed_mps: float, rng: random.Random):
    """Yield one noisy sample per second along a slowly turning heading."""
    lat, lon = START_LAT, START_LON
    heading = rng.uniform(0, 2 * math.pi)
    for second in range(minutes * 60):
        heading += rng.gauss(0, 0.05)
        step = speed_mps * rng.uniform(0.8, 1.2)
        lat += step * math.cos(heading) / M_PER_DEG_LAT
        lon += step * math.sin(heading) / (M_PER_DEG_LAT * math.cos(math.radians(lat)))
        yield PositionSample(
            latitude=lat + rng.gauss(0, 0.00002),
            longitude=lon + rng.gauss(0, 0.00002),
            timestamp=start_ms + second * 1000,
            accuracy=rng.uniform(3.0, 12.0),
        )


def clear_demo_runs(db, user_id: str) -> None:
    db.query(Run).filter(Run.user_id == user_id).delete()
    db.commit()


def seed_demo_runs(db, user_id: str, runs: int, seed: int) -> None:
    rng = random.Random(seed)
    store = SqlRunStore(db, user_id)
    now_ms = int(time.time() * 1000)

    saved = 0
    for i in range(runs):
        start_ms = now_ms - (runs - i) * 86_400_000
        minutes = rng.randint(20, 60)
        tracker = SessionAggregator(
            store=store,
            noise_floor_m=settings.noise_floor_m,
            default_accuracy_m=settings.default_accuracy_m,
            calories_per_meter=settings.calories_per_meter,
        )
        tracker.start(now_ms=start_ms)
        for sample in simulate_run(start_ms, minutes, rng.uniform(2.5, 3.8), rng):
            tracker.handle_sample(sample, now_ms=sample.timestamp)
        outcome = tracker.stop(now_ms=start_ms + minutes * 60_000)
        if outcome.record is not None:
            print(
                f"{outcome.status.value}: {outcome.record.distance / 1000:.2f} km "
                f"in {minutes} min ({outcome.record.avg_speed:.1f} km/h)"
            )
        if outcome.status is StopStatus.saved:
            saved += 1

    print(f"Seeded {saved} demo runs for {user_id}")


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--user", default="demo-user")
    parser.add_argument("--runs", type=int, default=8)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        clear_demo_runs(db, args.user)
        seed_demo_runs(db, args.user, args.runs, args.seed)
    finally:
        db.close()


if __name__ == "__main__":
    main()
