"""Motion statistics derived from a raw sample list.

Every metric runs the movement filter itself, so callers always pass the
raw samples and all figures stay consistent with each other. Speeds are in
m/s; converting to km/h is left to the presentation boundary.
"""

from __future__ import annotations

from typing import NamedTuple, Sequence

from smartrunner.core.constants import (
    CALORIES_PER_METER,
    CURRENT_SPEED_WINDOW,
    DEFAULT_ACCURACY_M,
    MPS_TO_KMH,
    NOISE_FLOOR_M,
)
from smartrunner.tracking.filtering import filter_movements, movement_threshold
from smartrunner.tracking.geo import distance


class DurationBreakdown(NamedTuple):
    hours: int
    minutes: int
    seconds: int

    @property
    def total_seconds(self) -> int:
        return self.hours * 3600 + self.minutes * 60 + self.seconds

    def __str__(self) -> str:
        if self.hours > 0:
            return f"{self.hours}h {self.minutes}m {self.seconds}s"
        return f"{self.minutes}m {self.seconds}s"


class MotionStats:
    """Statistics engine bound to one set of filter parameters.

    The module-level functions below use the default parameters; the
    session aggregator builds its own instance from settings.
    """

    def __init__(
        self,
        noise_floor_m: float = NOISE_FLOOR_M,
        default_accuracy_m: float = DEFAULT_ACCURACY_M,
        current_window: int = CURRENT_SPEED_WINDOW,
    ):
        self.noise_floor_m = noise_floor_m
        self.default_accuracy_m = default_accuracy_m
        self.current_window = current_window

    def filtered(self, samples: Sequence) -> list:
        return filter_movements(samples, self.noise_floor_m, self.default_accuracy_m)

    def total_distance(self, samples: Sequence) -> float:
        return _path_length(self.filtered(samples))

    def average_speed(self, samples: Sequence) -> float:
        filtered = self.filtered(samples)
        if len(filtered) < 2:
            return 0.0
        elapsed_s = (filtered[-1].timestamp - filtered[0].timestamp) / 1000.0
        # zero or negative elapsed time means broken timestamps
        if elapsed_s <= 0:
            return 0.0
        return _path_length(filtered) / elapsed_s

    def current_speed(self, samples: Sequence) -> float:
        return self._window_speed(self.filtered(samples))

    def max_speed(self, samples: Sequence) -> float:
        """Highest current speed seen over every growing prefix of `samples`.

        Equivalent to re-running `current_speed` on samples[:2], samples[:3],
        ... but filters incrementally. The filter only ever compares a new
        sample with the last kept one, so the filtered prefix of samples[:i]
        is exactly the state after feeding i samples.
        """
        best = 0.0
        kept: list = []
        for sample in samples:
            if not kept:
                kept.append(sample)
                continue
            prev = kept[-1]
            if distance(prev, sample) > movement_threshold(
                prev, sample, self.noise_floor_m, self.default_accuracy_m
            ):
                kept.append(sample)
            best = max(best, self._window_speed(kept))
        return best

    def _window_speed(self, filtered: Sequence) -> float:
        if len(filtered) < 2:
            return 0.0
        recent = filtered[-self.current_window:]
        if len(recent) < 2:
            return 0.0
        elapsed_s = (recent[-1].timestamp - recent[0].timestamp) / 1000.0
        if elapsed_s <= 0:
            return 0.0
        return distance(recent[0], recent[-1]) / elapsed_s


def _path_length(points: Sequence) -> float:
    if len(points) < 2:
        return 0.0
    return sum(distance(a, b) for a, b in zip(points, points[1:]))


_default = MotionStats()


def total_distance(samples: Sequence) -> float:
    """Meters covered along the filtered track."""
    return _default.total_distance(samples)


def average_speed(samples: Sequence) -> float:
    """Filtered distance over elapsed time between first and last kept sample (m/s)."""
    return _default.average_speed(samples)


def current_speed(samples: Sequence) -> float:
    """Speed over the last few filtered points (m/s)."""
    return _default.current_speed(samples)


def max_speed(samples: Sequence) -> float:
    return _default.max_speed(samples)


def session_duration(start_ms: float, last_ms: float) -> DurationBreakdown:
    """Split the wall-clock span between two millisecond stamps into h/m/s."""
    total = max(0, int((last_ms - start_ms) // 1000))
    return DurationBreakdown(total // 3600, (total % 3600) // 60, total % 60)


def pace_seconds_per_km(distance_m: float, duration_s: float) -> float | None:
    if distance_m <= 0 or duration_s <= 0:
        return None
    return duration_s / (distance_m / 1000.0)


def calories_estimate(distance_m: float, per_meter: float = CALORIES_PER_METER) -> int:
    """Rough kcal figure: a flat factor per meter, no body data involved."""
    return round(max(0.0, distance_m) * per_meter)


def mps_to_kmh(speed_mps: float) -> float:
    return speed_mps * MPS_TO_KMH
