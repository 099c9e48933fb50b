"""GPS jitter suppression.

The filter is recomputed from the full raw sample list every time it runs.
It keeps no state between calls, so its output for a given list is always
the same no matter how the list was built up.
"""

from __future__ import annotations

from typing import Sequence, TypeVar

from smartrunner.core.constants import DEFAULT_ACCURACY_M, NOISE_FLOOR_M
from smartrunner.tracking.geo import distance

T = TypeVar("T")


def accuracy_of(point, default: float = DEFAULT_ACCURACY_M) -> float:
    """Reported accuracy in meters; missing or zero counts as `default`."""
    return getattr(point, "accuracy", None) or default


def movement_threshold(
    prev,
    current,
    noise_floor_m: float = NOISE_FLOOR_M,
    default_accuracy_m: float = DEFAULT_ACCURACY_M,
) -> float:
    """Minimum distance `current` must be from `prev` to count as movement.

    Sum of both accuracies, never below the noise floor.
    """
    return max(
        accuracy_of(prev, default_accuracy_m) + accuracy_of(current, default_accuracy_m),
        noise_floor_m,
    )


def filter_movements(
    samples: Sequence[T],
    noise_floor_m: float = NOISE_FLOOR_M,
    default_accuracy_m: float = DEFAULT_ACCURACY_M,
) -> list[T]:
    """Return the subsequence of `samples` that represents real movement.

    The first sample is always kept. Each later sample is compared with the
    last *kept* sample and kept only if it is strictly farther away than
    their combined accuracy (see `movement_threshold`).
    """
    if len(samples) < 2:
        return list(samples)

    filtered = [samples[0]]
    for current in samples[1:]:
        prev = filtered[-1]
        threshold = movement_threshold(prev, current, noise_floor_m, default_accuracy_m)
        if distance(prev, current) > threshold:
            filtered.append(current)
    return filtered
