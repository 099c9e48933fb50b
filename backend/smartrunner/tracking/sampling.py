"""Network-adaptive rate gate in front of the movement filter."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from smartrunner.core.constants import (
    DEFAULT_SAMPLING_INTERVAL_MS,
    DUPLICATE_DISTANCE_M,
    DUPLICATE_WINDOW_MS,
    SAMPLING_INTERVALS_MS,
)
from smartrunner.tracking.geo import distance
from smartrunner.tracking.models import NetworkQualityReading, PositionSample

logger = logging.getLogger(__name__)


def interval_for(
    reading: Optional[NetworkQualityReading],
    intervals: Mapping[str, int] = SAMPLING_INTERVALS_MS,
    default: int = DEFAULT_SAMPLING_INTERVAL_MS,
) -> int:
    """Minimum wall-clock gap (ms) between accepted samples for a reading.

    Slower connections get a coarser rate; no reading means the default.
    """
    if reading is None:
        return default
    return intervals.get(reading.effective_type.value, default)


class AdaptiveSampler:
    """Decides which raw samples are accepted.

    Two independent checks, both against the last *accepted* sample:
      - rate gate: at least `interval_for(network)` ms of wall-clock time
        since that sample was accepted;
      - burst suppression: drop anything within 5 m and 2 s (GPS time).
    """

    def __init__(
        self,
        intervals: Mapping[str, int] = SAMPLING_INTERVALS_MS,
        default_interval_ms: int = DEFAULT_SAMPLING_INTERVAL_MS,
        duplicate_distance_m: float = DUPLICATE_DISTANCE_M,
        duplicate_window_ms: int = DUPLICATE_WINDOW_MS,
    ):
        self.intervals = dict(intervals)
        self.default_interval_ms = default_interval_ms
        self.duplicate_distance_m = duplicate_distance_m
        self.duplicate_window_ms = duplicate_window_ms
        self.network: Optional[NetworkQualityReading] = None
        self.last_accepted: Optional[PositionSample] = None
        self.last_accepted_at: Optional[float] = None

    @property
    def interval_ms(self) -> int:
        return interval_for(self.network, self.intervals, self.default_interval_ms)

    def update_network(self, reading: Optional[NetworkQualityReading]) -> None:
        # only affects the next decision
        self.network = reading

    def reset(self) -> None:
        self.last_accepted = None
        self.last_accepted_at = None

    def offer(self, sample: PositionSample, now_ms: float) -> bool:
        """Return True and remember the sample if it passes both checks."""
        if self.last_accepted is not None:
            waited = now_ms - self.last_accepted_at
            if waited < self.interval_ms:
                logger.debug("Dropped sample: %.0f ms since last accept (< %d)", waited, self.interval_ms)
                return False
            if self._is_duplicate(sample):
                logger.debug("Dropped sample: duplicate of last accepted position")
                return False

        self.last_accepted = sample
        self.last_accepted_at = now_ms
        return True

    def _is_duplicate(self, sample: PositionSample) -> bool:
        last = self.last_accepted
        return (
            distance(last, sample) < self.duplicate_distance_m
            and sample.timestamp - last.timestamp < self.duplicate_window_ms
        )
