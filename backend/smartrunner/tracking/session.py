"""Lifecycle of one tracking session.

A `SessionAggregator` owns everything a live run needs: the accepted raw
samples, the sampling gate and the latest network reading. Samples are
handled synchronously one at a time, so a stop request always sees every
sample delivered before it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Sequence, Union

from smartrunner.core.constants import CALORIES_PER_METER, DEFAULT_ACCURACY_M, NOISE_FLOOR_M
from smartrunner.tracking.errors import (
    InsufficientData,
    InvalidSample,
    PersistenceFailure,
    SensingUnavailable,
)
from smartrunner.tracking.models import NetworkQualityReading, PositionSample, RunRecord, to_path
from smartrunner.tracking.sampling import AdaptiveSampler
from smartrunner.tracking.stats import (
    DurationBreakdown,
    MotionStats,
    calories_estimate,
    mps_to_kmh,
    session_duration,
)

if TYPE_CHECKING:
    from smartrunner.tracking.stores import RunStore

logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class LocationSource(Protocol):
    def start(
        self,
        on_sample: Callable[[PositionSample], None],
        on_error: Callable[[str], None],
    ) -> None: ...

    def stop(self) -> None: ...


class SessionState(str, Enum):
    idle = "idle"
    tracking = "tracking"
    finalizing = "finalizing"


class SessionStatus(str, Enum):
    ok = "ok"
    error = "error"


class StopStatus(str, Enum):
    saved = "saved"
    unsaved = "unsaved"  # summary built, caller chose not to keep it
    insufficient_data = "insufficient_data"
    persistence_failed = "persistence_failed"
    sensing_unavailable = "sensing_unavailable"


@dataclass(frozen=True)
class StopOutcome:
    status: StopStatus
    record: Optional[RunRecord] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class LiveStats:
    distance: float  # m
    average_speed: float  # m/s
    current_speed: float  # m/s
    duration: DurationBreakdown
    raw_points: int
    filtered_points: int


@dataclass(frozen=True)
class SensingError:
    message: str


@dataclass(frozen=True)
class StopRequest:
    save: bool = True
    now_ms: Optional[float] = None


SessionEvent = Union[PositionSample, NetworkQualityReading, SensingError, StopRequest]


def validate_sample(sample: PositionSample, last: Optional[PositionSample]) -> None:
    if not sample.in_range:
        raise InvalidSample(
            f"Coordinates out of range: ({sample.latitude}, {sample.longitude})"
        )
    if last is not None and sample.timestamp < last.timestamp:
        raise InvalidSample(
            f"Timestamp {sample.timestamp} is earlier than last accepted {last.timestamp}"
        )


def summarize_run(
    samples: Sequence[PositionSample],
    duration_s: float,
    stats: Optional[MotionStats] = None,
    calories_per_meter: float = CALORIES_PER_METER,
) -> RunRecord:
    """Build the RunRecord for a finished sample list.

    Raises InsufficientData for fewer than 2 samples.
    """
    if len(samples) < 2:
        raise InsufficientData(f"Only {len(samples)} sample(s) recorded")
    stats = stats or MotionStats()
    total = stats.total_distance(samples)
    return RunRecord(
        distance=total,
        duration=max(0.0, duration_s),
        avg_speed=mps_to_kmh(stats.average_speed(samples)),
        max_speed=mps_to_kmh(stats.max_speed(samples)),
        calories=calories_estimate(total, calories_per_meter),
        path=to_path(samples),
    )


class SessionAggregator:
    """Idle -> Tracking -> Finalizing -> Idle state machine for one runner."""

    def __init__(
        self,
        store: Optional[RunStore] = None,
        location_source: Optional[LocationSource] = None,
        sampler: Optional[AdaptiveSampler] = None,
        clock: Callable[[], float] = wall_clock_ms,
        noise_floor_m: float = NOISE_FLOOR_M,
        default_accuracy_m: float = DEFAULT_ACCURACY_M,
        calories_per_meter: float = CALORIES_PER_METER,
    ):
        self.store = store
        self.location_source = location_source
        self.sampler = sampler or AdaptiveSampler()
        self.clock = clock
        self.stats = MotionStats(noise_floor_m=noise_floor_m, default_accuracy_m=default_accuracy_m)
        self.calories_per_meter = calories_per_meter

        self.state = SessionState.idle
        self.status = SessionStatus.ok
        self.error: Optional[str] = None
        self.samples: list[PositionSample] = []
        self.started_at: Optional[float] = None
        self.pending_records: list[RunRecord] = []

    # --------- transitions --------- #

    def start(self, now_ms: Optional[float] = None) -> bool:
        """Open a new session. Returns False if location sensing is unavailable."""
        if self.state is not SessionState.idle:
            raise RuntimeError(f"Cannot start a session while {self.state.value}")

        self.samples = []
        self.sampler.reset()
        self.status = SessionStatus.ok
        self.error = None

        if self.location_source is not None:
            try:
                self.location_source.start(self.handle_sample, self.handle_sensing_error)
            except SensingUnavailable as e:
                logger.warning("Location sensing unavailable: %s", e)
                self.status = SessionStatus.error
                self.error = str(e) or "Location sensing unavailable"
                return False

        self.started_at = self._now(now_ms)
        self.state = SessionState.tracking
        logger.info("Tracking session started")
        return True

    def handle_sample(self, sample: PositionSample, now_ms: Optional[float] = None) -> bool:
        """Validate, gate and append one raw sample. Returns True if kept."""
        if self.state is not SessionState.tracking:
            return False

        try:
            validate_sample(sample, self.samples[-1] if self.samples else None)
        except InvalidSample as e:
            logger.warning("Dropped invalid sample: %s", e)
            return False

        if not self.sampler.offer(sample, self._now(now_ms)):
            return False

        self.samples.append(sample)
        return True

    def handle_network(self, reading: Optional[NetworkQualityReading]) -> None:
        self.sampler.update_network(reading)

    def handle_sensing_error(self, message: str) -> None:
        """Terminal error from the location source. Collected samples are kept."""
        logger.error("Location sensing error: %s", message)
        self.status = SessionStatus.error
        self.error = message
        self._stop_source()

    def stop(self, now_ms: Optional[float] = None, save: bool = True) -> StopOutcome:
        if self.state is not SessionState.tracking:
            raise RuntimeError(f"Cannot stop a session while {self.state.value}")

        self.state = SessionState.finalizing
        try:
            self._stop_source()
            outcome = self._finalize(self._now(now_ms), save)
        finally:
            self.samples = []
            self.state = SessionState.idle

        logger.info("Tracking session stopped: %s", outcome.status.value)
        return outcome

    def retry_save(self) -> list[StopOutcome]:
        """Try again to persist every record earlier stops could not save.

        One outcome per pending record, oldest first. Records that fail
        again stay pending.
        """
        if not self.pending_records:
            raise RuntimeError("No unsaved run to retry")
        return [self._persist(record) for record in list(self.pending_records)]

    # --------- derived figures --------- #

    def snapshot(self) -> LiveStats:
        """Figures for the live dashboard."""
        samples = self.samples
        if self.started_at is not None and samples:
            duration = session_duration(self.started_at, samples[-1].timestamp)
        else:
            duration = DurationBreakdown(0, 0, 0)
        return LiveStats(
            distance=self.stats.total_distance(samples),
            average_speed=self.stats.average_speed(samples),
            current_speed=self.stats.current_speed(samples),
            duration=duration,
            raw_points=len(samples),
            filtered_points=len(self.stats.filtered(samples)),
        )

    # --------- event queue --------- #

    async def consume(self, queue: "asyncio.Queue[SessionEvent]") -> StopOutcome:
        """Drain events one at a time until a StopRequest arrives.

        Starts the session first if it is idle. Events are handled in
        arrival order, so the stop sees every sample queued before it.
        """
        if self.state is SessionState.idle and not self.start():
            return StopOutcome(StopStatus.sensing_unavailable, error=self.error)

        while True:
            event = await queue.get()
            try:
                if isinstance(event, StopRequest):
                    return self.stop(event.now_ms, save=event.save)
                if isinstance(event, PositionSample):
                    self.handle_sample(event)
                elif isinstance(event, NetworkQualityReading):
                    self.handle_network(event)
                elif isinstance(event, SensingError):
                    self.handle_sensing_error(event.message)
                else:
                    logger.warning("Ignoring unknown session event %r", event)
            finally:
                queue.task_done()

    # --------- internals --------- #

    def _now(self, now_ms: Optional[float]) -> float:
        return self.clock() if now_ms is None else now_ms

    def _stop_source(self) -> None:
        if self.location_source is not None:
            self.location_source.stop()

    def _finalize(self, now_ms: float, save: bool) -> StopOutcome:
        samples = list(self.samples)
        try:
            record = summarize_run(
                samples,
                (now_ms - self.started_at) / 1000.0,
                self.stats,
                self.calories_per_meter,
            )
        except InsufficientData as e:
            logger.info("Discarding session: %s", e)
            return StopOutcome(StopStatus.insufficient_data, error=str(e))

        if not save:
            return StopOutcome(StopStatus.unsaved, record=record)
        return self._persist(record)

    def _persist(self, record: RunRecord) -> StopOutcome:
        if self.store is None:
            self._keep_pending(record)
            return StopOutcome(StopStatus.persistence_failed, record=record, error="No run store configured")
        try:
            self.store.save(record)
        except PersistenceFailure as e:
            logger.error("Could not save run %s: %s", record.id, e)
            self._keep_pending(record)
            return StopOutcome(StopStatus.persistence_failed, record=record, error=str(e))
        self.pending_records = [r for r in self.pending_records if r.id != record.id]
        return StopOutcome(StopStatus.saved, record=record)

    def _keep_pending(self, record: RunRecord) -> None:
        if all(r.id != record.id for r in self.pending_records):
            self.pending_records.append(record)
        logger.warning("%d run(s) waiting to be saved", len(self.pending_records))
