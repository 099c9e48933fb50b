import asyncio
import itertools

import pytest

from smartrunner.tracking.errors import PersistenceFailure, SensingUnavailable
from smartrunner.tracking.models import ConnectionClass, NetworkQualityReading, PositionSample
from smartrunner.tracking.session import (
    SensingError,
    SessionAggregator,
    SessionState,
    SessionStatus,
    StopRequest,
    StopStatus,
)
from smartrunner.tracking.stats import average_speed, mps_to_kmh, total_distance

from conftest import north_walk


class MemoryStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.runs = []

    def save(self, record):
        if self.fail:
            raise PersistenceFailure("disk full")
        self.runs.insert(0, record)

    def list_runs(self):
        return list(self.runs)

    def clear(self):
        count = len(self.runs)
        self.runs = []
        return count


class FakeSource:
    def __init__(self, unavailable=False):
        self.unavailable = unavailable
        self.on_sample = None
        self.on_error = None
        self.running = False

    def start(self, on_sample, on_error):
        if self.unavailable:
            raise SensingUnavailable("Geolocation is not supported by this browser")
        self.on_sample = on_sample
        self.on_error = on_error
        self.running = True

    def stop(self):
        self.running = False


def run_session(tracker, samples, stop_at=None):
    tracker.start(now_ms=samples[0].timestamp if samples else 0)
    for s in samples:
        tracker.handle_sample(s, now_ms=s.timestamp)
    end = stop_at if stop_at is not None else (samples[-1].timestamp if samples else 0)
    return tracker.stop(now_ms=end)


def test_full_session_produces_record():
    store = MemoryStore()
    tracker = SessionAggregator(store=store)
    samples = north_walk(10)

    outcome = run_session(tracker, samples, stop_at=samples[-1].timestamp + 5000)

    assert outcome.status is StopStatus.saved
    record = outcome.record
    assert store.runs == [record]
    assert len(record.path) == 10
    assert record.distance == pytest.approx(9 * 55.6, rel=0.01)
    assert record.duration == pytest.approx(95.0)
    assert record.avg_speed == pytest.approx(mps_to_kmh(record.distance / 90))
    assert record.max_speed >= record.avg_speed - 1e-9
    assert record.calories == round(record.distance * 0.06)
    assert tracker.state is SessionState.idle
    assert tracker.samples == []


def test_record_path_recomputes_same_figures():
    tracker = SessionAggregator(store=MemoryStore())
    samples = north_walk(8) + [
        PositionSample(12.9716 + 7 * 0.0005 + 0.00005, 77.5946, 1_700_000_000_000 + 75_000, 5),
    ]
    record = run_session(tracker, samples).record

    assert total_distance(record.path) == pytest.approx(record.distance)
    assert mps_to_kmh(average_speed(record.path)) == pytest.approx(record.avg_speed)


def test_single_sample_is_insufficient_data():
    store = MemoryStore()
    tracker = SessionAggregator(store=store)

    outcome = run_session(tracker, north_walk(1))

    assert outcome.status is StopStatus.insufficient_data
    assert outcome.record is None
    assert store.runs == []
    assert tracker.state is SessionState.idle


def test_two_stationary_samples_still_make_a_record():
    tracker = SessionAggregator(store=MemoryStore())
    samples = [
        PositionSample(12.9716, 77.5946, timestamp=0, accuracy=10),
        PositionSample(12.9716, 77.5946, timestamp=3000, accuracy=10),
    ]
    outcome = run_session(tracker, samples)
    assert outcome.status is StopStatus.saved
    assert outcome.record.distance == 0.0


def test_stop_without_saving():
    store = MemoryStore()
    tracker = SessionAggregator(store=store)
    tracker.start(now_ms=0)
    for s in north_walk(3):
        tracker.handle_sample(s, now_ms=s.timestamp)
    outcome = tracker.stop(now_ms=north_walk(3)[-1].timestamp, save=False)
    assert outcome.status is StopStatus.unsaved
    assert outcome.record is not None
    assert store.runs == []


def test_invalid_samples_are_dropped():
    tracker = SessionAggregator(store=MemoryStore())
    tracker.start(now_ms=0)
    good = north_walk(2)
    assert tracker.handle_sample(good[0], now_ms=good[0].timestamp)
    assert not tracker.handle_sample(PositionSample(91.0, 77.5946, good[0].timestamp + 5000), now_ms=good[0].timestamp + 5000)
    assert not tracker.handle_sample(PositionSample(12.9716, 181.0, good[0].timestamp + 5000), now_ms=good[0].timestamp + 5000)
    backwards = PositionSample(12.9800, 77.5946, good[0].timestamp - 1)
    assert not tracker.handle_sample(backwards, now_ms=good[0].timestamp + 6000)
    assert tracker.handle_sample(good[1], now_ms=good[1].timestamp)
    assert tracker.samples == good
    assert tracker.state is SessionState.tracking


def test_samples_ignored_when_idle():
    tracker = SessionAggregator()
    assert not tracker.handle_sample(north_walk(1)[0], now_ms=0)
    assert tracker.samples == []


def test_network_quality_throttles_session():
    tracker = SessionAggregator(store=MemoryStore())
    tracker.handle_network(NetworkQualityReading(ConnectionClass.very_slow))
    tracker.start(now_ms=0)
    # a sample every 2 s for a minute
    samples = north_walk(30, step_deg=0.0002, every_ms=2000)
    accepted = [s for s in samples if tracker.handle_sample(s, now_ms=s.timestamp)]
    assert len(accepted) == 6  # one per 10 s


def test_persistence_failure_keeps_record_for_retry():
    store = MemoryStore(fail=True)
    tracker = SessionAggregator(store=store)

    outcome = run_session(tracker, north_walk(5))

    assert outcome.status is StopStatus.persistence_failed
    assert "disk full" in outcome.error
    assert tracker.pending_records == [outcome.record]
    assert tracker.state is SessionState.idle

    store.fail = False
    retries = tracker.retry_save()
    assert [r.status for r in retries] == [StopStatus.saved]
    assert store.runs == [outcome.record]
    assert tracker.pending_records == []
    with pytest.raises(RuntimeError):
        tracker.retry_save()


def test_later_successful_save_keeps_earlier_unsaved_run():
    store = MemoryStore(fail=True)
    tracker = SessionAggregator(store=store)
    first = run_session(tracker, north_walk(5))

    store.fail = False
    second = run_session(tracker, north_walk(4))

    assert second.status is StopStatus.saved
    assert tracker.pending_records == [first.record]

    tracker.retry_save()
    assert {r.id for r in store.runs} == {first.record.id, second.record.id}
    assert tracker.pending_records == []


def test_repeated_failures_queue_every_run():
    store = MemoryStore(fail=True)
    tracker = SessionAggregator(store=store)
    first = run_session(tracker, north_walk(5))
    second = run_session(tracker, north_walk(4))

    assert tracker.pending_records == [first.record, second.record]

    # still failing: nothing is dropped or duplicated
    retries = tracker.retry_save()
    assert [r.status for r in retries] == [StopStatus.persistence_failed] * 2
    assert tracker.pending_records == [first.record, second.record]

    store.fail = False
    retries = tracker.retry_save()
    assert [r.record.id for r in retries] == [first.record.id, second.record.id]
    assert all(r.status is StopStatus.saved for r in retries)
    assert tracker.pending_records == []


def test_no_store_counts_as_unsaved_failure():
    tracker = SessionAggregator()
    outcome = run_session(tracker, north_walk(3))
    assert outcome.status is StopStatus.persistence_failed
    assert tracker.pending_records == [outcome.record]


def test_unexpected_store_error_still_returns_to_idle():
    class BrokenStore(MemoryStore):
        def save(self, record):
            raise RuntimeError("boom")

    tracker = SessionAggregator(store=BrokenStore())
    with pytest.raises(RuntimeError):
        run_session(tracker, north_walk(3))
    assert tracker.state is SessionState.idle


def test_cannot_stop_when_idle_or_start_twice():
    tracker = SessionAggregator()
    with pytest.raises(RuntimeError):
        tracker.stop(now_ms=0)
    tracker.start(now_ms=0)
    with pytest.raises(RuntimeError):
        tracker.start(now_ms=0)


def test_unavailable_sensing_keeps_session_idle():
    tracker = SessionAggregator(location_source=FakeSource(unavailable=True))
    assert tracker.start(now_ms=0) is False
    assert tracker.state is SessionState.idle
    assert tracker.status is SessionStatus.error
    assert "not supported" in tracker.error


def test_location_source_drives_session():
    clock = itertools.count(1_700_000_000_000, 10_000)
    source = FakeSource()
    tracker = SessionAggregator(store=MemoryStore(), location_source=source, clock=lambda: next(clock))

    assert tracker.start()
    assert source.running
    for s in north_walk(4):
        source.on_sample(s)
    assert len(tracker.samples) == 4

    source.on_error("User denied Geolocation")
    assert tracker.status is SessionStatus.error
    assert not source.running
    assert tracker.state is SessionState.tracking

    outcome = tracker.stop()
    assert outcome.status is StopStatus.saved
    assert len(outcome.record.path) == 4


def test_snapshot_reports_live_figures():
    tracker = SessionAggregator()
    samples = north_walk(4)
    tracker.start(now_ms=samples[0].timestamp)
    for s in samples:
        tracker.handle_sample(s, now_ms=s.timestamp)
    tracker.handle_sample(samples[-1], now_ms=samples[-1].timestamp + 5000)  # duplicate

    live = tracker.snapshot()
    assert live.raw_points == 4
    assert live.filtered_points == 4
    assert live.distance == pytest.approx(3 * 55.6, rel=0.01)
    assert live.current_speed == pytest.approx(2 * 55.6 / 20, rel=0.01)
    assert str(live.duration) == "0m 30s"


def test_consume_queue_until_stop():
    store = MemoryStore()
    clock = itertools.count(0, 5000)
    tracker = SessionAggregator(store=store, clock=lambda: next(clock))

    async def scenario():
        queue = asyncio.Queue()
        await queue.put(NetworkQualityReading(ConnectionClass.fast))
        for s in north_walk(5):
            await queue.put(s)
        await queue.put(SensingError("position unavailable"))
        await queue.put(StopRequest())
        return await tracker.consume(queue)

    outcome = asyncio.run(scenario())

    assert outcome.status is StopStatus.saved
    assert len(outcome.record.path) == 5
    assert tracker.status is SessionStatus.error
    assert tracker.state is SessionState.idle


def test_consume_reports_unavailable_sensing():
    tracker = SessionAggregator(location_source=FakeSource(unavailable=True))

    async def scenario():
        queue = asyncio.Queue()
        await queue.put(StopRequest())
        return await tracker.consume(queue)

    outcome = asyncio.run(scenario())
    assert outcome.status is StopStatus.sensing_unavailable
    assert outcome.record is None
