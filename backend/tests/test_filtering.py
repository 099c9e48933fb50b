from smartrunner.tracking.filtering import filter_movements, movement_threshold
from smartrunner.tracking.geo import distance
from smartrunner.tracking.models import PositionSample


def at(lat, t, accuracy=10.0, lon=77.5946):
    return PositionSample(latitude=lat, longitude=lon, timestamp=t, accuracy=accuracy)


def test_empty_and_single_returned_unchanged():
    assert filter_movements([]) == []
    one = [at(12.9716, 0)]
    assert filter_movements(one) == one


def test_stationary_jitter_is_dropped():
    base = 12.9716
    samples = [at(base, 0), at(base + 0.0001, 1000), at(base - 0.0001, 2000), at(base, 3000)]
    # ~11 m wobble against a 20 m threshold
    assert filter_movements(samples) == [samples[0]]


def test_real_movement_is_kept():
    samples = [at(12.9716 + i * 0.0003, i * 10_000) for i in range(5)]  # ~33 m steps
    assert filter_movements(samples) == samples


def test_compares_against_last_kept_not_last_seen():
    s0 = at(12.9716, 0)
    s1 = at(12.9716 + 0.00012, 1000)  # ~13 m, dropped
    s2 = at(12.9716 + 0.00024, 2000)  # ~27 m from s0, kept
    assert filter_movements([s0, s1, s2]) == [s0, s2]


def test_missing_accuracy_counts_as_ten_meters():
    a = at(12.9716, 0, accuracy=None)
    b = at(12.9716, 0, accuracy=None)
    assert movement_threshold(a, b) == 20.0


def test_noise_floor():
    a = at(12.9716, 0, accuracy=1.0)
    b = at(12.9716, 0, accuracy=1.0)
    assert movement_threshold(a, b) == 5.0
    assert movement_threshold(a, b, noise_floor_m=8.0) == 8.0

    # ~4.4 m apart with 1 m accuracy each: still under the 5 m floor
    c = at(12.9716 + 0.00004, 1000, accuracy=1.0)
    assert filter_movements([a, c]) == [a]


def test_filter_invariants_on_mixed_track():
    samples = []
    lat = 12.9716
    for i in range(40):
        lat += 0.0002 if i % 3 else 0.00003
        samples.append(at(lat, i * 1000, accuracy=float(3 + i % 7)))

    kept = filter_movements(samples)
    assert kept[0] is samples[0]
    # subsequence, original order
    positions = [samples.index(s) for s in kept]
    assert positions == sorted(positions)
    for prev, cur in zip(kept, kept[1:]):
        assert distance(prev, cur) > movement_threshold(prev, cur)
