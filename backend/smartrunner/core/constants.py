"""Shared tracking constants.

Centralizes the heuristics used by the tracking pipeline so we can
document and adjust them in one place. `Settings` can override the
tunable ones per deployment.
"""

# Mean Earth radius in meters (haversine)
EARTH_RADIUS_M = 6_371_000.0

# Accuracy assumed for a sample that does not report one (meters)
DEFAULT_ACCURACY_M = 10.0

# Lower bound of the per-pair movement threshold (meters).
# Filters GPS jitter even when both samples claim great accuracy.
NOISE_FLOOR_M = 5.0

# Number of trailing filtered points used for "current" speed
CURRENT_SPEED_WINDOW = 3

# Rough calorie heuristic: kcal per meter covered. Not physiological.
CALORIES_PER_METER = 0.06

# m/s -> km/h
MPS_TO_KMH = 3.6

# Minimum wall-clock gap between accepted samples, per connection tier (ms)
SAMPLING_INTERVALS_MS = {
    "very-slow": 10_000,
    "slow": 5_000,
    "medium": 2_000,
    "fast": 1_000,
}
DEFAULT_SAMPLING_INTERVAL_MS = 1_000

# Burst suppression: drop a sample this close in space AND time to the last one
DUPLICATE_DISTANCE_M = 5.0
DUPLICATE_WINDOW_MS = 2_000
