from smartrunner.tracking.stats import pace_seconds_per_km


def format_duration(total_seconds: float) -> str:
    """
    Human readable duration used on run cards.
    Example: 3725 -> '1h 2m 5s', 125 -> '2m 5s'
    """
    total = max(0, int(total_seconds))
    hours = total // 3600
    minutes = (total % 3600) // 60
    seconds = total % 60
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    return f"{minutes}m {seconds}s"


def format_pace(distance_m: float, duration_seconds: float) -> str:
    """
    Compute pace per kilometer as 'M:SS /km'.
    Example: distance=5000 m, duration=1500 s -> '5:00 /km'
    """
    pace = pace_seconds_per_km(distance_m, duration_seconds)
    if pace is None:
        return "N/A"

    pace_sec = int(pace)

    minutes = pace_sec // 60
    seconds = pace_sec % 60
    return f"{minutes}:{seconds:02d} /km"


def format_distance(meters: float) -> str:
    """'850 m' below a kilometer, '5.8 km' above."""
    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{meters:.0f} m"


def format_speed(kmh: float | None) -> str:
    if not kmh:
        return "0.0 km/h"
    return f"{kmh:.1f} km/h"
