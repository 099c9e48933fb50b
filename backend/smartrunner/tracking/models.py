"""Data models for the tracking pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from smartrunner.tracking.errors import InsufficientData


@dataclass(frozen=True, slots=True)
class PositionSample:
    """A single GPS reading.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        timestamp: Milliseconds since an arbitrary epoch, non-decreasing
            within one session.
        accuracy: Horizontal accuracy in meters. None when not reported.
        speed_hint: Device reported speed in m/s, if any.
        heading_hint: Device reported heading in degrees, if any.
    """

    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None
    speed_hint: Optional[float] = None
    heading_hint: Optional[float] = None

    @property
    def in_range(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


@dataclass(frozen=True, slots=True)
class PathPoint:
    """A stored point of a finished run."""

    latitude: float
    longitude: float
    timestamp: int
    accuracy: Optional[float] = None

    @classmethod
    def from_sample(cls, sample: PositionSample) -> "PathPoint":
        return cls(
            latitude=sample.latitude,
            longitude=sample.longitude,
            timestamp=sample.timestamp,
            accuracy=sample.accuracy,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PathPoint":
        accuracy = data.get("accuracy")
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timestamp=int(data["timestamp"]),
            accuracy=float(accuracy) if accuracy is not None else None,
        )


class ConnectionClass(str, Enum):
    very_slow = "very-slow"
    slow = "slow"
    medium = "medium"
    fast = "fast"
    unknown = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ConnectionClass":
        """Map tier names and browser effective types ('slow-2g', '3g', ...)."""
        if not value:
            return cls.unknown
        value = value.strip().lower()
        aliases = {
            "slow-2g": cls.very_slow,
            "2g": cls.slow,
            "3g": cls.medium,
            "4g": cls.fast,
        }
        if value in aliases:
            return aliases[value]
        try:
            return cls(value)
        except ValueError:
            return cls.unknown


@dataclass(frozen=True, slots=True)
class NetworkQualityReading:
    effective_type: ConnectionClass = ConnectionClass.unknown
    rtt: Optional[float] = None  # ms
    downlink: Optional[float] = None  # Mbps


@dataclass(frozen=True)
class RunRecord:
    """Finalized summary of one tracking session.

    Speeds are stored in km/h, distance in meters and duration in seconds,
    matching what the history view shows.
    """

    distance: float
    duration: float
    avg_speed: float
    max_speed: float
    calories: int
    path: tuple[PathPoint, ...]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if len(self.path) < 2:
            raise InsufficientData(f"A run needs at least 2 points, got {len(self.path)}")
        for name in ("distance", "duration", "avg_speed", "max_speed", "calories"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the keys the browser history used."""
        return {
            "_id": self.id,
            "createdAt": self.created_at.isoformat(),
            "distance": self.distance,
            "duration": self.duration,
            "avgSpeed": self.avg_speed,
            "maxSpeed": self.max_speed,
            "calories": self.calories,
            "path": [p.to_dict() for p in self.path],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunRecord":
        created = data.get("createdAt")
        created_at = (
            datetime.fromisoformat(created.replace("Z", "+00:00"))
            if isinstance(created, str)
            else datetime.now(timezone.utc)
        )
        return cls(
            id=str(data.get("_id") or uuid.uuid4().hex),
            created_at=created_at,
            distance=float(data.get("distance") or 0.0),
            duration=float(data.get("duration") or 0.0),
            avg_speed=float(data.get("avgSpeed") or 0.0),
            max_speed=float(data.get("maxSpeed") or 0.0),
            calories=int(data.get("calories") or 0),
            path=tuple(PathPoint.from_dict(p) for p in data.get("path") or []),
        )


def to_path(samples: Iterable[PositionSample]) -> tuple[PathPoint, ...]:
    return tuple(PathPoint.from_sample(s) for s in samples)
