"""GPX import/export for run paths."""

from __future__ import annotations

from datetime import datetime, timezone

import gpxpy
import gpxpy.gpx

from smartrunner.tracking.models import PositionSample, RunRecord


def samples_from_gpx(text: str) -> list[PositionSample]:
    """Flatten every track point of a GPX document into samples.

    Timestamps are epoch milliseconds and accuracy is left unset (GPX has
    no horizontal accuracy in meters). A point without a time inherits the
    previous point's time so the sequence stays non-decreasing; untimed
    points ahead of the first timed one take that first time. A track with
    no times at all gets timestamp 0 throughout.
    Raises gpxpy.gpx.GPXException on malformed input.
    """
    gpx = gpxpy.parse(text)
    points = [p for track in gpx.tracks for segment in track.segments for p in segment.points]

    last_ts = next((_epoch_ms(p.time) for p in points if p.time is not None), 0)
    samples: list[PositionSample] = []
    for p in points:
        if p.time is not None:
            last_ts = max(last_ts, _epoch_ms(p.time))
        samples.append(
            PositionSample(
                latitude=p.latitude,
                longitude=p.longitude,
                timestamp=last_ts,
                speed_hint=p.speed,
            )
        )
    return samples


def _epoch_ms(t: datetime) -> int:
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return int(t.timestamp() * 1000)


def record_to_gpx(record: RunRecord, name: str | None = None) -> str:
    gpx = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack(name=name or f"Run {record.created_at:%Y-%m-%d %H:%M}")
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)

    for p in record.path:
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                latitude=p.latitude,
                longitude=p.longitude,
                time=datetime.fromtimestamp(p.timestamp / 1000.0, tz=timezone.utc),
            )
        )
    return gpx.to_xml()
