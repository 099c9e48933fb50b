"""Tracking error taxonomy.

Computational errors (`InvalidSample`) are recovered where they occur by
dropping the offending sample. Boundary errors (`SensingUnavailable`,
`PersistenceFailure`) are turned into status values for the caller.
"""


class TrackingError(Exception):
    """Base class for tracking pipeline errors."""


class SensingUnavailable(TrackingError):
    """Location source is unsupported or permission was denied."""


class InvalidSample(TrackingError):
    """Sample has out-of-range coordinates or goes back in time."""


class InsufficientData(TrackingError):
    """Fewer than two samples were recorded; nothing to persist."""


class PersistenceFailure(TrackingError):
    """A run store rejected a read or write."""
