"""Error taxonomy for the telemetry engine.

Every error here is a local, recoverable condition reported to the caller.
Input errors double as ``ValueError`` so generic handlers keep working.
"""

from __future__ import annotations

from typing import Optional


class TelemetryError(Exception):
    """Base class for engine errors."""


class RangeInvalid(TelemetryError, ValueError):
    """A date range selection cannot be resolved (end before start, unknown selector)."""


class QueryInvalid(TelemetryError, ValueError):
    """Malformed sensor filter or aggregation input."""


class ThresholdInvalid(TelemetryError, ValueError):
    """A threshold batch update was rejected as a whole."""


class QueryFailed(TelemetryError, RuntimeError):
    """The time-series store was unreachable or returned a malformed response."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
