"""Engine facade wiring the planner, thresholds, evaluator and history.

The facade holds no timers. Whatever schedules work (an HTTP request, a
cron job, a loop in the CLI) calls ``poll`` and the query methods.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import Lock
from typing import Callable, List, Optional, Sequence

from datastore.threshold_table import build_default_table
from models.errors import QueryFailed
from models.records import AlertEvent, DeviceStatus, Reading, TimeRange
from services.alerts import AlertEvaluator
from services.date_range import DateRangeResolver, load_timezone
from services.device_status import DEFAULT_STATUS_TOPIC, STATUS_FIELDS, decode_status
from services.export import render_csv
from services.history import AlertHistoryLog
from services.query_planner import QueryPlanner, SensorFilter, parse_duration
from services.sampler import SampledSeries, sample
from services.thresholds import ThresholdStore
from settings import get_settings
from storage.influx import build_default_store

logger = logging.getLogger(__name__)

EXPORT_LOOKBACK = timedelta(days=7)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PollOutcome:
    reading: Optional[Reading] = None
    evaluated: bool = False
    events: List[AlertEvent] = field(default_factory=list)


class TelemetryService:
    """Coordinates queries, alert evaluation and history retrieval."""

    def __init__(
        self,
        planner: QueryPlanner,
        thresholds: ThresholdStore,
        evaluator: AlertEvaluator,
        chart_max_points: int = 100,
        latest_lookback: str = "5m",
        status_topic: str = DEFAULT_STATUS_TOPIC,
        status_lookback: str = "15m",
        timezone_name: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.planner = planner
        self.thresholds = thresholds
        self.evaluator = evaluator
        self.chart_max_points = chart_max_points
        self.latest_lookback = parse_duration(latest_lookback)
        self.status_topic = status_topic
        self.status_lookback = parse_duration(status_lookback)
        self.timezone_name = timezone_name
        self._clock = clock or _utcnow
        self._last_evaluated: Optional[datetime] = None
        self._poll_lock = Lock()

    @property
    def history(self) -> AlertHistoryLog:
        return self.evaluator.history

    def resolver(self, timezone_name: Optional[str] = None) -> DateRangeResolver:
        """Resolver for one caller; the zone defaults to the configured one."""
        tz = load_timezone(timezone_name or self.timezone_name)
        return DateRangeResolver(clock=self._clock, tz=tz)

    def query_readings(
        self,
        time_range: Sequence[datetime],
        sensor_filter: SensorFilter = None,
        aggregate_window: Optional[str] = None,
    ) -> List[Reading]:
        description = self.planner.plan(time_range, sensor_filter, aggregate_window)
        return self.planner.execute(description)

    def chart_series(
        self, readings: Sequence[Reading], max_points: Optional[int] = None
    ) -> SampledSeries:
        return sample(readings, max_points or self.chart_max_points)

    def latest_reading(self) -> Optional[Reading]:
        now = self._clock()
        description = self.planner.plan(
            TimeRange(now - self.latest_lookback, now), latest_only=True
        )
        readings = self.planner.execute(description)
        return readings[-1] if readings else None

    def device_status(self) -> Optional[DeviceStatus]:
        """Latest controller report, or ``None`` when it has gone quiet."""
        now = self._clock()
        description = self.planner.plan_snapshot(
            TimeRange(now - self.status_lookback, now),
            STATUS_FIELDS,
            topic=self.status_topic,
        )
        row = self.planner.execute_snapshot(description)
        if row is None:
            return None
        try:
            return decode_status(row)
        except ValueError as exc:
            logger.warning("Malformed device status", extra={"reason": str(exc)})
            raise QueryFailed(f"Malformed device status: {exc}", cause=exc) from exc

    def poll(self) -> PollOutcome:
        """Fetch the newest reading and evaluate it unless it was seen before."""
        reading = self.latest_reading()
        if reading is None:
            return PollOutcome()

        with self._poll_lock:
            if self._last_evaluated is not None and reading.time <= self._last_evaluated:
                return PollOutcome(reading=reading)
            self._last_evaluated = reading.time
            events = self.evaluator.evaluate(reading, self.thresholds.get_all())

        logger.info(
            "Evaluated latest reading",
            extra={"event_count": len(events)},
        )
        return PollOutcome(reading=reading, evaluated=True, events=events)

    def export_csv(self, time_range: Optional[Sequence[datetime]] = None) -> str:
        if time_range is None:
            now = self._clock()
            time_range = TimeRange(now - EXPORT_LOOKBACK, now)
        return render_csv(self.query_readings(time_range))

    def close(self) -> None:
        close = getattr(self.planner.store, "close", None)
        if callable(close):
            close()


@lru_cache
def build_default_service() -> TelemetryService:
    """Factory that wires the service with the configured store and table."""
    settings = get_settings()
    history = AlertHistoryLog(capacity=settings.history_capacity)
    return TelemetryService(
        planner=QueryPlanner(store=build_default_store()),
        thresholds=ThresholdStore(table=build_default_table()),
        evaluator=AlertEvaluator(history=history),
        chart_max_points=settings.chart_max_points,
        latest_lookback=settings.latest_lookback,
        status_topic=settings.influx_status_topic,
        status_lookback=settings.status_lookback,
        timezone_name=settings.timezone,
    )
