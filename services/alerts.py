"""Classification of readings against soft thresholds and hard bounds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from app.schemas import ThresholdConfig
from models.records import AlertEvent, AlertLevel, Reading, SENSOR_KEYS
from services.history import AlertHistoryLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CriticalBounds:
    """Fixed physical envelope of a sensor; either side may be undefined."""

    low: Optional[float] = None
    high: Optional[float] = None


CRITICAL_BOUNDS: Mapping[str, CriticalBounds] = {
    "co2": CriticalBounds(high=1200),
    "temperature": CriticalBounds(low=5, high=35),
    "humidity": CriticalBounds(high=95),
    "light": CriticalBounds(high=45000),
    "soil_moisture": CriticalBounds(low=10, high=85),
}


def classify(
    value: float,
    config: ThresholdConfig,
    bounds: Optional[CriticalBounds] = None,
) -> Optional[tuple[AlertLevel, float]]:
    """Return ``(level, breached bound)`` for one value, or ``None``.

    First match wins: critical high, critical low, soft max, soft min.
    All comparisons are inclusive.
    """
    bounds = bounds or CriticalBounds()
    if bounds.high is not None and value >= bounds.high:
        return AlertLevel.critical, bounds.high
    if bounds.low is not None and value <= bounds.low:
        return AlertLevel.critical, bounds.low
    if config.max_value is not None and value >= config.max_value:
        return AlertLevel.warning, config.max_value
    if config.min_value is not None and value <= config.min_value:
        return AlertLevel.warning, config.min_value
    return None


def evaluate_reading(
    reading: Reading,
    thresholds: Iterable[ThresholdConfig],
    bounds: Mapping[str, CriticalBounds] = CRITICAL_BOUNDS,
) -> List[AlertEvent]:
    """Classify every reported sensor that has an enabled config.

    Events come back in sensor-key order. Heartbeat readings yield nothing.
    """
    enabled: Dict[str, ThresholdConfig] = {
        config.sensor_key: config for config in thresholds if config.enabled
    }
    events: List[AlertEvent] = []
    for sensor_key in SENSOR_KEYS:
        value = reading.value(sensor_key)
        config = enabled.get(sensor_key)
        if value is None or config is None:
            continue
        outcome = classify(value, config, bounds.get(sensor_key))
        if outcome is None:
            continue
        level, breached = outcome
        events.append(
            AlertEvent(
                sensor_key=sensor_key,
                level=level,
                value=value,
                threshold_breached=_tidy(breached),
                triggered_at=reading.time,
            )
        )
    return events


def _tidy(bound: float) -> float | int:
    """Present whole-number bounds as ints so ``35.0`` reads as ``35``."""
    if isinstance(bound, float) and bound.is_integer():
        return int(bound)
    return bound


class AlertEvaluator:
    """Evaluates the newest reading and records any events in the history log.

    Classification is idempotent; the history append is not, so each reading
    should be passed in exactly once.
    """

    def __init__(
        self,
        history: AlertHistoryLog,
        bounds: Mapping[str, CriticalBounds] = CRITICAL_BOUNDS,
    ) -> None:
        self.history = history
        self.bounds = bounds

    def evaluate(
        self, reading: Reading, thresholds: Iterable[ThresholdConfig]
    ) -> List[AlertEvent]:
        events = evaluate_reading(reading, thresholds, self.bounds)
        if not events:
            return events

        self.history.append(events)
        for event in events:
            log = logger.error if event.level is AlertLevel.critical else logger.warning
            log(
                "Threshold breached",
                extra={
                    "sensor_key": event.sensor_key,
                    "level": event.level.value,
                    "value": event.value,
                    "threshold": event.threshold_breached,
                },
            )
        return events
