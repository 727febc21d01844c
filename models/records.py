"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, NamedTuple, Optional, Union

from models.errors import RangeInvalid

Number = Union[int, float]

SENSOR_KEYS = ("co2", "temperature", "humidity", "light", "soil_moisture")


class AlertLevel(str, Enum):
    warning = "warning"
    critical = "critical"


@dataclass(frozen=True)
class Reading:
    """One normalized sample; ``values`` only holds the sensors that reported."""

    time: datetime
    values: Dict[str, Number] = field(default_factory=dict)
    message_id: Optional[str] = None

    def value(self, sensor_key: str) -> Optional[Number]:
        return self.values.get(sensor_key)

    @property
    def is_heartbeat(self) -> bool:
        return not self.values

    def as_row(self) -> Dict[str, Optional[Number]]:
        """All five sensor columns, absent ones as ``None``."""
        return {key: self.values.get(key) for key in SENSOR_KEYS}


@dataclass(frozen=True)
class AlertEvent:
    sensor_key: str
    level: AlertLevel
    value: Number
    threshold_breached: Number
    triggered_at: datetime


@dataclass(frozen=True)
class AlertHistoryEntry:
    event: AlertEvent
    captured_at: datetime


class TimeRange(NamedTuple):
    """Concrete half-open ``[start, end)`` interval."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class DateRangeSelection:
    """Explicit bounds plus at most one active selector.

    ``preset`` names a relative window (``"24h"``), ``period`` a calendar
    period (``"yesterday"``). With neither set the bounds are a custom range.
    """

    start: datetime
    end: datetime
    preset: Optional[str] = None
    period: Optional[str] = None

    def __post_init__(self) -> None:
        if self.preset is not None and self.period is not None:
            raise RangeInvalid("A selection cannot have both a preset and a period active.")

    @property
    def active_selector(self) -> Optional[str]:
        return self.preset or self.period

    @property
    def is_custom(self) -> bool:
        return self.preset is None and self.period is None


@dataclass(frozen=True)
class DeviceStatus:
    """Most recent self-report published by the greenhouse controller."""

    device: str
    last_seen: datetime
    uptime_sec: Optional[Number] = None
    readings: Optional[Number] = None
    publish_failures: Optional[Number] = None
    wifi_rssi: Optional[Number] = None
    free_heap: Optional[Number] = None
    time_synced: Optional[bool] = None
    sd_buffered: Number = 0
    sd_used_mb: Number = 0
    sd_total_mb: Number = 0
