"""Pydantic schemas for the HTTP API layer and threshold persistence."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from models.records import AlertEvent, AlertHistoryEntry, AlertLevel, DeviceStatus, Reading

Number = Union[int, float]


class ThresholdConfig(BaseModel):
    """Live soft-bound configuration for one sensor."""

    sensor_key: str
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    enabled: bool = True
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ThresholdConfigUpdate(BaseModel):
    """Replacement values for one sensor's bounds and enabled flag."""

    sensor_key: str
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    enabled: bool


class ThresholdBatchRequest(BaseModel):
    configs: List[ThresholdConfigUpdate]


class ThresholdConfigsResponse(BaseModel):
    configs: List[ThresholdConfig]


class ReadingOut(BaseModel):
    time: datetime
    msg_id: Optional[str] = None
    co2: Optional[Number] = None
    temperature: Optional[Number] = None
    humidity: Optional[Number] = None
    light: Optional[Number] = None
    soil_moisture: Optional[Number] = None

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(time=reading.time, msg_id=reading.message_id, **reading.as_row())


class ReadingsResponse(BaseModel):
    start: datetime
    end: datetime
    count: int = Field(..., ge=0)
    total: int = Field(..., ge=0, description="Rows returned by the store before sampling.")
    data: List[ReadingOut] = Field(default_factory=list)


class LatestReadingResponse(BaseModel):
    reading: Optional[ReadingOut] = None


class AlertEventOut(BaseModel):
    sensor_key: str
    level: AlertLevel
    value: Number
    threshold_breached: Number
    triggered_at: datetime

    @classmethod
    def from_event(cls, event: AlertEvent) -> "AlertEventOut":
        return cls(
            sensor_key=event.sensor_key,
            level=event.level,
            value=event.value,
            threshold_breached=event.threshold_breached,
            triggered_at=event.triggered_at,
        )


class AlertHistoryEntryOut(AlertEventOut):
    captured_at: datetime

    @classmethod
    def from_entry(cls, entry: AlertHistoryEntry) -> "AlertHistoryEntryOut":
        base = AlertEventOut.from_event(entry.event)
        return cls(**base.model_dump(), captured_at=entry.captured_at)


class AlertHistoryResponse(BaseModel):
    history: List[AlertHistoryEntryOut] = Field(default_factory=list)


class PollResponse(BaseModel):
    reading: Optional[ReadingOut] = None
    evaluated: bool = Field(
        False, description="False when there was no reading or it had already been evaluated."
    )
    alerts: List[AlertEventOut] = Field(default_factory=list)


class SelectionResponse(BaseModel):
    start: datetime
    end: datetime
    preset: Optional[str] = None
    period: Optional[str] = None


class DeviceStatusOut(BaseModel):
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

    @classmethod
    def from_status(cls, status: DeviceStatus) -> "DeviceStatusOut":
        return cls(**asdict(status))


class DeviceStatusResponse(BaseModel):
    online: bool
    status: Optional[DeviceStatusOut] = None
