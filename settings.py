from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_INFLUX_URL_ENV = "INFLUX_URL"
_INFLUX_TOKEN_ENV = "INFLUX_TOKEN"
_INFLUX_ORG_ENV = "INFLUX_ORG"
_INFLUX_BUCKET_ENV = "INFLUX_BUCKET"
_INFLUX_MEASUREMENT_ENV = "INFLUX_MEASUREMENT"
_INFLUX_TOPIC_ENV = "INFLUX_TOPIC"
_INFLUX_STATUS_TOPIC_ENV = "INFLUX_STATUS_TOPIC"
_QUERY_TIMEOUT_ENV = "QUERY_TIMEOUT_SECONDS"
_THRESHOLD_PATH_ENV = "THRESHOLD_PERSISTENCE_PATH"
_HISTORY_CAPACITY_ENV = "ALERT_HISTORY_CAPACITY"
_CHART_POINTS_ENV = "CHART_MAX_POINTS"
_TIMEZONE_ENV = "TELEMETRY_TIMEZONE"
_LATEST_LOOKBACK_ENV = "LATEST_LOOKBACK"
_STATUS_LOOKBACK_ENV = "STATUS_LOOKBACK"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    influx_url: str
    influx_token: Optional[str]
    influx_org: str
    influx_bucket: str
    influx_measurement: str
    influx_topic: str
    influx_status_topic: str
    query_timeout: float
    threshold_persistence_path: Optional[str]
    history_capacity: int
    chart_max_points: int
    timezone: str
    latest_lookback: str
    status_lookback: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        influx_url=_read_str_env(_INFLUX_URL_ENV, "http://localhost:8086"),
        influx_token=_read_optional_env(_INFLUX_TOKEN_ENV, None),
        influx_org=_read_str_env(_INFLUX_ORG_ENV, "hamk-thesis"),
        influx_bucket=_read_str_env(_INFLUX_BUCKET_ENV, "greenhouse"),
        influx_measurement=_read_str_env(_INFLUX_MEASUREMENT_ENV, "mqtt_consumer"),
        influx_topic=_read_str_env(_INFLUX_TOPIC_ENV, "greenhouse/lepaa/sensors"),
        influx_status_topic=_read_str_env(
            _INFLUX_STATUS_TOPIC_ENV, "greenhouse/lepaa/status"
        ),
        query_timeout=_read_positive_float(_QUERY_TIMEOUT_ENV, 10.0),
        threshold_persistence_path=_read_optional_env(
            _THRESHOLD_PATH_ENV, "./tmp/thresholds.json"
        ),
        history_capacity=_read_positive_int(_HISTORY_CAPACITY_ENV, 50),
        chart_max_points=_read_positive_int(_CHART_POINTS_ENV, 100),
        timezone=_read_str_env(_TIMEZONE_ENV, "UTC"),
        latest_lookback=_read_str_env(_LATEST_LOOKBACK_ENV, "5m"),
        status_lookback=_read_str_env(_STATUS_LOOKBACK_ENV, "15m"),
        log_level=_read_log_level("INFO"),
    )
