"""Decoding of the controller's periodic status reports."""

from __future__ import annotations

import math
from typing import Any, Mapping, Optional

from models.records import DeviceStatus, Number
from services.normalizer import parse_timestamp

DEFAULT_DEVICE = "LEPAA-GH-01"
DEFAULT_STATUS_TOPIC = "greenhouse/lepaa/status"

COUNTER_FIELDS = ("uptime_sec", "readings", "publish_failures", "wifi_rssi", "free_heap")

# Older firmware nests SD card figures under ``sd_card``; flat names win.
SD_FIELDS = {
    "sd_buffered": "sd_card.buffered",
    "sd_used_mb": "sd_card.used_mb",
    "sd_total_mb": "sd_card.total_mb",
}

STATUS_FIELDS = (
    ("device",)
    + COUNTER_FIELDS
    + ("time_synced",)
    + tuple(SD_FIELDS)
    + tuple(SD_FIELDS.values())
)

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def parse_number(raw: Any) -> Optional[Number]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        raise ValueError(f"Non-numeric status value: {raw!r}")
    try:
        number = float(raw)
    except (TypeError, OverflowError) as exc:
        raise ValueError(f"Non-numeric status value: {raw!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"Non-finite status value: {raw!r}")
    return int(number) if number.is_integer() else number


def parse_flag(raw: Any) -> Optional[bool]:
    if raw is None or isinstance(raw, bool):
        return raw
    candidate = str(raw).strip().lower()
    if not candidate:
        return None
    if candidate in _TRUE:
        return True
    if candidate in _FALSE:
        return False
    raise ValueError(f"Not a boolean status value: {raw!r}")


def decode_status(row: Mapping[str, Any]) -> DeviceStatus:
    """Build a ``DeviceStatus`` from one folded status row.

    Missing counters stay ``None``; missing SD card figures read as ``0``.
    """
    raw_time = row.get("_time")
    if raw_time is None:
        raise ValueError("Status report has no timestamp.")

    device = row.get("device")
    counters = {key: parse_number(row.get(key)) for key in COUNTER_FIELDS}
    sd_card = {
        key: parse_number(row.get(key)) or parse_number(row.get(nested)) or 0
        for key, nested in SD_FIELDS.items()
    }
    return DeviceStatus(
        device=str(device).strip() if device not in (None, "") else DEFAULT_DEVICE,
        last_seen=parse_timestamp(raw_time),
        time_synced=parse_flag(row.get("time_synced")),
        **counters,
        **sd_card,
    )
