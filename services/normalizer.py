"""Conversion of raw store rows into canonical ``Reading`` values."""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from models.records import SENSOR_KEYS, Number, Reading

# Decimal places kept per sensor; zero means the value becomes an int.
SENSOR_PRECISION: dict[str, int] = {
    "co2": 0,
    "temperature": 1,
    "humidity": 1,
    "light": 0,
    "soil_moisture": 1,
}

TIME_KEYS = ("_time", "time")
MESSAGE_ID_KEYS = ("msg_id", "message_id")

_FRACTION_RE = re.compile(r"\.(\d{7,})")


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 / ISO-8601 instant into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    else:
        candidate = str(value or "").strip()
        if not candidate:
            raise ValueError("Timestamp is empty.")

        if candidate.endswith("Z"):
            candidate = candidate[:-1] + "+00:00"
        # Store timestamps carry nanoseconds; datetime stops at micro.
        candidate = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6], candidate)

        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp format: {value!r}") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def round_value(sensor_key: str, value: float) -> Number:
    places = SENSOR_PRECISION[sensor_key]
    quantum = Decimal(1).scaleb(-places)
    try:
        rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # quantize cannot hold more significant digits than the context precision.
        raise ValueError(f"Value out of range for {sensor_key}: {value!r}") from exc
    if places == 0:
        return int(rounded)
    return float(rounded)


class ReadingNormalizer:
    """Turns heterogeneous sample rows into ``Reading`` records.

    Missing, ``None`` and empty-string values stay absent. Values that are
    present but not numeric raise ``ValueError``.
    """

    def normalize_value(self, sensor_key: str, raw: Any) -> Optional[Number]:
        if sensor_key not in SENSOR_PRECISION:
            raise ValueError(f"Unknown sensor key {sensor_key!r}.")
        if raw is None:
            return None
        if isinstance(raw, bool):
            raise ValueError(f"Non-numeric value for {sensor_key}: {raw!r}")
        if isinstance(raw, str):
            candidate = raw.strip()
            if not candidate:
                return None
            try:
                number = float(Decimal(candidate))
            except InvalidOperation as exc:
                raise ValueError(f"Non-numeric value for {sensor_key}: {raw!r}") from exc
        elif isinstance(raw, (int, float)):
            try:
                number = float(raw)
            except OverflowError as exc:
                raise ValueError(f"Value out of range for {sensor_key}: {raw!r}") from exc
        else:
            raise ValueError(f"Non-numeric value for {sensor_key}: {raw!r}")

        if math.isnan(number):
            return None
        if math.isinf(number):
            raise ValueError(f"Non-finite value for {sensor_key}: {raw!r}")
        return round_value(sensor_key, number)

    def normalize(self, row: Mapping[str, Any]) -> Reading:
        raw_time = _first_present(row, TIME_KEYS)
        if raw_time is None:
            raise ValueError("Row has no timestamp.")

        values: dict[str, Number] = {}
        for key in SENSOR_KEYS:
            value = self.normalize_value(key, row.get(key))
            if value is not None:
                values[key] = value

        message_id = _first_present(row, MESSAGE_ID_KEYS)
        return Reading(
            time=parse_timestamp(raw_time),
            values=values,
            message_id=str(message_id) if message_id not in (None, "") else None,
        )


def _first_present(row: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None
