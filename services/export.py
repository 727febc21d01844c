"""CSV rendering of readings for download."""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Iterable, Iterator, Optional

from models.records import SENSOR_KEYS, Reading

CSV_COLUMNS = ("time", "msg_id") + SENSOR_KEYS


def _format_time(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _cell(value: Optional[object]) -> str:
    # Zero is data; only a missing value renders empty.
    return "" if value is None else str(value)


def iter_csv_lines(readings: Iterable[Reading]) -> Iterator[str]:
    """Yield the header and one CSV line per reading."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    def flush() -> str:
        line = buffer.getvalue()
        buffer.seek(0)
        buffer.truncate(0)
        return line

    writer.writerow(CSV_COLUMNS)
    yield flush()
    for reading in readings:
        writer.writerow(
            [_format_time(reading.time), _cell(reading.message_id)]
            + [_cell(reading.value(key)) for key in SENSOR_KEYS]
        )
        yield flush()


def render_csv(readings: Iterable[Reading]) -> str:
    return "".join(iter_csv_lines(readings))


def export_filename(today: datetime) -> str:
    return f"greenhouse-{today.date().isoformat()}.csv"
