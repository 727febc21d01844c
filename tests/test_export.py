"""Unit tests for CSV export rendering."""

from __future__ import annotations

from datetime import datetime, timezone

from models.records import Reading
from services.export import CSV_COLUMNS, export_filename, render_csv


def test_columns_follow_export_contract() -> None:
    assert CSV_COLUMNS == (
        "time",
        "msg_id",
        "co2",
        "temperature",
        "humidity",
        "light",
        "soil_moisture",
    )


def test_absent_values_are_empty_and_zero_is_kept() -> None:
    readings = [
        Reading(
            time=datetime(2024, 3, 15, 9, tzinfo=timezone.utc),
            values={"co2": 600, "light": 0, "temperature": 21.5},
            message_id="A1-0001",
        ),
        Reading(time=datetime(2024, 3, 15, 9, 1, tzinfo=timezone.utc)),
    ]

    lines = render_csv(readings).splitlines()

    assert lines == [
        "time,msg_id,co2,temperature,humidity,light,soil_moisture",
        "2024-03-15T09:00:00Z,A1-0001,600,21.5,,0,",
        "2024-03-15T09:01:00Z,,,,,,",
    ]


def test_empty_export_has_header_only() -> None:
    assert render_csv([]) == "time,msg_id,co2,temperature,humidity,light,soil_moisture\n"


def test_export_filename_uses_date() -> None:
    assert export_filename(datetime(2024, 3, 15, 23, 0)) == "greenhouse-2024-03-15.csv"
