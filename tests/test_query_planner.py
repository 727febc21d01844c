"""Unit tests for query planning, pivoting and failure handling."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import pytest

from models.errors import QueryFailed, QueryInvalid, RangeInvalid
from models.records import SENSOR_KEYS, TimeRange
from services.query_planner import QueryDescription, QueryPlanner, parse_duration, parse_sensor_filter

START = datetime(2024, 3, 15, 9, tzinfo=timezone.utc)
END = datetime(2024, 3, 15, 10, tzinfo=timezone.utc)


class StubStore:
    def __init__(self, rows: List[Dict[str, Any]] | None = None, error: Exception | None = None) -> None:
        self.rows = rows or []
        self.error = error
        self.descriptions: List[QueryDescription] = []

    def fetch(self, description: QueryDescription) -> List[Dict[str, Any]]:
        self.descriptions.append(description)
        if self.error is not None:
            raise self.error
        return self.rows


def _tall(time: str, field: str, value: Any) -> Dict[str, Any]:
    return {"_time": time, "_field": field, "_value": value}


def test_plan_defaults_to_all_sensors_with_message_ids() -> None:
    planner = QueryPlanner(store=StubStore())

    description = planner.plan(TimeRange(START, END))

    assert description.fields == SENSOR_KEYS
    assert description.aggregate_window is None
    assert description.store_fields == SENSOR_KEYS + ("msg_id",)


def test_plan_with_filter_and_aggregation() -> None:
    planner = QueryPlanner(store=StubStore())

    description = planner.plan((START, END), "temperature, co2", "5m")

    assert description.fields == ("co2", "temperature")
    assert description.aggregate_window == "5m"
    assert description.include_message_id is False
    assert "msg_id" not in description.store_fields


@pytest.mark.parametrize("literal", ["5", "m5", "5 minutes", "-5m", "0m", "1.5h", "", "5M"])
def test_malformed_aggregation_is_rejected(literal: str) -> None:
    planner = QueryPlanner(store=StubStore())

    with pytest.raises(QueryInvalid):
        planner.plan((START, END), aggregate_window=literal)


def test_parse_duration_units() -> None:
    assert parse_duration("30s") == timedelta(seconds=30)
    assert parse_duration("5m") == timedelta(minutes=5)
    assert parse_duration("1h") == timedelta(hours=1)
    assert parse_duration("2w") == timedelta(weeks=2)


@pytest.mark.parametrize("value", ["co2,pressure", "co2,,light", ["co2", ""]])
def test_malformed_sensor_filter_is_rejected(value: Any) -> None:
    with pytest.raises(QueryInvalid):
        parse_sensor_filter(value)


def test_empty_sensor_filter_means_all() -> None:
    assert parse_sensor_filter("") == SENSOR_KEYS
    assert parse_sensor_filter([]) == SENSOR_KEYS


def test_plan_rejects_inverted_range() -> None:
    planner = QueryPlanner(store=StubStore())

    with pytest.raises(RangeInvalid):
        planner.plan((END, START))


def test_execute_pivots_tall_rows_into_readings() -> None:
    store = StubStore(
        rows=[
            _tall("2024-03-15T09:01:00Z", "co2", "612.4"),
            _tall("2024-03-15T09:00:00Z", "temperature", "21.26"),
            _tall("2024-03-15T09:00:00Z", "co2", "600.6"),
            _tall("2024-03-15T09:01:00Z", "msg_id", "A1-0002"),
            _tall("2024-03-15T09:00:00Z", "msg_id", "A1-0001"),
            _tall("2024-03-15T09:00:00Z", "wifi_rssi", "-60"),
        ]
    )
    planner = QueryPlanner(store=store)

    readings = planner.execute(planner.plan((START, END)))

    assert [reading.time.minute for reading in readings] == [0, 1]
    assert readings[0].values == {"co2": 601, "temperature": 21.3}
    assert readings[0].message_id == "A1-0001"
    assert readings[1].values == {"co2": 612}
    assert readings[1].value("temperature") is None


def test_execute_with_zero_rows_returns_empty_list() -> None:
    planner = QueryPlanner(store=StubStore(rows=[]))

    assert planner.execute(planner.plan((START, END))) == []


def test_execute_skips_store_for_empty_range() -> None:
    store = StubStore()
    planner = QueryPlanner(store=store)

    assert planner.execute(planner.plan((START, START))) == []
    assert store.descriptions == []


def test_execute_accepts_wide_rows() -> None:
    planner = QueryPlanner(
        store=StubStore(rows=[{"_time": "2024-03-15T09:00:00Z", "humidity": 55.55, "msg_id": "x"}])
    )

    readings = planner.execute(planner.plan((START, END), "humidity"))

    assert readings[0].values == {"humidity": 55.6}
    assert readings[0].message_id == "x"


def test_malformed_rows_raise_query_failed() -> None:
    planner = QueryPlanner(store=StubStore(rows=[_tall("not-a-time", "co2", "1")]))

    with pytest.raises(QueryFailed) as excinfo:
        planner.execute(planner.plan((START, END)))

    assert isinstance(excinfo.value.cause, ValueError)


def test_overflowing_sensor_value_raises_query_failed() -> None:
    planner = QueryPlanner(
        store=StubStore(rows=[_tall("2024-03-15T09:59:00Z", "co2", "3.4028235e38")])
    )

    with pytest.raises(QueryFailed) as excinfo:
        planner.execute(planner.plan((START, END)))

    assert isinstance(excinfo.value.cause, ValueError)


def test_store_failures_propagate_without_retry() -> None:
    store = StubStore(error=QueryFailed("boom"))
    planner = QueryPlanner(store=store)

    with pytest.raises(QueryFailed):
        planner.execute(planner.plan((START, END)))

    assert len(store.descriptions) == 1


def test_connection_errors_become_query_failed() -> None:
    cause = ConnectionRefusedError("refused")
    planner = QueryPlanner(store=StubStore(error=cause))

    with pytest.raises(QueryFailed) as excinfo:
        planner.execute(planner.plan((START, END)))

    assert excinfo.value.cause is cause


def test_plan_snapshot_targets_topic_without_message_ids() -> None:
    planner = QueryPlanner(store=StubStore())

    description = planner.plan_snapshot((START, END), ("uptime_sec", "wifi_rssi"), topic="status")

    assert description.fields == ("uptime_sec", "wifi_rssi")
    assert description.store_fields == ("uptime_sec", "wifi_rssi")
    assert description.latest_only is True
    assert description.topic == "status"


def test_execute_snapshot_merges_series_under_newest_time() -> None:
    store = StubStore(
        rows=[
            {**_tall("2024-03-15T09:50:00Z", "uptime_sec", "600"), "device": "GH-01"},
            _tall("2024-03-15T09:55:00Z", "wifi_rssi", "-70"),
            _tall("2024-03-15T09:55:00Z", "ignored", "1"),
        ]
    )
    planner = QueryPlanner(store=store)

    snapshot = planner.execute_snapshot(
        planner.plan_snapshot((START, END), ("device", "uptime_sec", "wifi_rssi"))
    )

    assert snapshot == {
        "_time": datetime(2024, 3, 15, 9, 55, tzinfo=timezone.utc),
        "device": "GH-01",
        "uptime_sec": "600",
        "wifi_rssi": "-70",
    }


def test_execute_snapshot_without_rows_is_none() -> None:
    planner = QueryPlanner(store=StubStore())

    assert planner.execute_snapshot(planner.plan_snapshot((START, END), ("uptime_sec",))) is None


def test_plan_snapshot_requires_fields() -> None:
    with pytest.raises(QueryInvalid):
        QueryPlanner(store=StubStore()).plan_snapshot((START, END), ())
