"""Unit tests for alert classification and history recording."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.schemas import ThresholdConfig
from models.records import AlertEvent, AlertLevel, Reading
from services.alerts import AlertEvaluator, CriticalBounds, classify, evaluate_reading
from services.history import AlertHistoryLog

READING_TIME = datetime(2024, 3, 15, 10, tzinfo=timezone.utc)


def _reading(**values: float) -> Reading:
    return Reading(time=READING_TIME, values=values)


def _config(sensor_key: str, min_value: float | None, max_value: float | None, enabled: bool = True) -> ThresholdConfig:
    return ThresholdConfig(
        sensor_key=sensor_key, min_value=min_value, max_value=max_value, enabled=enabled
    )


def test_temperature_above_hard_bound_is_critical() -> None:
    events = evaluate_reading(_reading(temperature=36), [_config("temperature", 14, 32)])

    assert events == [
        AlertEvent(
            sensor_key="temperature",
            level=AlertLevel.critical,
            value=36,
            threshold_breached=35,
            triggered_at=READING_TIME,
        )
    ]


def test_co2_inside_soft_bounds_produces_nothing() -> None:
    assert evaluate_reading(_reading(co2=850), [_config("co2", 300, 1000)]) == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (14, (AlertLevel.warning, 14)),
        (32, (AlertLevel.warning, 32)),
        (20, None),
        (35, (AlertLevel.critical, 35)),
        (5, (AlertLevel.critical, 5)),
        (4.9, (AlertLevel.critical, 5)),
        (10, (AlertLevel.warning, 14)),
        (33, (AlertLevel.warning, 32)),
    ],
)
def test_classification_is_inclusive_and_ordered(value: float, expected) -> None:
    config = _config("temperature", 14, 32)

    assert classify(value, config, CriticalBounds(low=5, high=35)) == expected


def test_exactly_one_level_outside_soft_range() -> None:
    config = _config("soil_moisture", 20, 75)
    bounds = CriticalBounds(low=10, high=85)

    for value in range(0, 100):
        outcome = classify(value, config, bounds)
        if 20 < value < 75:
            assert outcome is None
        else:
            assert outcome is not None


def test_disabled_or_missing_config_produces_nothing() -> None:
    reading = _reading(temperature=50, humidity=99)

    assert evaluate_reading(reading, [_config("temperature", 14, 32, enabled=False)]) == []


def test_null_soft_bounds_only_check_defined_side() -> None:
    config = _config("humidity", None, 85)

    assert evaluate_reading(_reading(humidity=1), [config]) == []
    events = evaluate_reading(_reading(humidity=90), [config])
    assert [(e.level, e.threshold_breached) for e in events] == [(AlertLevel.warning, 85)]


def test_heartbeat_reading_produces_nothing() -> None:
    configs = [_config("co2", 300, 1000), _config("temperature", 14, 32)]

    assert evaluate_reading(Reading(time=READING_TIME), configs) == []


def test_events_follow_sensor_order() -> None:
    configs = [_config("temperature", 14, 32), _config("co2", 300, 1000)]

    events = evaluate_reading(_reading(temperature=33, co2=1300), configs)

    assert [(e.sensor_key, e.level) for e in events] == [
        ("co2", AlertLevel.critical),
        ("temperature", AlertLevel.warning),
    ]


def test_evaluator_appends_each_call_to_history() -> None:
    history = AlertHistoryLog(capacity=10)
    evaluator = AlertEvaluator(history=history)
    reading = _reading(co2=1300, temperature=36)
    configs = [_config("co2", 300, 1000), _config("temperature", 14, 32)]

    first = evaluator.evaluate(reading, configs)
    second = evaluator.evaluate(reading, configs)

    assert first == second
    assert len(history) == 4
    assert [entry.event.sensor_key for entry in history.recent()] == [
        "co2",
        "temperature",
        "co2",
        "temperature",
    ]


def test_evaluator_skips_history_when_nothing_fires() -> None:
    history = AlertHistoryLog(capacity=10)
    evaluator = AlertEvaluator(history=history)

    assert evaluator.evaluate(_reading(co2=500), [_config("co2", 300, 1000)]) == []
    assert len(history) == 0
