"""Unit tests for decoding controller status reports."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from services.device_status import DEFAULT_DEVICE, decode_status, parse_flag, parse_number

SEEN = datetime(2024, 3, 15, 9, 58, tzinfo=timezone.utc)


def test_decode_full_report() -> None:
    status = decode_status(
        {
            "_time": SEEN,
            "device": "GH-02",
            "uptime_sec": "86400",
            "readings": "1440",
            "publish_failures": "0",
            "wifi_rssi": "-67",
            "free_heap": "182344",
            "time_synced": "true",
            "sd_buffered": "2",
            "sd_used_mb": "12.5",
            "sd_total_mb": "3800",
        }
    )

    assert status.device == "GH-02"
    assert status.last_seen == SEEN
    assert (status.uptime_sec, status.readings, status.publish_failures) == (86400, 1440, 0)
    assert status.wifi_rssi == -67
    assert status.time_synced is True
    assert (status.sd_buffered, status.sd_used_mb, status.sd_total_mb) == (2, 12.5, 3800)


def test_nested_sd_card_fields_and_defaults() -> None:
    status = decode_status(
        {"_time": "2024-03-15T09:58:00Z", "sd_card.buffered": "7", "sd_card.total_mb": "3800"}
    )

    assert status.device == DEFAULT_DEVICE
    assert (status.sd_buffered, status.sd_used_mb, status.sd_total_mb) == (7, 0, 3800)
    assert status.uptime_sec is None
    assert status.time_synced is None


def test_report_without_time_is_rejected() -> None:
    with pytest.raises(ValueError):
        decode_status({"uptime_sec": "1"})


@pytest.mark.parametrize("raw", ["weak", "inf", True, [1]])
def test_parse_number_rejects_non_numeric(raw: object) -> None:
    with pytest.raises(ValueError):
        parse_number(raw)


def test_parse_flag_values() -> None:
    assert parse_flag("TRUE") is True
    assert parse_flag("0") is False
    assert parse_flag("") is None
    with pytest.raises(ValueError):
        parse_flag("maybe")
