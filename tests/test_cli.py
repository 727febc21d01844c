from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import load_config


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.reading_params: Dict[str, Any] | None = None
        self.put_calls: List[List[Dict[str, Any]]] = []
        self.thresholds: List[Dict[str, Any]] = [
            {"sensor_key": "co2", "min_value": 300.0, "max_value": 1000.0, "enabled": True},
            {"sensor_key": "temperature", "min_value": 14.0, "max_value": 32.0, "enabled": True},
        ]
        self.history: List[Dict[str, Any]] = [
            {
                "sensor_key": "temperature",
                "level": "critical",
                "value": 36,
                "threshold_breached": 35,
                "triggered_at": "2024-03-15T09:59:00Z",
                "captured_at": "2024-03-15T10:00:00Z",
            }
        ]
        self.status: Dict[str, Any] = {"online": False, "status": None}
        self.closed = False

    def get_readings(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.reading_params = params
        return {
            "start": "2024-03-15T09:00:00Z",
            "end": "2024-03-15T10:00:00Z",
            "count": 1,
            "total": 1,
            "data": [{"time": "2024-03-15T09:30:00Z", "co2": 612, "temperature": None}],
        }

    def get_latest(self) -> Dict[str, Any]:
        return {"reading": None}

    def get_status(self) -> Dict[str, Any]:
        return self.status

    def get_thresholds(self) -> List[Dict[str, Any]]:
        return self.thresholds

    def put_thresholds(self, configs: List[Dict[str, Any]], actor: str | None = None) -> List[Dict[str, Any]]:
        self.put_calls.append(configs)
        return self.thresholds

    def get_history(self, limit: int) -> List[Dict[str, Any]]:
        return self.history[:limit]

    def poll(self) -> Dict[str, Any]:
        return {"reading": None, "evaluated": False, "alerts": []}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    holder = StubClient(config=None)

    def factory(config):
        holder.config = config
        return holder

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return holder


def test_readings_command_passes_filters(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["readings", "--preset", "6h", "--sensor", "co2", "--aggregate", "5m"])

    assert result.exit_code == 0
    assert stub.reading_params is not None
    assert stub.reading_params["preset"] == "6h"
    assert stub.reading_params["sensor"] == "co2"
    assert stub.reading_params["aggregate"] == "5m"
    assert "612" in result.stdout
    assert stub.closed is True


def test_set_threshold_merges_current_values(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["set-threshold", "co2", "--max", "900"])

    assert result.exit_code == 0
    assert stub.put_calls == [
        [{"sensor_key": "co2", "min_value": 300.0, "max_value": 900.0, "enabled": True}]
    ]
    assert "Updated thresholds for co2" in result.stdout


def test_set_threshold_can_disable_and_clear(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["set-threshold", "temperature", "--clear-min", "--disable"])

    assert result.exit_code == 0
    assert stub.put_calls[0][0]["min_value"] is None
    assert stub.put_calls[0][0]["enabled"] is False


def test_set_threshold_rejects_unknown_sensor(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["set-threshold", "pressure", "--max", "1"])

    assert result.exit_code != 0
    assert stub.put_calls == []


def test_history_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["history", "--limit", "5"])

    assert result.exit_code == 0
    assert "[critical] temperature=36" in result.stdout


def test_poll_and_latest_without_data(runner: CliRunner, stub: StubClient) -> None:
    poll = runner.invoke(app, ["poll"])
    latest = runner.invoke(app, ["latest"])

    assert poll.exit_code == 0
    assert "Nothing to evaluate." in poll.stdout
    assert "No recent reading." in latest.stdout


def test_status_command_reports_offline(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "offline" in result.stdout


def test_status_command_shows_device_details(runner: CliRunner, stub: StubClient) -> None:
    stub.status = {
        "online": True,
        "status": {
            "device": "LEPAA-GH-01",
            "last_seen": "2024-03-15T09:58:00Z",
            "uptime_sec": 86400,
            "wifi_rssi": -67,
            "time_synced": True,
            "sd_buffered": 3,
            "sd_used_mb": 12.5,
            "sd_total_mb": 3800,
        },
    }

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 0
    assert "online" in result.stdout
    assert "wifi_rssi: -67" in result.stdout
    assert "sd_used_mb: 12.5 / 3800" in result.stdout
    assert "publish_failures: -" in result.stdout

def test_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://telemetry.local:9000/")
    monkeypatch.setenv("CLI_TIMEOUT", "not-a-number")
    monkeypatch.setenv("CLI_ACTOR", "night-shift")

    config = load_config()

    assert config.base_url == "http://telemetry.local:9000"
    assert config.timeout == 30.0
    assert config.actor == "night-shift"
