from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

SENSOR_COLUMNS = ("co2", "temperature", "humidity", "light", "soil_moisture")

_LEVEL_COLORS = {"critical": typer.colors.RED, "warning": typer.colors.YELLOW}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _cell(value: Any) -> str:
    return "-" if value is None else str(value)


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Readings")
    echo_key_values(
        [
            ("start", payload.get("start")),
            ("end", payload.get("end")),
            ("count", payload.get("count")),
            ("total", payload.get("total")),
        ]
    )
    rows = payload.get("data") or []
    if not rows:
        typer.echo("No readings in range.")
        return
    typer.echo()
    typer.echo("\t".join(("time",) + SENSOR_COLUMNS))
    for row in rows:
        typer.echo("\t".join([str(row.get("time"))] + [_cell(row.get(key)) for key in SENSOR_COLUMNS]))


def render_reading(reading: Dict[str, Any] | None) -> None:
    echo_heading("Latest Reading")
    if not reading:
        typer.echo("No recent reading.")
        return
    echo_key_values(
        [("time", reading.get("time")), ("msg_id", reading.get("msg_id"))]
        + [(key, _cell(reading.get(key))) for key in SENSOR_COLUMNS]
    )


def render_alert(alert: Dict[str, Any]) -> None:
    level = alert.get("level")
    typer.secho(
        f"  - [{level}] {alert.get('sensor_key')}={alert.get('value')} "
        f"(threshold {alert.get('threshold_breached')}) at {alert.get('triggered_at')}",
        fg=_LEVEL_COLORS.get(level),
    )


def render_thresholds(configs: List[Dict[str, Any]]) -> None:
    echo_heading("Thresholds")
    for config in configs:
        state = "enabled" if config.get("enabled") else "disabled"
        typer.echo(
            f"  - {config.get('sensor_key')}: min={_cell(config.get('min_value'))} "
            f"max={_cell(config.get('max_value'))} {state} "
            f"(updated by {_cell(config.get('updated_by'))} at {_cell(config.get('updated_at'))})"
        )


def render_history(history: List[Dict[str, Any]]) -> None:
    echo_heading("Alert History")
    if not history:
        typer.echo("No alerts recorded.")
        return
    for entry in history:
        render_alert(entry)


def render_poll(payload: Dict[str, Any]) -> None:
    render_reading(payload.get("reading"))
    typer.echo()
    echo_heading("Alerts")
    if not payload.get("evaluated"):
        typer.echo("Reading already evaluated." if payload.get("reading") else "Nothing to evaluate.")
        return
    alerts = payload.get("alerts") or []
    if not alerts:
        typer.echo("All sensors within thresholds.")
    for alert in alerts:
        render_alert(alert)


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Device Status")
    status = payload.get("status")
    if not payload.get("online") or not status:
        typer.secho("offline (no recent status report)", fg=typer.colors.RED)
        return
    typer.secho("online", fg=typer.colors.GREEN)
    echo_key_values(
        [
            ("device", status.get("device")),
            ("last_seen", status.get("last_seen")),
            ("uptime_sec", _cell(status.get("uptime_sec"))),
            ("readings", _cell(status.get("readings"))),
            ("publish_failures", _cell(status.get("publish_failures"))),
            ("wifi_rssi", _cell(status.get("wifi_rssi"))),
            ("free_heap", _cell(status.get("free_heap"))),
            ("time_synced", _cell(status.get("time_synced"))),
            ("sd_buffered", _cell(status.get("sd_buffered"))),
            ("sd_used_mb", f"{_cell(status.get('sd_used_mb'))} / {_cell(status.get('sd_total_mb'))}"),
        ]
    )
