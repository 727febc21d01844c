from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_history,
    render_poll,
    render_reading,
    render_readings,
    render_status,
    render_thresholds,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying greenhouse telemetry and managing alert thresholds.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Telemetry API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
    actor: Optional[str] = typer.Option(
        None,
        "--actor",
        help="Identity recorded on threshold changes (defaults to CLI_ACTOR env or 'cli').",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout, actor=actor)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="1h, 6h, 24h, 3d, 7d or 30d."),
    period: Optional[str] = typer.Option(
        None, "--period", help="today, yesterday, this_week, this_month or last_month."
    ),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 start instant."),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 end instant."),
    tz: Optional[str] = typer.Option(None, "--tz", help="IANA zone for calendar periods."),
    sensor: Optional[str] = typer.Option(None, "--sensor", "-s", help="Comma-separated sensor keys."),
    aggregate: Optional[str] = typer.Option(None, "--aggregate", "-a", help="Mean bucket width, e.g. 5m."),
    max_points: Optional[int] = typer.Option(None, "--max-points", help="Decimate to this many points."),
) -> None:
    """Query readings over a time range."""
    state = _get_state(ctx)
    payload = state.client.get_readings(
        {
            "preset": preset,
            "period": period,
            "start": start,
            "end": end,
            "tz": tz,
            "sensor": sensor,
            "aggregate": aggregate,
            "max_points": max_points,
        }
    )
    render_readings(payload)


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the most recent reading."""
    state = _get_state(ctx)
    payload = state.client.get_latest()
    render_reading(payload.get("reading"))


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show whether the greenhouse controller is reporting."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("poll")
def poll_command(ctx: typer.Context) -> None:
    """Evaluate the most recent reading against the thresholds."""
    state = _get_state(ctx)
    render_poll(state.client.poll())


@app.command("thresholds")
def thresholds_command(ctx: typer.Context) -> None:
    """List threshold configuration."""
    state = _get_state(ctx)
    render_thresholds(state.client.get_thresholds())


@app.command("set-threshold")
def set_threshold_command(
    ctx: typer.Context,
    sensor_key: str = typer.Argument(..., help="Sensor to update."),
    min_value: Optional[float] = typer.Option(None, "--min", help="New lower soft bound."),
    max_value: Optional[float] = typer.Option(None, "--max", help="New upper soft bound."),
    clear_min: bool = typer.Option(False, "--clear-min", help="Remove the lower bound."),
    clear_max: bool = typer.Option(False, "--clear-max", help="Remove the upper bound."),
    enabled: Optional[bool] = typer.Option(None, "--enable/--disable", help="Toggle alerting."),
) -> None:
    """Update one sensor's thresholds, keeping unspecified fields as they are."""
    state = _get_state(ctx)
    current = {config.get("sensor_key"): config for config in state.client.get_thresholds()}
    if sensor_key not in current:
        raise typer.BadParameter(f"Unknown sensor {sensor_key!r}.", param_hint="SENSOR_KEY")

    existing = current[sensor_key]
    update = {
        "sensor_key": sensor_key,
        "min_value": None if clear_min else (min_value if min_value is not None else existing.get("min_value")),
        "max_value": None if clear_max else (max_value if max_value is not None else existing.get("max_value")),
        "enabled": existing.get("enabled", True) if enabled is None else enabled,
    }
    configs = state.client.put_thresholds([update])
    typer.secho(f"Updated thresholds for {sensor_key}.", fg=typer.colors.GREEN)
    render_thresholds(configs)


@app.command("history")
def history_command(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Number of entries to show."),
) -> None:
    """Show recent alert events, newest first."""
    state = _get_state(ctx)
    render_history(state.client.get_history(limit))
