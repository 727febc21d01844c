"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status

from app.schemas import (
    AlertEventOut,
    AlertHistoryEntryOut,
    AlertHistoryResponse,
    DeviceStatusOut,
    DeviceStatusResponse,
    LatestReadingResponse,
    PollResponse,
    ReadingOut,
    ReadingsResponse,
    SelectionResponse,
    ThresholdBatchRequest,
    ThresholdConfigsResponse,
)
from models.errors import QueryFailed, TelemetryError
from models.records import DateRangeSelection
from services.export import export_filename
from services.telemetry import TelemetryService, build_default_service

router = APIRouter()

_DEFAULT_WINDOW = timedelta(hours=24)


def get_service() -> TelemetryService:
    return build_default_service()


def _http_error(exc: TelemetryError) -> HTTPException:
    if isinstance(exc, QueryFailed):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to query sensor data: {exc}",
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _select(
    service: TelemetryService,
    start: Optional[datetime],
    end: Optional[datetime],
    preset: Optional[str],
    period: Optional[str],
    tz: Optional[str],
) -> DateRangeSelection:
    """Build the caller's selection; only one kind of selector may be given."""
    given = [name for name, value in (("preset", preset), ("period", period)) if value]
    if start is not None or end is not None:
        given.append("start/end")
    if len(given) > 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Choose one of preset, period or start/end (got {', '.join(given)}).",
        )

    resolver = service.resolver(tz)
    if preset:
        return resolver.select_preset(preset)
    if period:
        return resolver.select_period(period)
    if start is None and end is None:
        return resolver.default_selection()

    upper = end or resolver.now()
    lower = start or upper - _DEFAULT_WINDOW
    return resolver.custom(lower, upper)


@router.get(
    "/ranges/resolve",
    response_model=SelectionResponse,
    summary="Resolve a preset, calendar period or custom bounds into instants.",
)
def resolve_range(
    start: Optional[datetime] = Query(None, description="ISO-8601 start instant."),
    end: Optional[datetime] = Query(None, description="ISO-8601 end instant."),
    preset: Optional[str] = Query(None, description="Relative window: 1h, 6h, 24h, 3d, 7d, 30d."),
    period: Optional[str] = Query(
        None, description="today, yesterday, this_week, this_month or last_month."
    ),
    tz: Optional[str] = Query(None, description="IANA zone for calendar periods."),
    service: TelemetryService = Depends(get_service),
) -> SelectionResponse:
    try:
        selection = _select(service, start, end, preset, period, tz)
        resolved = service.resolver(tz).resolve(selection)
    except TelemetryError as exc:
        raise _http_error(exc) from exc
    return SelectionResponse(
        start=resolved.start,
        end=resolved.end,
        preset=selection.preset,
        period=selection.period,
    )


@router.get(
    "/readings",
    response_model=ReadingsResponse,
    summary="Query sensor readings within a time range.",
)
def get_readings(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    preset: Optional[str] = Query(None),
    period: Optional[str] = Query(None),
    tz: Optional[str] = Query(None),
    sensor: Optional[str] = Query(None, description="Comma-separated subset of sensor keys."),
    aggregate: Optional[str] = Query(None, description="Mean bucket width such as 5m or 1h."),
    max_points: Optional[int] = Query(
        None, ge=1, description="Decimate the series to at most this many points (+ the last)."
    ),
    service: TelemetryService = Depends(get_service),
) -> ReadingsResponse:
    try:
        selection = _select(service, start, end, preset, period, tz)
        resolved = service.resolver(tz).resolve(selection)
        readings = service.query_readings(resolved, sensor, aggregate)
    except TelemetryError as exc:
        raise _http_error(exc) from exc

    series = service.chart_series(readings, max_points) if max_points else readings
    return ReadingsResponse(
        start=resolved.start,
        end=resolved.end,
        count=len(series),
        total=len(readings),
        data=[ReadingOut.from_reading(reading) for reading in series],
    )


@router.get(
    "/readings/latest",
    response_model=LatestReadingResponse,
    summary="Fetch the most recent sensor reading.",
)
def get_latest_reading(
    service: TelemetryService = Depends(get_service),
) -> LatestReadingResponse:
    try:
        reading = service.latest_reading()
    except TelemetryError as exc:
        raise _http_error(exc) from exc
    if reading is None:
        return LatestReadingResponse()
    return LatestReadingResponse(reading=ReadingOut.from_reading(reading))


@router.get(
    "/status",
    response_model=DeviceStatusResponse,
    summary="Latest controller status report; offline when none arrived recently.",
)
def get_device_status(
    service: TelemetryService = Depends(get_service),
) -> DeviceStatusResponse:
    try:
        device = service.device_status()
    except TelemetryError as exc:
        raise _http_error(exc) from exc
    if device is None:
        return DeviceStatusResponse(online=False)
    return DeviceStatusResponse(online=True, status=DeviceStatusOut.from_status(device))


@router.get(
    "/export",
    summary="Download readings as CSV (defaults to the last 7 days).",
    response_class=Response,
)
def export_readings(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    service: TelemetryService = Depends(get_service),
) -> Response:
    try:
        time_range = None
        if start is not None or end is not None:
            resolver = service.resolver()
            upper = end or resolver.now()
            lower = start or upper - timedelta(days=7)
            time_range = resolver.resolve(resolver.custom(lower, upper))
        body = service.export_csv(time_range)
    except TelemetryError as exc:
        raise _http_error(exc) from exc
    filename = export_filename(service.resolver().now())
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get(
    "/alerts/config",
    response_model=ThresholdConfigsResponse,
    summary="List threshold configuration for every sensor.",
)
def get_alert_config(
    service: TelemetryService = Depends(get_service),
) -> ThresholdConfigsResponse:
    return ThresholdConfigsResponse(configs=service.thresholds.get_all())


@router.put(
    "/alerts/config",
    response_model=ThresholdConfigsResponse,
    summary="Replace thresholds for several sensors in one all-or-nothing batch.",
)
def put_alert_config(
    request: ThresholdBatchRequest,
    x_actor: str = Header("anonymous", description="Identity recorded as updated_by."),
    service: TelemetryService = Depends(get_service),
) -> ThresholdConfigsResponse:
    try:
        configs = service.thresholds.update_batch(request.configs, actor=x_actor)
    except TelemetryError as exc:
        raise _http_error(exc) from exc
    return ThresholdConfigsResponse(configs=configs)


@router.get(
    "/alerts/history",
    response_model=AlertHistoryResponse,
    summary="Most recent alert events, newest first.",
)
def get_alert_history(
    limit: int = Query(50, ge=1),
    service: TelemetryService = Depends(get_service),
) -> AlertHistoryResponse:
    entries = service.history.recent(limit)
    return AlertHistoryResponse(
        history=[AlertHistoryEntryOut.from_entry(entry) for entry in entries]
    )


@router.post(
    "/alerts/poll",
    response_model=PollResponse,
    summary="Fetch the newest reading and evaluate it against the thresholds once.",
)
def poll_alerts(
    service: TelemetryService = Depends(get_service),
) -> PollResponse:
    try:
        outcome = service.poll()
    except TelemetryError as exc:
        raise _http_error(exc) from exc
    return PollResponse(
        reading=ReadingOut.from_reading(outcome.reading) if outcome.reading else None,
        evaluated=outcome.evaluated,
        alerts=[AlertEventOut.from_event(event) for event in outcome.events],
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
