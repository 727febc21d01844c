from __future__ import annotations
import csv
import io
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional

import httpx

from models.errors import QueryFailed
from services.query_planner import QueryDescription
from settings import get_settings

logger = logging.getLogger(__name__)


def _flux_string(value: str) -> str:
    return json.dumps(value)


def _flux_time(value: datetime) -> str:
    instant = value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return f"time(v: {_flux_string(instant)})"


class InfluxStore:
    """Time-series store backed by the InfluxDB v2 HTTP query API.

    Returns tall rows (one field per row); pivoting is left to the caller.
    """

    def __init__(
        self,
        url: str,
        org: str,
        bucket: str,
        measurement: str,
        topic: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.org = org
        self.bucket = bucket
        self.measurement = measurement
        self.topic = topic
        headers = {"Accept": "application/csv", "Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Token {token}"
        self._client = httpx.Client(
            base_url=self.url, timeout=timeout, headers=headers, transport=transport
        )

    def close(self) -> None:
        self._client.close()

    def render_flux(self, description: QueryDescription) -> str:
        lines = [
            f"from(bucket: {_flux_string(self.bucket)})",
            f"  |> range(start: {_flux_time(description.start)}, stop: {_flux_time(description.end)})",
            f"  |> filter(fn: (r) => r._measurement == {_flux_string(self.measurement)})",
        ]
        topic = description.topic or self.topic
        if topic:
            lines.append(f"  |> filter(fn: (r) => r.topic == {_flux_string(topic)})")
        fields = " or ".join(
            f"r._field == {_flux_string(field)}" for field in description.store_fields
        )
        lines.append(f"  |> filter(fn: (r) => {fields})")
        if description.aggregate_window:
            lines.append(
                f"  |> aggregateWindow(every: {description.aggregate_window}, fn: mean, createEmpty: false)"
            )
        if description.latest_only:
            lines.append("  |> last()")
        lines.append('  |> sort(columns: ["_time"])')
        return "\n".join(lines)

    def fetch(self, description: QueryDescription) -> List[Dict[str, Any]]:
        flux = self.render_flux(description)
        payload = {
            "query": flux,
            "type": "flux",
            "dialect": {"header": True, "annotations": [], "delimiter": ","},
        }
        try:
            response = self._client.post(
                "/api/v2/query", params={"org": self.org}, json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text.strip() or "no detail provided"
            logger.warning(
                "Store rejected query",
                extra={"reason": f"{exc.response.status_code}: {detail}"},
            )
            raise QueryFailed(
                f"Store returned status {exc.response.status_code}: {detail}", cause=exc
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Store unreachable", extra={"reason": str(exc)})
            raise QueryFailed(f"Store unreachable: {exc}", cause=exc) from exc

        return parse_annotated_csv(response.text)


def parse_annotated_csv(text: str) -> List[Dict[str, Any]]:
    """Parse a Flux CSV response into row dicts.

    Responses hold one block per result table, each introduced by its own
    header row and separated by a blank line. A header with an ``error``
    column means the query failed server-side.
    """
    rows: List[Dict[str, Any]] = []
    header: Optional[List[str]] = None
    for record in csv.reader(io.StringIO(text)):
        if not record or all(not cell.strip() for cell in record):
            header = None
            continue
        if record[0].startswith("#"):
            continue
        if header is None:
            header = record
            continue
        if len(record) != len(header):
            raise QueryFailed(
                f"Malformed store response: expected {len(header)} columns, got {len(record)}."
            )
        row = dict(zip(header, record))
        if "error" in header:
            raise QueryFailed(f"Store query error: {row.get('error') or 'unknown error'}")
        rows.append(row)
    return rows


@lru_cache
def build_default_store() -> InfluxStore:
    settings = get_settings()
    return InfluxStore(
        url=settings.influx_url,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
        measurement=settings.influx_measurement,
        topic=settings.influx_topic,
        token=settings.influx_token,
        timeout=settings.query_timeout,
    )
