"""Planning and execution of time-series queries.

``plan`` validates caller input and produces a store-agnostic
``QueryDescription``. ``execute`` hands it to a ``TimeSeriesStore``, pivots
the tall ``(_time, _field, _value)`` rows it returns into one row per
timestamp and normalizes each into a ``Reading``. No retries happen here:
store failures surface immediately as ``QueryFailed``.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from models.errors import QueryFailed, QueryInvalid, RangeInvalid
from models.records import SENSOR_KEYS, Reading
from services.normalizer import MESSAGE_ID_KEYS, TIME_KEYS, ReadingNormalizer, parse_timestamp

logger = logging.getLogger(__name__)

MESSAGE_ID_FIELD = "msg_id"

_DURATION_RE = re.compile(r"^(\d+)(ms|s|m|h|d|w)$")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}

SensorFilter = Union[str, Iterable[str], None]


@dataclass(frozen=True)
class QueryDescription:
    """Everything a store needs to answer one query."""

    start: datetime
    end: datetime
    fields: Tuple[str, ...] = SENSOR_KEYS
    aggregate_window: Optional[str] = None
    include_message_id: bool = True
    latest_only: bool = False
    # Overrides the store's default topic tag filter.
    topic: Optional[str] = None

    @property
    def store_fields(self) -> Tuple[str, ...]:
        """Fields to request, including the message id when it can be carried."""
        if self.include_message_id:
            return self.fields + (MESSAGE_ID_FIELD,)
        return self.fields


class TimeSeriesStore(Protocol):
    def fetch(self, description: QueryDescription) -> Iterable[Mapping[str, Any]]:
        """Return tall rows for the description; raise ``QueryFailed`` on failure."""


def parse_duration(literal: str) -> timedelta:
    """Parse a single-unit duration literal such as ``5m`` or ``1h``."""
    candidate = (literal or "").strip()
    match = _DURATION_RE.match(candidate)
    if match is None:
        raise QueryInvalid(
            f"Malformed duration {literal!r}; expected e.g. 30s, 5m, 1h, 1d."
        )
    amount = int(match.group(1))
    if amount == 0:
        raise QueryInvalid(f"Duration {literal!r} must be positive.")
    return amount * _DURATION_UNITS[match.group(2)]


def parse_sensor_filter(sensor_filter: SensorFilter) -> Tuple[str, ...]:
    """Validate a sensor subset; ``None`` or an empty string selects all five."""
    if sensor_filter is None:
        return SENSOR_KEYS
    if isinstance(sensor_filter, str):
        if not sensor_filter.strip():
            return SENSOR_KEYS
        tokens = [token.strip() for token in sensor_filter.split(",")]
    else:
        tokens = [str(token).strip() for token in sensor_filter]
        if not tokens:
            return SENSOR_KEYS

    if any(not token for token in tokens):
        raise QueryInvalid(f"Empty entry in sensor filter {sensor_filter!r}.")
    unknown = sorted(set(tokens) - set(SENSOR_KEYS))
    if unknown:
        raise QueryInvalid(
            f"Unknown sensor(s): {', '.join(unknown)}; expected a subset of "
            f"{', '.join(SENSOR_KEYS)}."
        )
    requested = set(tokens)
    return tuple(key for key in SENSOR_KEYS if key in requested)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_time(row: Mapping[str, Any]) -> datetime:
    raw_time = next((row[key] for key in TIME_KEYS if row.get(key) is not None), None)
    if raw_time is None:
        raise ValueError(f"Row without a timestamp: {dict(row)!r}")
    return parse_timestamp(raw_time)


class QueryPlanner:
    def __init__(
        self,
        store: TimeSeriesStore,
        normalizer: Optional[ReadingNormalizer] = None,
    ) -> None:
        self.store = store
        self.normalizer = normalizer or ReadingNormalizer()

    def plan(
        self,
        time_range: Sequence[datetime],
        sensor_filter: SensorFilter = None,
        aggregate_window: Optional[str] = None,
        latest_only: bool = False,
    ) -> QueryDescription:
        start, end = (_as_utc(bound) for bound in time_range)
        if end < start:
            raise RangeInvalid(
                f"Range end {end.isoformat()} is before start {start.isoformat()}."
            )

        fields = parse_sensor_filter(sensor_filter)
        window: Optional[str] = None
        if aggregate_window is not None:
            parse_duration(aggregate_window)
            window = aggregate_window.strip()

        return QueryDescription(
            start=start,
            end=end,
            fields=fields,
            aggregate_window=window,
            # The mean of a string field is undefined, so ids only ride along on raw queries.
            include_message_id=window is None,
            latest_only=latest_only,
        )

    def plan_snapshot(
        self,
        time_range: Sequence[datetime],
        fields: Sequence[str],
        topic: Optional[str] = None,
    ) -> QueryDescription:
        """Describe a last-value-per-field lookup over arbitrary fields."""
        start, end = (_as_utc(bound) for bound in time_range)
        if end < start:
            raise RangeInvalid(
                f"Range end {end.isoformat()} is before start {start.isoformat()}."
            )
        if not fields:
            raise QueryInvalid("A snapshot needs at least one field.")
        return QueryDescription(
            start=start,
            end=end,
            fields=tuple(fields),
            include_message_id=False,
            latest_only=True,
            topic=topic,
        )

    def execute(self, description: QueryDescription) -> List[Reading]:
        if description.start == description.end:
            return []

        started = time.perf_counter()
        rows = self._fetch(description)

        try:
            readings = [self.normalizer.normalize(row) for row in self.pivot(rows, description)]
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed store response", extra={"reason": str(exc)})
            raise QueryFailed(f"Malformed store response: {exc}", cause=exc) from exc

        logger.debug(
            "Executed telemetry query in %.1f ms",
            (time.perf_counter() - started) * 1000,
            extra={
                "fields": ",".join(description.fields),
                "aggregate": description.aggregate_window,
                "row_count": len(rows),
                "reading_count": len(readings),
            },
        )
        return readings

    def execute_snapshot(self, description: QueryDescription) -> Optional[Dict[str, Any]]:
        """Run a snapshot lookup; ``None`` when the window holds no rows."""
        if description.start == description.end:
            return None

        rows = self._fetch(description)
        try:
            snapshot = self.fold_latest(rows, description)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Malformed store response", extra={"reason": str(exc)})
            raise QueryFailed(f"Malformed store response: {exc}", cause=exc) from exc

        logger.debug(
            "Executed snapshot query",
            extra={"fields": ",".join(description.fields), "row_count": len(rows)},
        )
        return snapshot

    def _fetch(self, description: QueryDescription) -> List[Mapping[str, Any]]:
        try:
            return list(self.store.fetch(description))
        except QueryFailed:
            raise
        except OSError as exc:
            logger.warning("Time-series store unreachable", extra={"reason": str(exc)})
            raise QueryFailed(f"Time-series store unreachable: {exc}", cause=exc) from exc

    @staticmethod
    def pivot(
        rows: Iterable[Mapping[str, Any]], description: QueryDescription
    ) -> List[Dict[str, Any]]:
        """Fold tall rows into one wide row per timestamp, in time order.

        Rows that already carry columns (no ``_field``) are merged as-is.
        Fields outside the description are dropped.
        """
        wanted = set(description.store_fields)
        by_time: Dict[datetime, Dict[str, Any]] = {}
        for row in rows:
            instant = _row_time(row)
            wide = by_time.setdefault(instant, {"_time": instant})

            if "_field" in row:
                field = row["_field"]
                if field in wanted:
                    wide[field] = row.get("_value")
                continue

            for key, value in row.items():
                if key in wanted or key in MESSAGE_ID_KEYS:
                    wide[key] = value

        if not description.include_message_id:
            for wide in by_time.values():
                for key in MESSAGE_ID_KEYS:
                    wide.pop(key, None)
        return [by_time[instant] for instant in sorted(by_time)]

    @staticmethod
    def fold_latest(
        rows: Iterable[Mapping[str, Any]], description: QueryDescription
    ) -> Optional[Dict[str, Any]]:
        """Merge last-value rows into one record stamped with the newest time.

        ``last()`` yields one row per series and series may report at
        different instants. Wanted columns found on tall rows, such as tags,
        are kept unless a field of the same name is present.
        """
        wanted = set(description.store_fields)
        merged: Dict[str, Any] = {}
        tags: Dict[str, Any] = {}
        newest: Optional[datetime] = None
        for row in rows:
            instant = _row_time(row)
            if newest is None or instant > newest:
                newest = instant

            if "_field" in row:
                if row["_field"] in wanted:
                    merged[row["_field"]] = row.get("_value")
                for key in wanted.intersection(row):
                    if row[key] not in (None, ""):
                        tags.setdefault(key, row[key])
                continue

            for key in wanted.intersection(row):
                merged[key] = row[key]

        if newest is None:
            return None
        snapshot = {**tags, **merged}
        snapshot["_time"] = newest
        return snapshot
