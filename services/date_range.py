"""Resolution of relative presets, calendar periods and custom bounds.

A ``DateRangeSelection`` is a plain value: every operation here takes one and
returns a new one, so concurrent sessions keep independent selections.
Calendar periods are computed in the caller's zone; results are aware
datetimes in that zone.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models.errors import RangeInvalid
from models.records import DateRangeSelection, TimeRange

PRESETS: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "3d": timedelta(days=3),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

PERIODS = ("today", "yesterday", "this_week", "this_month", "last_month")

DEFAULT_PRESET = "24h"

_ONE_MS = timedelta(milliseconds=1)


def load_timezone(name: Optional[str]) -> tzinfo:
    """Resolve an IANA zone name; blank means UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RangeInvalid(f"Unknown time zone {name!r}.") from exc


def _normalize_preset(preset: str) -> str:
    key = preset.strip().lower()
    if key not in PRESETS:
        raise RangeInvalid(
            f"Unknown preset {preset!r}; expected one of {', '.join(PRESETS)}."
        )
    return key


def _normalize_period(period: str) -> str:
    key = period.strip().lower().replace("-", "_").replace(" ", "_")
    if key not in PERIODS:
        raise RangeInvalid(
            f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}."
        )
    return key


def _midnight(day: datetime) -> datetime:
    return datetime.combine(day.date(), time.min, tzinfo=day.tzinfo)


def _first_of_month(day: datetime) -> datetime:
    return _midnight(day.replace(day=1))


class DateRangeResolver:
    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.tz = tz or timezone.utc
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def default_selection(self) -> DateRangeSelection:
        return self.select_preset(DEFAULT_PRESET)

    def select_preset(self, preset: str) -> DateRangeSelection:
        key = _normalize_preset(preset)
        start, end = self.preset_range(key)
        return DateRangeSelection(start=start, end=end, preset=key)

    def select_period(self, period: str) -> DateRangeSelection:
        key = _normalize_period(period)
        start, end = self.period_range(key)
        return DateRangeSelection(start=start, end=end, period=key)

    def set_start(self, selection: DateRangeSelection, start: datetime) -> DateRangeSelection:
        """Manual edit of the lower bound; clears any active selector."""
        return DateRangeSelection(start=self._localize(start), end=selection.end)

    def set_end(self, selection: DateRangeSelection, end: datetime) -> DateRangeSelection:
        """Manual edit of the upper bound; clears any active selector."""
        return DateRangeSelection(start=selection.start, end=self._localize(end))

    def custom(self, start: datetime, end: datetime) -> DateRangeSelection:
        return DateRangeSelection(start=self._localize(start), end=self._localize(end))

    def resolve(self, selection: DateRangeSelection) -> TimeRange:
        """Concrete bounds for a selection.

        Presets and periods are recomputed against the clock so a live view
        keeps sliding; custom bounds are returned as given.
        """
        if selection.preset is not None:
            return self.preset_range(_normalize_preset(selection.preset))
        if selection.period is not None:
            return self.period_range(_normalize_period(selection.period))

        if selection.end < selection.start:
            raise RangeInvalid(
                f"Range end {selection.end.isoformat()} is before start "
                f"{selection.start.isoformat()}."
            )
        return TimeRange(selection.start, selection.end)

    def preset_range(self, preset: str) -> TimeRange:
        end = self.now()
        return TimeRange(end - PRESETS[preset], end)

    def period_range(self, period: str) -> TimeRange:
        now = self.now()
        today = _midnight(now)
        if period == "today":
            return TimeRange(today, now)
        if period == "yesterday":
            start = _midnight(today - timedelta(days=1))
            return TimeRange(start, today - _ONE_MS)
        if period == "this_week":
            # weekday(): Monday is 0, so Sunday is 6.
            days_since_sunday = (now.weekday() + 1) % 7
            return TimeRange(_midnight(today - timedelta(days=days_since_sunday)), now)
        if period == "this_month":
            return TimeRange(_first_of_month(now), now)
        if period == "last_month":
            this_month = _first_of_month(now)
            last_month = _first_of_month(this_month - timedelta(days=1))
            return TimeRange(last_month, this_month - _ONE_MS)
        raise RangeInvalid(f"Unknown period {period!r}.")

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value
