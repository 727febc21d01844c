"""Bounded, newest-first log of evaluated alert events."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Iterable, List, Optional, Tuple

from models.records import AlertEvent, AlertHistoryEntry

DEFAULT_CAPACITY = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertHistoryLog:
    """Recency window of alert events with strict FIFO eviction.

    Entries are held in an immutable tuple, newest batch first. ``append``
    builds the replacement tuple under a lock and swaps it in with a single
    assignment, so ``recent`` never sees half of a batch and never waits.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive.")
        self.capacity = capacity
        self._clock = clock or _utcnow
        self._entries: Tuple[AlertHistoryEntry, ...] = ()
        self._lock = Lock()

    def append(self, events: Iterable[AlertEvent]) -> List[AlertHistoryEntry]:
        batch = list(events)
        if not batch:
            return []
        with self._lock:
            captured_at = self._clock()
            entries = tuple(
                AlertHistoryEntry(event=event, captured_at=captured_at) for event in batch
            )
            self._entries = (entries + self._entries)[: self.capacity]
        return list(entries)

    def recent(self, limit: Optional[int] = None) -> List[AlertHistoryEntry]:
        """Newest-first entries; ``limit`` is capped at the capacity."""
        snapshot = self._entries
        if limit is None or limit > self.capacity:
            limit = self.capacity
        if limit <= 0:
            return []
        return list(snapshot[:limit])

    def __len__(self) -> int:
        return len(self._entries)
