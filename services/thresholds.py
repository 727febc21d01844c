"""Threshold configuration reads and all-or-nothing batch updates."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from app.schemas import ThresholdConfig, ThresholdConfigUpdate
from datastore.threshold_table import ThresholdTable
from models.errors import ThresholdInvalid
from models.records import SENSOR_KEYS

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThresholdStore:
    """One live ``ThresholdConfig`` per sensor key."""

    def __init__(
        self,
        table: ThresholdTable,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.table = table
        self._clock = clock or _utcnow

    def get_all(self) -> List[ThresholdConfig]:
        """Snapshot of every row; later commits are not reflected."""
        return self.table.scan()

    def update_batch(
        self, updates: Iterable[ThresholdConfigUpdate], actor: str
    ) -> List[ThresholdConfig]:
        batch = list(updates)
        problems = self._validate(batch)
        if problems:
            logger.warning(
                "Rejected threshold batch",
                extra={"actor": actor, "reason": "; ".join(problems)},
            )
            raise ThresholdInvalid("; ".join(problems))

        stamped_at = self._clock()
        rows = [
            ThresholdConfig(
                sensor_key=update.sensor_key,
                min_value=update.min_value,
                max_value=update.max_value,
                enabled=update.enabled,
                updated_by=actor,
                updated_at=stamped_at,
            )
            for update in batch
        ]
        self.table.put_items(rows)
        logger.info(
            "Committed threshold batch",
            extra={"actor": actor, "row_count": len(rows)},
        )
        return self.get_all()

    @staticmethod
    def _validate(batch: List[ThresholdConfigUpdate]) -> List[str]:
        problems: List[str] = []
        seen: set[str] = set()
        for update in batch:
            key = update.sensor_key
            if key not in SENSOR_KEYS:
                problems.append(f"unknown sensor key {key!r}")
                continue
            if key in seen:
                problems.append(f"duplicate sensor key {key!r}")
            seen.add(key)
            if (
                update.min_value is not None
                and update.max_value is not None
                and update.min_value > update.max_value
            ):
                problems.append(
                    f"{key}: min_value {update.min_value} exceeds max_value {update.max_value}"
                )
        return problems
