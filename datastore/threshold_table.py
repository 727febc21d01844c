from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Mapping, Optional

from app.schemas import ThresholdConfig
from settings import get_settings

logger = logging.getLogger(__name__)

# (min_value, max_value) seeded for each known sensor at bootstrap.
DEFAULT_BOUNDS: Mapping[str, tuple[float, float]] = {
    "co2": (300, 1000),
    "temperature": (14, 32),
    "humidity": (35, 85),
    "light": (0, 35000),
    "soil_moisture": (20, 75),
}


class ThresholdTable:
    """Threshold rows keyed by sensor key, optionally persisted as JSON.

    The sensor key is the primary key: writing a row for a key replaces the
    previous one. Writers serialize on a lock and swap in a fresh mapping, so
    readers take a snapshot without locking.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Mapping[str, ThresholdConfig] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()
        self._seed_defaults()

    def get_item(self, sensor_key: str) -> Optional[ThresholdConfig]:
        item = self._items.get(sensor_key)
        if item is None:
            return None
        return item.model_copy(deep=True)

    def scan(self) -> list[ThresholdConfig]:
        """Return deep copies of all rows ordered by sensor key."""
        items = self._items
        return [items[key].model_copy(deep=True) for key in sorted(items)]

    def put_items(self, items: Iterable[ThresholdConfig]) -> None:
        """Replace the given rows together; a failed write leaves the table unchanged."""
        with self._lock:
            updated: Dict[str, ThresholdConfig] = dict(self._items)
            for item in items:
                updated[item.sensor_key] = item.model_copy(deep=True)
            self._persist(updated)
            self._items = updated

    def _persist(self, items: Mapping[str, ThresholdConfig]) -> None:
        if not self.persistence_path:
            return
        payload = {key: item.model_dump(mode="json") for key, item in items.items()}
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable file %s for table %s",
                self.persistence_path,
                self.name,
            )
            data = {}

        self._items = {
            key: ThresholdConfig.model_validate(payload) for key, payload in data.items()
        }

    def _seed_defaults(self) -> None:
        missing = [key for key in DEFAULT_BOUNDS if key not in self._items]
        if not missing:
            return
        self.put_items(
            ThresholdConfig(
                sensor_key=key,
                min_value=DEFAULT_BOUNDS[key][0],
                max_value=DEFAULT_BOUNDS[key][1],
                enabled=True,
            )
            for key in missing
        )
        logger.info("Seeded default rows in %s for %s", self.name, ", ".join(missing))


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ThresholdTable:
    settings = get_settings()
    table_name = "alert_configs" if name is None else name
    table_path = settings.threshold_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ThresholdTable(name=table_name, persistence_path=persistence)
