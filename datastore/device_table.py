from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from models.records import Device
from settings import get_settings

logger = logging.getLogger(__name__)


class DeviceTable:

    def __init__(self, name: str = "devices", persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: Dict[str, Device] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_item(self, item: Device) -> None:
        with self._lock:
            self._items[item.device_id] = item.model_copy(deep=True)
            self._persist()

    def get_item(self, key: str) -> Optional[Device]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def delete_item(self, key: str) -> bool:
        with self._lock:
            removed = self._items.pop(key, None) is not None
            if removed:
                self._persist()
            return removed

    def scan(self) -> list[Device]:
        """Return deep copies of all stored devices."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            device_id: item.model_dump(mode="json") for device_id, item in self._items.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Discarding unreadable device table %s",
                self.persistence_path,
                extra={"reason": str(exc)},
            )
            data = {}

        for device_id, payload in data.items():
            self._items[device_id] = Device.model_validate(payload)


@lru_cache
def build_default_table(path: Optional[str] = None) -> DeviceTable:
    settings = get_settings()
    table_path = settings.device_table_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return DeviceTable(persistence_path=persistence)
