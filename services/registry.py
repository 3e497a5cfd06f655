"""Device registry: one record per device, serialized per device."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Dict, Iterator, Optional, Union

from datastore.device_table import DeviceTable
from models.records import Device, DeviceStatus
from services.deadlines import call_storage
from services.errors import DeviceNotFoundError, InvalidInputError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_LOCATION = "Unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_device_name(device_id: str) -> str:
    return f"Device {device_id}"


def normalize_device_id(device_id: object) -> str:
    if not isinstance(device_id, str) or not device_id.strip():
        raise InvalidInputError("device_id must be a non-empty string.")
    return device_id.strip()


def parse_status(value: Union[DeviceStatus, str]) -> DeviceStatus:
    if isinstance(value, DeviceStatus):
        return value
    if isinstance(value, str):
        try:
            return DeviceStatus(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(status.value for status in DeviceStatus)
    raise InvalidInputError(f"Unsupported status {value!r}; expected one of: {allowed}.")


class DeviceRegistry:
    """Owns device records and applies registration, heartbeat and status events."""

    def __init__(self, table: DeviceTable, clock: Clock = utcnow) -> None:
        self.table = table
        self._clock = clock
        self._locks: Dict[str, Lock] = {}
        self._locks_lock = Lock()

    @contextmanager
    def device_lock(self, device_id: str) -> Iterator[None]:
        with self._lock_for(device_id):
            yield

    def _lock_for(self, device_id: str) -> Lock:
        with self._locks_lock:
            return self._locks.setdefault(device_id, Lock())

    def register(
        self,
        device_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Device:
        return self._upsert(normalize_device_id(device_id), name=name, location=location)

    def heartbeat(self, device_id: str) -> Device:
        return self._upsert(normalize_device_id(device_id))

    def record_activity(self, device_id: str) -> None:
        self._upsert(normalize_device_id(device_id))

    def set_status(self, device_id: str, status: Union[DeviceStatus, str]) -> Device:
        key = normalize_device_id(device_id)
        new_status = parse_status(status)
        with self.device_lock(key):
            device = self._load(key)
            if device is None:
                raise DeviceNotFoundError(key)
            previous = device.status
            device.status = new_status
            call_storage("set_status", lambda: self.table.put_item(device))
        logger.info(
            "Device status set by administrator",
            extra={
                "device_id": key,
                "status": new_status.value,
                "previous_status": previous.value,
            },
        )
        return device

    def get(self, device_id: str) -> Device:
        key = normalize_device_id(device_id)
        device = self._load(key)
        if device is None:
            raise DeviceNotFoundError(key)
        return device

    def find(self, device_id: str) -> Optional[Device]:
        return self._load(device_id)

    def list(self) -> list[Device]:
        return call_storage("list_devices", self.table.scan)

    def expire(
        self,
        device_id: str,
        now: datetime,
        timeout: timedelta,
        lock_timeout: Optional[float] = None,
    ) -> bool:
        """Demote an active device whose last activity is older than ``timeout``.

        When ``lock_timeout`` is given and the device lock cannot be taken in
        time, nothing changes and ``False`` is returned.
        """
        lock = self._lock_for(device_id)
        if not lock.acquire(timeout=-1 if lock_timeout is None else lock_timeout):
            logger.debug("Device busy, expiry skipped", extra={"device_id": device_id})
            return False
        try:
            device = self._load(device_id)
            if device is None or device.status is not DeviceStatus.active:
                return False
            if now - device.last_seen <= timeout:
                return False
            device.status = DeviceStatus.inactive
            call_storage("expire", lambda: self.table.put_item(device))
        finally:
            lock.release()
        logger.info(
            "Device marked inactive after heartbeat timeout",
            extra={
                "device_id": device_id,
                "status": DeviceStatus.inactive.value,
                "previous_status": DeviceStatus.active.value,
            },
        )
        return True

    def _load(self, device_id: str) -> Optional[Device]:
        return call_storage("get_device", lambda: self.table.get_item(device_id))

    def _upsert(
        self,
        device_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Device:
        now = self._clock()
        with self.device_lock(device_id):
            device = self._load(device_id)
            if device is None:
                device = Device(
                    device_id=device_id,
                    name=name or default_device_name(device_id),
                    location=location or DEFAULT_LOCATION,
                    status=DeviceStatus.active,
                    last_seen=now,
                    created_at=now,
                )
                call_storage("provision", lambda: self.table.put_item(device))
                logger.info("Provisioned new device", extra={"device_id": device_id})
                return device

            if name:
                device.name = name
            if location:
                device.location = location
            device.status = DeviceStatus.active
            device.last_seen = max(device.last_seen, now)
            call_storage("touch", lambda: self.table.put_item(device))
            return device
