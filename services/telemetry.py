"""Entry points composing the device registry and the telemetry store."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Optional, Union

from datastore.device_table import DeviceTable, build_default_table
from models.records import Device, DeviceStatus, VoltageSample
from services.classifier import ClassifierConfig
from services.deadlines import call_with_deadline
from services.errors import StorageTimeoutError
from services.liveness import LivenessMonitor
from services.registry import DeviceRegistry
from services.telemetry_store import SampleSummary, TelemetryStore
from settings import get_settings
from storage.sample_log import SampleLog, build_default_log


@dataclass
class DeviceOverview:
    device: Device
    latest_sample: Optional[VoltageSample]
    high_count: int
    average_voltage: Optional[float]
    sample_count: int


@dataclass
class DeviceListRow:
    device: Device
    latest_sample: Optional[VoltageSample]


@dataclass
class ChartPoint:
    timestamp: datetime
    voltage: float
    is_high: bool


@dataclass
class HighVoltageEvent:
    sample: VoltageSample
    device: Optional[Device]


class _Deadline:
    """Remaining-time budget shared by several storage calls."""

    def __init__(self, timeout: Optional[float]) -> None:
        self._expires = None if timeout is None else time.monotonic() + timeout

    def remaining(self, operation: str) -> Optional[float]:
        if self._expires is None:
            return None
        left = self._expires - time.monotonic()
        if left <= 0:
            raise StorageTimeoutError(f"{operation} exceeded its deadline.")
        return left


class TelemetryService:
    """Coordinates device lifecycle, sample ingestion and dashboard reads."""

    def __init__(
        self,
        registry: DeviceRegistry,
        store: TelemetryStore,
        monitor: LivenessMonitor,
        read_timeout: Optional[float] = 5.0,
    ) -> None:
        self.registry = registry
        self.store = store
        self.monitor = monitor
        self.read_timeout = read_timeout

    # Ingestion

    def register_device(
        self,
        device_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Device:
        return self.registry.register(device_id, name=name, location=location)

    def heartbeat(self, device_id: str) -> Device:
        return self.registry.heartbeat(device_id)

    def submit_voltage(
        self,
        device_id: str,
        voltage: float,
        is_high: Optional[bool] = None,
        timestamp: Optional[datetime] = None,
    ) -> VoltageSample:
        return self.store.append(device_id, voltage, is_high=is_high, timestamp=timestamp)

    # Administration

    def set_status(self, device_id: str, status: Union[DeviceStatus, str]) -> Device:
        return self.registry.set_status(device_id, status)

    # Queries

    def get_device(self, device_id: str) -> Device:
        return self.registry.get(device_id)

    def device_overview(self, device_id: str, timeout: Optional[float] = None) -> DeviceOverview:
        """Device record plus sample statistics from a single storage read.

        The record is read under the device's lock; the sample read happens
        after the lock is released so a slow read never blocks ingestion.
        """
        device = self.registry.get(device_id)
        with self.registry.device_lock(device.device_id):
            device = self.registry.get(device.device_id)
        latest, summary = self.store.snapshot(device.device_id, timeout=self._timeout(timeout))
        return DeviceOverview(
            device=device,
            latest_sample=latest,
            high_count=summary.high_count,
            average_voltage=summary.average_voltage,
            sample_count=summary.count,
        )

    def device_list(self, timeout: Optional[float] = None) -> list[DeviceListRow]:
        deadline = _Deadline(self._timeout(timeout))
        devices = call_with_deadline(
            self.store.executor,
            "device_list",
            self.registry.list,
            deadline.remaining("device_list"),
        )
        rows: list[DeviceListRow] = []
        for device in sorted(devices, key=lambda item: item.device_id):
            latest = self.store.latest(
                device.device_id, timeout=deadline.remaining("device_list")
            )
            rows.append(DeviceListRow(device=device, latest_sample=latest))
        return rows

    def recent_logs(
        self,
        device_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        timeout: Optional[float] = None,
    ) -> list[VoltageSample]:
        return self.store.recent(device_id, limit=limit, offset=offset, timeout=self._timeout(timeout))

    def chart_series(
        self,
        device_id: str,
        limit: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> list[ChartPoint]:
        samples = self.store.recent(device_id, limit=limit, timeout=self._timeout(timeout))
        return [
            ChartPoint(timestamp=sample.timestamp, voltage=sample.voltage, is_high=sample.is_high)
            for sample in reversed(samples)
        ]

    def summary(
        self,
        device_id: str,
        window: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SampleSummary:
        return self.store.summarize(device_id, window=window, timeout=self._timeout(timeout))

    def high_voltage_events(
        self, limit: Optional[int] = None, timeout: Optional[float] = None
    ) -> list[HighVoltageEvent]:
        """Most recent high samples across devices, joined with device metadata when present."""
        samples = self.store.high_events(limit=limit, timeout=self._timeout(timeout))
        devices: dict[str, Optional[Device]] = {}
        events: list[HighVoltageEvent] = []
        for sample in samples:
            if sample.device_id not in devices:
                devices[sample.device_id] = self.registry.find(sample.device_id)
            events.append(HighVoltageEvent(sample=sample, device=devices[sample.device_id]))
        return events

    # Lifecycle

    def start(self) -> None:
        self.monitor.start()

    def shutdown(self) -> None:
        """Stop the liveness monitor and release executor resources."""
        self.monitor.shutdown()
        self.store.executor.shutdown(wait=False, cancel_futures=True)

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return self.read_timeout if timeout is None else timeout


def build_service(
    table: DeviceTable,
    log: SampleLog,
    classifier_config: Optional[ClassifierConfig] = None,
    heartbeat_timeout: float = 300.0,
    liveness_interval: float = 60.0,
    liveness_enabled: bool = True,
    device_deadline: float = 1.0,
    read_timeout: Optional[float] = 5.0,
    read_workers: int = 4,
) -> TelemetryService:
    registry = DeviceRegistry(table)
    store = TelemetryStore(
        log=log,
        registry=registry,
        classifier_config=classifier_config or ClassifierConfig(),
        executor=ThreadPoolExecutor(max_workers=read_workers, thread_name_prefix="telemetry-read"),
    )
    monitor = LivenessMonitor(
        registry,
        timeout_seconds=heartbeat_timeout,
        interval_seconds=liveness_interval,
        device_deadline_seconds=device_deadline,
        enabled=liveness_enabled,
    )
    return TelemetryService(registry=registry, store=store, monitor=monitor, read_timeout=read_timeout)


@lru_cache
def build_default_service() -> TelemetryService:
    """Factory that wires the service from environment settings."""
    settings = get_settings()
    return build_service(
        table=build_default_table(),
        log=build_default_log(),
        classifier_config=ClassifierConfig(
            nominal_min=settings.nominal_min,
            nominal_max=settings.nominal_max,
            high_margin=settings.high_margin,
        ),
        heartbeat_timeout=settings.heartbeat_timeout_seconds,
        liveness_interval=settings.liveness_interval_seconds,
        liveness_enabled=settings.liveness_enabled,
        device_deadline=settings.liveness_device_deadline_seconds,
        read_timeout=settings.read_timeout_seconds,
        read_workers=settings.read_workers,
    )
