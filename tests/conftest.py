from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest

from datastore.device_table import DeviceTable, build_default_table
from services.classifier import ClassifierConfig
from services.liveness import LivenessMonitor
from services.registry import DeviceRegistry
from services.telemetry import TelemetryService, build_default_service
from services.telemetry_store import TelemetryStore
from settings import get_settings
from storage.sample_log import SampleLog, build_default_log

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def _clear_caches() -> None:
    for cache in (get_settings, build_default_table, build_default_log, build_default_service):
        cache.cache_clear()


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path) -> Iterator[None]:
    monkeypatch.setenv("DEVICE_TABLE_PATH", str(tmp_path / "default" / "devices.json"))
    monkeypatch.setenv("SAMPLE_LOG_ROOT", str(tmp_path / "default" / "samples"))
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def registry(clock: ManualClock) -> DeviceRegistry:
    return DeviceRegistry(DeviceTable(), clock=clock)


@pytest.fixture()
def store(registry: DeviceRegistry, clock: ManualClock) -> Iterator[TelemetryStore]:
    telemetry_store = TelemetryStore(
        log=SampleLog(),
        registry=registry,
        classifier_config=ClassifierConfig(),
        clock=clock,
    )
    yield telemetry_store
    telemetry_store.executor.shutdown(wait=False, cancel_futures=True)


@pytest.fixture()
def monitor(registry: DeviceRegistry, clock: ManualClock) -> Iterator[LivenessMonitor]:
    liveness = LivenessMonitor(registry, timeout_seconds=300, interval_seconds=60, clock=clock)
    yield liveness
    liveness.shutdown()


@pytest.fixture()
def service(
    registry: DeviceRegistry, store: TelemetryStore, monitor: LivenessMonitor
) -> Iterator[TelemetryService]:
    telemetry = TelemetryService(registry=registry, store=store, monitor=monitor, read_timeout=5.0)
    yield telemetry
    telemetry.shutdown()
