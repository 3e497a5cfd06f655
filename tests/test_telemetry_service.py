"""End-to-end behaviour of the telemetry service entry points."""

from __future__ import annotations

import threading
import time
from datetime import timedelta

import pytest

from models.records import DeviceStatus
from services.errors import DeviceNotFoundError, StorageTimeoutError
from services.telemetry import TelemetryService
from tests.conftest import T0, ManualClock


def test_overview_scenario(service: TelemetryService) -> None:
    service.register_device("DEV001", name="Main Power Monitor", location="Building A - Floor 1")

    normal = service.submit_voltage("DEV001", 230)
    high = service.submit_voltage("DEV001", 255)

    assert normal.is_high is False
    assert high.is_high is True

    overview = service.device_overview("DEV001")
    assert overview.high_count == 1
    assert overview.average_voltage == pytest.approx(242.5)
    assert overview.sample_count == 2
    assert overview.latest_sample is not None
    assert overview.latest_sample.voltage == 255.0
    assert overview.device.name == "Main Power Monitor"


def test_unknown_device_queries_are_not_found(service: TelemetryService) -> None:
    with pytest.raises(DeviceNotFoundError):
        service.device_overview("UNKNOWN")
    with pytest.raises(DeviceNotFoundError):
        service.set_status("UNKNOWN", "active")
    with pytest.raises(DeviceNotFoundError):
        service.get_device("UNKNOWN")


def test_liveness_scenario(service: TelemetryService, clock: ManualClock) -> None:
    service.register_device("DEV002")

    clock.now = T0 + timedelta(seconds=301)
    assert service.monitor.run_pass() == ["DEV002"]
    assert service.get_device("DEV002").status is DeviceStatus.inactive

    clock.now = T0 + timedelta(seconds=302)
    service.heartbeat("DEV002")
    assert service.get_device("DEV002").status is DeviceStatus.active


def test_ingestion_alone_keeps_device_active(
    service: TelemetryService, clock: ManualClock
) -> None:
    service.submit_voltage("FIELD-1", 231.5)
    clock.advance(200)
    service.submit_voltage("FIELD-1", 232.0)
    clock.advance(200)

    assert service.monitor.run_pass() == []
    assert service.get_device("FIELD-1").status is DeviceStatus.active
    assert service.get_device("FIELD-1").last_seen >= T0 + timedelta(seconds=200)


def test_device_list_returns_latest_sample_per_device(
    service: TelemetryService, clock: ManualClock
) -> None:
    service.register_device("DEV003")
    service.submit_voltage("DEV001", 230.0)
    clock.advance(1)
    service.submit_voltage("DEV001", 233.3)

    rows = service.device_list()

    assert [row.device.device_id for row in rows] == ["DEV001", "DEV003"]
    assert rows[0].latest_sample is not None
    assert rows[0].latest_sample.voltage == 233.3
    assert rows[1].latest_sample is None


def test_chart_series_is_oldest_first(service: TelemetryService, clock: ManualClock) -> None:
    for voltage in (221.0, 252.0, 239.0):
        service.submit_voltage("DEV001", voltage)
        clock.advance(300)

    points = service.chart_series("DEV001", limit=2)

    assert [(point.voltage, point.is_high) for point in points] == [(252.0, True), (239.0, False)]
    assert points[0].timestamp < points[1].timestamp
    logs = service.recent_logs("DEV001", limit=2)
    assert [sample.voltage for sample in logs] == [239.0, 252.0]


def test_summary_window(service: TelemetryService, clock: ManualClock) -> None:
    for voltage in (230.0, 260.0, 240.0):
        service.submit_voltage("DEV001", voltage)
        clock.advance(1)

    assert service.summary("DEV001").count == 3
    windowed = service.summary("DEV001", window=1)
    assert windowed.count == 1
    assert windowed.average_voltage == 240.0


def test_high_voltage_events_degrade_for_missing_devices(service: TelemetryService) -> None:
    service.register_device("DEV001", name="Main")
    service.submit_voltage("DEV001", 255.0)
    service.submit_voltage("GHOST", 261.0)
    service.registry.table.delete_item("GHOST")

    events = service.high_voltage_events(limit=10)

    by_device = {event.sample.device_id: event for event in events}
    assert by_device["DEV001"].device is not None
    assert by_device["DEV001"].device.name == "Main"
    assert by_device["GHOST"].device is None
    assert [sample.voltage for sample in service.recent_logs("GHOST")] == [261.0]


def test_set_status_override(service: TelemetryService) -> None:
    service.register_device("DEV001")

    device = service.set_status("DEV001", "inactive")

    assert device.status is DeviceStatus.inactive
    assert service.get_device("DEV001").status is DeviceStatus.inactive


def test_device_list_honours_deadline(service: TelemetryService, monkeypatch) -> None:
    service.register_device("DEV001")

    def stalled_scan():
        time.sleep(0.5)
        return []

    monkeypatch.setattr(service.registry.table, "scan", stalled_scan)

    with pytest.raises(StorageTimeoutError):
        service.device_list(timeout=0.05)


def test_read_your_writes(service: TelemetryService) -> None:
    sample = service.submit_voltage("DEV001", 244.4)

    latest = service.recent_logs("DEV001", limit=1)

    assert latest == [sample]


def test_slow_overview_read_does_not_block_heartbeats(
    service: TelemetryService, monkeypatch
) -> None:
    service.register_device("DEV001")
    entered = threading.Event()
    release = threading.Event()
    original = service.store.log.newest_first

    def stalled_read(device_id, limit=None, offset=0):
        entered.set()
        release.wait(2.0)
        return original(device_id, limit=limit, offset=offset)

    monkeypatch.setattr(service.store.log, "newest_first", stalled_read)
    results: list = []
    reader = threading.Thread(
        target=lambda: results.append(service.device_overview("DEV001", timeout=3.0))
    )
    reader.start()
    try:
        assert entered.wait(1.0)
        started = time.perf_counter()
        device = service.heartbeat("DEV001")
        elapsed = time.perf_counter() - started
    finally:
        release.set()
        reader.join(timeout=3.0)

    assert device.status is DeviceStatus.active
    assert elapsed < 0.5
    assert results and results[0].device.device_id == "DEV001"
