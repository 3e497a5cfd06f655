from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from datastore.device_table import DeviceTable
from models.records import Device, DeviceStatus
from storage.sample_log import SampleLog

_T = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _device(device_id: str = "DEV001") -> Device:
    return Device(
        device_id=device_id,
        name="Main Power Monitor",
        location="Building A - Floor 1",
        status=DeviceStatus.active,
        last_seen=_T,
        created_at=_T,
    )


def test_device_table_returns_deep_copies() -> None:
    table = DeviceTable()
    original = _device()

    table.put_item(original)
    fetched = table.get_item("DEV001")

    assert fetched == original
    assert fetched is not original

    fetched.name = "Changed"  # type: ignore[union-attr]
    assert table.get_item("DEV001").name == "Main Power Monitor"  # type: ignore[union-attr]
    assert table.get_item("missing") is None


def test_device_table_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "devices.json"
    table = DeviceTable(persistence_path=path)
    table.put_item(_device())

    payload = json.loads(path.read_text())
    assert payload["DEV001"]["status"] == "active"

    reloaded = DeviceTable(persistence_path=path)
    assert reloaded.get_item("DEV001") == _device()

    assert reloaded.delete_item("DEV001") is True
    assert reloaded.delete_item("DEV001") is False
    assert DeviceTable(persistence_path=path).scan() == []


def test_device_table_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "devices.json"
    path.write_text("{not json")

    table = DeviceTable(persistence_path=path)

    assert table.scan() == []


def test_sample_log_assigns_monotonic_ids() -> None:
    log = SampleLog()

    first = log.append("DEV001", 230.0, False, _T)
    second = log.append("DEV002", 231.0, False, _T)
    third = log.append("DEV001", 255.0, True, _T - timedelta(minutes=1))

    assert [first.id, second.id, third.id] == [1, 2, 3]
    assert [sample.id for sample in log.newest_first("DEV001")] == [1, 3]
    assert log.newest_first("UNKNOWN") == []


def test_sample_log_persists_per_device_files(tmp_path: Path) -> None:
    log = SampleLog(root_path=tmp_path)
    log.append("DEV/001", 230.0, False, _T)
    log.append("DEV/001", 251.0, True, _T + timedelta(seconds=1))

    files = sorted(path.name for path in tmp_path.iterdir())
    assert files == ["DEV%2F001.jsonl"]

    reloaded = SampleLog(root_path=tmp_path)
    samples = reloaded.newest_first("DEV/001")
    assert [(sample.id, sample.voltage, sample.is_high) for sample in samples] == [
        (2, 251.0, True),
        (1, 230.0, False),
    ]
    assert reloaded.append("DEV/001", 229.0, False, _T).id == 3


def test_sample_log_skips_unreadable_lines(tmp_path: Path) -> None:
    log = SampleLog(root_path=tmp_path)
    log.append("DEV001", 230.0, False, _T)
    with (tmp_path / "DEV001.jsonl").open("a", encoding="utf-8") as handle:
        handle.write("garbage\n\n")

    reloaded = SampleLog(root_path=tmp_path)

    assert [sample.voltage for sample in reloaded.newest_first("DEV001")] == [230.0]
