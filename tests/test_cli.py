from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

import httpx
import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import CLIConfig
from cli.simulate import DEMO_DEVICES, generate_history, random_voltage


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.registered: List[tuple[str, Any, Any]] = []
        self.heartbeats: List[str] = []
        self.sent: List[tuple[str, float, Any]] = []
        self.status_updates: List[tuple[str, str]] = []
        self.closed = False

    def _device(self, device_id: str, status: str = "active") -> Dict[str, Any]:
        return {
            "device_id": device_id,
            "name": f"Device {device_id}",
            "location": "Unknown",
            "status": status,
            "last_seen": "2024-01-01T00:00:00Z",
        }

    def list_devices(self) -> List[Dict[str, Any]]:
        return [
            {
                "device": self._device("DEV001"),
                "latest_sample": {"id": 1, "voltage": 255.0, "is_high": True, "timestamp": "t"},
            }
        ]

    def get_overview(self, device_id: str) -> Dict[str, Any]:
        return {
            "device": self._device(device_id),
            "latest_sample": None,
            "sample_count": 0,
            "average_voltage": None,
            "high_count": 0,
        }

    def get_logs(self, device_id: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        return [{"id": 7, "voltage": 230.0, "is_high": False, "timestamp": "t"}][:limit]

    def register(self, device_id: str, name=None, location=None) -> Dict[str, Any]:
        self.registered.append((device_id, name, location))
        return self._device(device_id)

    def heartbeat(self, device_id: str) -> Dict[str, Any]:
        self.heartbeats.append(device_id)
        return self._device(device_id)

    def send_voltage(self, device_id: str, voltage: float, is_high=None, timestamp=None) -> Dict[str, Any]:
        self.sent.append((device_id, voltage, timestamp))
        return {"id": len(self.sent), "voltage": voltage, "is_high": voltage >= 250, "timestamp": "t"}

    def set_status(self, device_id: str, status: str) -> Dict[str, Any]:
        self.status_updates.append((device_id, status))
        return self._device(device_id, status=status)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    client = StubClient(config=None)

    def factory(config):
        client.config = config
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return client


def test_devices_command(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["devices"])

    assert result.exit_code == 0
    assert "DEV001 [active]" in result.stdout
    assert "255.0V (HIGH)" in result.stdout
    assert stub.closed is True


def test_show_and_logs_commands(runner: CliRunner, stub: StubClient) -> None:
    shown = runner.invoke(app, ["show", "DEV001"])
    assert shown.exit_code == 0
    assert "device_id: DEV001" in shown.stdout
    assert "latest: no readings" in shown.stdout

    logs = runner.invoke(app, ["logs", "DEV001", "--limit", "5"])
    assert logs.exit_code == 0
    assert "#7 230.0V (normal)" in logs.stdout


def test_register_and_set_status(runner: CliRunner, stub: StubClient) -> None:
    registered = runner.invoke(
        app, ["--base-url", "http://telemetry:9000/", "register", "DEV001", "--name", "Main"]
    )
    assert registered.exit_code == 0
    assert stub.registered == [("DEV001", "Main", None)]
    assert stub.config.base_url == "http://telemetry:9000"

    updated = runner.invoke(app, ["set-status", "DEV001", "inactive"])
    assert updated.exit_code == 0
    assert "DEV001 is now inactive." in updated.stdout


def test_send_reports_high_voltage(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["send", "DEV001", "262.5"])

    assert result.exit_code == 0
    assert "HIGH VOLTAGE recorded: 262.5V" in result.stdout
    assert stub.sent == [("DEV001", 262.5, None)]


def test_simulate_runs_fixed_cycles(runner: CliRunner, stub: StubClient, monkeypatch) -> None:
    sleeps: List[float] = []
    monkeypatch.setattr("cli.app.time.sleep", sleeps.append)

    result = runner.invoke(
        app, ["simulate", "SIM-1", "--count", "3", "--interval", "0.5", "--seed", "7"]
    )

    assert result.exit_code == 0
    assert stub.registered == [("SIM-1", "Test IoT Device", "Test Lab")]
    assert stub.heartbeats == ["SIM-1"] * 3
    assert len(stub.sent) == 3
    assert sleeps == [0.5, 0.5]
    assert "Cycles: 3" in result.stdout


def test_seed_populates_demo_devices(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["seed", "--readings", "4", "--seed", "1"])

    assert result.exit_code == 0
    assert [entry[0] for entry in stub.registered] == [demo.device_id for demo in DEMO_DEVICES]
    assert len(stub.sent) == 12
    assert all(timestamp is not None for _, _, timestamp in stub.sent)


def test_random_voltage_ranges() -> None:
    rng = random.Random(3)

    highs = [random_voltage(rng, high_probability=1.0) for _ in range(20)]
    normals = [random_voltage(rng, high_probability=0.0) for _ in range(20)]

    assert all(250.0 <= value <= 270.0 for value in highs)
    assert all(220.0 <= value <= 240.0 for value in normals)


def test_generate_history_is_oldest_first() -> None:
    now = datetime(2024, 1, 2, tzinfo=timezone.utc)

    history = generate_history(now, random.Random(5), count=3)

    assert [reading.timestamp for reading in history] == [
        now - timedelta(minutes=10),
        now - timedelta(minutes=5),
        now,
    ]


def test_client_escapes_device_ids_in_paths() -> None:
    seen: List[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path)
        return httpx.Response(200, json={"device_id": "A/B?x", "status": "active"})

    client = ApiClient(
        CLIConfig(base_url="http://telemetry.test"), transport=httpx.MockTransport(handler)
    )
    try:
        client.heartbeat("A/B?x")
        client.get_logs("A/B?x", limit=5)
    finally:
        client.close()

    assert seen == [
        b"/api/devices/A%2FB%3Fx/status",
        b"/api/devices/A%2FB%3Fx/logs?limit=5&offset=0",
    ]
