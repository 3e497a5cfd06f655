from __future__ import annotations

import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_device, render_device_list, render_logs, render_overview
from cli.simulate import DEMO_DEVICES, generate_history, random_voltage


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the voltage telemetry service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Telemetry API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("devices")
def devices_command(ctx: typer.Context) -> None:
    """List devices with their latest reading."""
    state = _get_state(ctx)
    render_device_list(state.client.list_devices())


@app.command("show")
def show_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
) -> None:
    """Show a device overview with reading statistics."""
    state = _get_state(ctx)
    render_overview(state.client.get_overview(device_id))


@app.command("logs")
def logs_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    limit: int = typer.Option(20, "--limit", "-n", min=0, help="Number of readings to show."),
    offset: int = typer.Option(0, "--offset", min=0, help="Readings to skip, newest first."),
) -> None:
    """Show recent voltage readings, newest first."""
    state = _get_state(ctx)
    render_logs(device_id, state.client.get_logs(device_id, limit=limit, offset=offset))


@app.command("register")
def register_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    name: Optional[str] = typer.Option(None, "--name", help="Display name."),
    location: Optional[str] = typer.Option(None, "--location", help="Installation location."),
) -> None:
    """Register a device or refresh its registration."""
    state = _get_state(ctx)
    device = state.client.register(device_id, name=name, location=location)
    typer.secho(f"Registered {device.get('device_id')}.", fg=typer.colors.GREEN)
    render_device(device)


@app.command("heartbeat")
def heartbeat_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
) -> None:
    """Send a single heartbeat for a device."""
    state = _get_state(ctx)
    device = state.client.heartbeat(device_id)
    typer.echo(f"Heartbeat accepted. status={device.get('status')} last_seen={device.get('last_seen')}")


@app.command("send")
def send_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    voltage: float = typer.Argument(..., help="Measured voltage."),
) -> None:
    """Submit one voltage reading."""
    state = _get_state(ctx)
    sample = state.client.send_voltage(device_id, voltage)
    if sample.get("is_high"):
        typer.secho(f"HIGH VOLTAGE recorded: {sample.get('voltage')}V", fg=typer.colors.RED)
    else:
        typer.echo(f"Recorded {sample.get('voltage')}V (normal).")


@app.command("set-status")
def set_status_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identifier."),
    status: str = typer.Argument(..., help="'active' or 'inactive'."),
) -> None:
    """Override the status of a registered device."""
    state = _get_state(ctx)
    device = state.client.set_status(device_id, status)
    typer.echo(f"{device.get('device_id')} is now {device.get('status')}.")


@app.command("simulate")
def simulate_command(
    ctx: typer.Context,
    device_id: str = typer.Argument("TEST_DEVICE_001", help="Device identifier to simulate."),
    name: str = typer.Option("Test IoT Device", "--name", help="Display name used on registration."),
    location: str = typer.Option("Test Lab", "--location", help="Location used on registration."),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Seconds between cycles (defaults to CLI_HEARTBEAT_INTERVAL)."
    ),
    count: int = typer.Option(0, "--count", min=0, help="Cycles to run; 0 runs until interrupted."),
    high_probability: float = typer.Option(
        0.1, "--high-probability", min=0.0, max=1.0, help="Chance of a high-voltage reading."
    ),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducible runs."),
) -> None:
    """Act as a field device: heartbeat and send a reading every cycle."""
    state = _get_state(ctx)
    rng = random.Random(seed)
    pause = interval if interval is not None else state.config.heartbeat_interval

    state.client.register(device_id, name=name, location=location)
    typer.secho(f"Device {device_id} registered.", fg=typer.colors.GREEN)

    cycles = 0
    alerts = 0
    try:
        while count == 0 or cycles < count:
            cycles += 1
            state.client.heartbeat(device_id)
            sample = state.client.send_voltage(device_id, random_voltage(rng, high_probability))
            if sample.get("is_high"):
                alerts += 1
                typer.secho(
                    f"#{cycles} HIGH VOLTAGE: {sample.get('voltage')}V", fg=typer.colors.RED
                )
            else:
                typer.echo(f"#{cycles} {sample.get('voltage')}V")
            if count == 0 or cycles < count:
                time.sleep(pause)
    except KeyboardInterrupt:
        state.client.set_status(device_id, "inactive")
        typer.echo("Interrupted; device marked inactive.")
    typer.echo(f"Cycles: {cycles}, high-voltage readings: {alerts}")


@app.command("seed")
def seed_command(
    ctx: typer.Context,
    readings: int = typer.Option(288, "--readings", min=1, help="Readings per demo device."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducible data."),
) -> None:
    """Populate three demo devices with a day of five-minute readings."""
    state = _get_state(ctx)
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    for demo in DEMO_DEVICES:
        state.client.register(demo.device_id, name=demo.name, location=demo.location)
        history = generate_history(now, rng, count=readings)
        for reading in history:
            state.client.send_voltage(demo.device_id, reading.voltage, timestamp=reading.timestamp)
        typer.secho(
            f"Seeded {len(history)} readings for {demo.name} ({demo.device_id}).",
            fg=typer.colors.GREEN,
        )
