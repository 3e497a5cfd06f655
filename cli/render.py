from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _sample_line(sample: Optional[Dict[str, Any]]) -> str:
    if not sample:
        return "no readings"
    label = "HIGH" if sample.get("is_high") else "normal"
    return f"{sample.get('voltage')}V ({label}) at {sample.get('timestamp')}"


def render_device(device: Dict[str, Any]) -> None:
    echo_key_values(
        [
            ("device_id", device.get("device_id")),
            ("name", device.get("name")),
            ("location", device.get("location")),
            ("status", device.get("status")),
            ("last_seen", device.get("last_seen")),
        ]
    )


def render_overview(payload: Dict[str, Any]) -> None:
    echo_heading("Device")
    render_device(payload.get("device") or {})

    typer.echo()
    echo_heading("Readings")
    echo_key_values(
        [
            ("latest", _sample_line(payload.get("latest_sample"))),
            ("sample_count", payload.get("sample_count")),
            ("average_voltage", payload.get("average_voltage")),
            ("high_count", payload.get("high_count")),
        ]
    )


def render_device_list(rows: List[Dict[str, Any]]) -> None:
    echo_heading("Devices")
    if not rows:
        typer.echo("No devices registered.")
        return
    for row in rows:
        device = row.get("device") or {}
        typer.echo(
            f"  - {device.get('device_id')} [{device.get('status')}] "
            f"{device.get('name')} @ {device.get('location')}: "
            f"{_sample_line(row.get('latest_sample'))}"
        )


def render_logs(device_id: str, samples: List[Dict[str, Any]]) -> None:
    echo_heading(f"Voltage logs for {device_id}")
    if not samples:
        typer.echo("No readings recorded.")
        return
    for sample in samples:
        typer.echo(f"  - #{sample.get('id')} {_sample_line(sample)}")
