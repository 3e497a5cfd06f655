"""Synthetic readings for the device simulator and the demo seeder."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List


@dataclass(frozen=True)
class DemoDevice:
    device_id: str
    name: str
    location: str


@dataclass(frozen=True)
class SyntheticReading:
    timestamp: datetime
    voltage: float


DEMO_DEVICES = (
    DemoDevice("DEV001", "Main Power Monitor", "Building A - Floor 1"),
    DemoDevice("DEV002", "Backup Generator Monitor", "Building A - Basement"),
    DemoDevice("DEV003", "Server Room Monitor", "Building B - Floor 2"),
)


def random_voltage(rng: random.Random, high_probability: float = 0.1) -> float:
    """High readings fall in 250-270 V, normal ones in 220-240 V."""
    if rng.random() < high_probability:
        value = 250 + rng.random() * 20
    else:
        value = 220 + rng.random() * 20
    return round(value, 1)


def generate_history(
    now: datetime,
    rng: random.Random,
    count: int = 288,
    interval: timedelta = timedelta(minutes=5),
    high_probability: float = 0.05,
) -> List[SyntheticReading]:
    """Readings going back ``count`` intervals from ``now``, oldest first."""
    readings: List[SyntheticReading] = []
    for step in range(count - 1, -1, -1):
        base = 220 + rng.random() * 20
        if rng.random() < high_probability:
            base += 30 + rng.random() * 20
        readings.append(
            SyntheticReading(timestamp=now - step * interval, voltage=round(base, 1))
        )
    return readings
