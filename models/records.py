"""Domain records owned by the registry and the telemetry store."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DeviceStatus(str, Enum):
    """Lifecycle states of a device."""

    active = "active"
    inactive = "inactive"


class Device(BaseModel):
    """A registered sensor endpoint."""

    device_id: str
    name: str
    location: str
    status: DeviceStatus
    last_seen: datetime
    created_at: datetime


class VoltageSample(BaseModel):
    """A single classified voltage reading."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    device_id: str
    voltage: float
    is_high: bool
    timestamp: datetime

    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.id)
