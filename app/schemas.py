"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt

from models.records import Device, DeviceStatus, VoltageSample


class DeviceRegistration(BaseModel):
    """Registration or re-registration request sent by a device."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(..., min_length=1, alias="deviceId")
    name: Optional[str] = None
    location: Optional[str] = None


class VoltageSubmission(BaseModel):
    """A raw reading; classification happens server-side unless ``is_high`` is given."""

    model_config = ConfigDict(populate_by_name=True)

    voltage: Union[StrictFloat, StrictInt]
    is_high: Optional[bool] = Field(default=None, alias="isHigh")
    timestamp: Optional[datetime] = None


class StatusUpdate(BaseModel):
    status: str = Field(..., description="Either 'active' or 'inactive'.")


class DeviceOverviewOut(BaseModel):
    """Device record with its latest sample and all-time statistics."""

    device: Device
    latest_sample: Optional[VoltageSample] = None
    high_count: int = Field(..., ge=0)
    average_voltage: Optional[float] = None
    sample_count: int = Field(..., ge=0)


class DeviceListItem(BaseModel):
    device: Device
    latest_sample: Optional[VoltageSample] = None


class ChartPointOut(BaseModel):
    timestamp: datetime
    voltage: float
    is_high: bool


class SummaryOut(BaseModel):
    """Aggregate statistics for a device's samples."""

    device_id: str
    window: Optional[int] = Field(
        default=None, description="Number of most recent samples covered; null means all-time."
    )
    count: int = Field(..., ge=0)
    average_voltage: Optional[float] = None
    high_count: int = Field(..., ge=0)
    min_voltage: Optional[float] = None
    max_voltage: Optional[float] = None


class HighVoltageEventOut(BaseModel):
    sample: VoltageSample
    device_name: Optional[str] = None
    device_location: Optional[str] = None
    device_status: Optional[DeviceStatus] = None
