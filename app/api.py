"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    ChartPointOut,
    DeviceListItem,
    DeviceOverviewOut,
    DeviceRegistration,
    HighVoltageEventOut,
    StatusUpdate,
    SummaryOut,
    VoltageSubmission,
)
from models.records import Device, VoltageSample
from services.errors import (
    DeviceNotFoundError,
    InvalidInputError,
    StorageTimeoutError,
    StorageUnavailableError,
    TelemetryError,
)
from services.telemetry import TelemetryService, build_default_service

router = APIRouter()


def get_service() -> TelemetryService:
    return build_default_service()


def _raise_http_error(exc: TelemetryError) -> NoReturn:
    if isinstance(exc, DeviceNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvalidInputError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, StorageTimeoutError):
        code = status.HTTP_504_GATEWAY_TIMEOUT
    elif isinstance(exc, StorageUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail=str(exc)) from exc


@router.get(
    "/api/devices",
    response_model=List[DeviceListItem],
    summary="List devices with their latest sample.",
)
def list_devices(
    service: TelemetryService = Depends(get_service),
) -> List[DeviceListItem]:
    try:
        rows = service.device_list()
    except TelemetryError as exc:
        _raise_http_error(exc)
    return [DeviceListItem(device=row.device, latest_sample=row.latest_sample) for row in rows]


@router.post(
    "/api/devices",
    response_model=Device,
    summary="Register a device, or refresh an existing registration.",
)
def register_device(
    payload: DeviceRegistration,
    service: TelemetryService = Depends(get_service),
) -> Device:
    try:
        return service.register_device(
            payload.device_id, name=payload.name, location=payload.location
        )
    except TelemetryError as exc:
        _raise_http_error(exc)


@router.get(
    "/api/devices/{device_id}",
    response_model=DeviceOverviewOut,
    summary="Device record with latest sample and statistics.",
)
def get_device_overview(
    device_id: str,
    service: TelemetryService = Depends(get_service),
) -> DeviceOverviewOut:
    try:
        overview = service.device_overview(device_id)
    except TelemetryError as exc:
        _raise_http_error(exc)
    return DeviceOverviewOut(
        device=overview.device,
        latest_sample=overview.latest_sample,
        high_count=overview.high_count,
        average_voltage=overview.average_voltage,
        sample_count=overview.sample_count,
    )


@router.post(
    "/api/devices/{device_id}/voltage",
    response_model=VoltageSample,
    summary="Submit a voltage reading; unknown devices are provisioned.",
)
def submit_voltage(
    device_id: str,
    payload: VoltageSubmission,
    service: TelemetryService = Depends(get_service),
) -> VoltageSample:
    try:
        return service.submit_voltage(
            device_id,
            payload.voltage,
            is_high=payload.is_high,
            timestamp=payload.timestamp,
        )
    except TelemetryError as exc:
        _raise_http_error(exc)


@router.get(
    "/api/devices/{device_id}/logs",
    response_model=List[VoltageSample],
    summary="Recent voltage samples, newest first.",
)
def get_voltage_logs(
    device_id: str,
    limit: int = Query(100, ge=0),
    offset: int = Query(0, ge=0),
    service: TelemetryService = Depends(get_service),
) -> List[VoltageSample]:
    try:
        return service.recent_logs(device_id, limit=limit, offset=offset)
    except TelemetryError as exc:
        _raise_http_error(exc)


@router.get(
    "/api/devices/{device_id}/series",
    response_model=List[ChartPointOut],
    summary="Voltage series for charting, oldest first.",
)
def get_chart_series(
    device_id: str,
    limit: int = Query(100, ge=0),
    service: TelemetryService = Depends(get_service),
) -> List[ChartPointOut]:
    try:
        points = service.chart_series(device_id, limit=limit)
    except TelemetryError as exc:
        _raise_http_error(exc)
    return [
        ChartPointOut(timestamp=point.timestamp, voltage=point.voltage, is_high=point.is_high)
        for point in points
    ]


@router.get(
    "/api/devices/{device_id}/summary",
    response_model=SummaryOut,
    summary="Sample statistics, all-time or over the most recent window.",
)
def get_summary(
    device_id: str,
    window: Optional[int] = Query(None, ge=0),
    service: TelemetryService = Depends(get_service),
) -> SummaryOut:
    try:
        result = service.summary(device_id, window=window)
    except TelemetryError as exc:
        _raise_http_error(exc)
    return SummaryOut(
        device_id=device_id,
        window=window,
        count=result.count,
        average_voltage=result.average_voltage,
        high_count=result.high_count,
        min_voltage=result.min_voltage,
        max_voltage=result.max_voltage,
    )


@router.put(
    "/api/devices/{device_id}/status",
    response_model=Device,
    summary="Device heartbeat.",
)
def heartbeat(
    device_id: str,
    service: TelemetryService = Depends(get_service),
) -> Device:
    try:
        return service.heartbeat(device_id)
    except TelemetryError as exc:
        _raise_http_error(exc)


@router.patch(
    "/api/devices/{device_id}/status",
    response_model=Device,
    summary="Administrative status override for a registered device.",
)
def set_device_status(
    device_id: str,
    payload: StatusUpdate,
    service: TelemetryService = Depends(get_service),
) -> Device:
    try:
        return service.set_status(device_id, payload.status)
    except TelemetryError as exc:
        _raise_http_error(exc)


@router.get(
    "/api/alerts",
    response_model=List[HighVoltageEventOut],
    summary="Most recent high-voltage samples across all devices.",
)
def list_high_voltage_events(
    limit: int = Query(50, ge=0),
    service: TelemetryService = Depends(get_service),
) -> List[HighVoltageEventOut]:
    try:
        events = service.high_voltage_events(limit=limit)
    except TelemetryError as exc:
        _raise_http_error(exc)
    return [
        HighVoltageEventOut(
            sample=event.sample,
            device_name=event.device.name if event.device else None,
            device_location=event.device.location if event.device else None,
            device_status=event.device.status if event.device else None,
        )
        for event in events
    ]


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
